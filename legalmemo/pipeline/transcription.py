"""Batch speech-to-text client for archived recordings (AssemblyAI v2 REST).

The audio is uploaded, a transcript job is submitted, and the job is polled
at a fixed interval. Polling is capped; a job that never finishes raises
TranscriptionTimeoutError instead of looping forever.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_attempt, wait_fixed

from legalmemo.config import settings
from legalmemo.models.transcript import DiarizedUtterance
from legalmemo.retry import transient_retry

logger = structlog.get_logger()

TERMINAL_STATUSES = {"completed", "error"}


class TranscriptionError(Exception):
    """Raised when the transcription service rejects or fails a job."""

    pass


class TranscriptionTimeoutError(TranscriptionError):
    """Raised when a transcription job does not finish within the poll cap."""

    pass


@dataclass
class BatchTranscript:
    """Completed transcription job."""

    id: str
    text: str
    utterances: list[DiarizedUtterance] | None
    audio_duration_seconds: float | None

    @property
    def detected_speakers(self) -> int:
        if not self.utterances:
            return 0
        return len({u.speaker for u in self.utterances})


class BatchTranscriptionClient:
    """Transcribes archived audio with optional speaker diarization."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        speaker_labels: bool | None = None,
        language_code: str | None = None,
        poll_interval: float | None = None,
        max_poll_attempts: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key or settings.assemblyai_api_key
        self._base_url = base_url or settings.assemblyai_base_url
        self.speaker_labels = (
            settings.stt_speaker_labels if speaker_labels is None else speaker_labels
        )
        self._language_code = language_code or settings.stt_language_code
        self._poll_interval = (
            settings.stt_poll_interval_seconds if poll_interval is None else poll_interval
        )
        self._max_poll_attempts = max_poll_attempts or settings.stt_max_poll_attempts
        self._http = http_client

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http is not None:
            yield self._http
            return
        async with httpx.AsyncClient(base_url=self._base_url, timeout=60.0) as client:
            yield client

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise TranscriptionError(
                "AssemblyAI API key not configured. Set ASSEMBLYAI_API_KEY."
            )
        return {"Authorization": self._api_key}

    async def transcribe(self, audio: bytes, expected_speakers: int = 2) -> BatchTranscript:
        """Transcribe an audio file.

        Args:
            audio: Complete audio file contents
            expected_speakers: Hint for the diarization model

        Returns:
            BatchTranscript with text and, when diarization is enabled,
            per-utterance speaker labels

        Raises:
            TranscriptionError: If the service reports an error
            TranscriptionTimeoutError: If polling exceeds the attempt cap
        """
        headers = self._headers()
        async with self._client() as client:
            try:
                upload_url = await self._upload(client, headers, audio)
                transcript_id = await self._submit(
                    client, headers, upload_url, expected_speakers
                )
                payload = await self._poll(client, headers, transcript_id)
            except httpx.HTTPStatusError as e:
                raise TranscriptionError(
                    f"Transcription request failed: {e.response.status_code}"
                ) from e

        if payload["status"] == "error":
            raise TranscriptionError(
                f"Transcription failed: {payload.get('error', 'unknown error')}"
            )

        utterances = None
        if self.speaker_labels and payload.get("utterances") is not None:
            utterances = [
                DiarizedUtterance(
                    speaker=str(u.get("speaker", "A")),
                    text=u.get("text", ""),
                    start_ms=int(u.get("start", 0)),
                    end_ms=int(u.get("end", 0)),
                    confidence=u.get("confidence"),
                )
                for u in payload["utterances"]
            ]

        transcript = BatchTranscript(
            id=transcript_id,
            text=payload.get("text") or "",
            utterances=utterances,
            audio_duration_seconds=payload.get("audio_duration"),
        )
        logger.info(
            "transcription complete",
            transcript_id=transcript_id,
            chars=len(transcript.text),
            speakers=transcript.detected_speakers,
        )
        return transcript

    @transient_retry()
    async def _upload(
        self, client: httpx.AsyncClient, headers: dict[str, str], audio: bytes
    ) -> str:
        response = await client.post(
            f"{self._base_url}/v2/upload", headers=headers, content=audio
        )
        response.raise_for_status()
        return response.json()["upload_url"]

    @transient_retry()
    async def _submit(
        self,
        client: httpx.AsyncClient,
        headers: dict[str, str],
        audio_url: str,
        expected_speakers: int,
    ) -> str:
        body: dict[str, Any] = {
            "audio_url": audio_url,
            "language_code": self._language_code,
            "speech_model": "slam-1" if self._language_code == "en" else "best",
            "speaker_labels": self.speaker_labels,
        }
        if self.speaker_labels:
            body["speakers_expected"] = expected_speakers or 2
        response = await client.post(
            f"{self._base_url}/v2/transcript", headers=headers, json=body
        )
        response.raise_for_status()
        transcript_id = response.json()["id"]
        logger.info("transcription submitted", transcript_id=transcript_id)
        return transcript_id

    async def _poll(
        self, client: httpx.AsyncClient, headers: dict[str, str], transcript_id: str
    ) -> dict[str, Any]:
        async def fetch() -> dict[str, Any]:
            response = await client.get(
                f"{self._base_url}/v2/transcript/{transcript_id}", headers=headers
            )
            response.raise_for_status()
            return response.json()

        polling = AsyncRetrying(
            stop=stop_after_attempt(self._max_poll_attempts),
            wait=wait_fixed(self._poll_interval),
            retry=retry_if_result(lambda p: p.get("status") not in TERMINAL_STATUSES),
        )
        try:
            return await polling(fetch)
        except RetryError as e:
            raise TranscriptionTimeoutError(
                f"Transcription timed out after {self._max_poll_attempts} polls"
            ) from e
