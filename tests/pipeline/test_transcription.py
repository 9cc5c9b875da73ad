"""Tests for the batch transcription client."""

import json

import httpx
import pytest

from legalmemo.pipeline.transcription import (
    BatchTranscriptionClient,
    TranscriptionError,
    TranscriptionTimeoutError,
)

BASE_URL = "https://stt.test"


class FakeTranscriptionService:
    """Routes upload, submit and poll requests to canned responses."""

    def __init__(self, statuses: list[dict]):
        self.statuses = statuses
        self.submitted: dict | None = None
        self.uploaded: bytes | None = None
        self.polls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/upload":
            self.uploaded = request.content
            return httpx.Response(200, json={"upload_url": "https://cdn.test/upload/1"})
        if request.url.path == "/v2/transcript" and request.method == "POST":
            self.submitted = json.loads(request.content)
            return httpx.Response(200, json={"id": "t-1"})
        if request.url.path == "/v2/transcript/t-1":
            payload = self.statuses[min(self.polls, len(self.statuses) - 1)]
            self.polls += 1
            return httpx.Response(200, json=payload)
        return httpx.Response(404)


COMPLETED = {
    "status": "completed",
    "text": "Hello there. Hi.",
    "audio_duration": 12.5,
    "utterances": [
        {"speaker": "A", "text": "Hello there.", "start": 0, "end": 1200, "confidence": 0.95},
        {"speaker": "B", "text": "Hi.", "start": 1300, "end": 1800, "confidence": 0.9},
    ],
}


def make_client(service, **kwargs) -> BatchTranscriptionClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(service))
    params = {
        "api_key": "test-key",
        "base_url": BASE_URL,
        "poll_interval": 0,
        "max_poll_attempts": 5,
        "http_client": http,
    }
    params.update(kwargs)
    return BatchTranscriptionClient(**params)


class TestTranscribe:
    """Tests for BatchTranscriptionClient.transcribe."""

    async def test_completed_with_utterances(self):
        """Upload, submit and poll produce a diarized transcript."""
        service = FakeTranscriptionService([{"status": "processing"}, COMPLETED])
        client = make_client(service, speaker_labels=True)

        result = await client.transcribe(b"RIFF-audio", expected_speakers=3)

        assert result.id == "t-1"
        assert result.text == "Hello there. Hi."
        assert result.audio_duration_seconds == 12.5
        assert result.detected_speakers == 2
        assert result.utterances[1].start_ms == 1300
        assert result.utterances[1].end_ms == 1800
        assert service.uploaded == b"RIFF-audio"
        assert service.polls == 2
        assert service.submitted["audio_url"] == "https://cdn.test/upload/1"
        assert service.submitted["speaker_labels"] is True
        assert service.submitted["speakers_expected"] == 3

    async def test_without_speaker_labels(self):
        """Diarization off: no utterances and no speaker hint."""
        service = FakeTranscriptionService([COMPLETED])
        client = make_client(service, speaker_labels=False)

        result = await client.transcribe(b"audio")

        assert result.utterances is None
        assert result.detected_speakers == 0
        assert service.submitted["speaker_labels"] is False
        assert "speakers_expected" not in service.submitted

    async def test_error_status_raises(self):
        """A job reported as error raises TranscriptionError."""
        service = FakeTranscriptionService([{"status": "error", "error": "bad audio"}])
        client = make_client(service)

        with pytest.raises(TranscriptionError, match="bad audio"):
            await client.transcribe(b"audio")

    async def test_poll_cap_raises_timeout(self):
        """A job that never finishes stops after max_poll_attempts."""
        service = FakeTranscriptionService([{"status": "processing"}])
        client = make_client(service, max_poll_attempts=2)

        with pytest.raises(TranscriptionTimeoutError):
            await client.transcribe(b"audio")
        assert service.polls == 2

    async def test_http_error_raises(self):
        """A rejected request raises TranscriptionError with the status code."""

        def reject(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "unauthorized"})

        client = make_client(reject)

        with pytest.raises(TranscriptionError, match="401"):
            await client.transcribe(b"audio")

    async def test_missing_api_key(self, monkeypatch):
        """No configured key fails before any request."""
        from legalmemo.pipeline import transcription

        monkeypatch.setattr(transcription.settings, "assemblyai_api_key", None)
        service = FakeTranscriptionService([COMPLETED])
        client = make_client(service, api_key=None)

        with pytest.raises(TranscriptionError, match="not configured"):
            await client.transcribe(b"audio")
        assert service.uploaded is None
