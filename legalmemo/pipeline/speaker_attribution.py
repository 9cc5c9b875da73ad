"""Speaker attribution: turn raw transcript text into role-labelled segments.

Two paths produce segments:
- diarized utterances from the transcription call are mapped to roles by
  order of first appearance (first speaker LAWYER, second CLIENT, others
  OTHER)
- otherwise the language model splits the text by inferred speaker change
  and labels each segment from its content

If the model call fails, the whole transcript becomes a single UNKNOWN
segment spanning the recording.
"""

import math
from dataclasses import dataclass
from uuid import UUID

import structlog

from legalmemo.models.transcript import (
    DiarizedUtterance,
    SpeakerLabel,
    TranscriptSegment,
)
from legalmemo.pipeline.fallbacks import MIN_TEXT_CHARS
from legalmemo.pipeline.prompts import SPEAKER_ATTRIBUTION_PROMPT
from legalmemo.pipeline.schemas import AttributedSpeechSegment, SpeakerAttribution
from legalmemo.services.llm_client import LLMClient

logger = structlog.get_logger()

AI_ATTRIBUTION_CONFIDENCE = 0.85
NO_SPEECH_TEXT = "No speech detected."

_ROLE_ORDER = [SpeakerLabel.LAWYER, SpeakerLabel.CLIENT]


@dataclass
class AttributionResult:
    """Segments for a meeting and how they were produced."""

    segments: list[TranscriptSegment]
    used_fallback: bool = False
    source: str = "llm"


def single_segment_fallback(
    meeting_id: UUID, transcript_text: str, duration_seconds: int
) -> list[TranscriptSegment]:
    """The whole transcript as one UNKNOWN segment spanning the recording."""
    return [
        TranscriptSegment(
            meeting_id=meeting_id,
            speaker_label=SpeakerLabel.UNKNOWN,
            text=transcript_text.strip() or NO_SPEECH_TEXT,
            start_ms=0,
            end_ms=duration_seconds * 1000,
        )
    ]


def positions_to_segments(
    meeting_id: UUID,
    attributed: list[AttributedSpeechSegment],
    duration_seconds: int,
) -> list[TranscriptSegment]:
    """Convert percentage positions to millisecond boundaries.

    Each segment ends where the next begins; the last ends at 100%.
    """
    total_ms = duration_seconds * 1000
    ordered = sorted(
        (s for s in attributed if s.text.strip()), key=lambda s: s.position
    )
    segments = []
    for index, item in enumerate(ordered):
        next_position = ordered[index + 1].position if index + 1 < len(ordered) else 100
        start_ms = math.floor(item.position / 100 * total_ms)
        end_ms = math.floor(next_position / 100 * total_ms)
        segments.append(
            TranscriptSegment(
                meeting_id=meeting_id,
                speaker_label=item.speaker_label,
                speaker_name=item.speaker_name,
                text=item.text.strip(),
                start_ms=start_ms,
                end_ms=max(start_ms, end_ms),
                confidence=AI_ATTRIBUTION_CONFIDENCE,
            )
        )
    return segments


def utterances_to_segments(
    meeting_id: UUID,
    utterances: list[DiarizedUtterance],
    duration_seconds: int | None = None,
) -> list[TranscriptSegment]:
    """Map diarized utterances to role-labelled segments.

    Timings are clamped to the recording length when it is known.
    """
    roles: dict[str, SpeakerLabel] = {}
    limit_ms = duration_seconds * 1000 if duration_seconds else None
    segments = []
    for utterance in sorted(utterances, key=lambda u: u.start_ms):
        if utterance.speaker not in roles:
            index = len(roles)
            roles[utterance.speaker] = (
                _ROLE_ORDER[index] if index < len(_ROLE_ORDER) else SpeakerLabel.OTHER
            )
        start_ms, end_ms = utterance.start_ms, max(utterance.start_ms, utterance.end_ms)
        if limit_ms is not None:
            start_ms, end_ms = min(start_ms, limit_ms), min(end_ms, limit_ms)
        segments.append(
            TranscriptSegment(
                meeting_id=meeting_id,
                speaker_label=roles[utterance.speaker],
                speaker_name=f"Speaker {utterance.speaker}",
                text=utterance.text,
                start_ms=start_ms,
                end_ms=end_ms,
                confidence=utterance.confidence,
            )
        )
    return segments


class SpeakerAttributor:
    """Produces speaker-attributed segments for a meeting."""

    def __init__(self, llm_client: LLMClient):
        """Initialize attributor.

        Args:
            llm_client: LLM client for the content-based classification pass
        """
        self._llm_client = llm_client

    async def attribute(
        self,
        meeting_id: UUID,
        transcript_text: str,
        duration_seconds: int,
        utterances: list[DiarizedUtterance] | None = None,
    ) -> AttributionResult:
        """Attribute the transcript to speakers.

        Never raises for model failures; falls back to one UNKNOWN segment.

        Args:
            meeting_id: Meeting the segments belong to
            transcript_text: Raw transcript text
            duration_seconds: Recording length used to place boundaries
            utterances: Diarized utterances, when the transcription call
                produced them

        Returns:
            AttributionResult with the segments in start order
        """
        if utterances:
            segments = utterances_to_segments(meeting_id, utterances, duration_seconds)
            return AttributionResult(segments=segments, source="diarization")

        if len(transcript_text.strip()) < MIN_TEXT_CHARS:
            logger.info("transcript too short for attribution", meeting_id=str(meeting_id))
            return AttributionResult(
                segments=single_segment_fallback(meeting_id, transcript_text, duration_seconds),
                used_fallback=True,
                source="fallback",
            )

        prompt = SPEAKER_ATTRIBUTION_PROMPT.format(transcript=transcript_text)
        try:
            result = await self._llm_client.extract(prompt, SpeakerAttribution)
        except Exception as e:
            logger.error("speaker attribution failed", meeting_id=str(meeting_id), error=str(e))
            result = None

        segments = (
            positions_to_segments(meeting_id, result.segments, duration_seconds)
            if result is not None
            else []
        )
        if not segments:
            return AttributionResult(
                segments=single_segment_fallback(meeting_id, transcript_text, duration_seconds),
                used_fallback=True,
                source="fallback",
            )

        logger.info(
            "speaker attribution complete",
            meeting_id=str(meeting_id),
            segments=len(segments),
            speakers=[m.label.value for m in result.speaker_mapping],
        )
        return AttributionResult(segments=segments)
