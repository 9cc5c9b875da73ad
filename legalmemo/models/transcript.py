"""Transcript models: live streaming turns and persisted segments."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from legalmemo.models.base import BaseEntity


class SpeakerLabel(str, Enum):
    """Role attributed to a transcript segment."""

    LAWYER = "LAWYER"
    CLIENT = "CLIENT"
    OTHER = "OTHER"
    UNKNOWN = "UNKNOWN"


class TranscriptTurn(BaseModel):
    """A live utterance assembled from streaming turn messages.

    The speaker is a placeholder; streaming sessions are not diarized.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Turn identifier (turn-<epoch ms>-<counter>)")
    speaker: str = Field(description="Best-effort speaker label")
    text: str
    start_ms: int = Field(ge=0)
    end_ms: int = Field(ge=0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    is_final: bool = Field(default=False)


class TranscriptSegment(BaseEntity):
    """Authoritative, speaker-attributed slice of a meeting transcript."""

    meeting_id: UUID
    speaker_label: SpeakerLabel = Field(default=SpeakerLabel.UNKNOWN)
    speaker_name: str | None = Field(default=None)
    text: str
    start_ms: int = Field(ge=0)
    end_ms: int = Field(ge=0)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    is_streaming_result: bool = Field(default=False)


class DiarizedUtterance(BaseModel):
    """One utterance returned by a diarization-capable transcription call."""

    speaker: str = Field(description="Provider speaker letter, e.g. 'A'")
    text: str
    start_ms: int = Field(ge=0)
    end_ms: int = Field(ge=0)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class RawTranscript(BaseModel):
    """Output of the transcription stage, kept so later stages can resume."""

    meeting_id: UUID
    provider_transcript_id: str | None = None
    text: str = ""
    utterances: list[DiarizedUtterance] | None = None
    audio_duration_seconds: float | None = None
