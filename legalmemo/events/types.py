"""Typed event definitions.

Streaming:
- StreamingConnectionChanged: socket connection state moved
- StreamingTurnReceived: a Turn message arrived
- StreamingSessionTerminated: the provider closed the session

Lifecycle and pipeline:
- MeetingStatusChanged: a meeting's status was persisted
- PipelineStageCompleted: one pipeline stage finished
- MeetingProcessed: the pipeline reached ready
- MeetingProcessingFailed: the pipeline ended in failed
"""

from pydantic import Field

from legalmemo.events.base import Event
from legalmemo.streaming.protocol import TurnMessage


class StreamingConnectionChanged(Event):
    """Emitted whenever the streaming client's connection state changes."""

    state: str = Field(description="New connection state")
    session_id: str | None = Field(default=None)
    error: str | None = Field(default=None)


class StreamingTurnReceived(Event):
    """Emitted for every Turn message, partial or final."""

    turn: TurnMessage


class StreamingSessionTerminated(Event):
    """Emitted when the provider reports the final session durations."""

    audio_duration_seconds: float | None = Field(default=None)
    session_duration_seconds: float | None = Field(default=None)


class MeetingStatusChanged(Event):
    """Emitted after a meeting's status is persisted."""

    previous_status: str | None = Field(default=None)
    status: str
    error_message: str | None = Field(default=None)


class PipelineStageCompleted(Event):
    """Emitted after each pipeline stage writes its output."""

    step: str
    duration_ms: int = Field(default=0, ge=0)


class MeetingProcessed(Event):
    """Emitted when the pipeline finalizes a meeting as ready."""

    segment_count: int = Field(default=0)
    task_count: int = Field(default=0)
    used_fallback_summary: bool = Field(default=False)
    processing_time_ms: int | None = Field(default=None)


class MeetingProcessingFailed(Event):
    """Emitted when the pipeline marks a meeting failed."""

    step: str | None = Field(default=None)
    error: str
