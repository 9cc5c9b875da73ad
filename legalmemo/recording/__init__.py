"""Recording session control: live capture, streaming and archival handoff."""

from legalmemo.recording.session import (
    RecordingSessionController,
    RecordingState,
    RecordingStateError,
    StopResult,
)

__all__ = [
    "RecordingSessionController",
    "RecordingState",
    "RecordingStateError",
    "StopResult",
]
