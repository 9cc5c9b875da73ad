"""Event infrastructure.

Provides:
- Event: Base class for all domain events
- EventBus: In-process pub/sub for event routing
"""

from legalmemo.events.base import Event
from legalmemo.events.bus import EventBus
from legalmemo.events.types import (
    MeetingProcessed,
    MeetingProcessingFailed,
    MeetingStatusChanged,
    PipelineStageCompleted,
    StreamingConnectionChanged,
    StreamingSessionTerminated,
    StreamingTurnReceived,
)

__all__ = [
    "Event",
    "EventBus",
    "MeetingProcessed",
    "MeetingProcessingFailed",
    "MeetingStatusChanged",
    "PipelineStageCompleted",
    "StreamingConnectionChanged",
    "StreamingSessionTerminated",
    "StreamingTurnReceived",
]
