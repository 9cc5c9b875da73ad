"""Base Event class for in-process domain events."""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class Event(BaseModel):
    """Base class for all domain events.

    Events are immutable notifications that something happened, such as a
    streaming turn arriving or a meeting changing status.

    Attributes:
        event_id: Unique identifier for this event instance
        timestamp: When the event occurred
        aggregate_id: ID of the meeting this event relates to (optional)
    """

    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the event occurred",
    )
    aggregate_id: UUID | None = Field(
        default=None,
        description="ID of the related meeting",
    )

    @property
    def event_type(self) -> str:
        """Return the event type name (class name)."""
        return self.__class__.__name__
