"""Meeting record and its lifecycle state machine.

A meeting moves forward through the pipeline statuses:

    recording -> uploading -> queued -> converting -> transcribing -> ready

Any status except ``ready`` may jump to ``failed``. The only way back is the
retry edge ``failed -> queued``.
"""

from enum import Enum

from pydantic import Field

from legalmemo.models.base import BaseEntity


class MeetingStatus(str, Enum):
    """Lifecycle status of a meeting."""

    RECORDING = "recording"
    UPLOADING = "uploading"
    QUEUED = "queued"
    CONVERTING = "converting"
    TRANSCRIBING = "transcribing"
    READY = "ready"
    FAILED = "failed"


PIPELINE_ORDER: list[MeetingStatus] = [
    MeetingStatus.RECORDING,
    MeetingStatus.UPLOADING,
    MeetingStatus.QUEUED,
    MeetingStatus.CONVERTING,
    MeetingStatus.TRANSCRIBING,
    MeetingStatus.READY,
]


class InvalidTransitionError(Exception):
    """Raised when a status change would move a meeting backwards."""

    def __init__(self, current: MeetingStatus, target: MeetingStatus):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move meeting from '{current.value}' to '{target.value}'"
        )


def can_transition(current: MeetingStatus, target: MeetingStatus) -> bool:
    """Check whether a status change is allowed.

    Args:
        current: Status the meeting is in now
        target: Requested status

    Returns:
        True for same-status no-ops, forward moves, jumps to failed from any
        unfinished status, and the failed -> queued retry edge.
    """
    if current == target:
        return True
    if target == MeetingStatus.FAILED:
        return current != MeetingStatus.READY
    if current == MeetingStatus.FAILED:
        return target == MeetingStatus.QUEUED
    return PIPELINE_ORDER.index(target) > PIPELINE_ORDER.index(current)


def ensure_transition(current: MeetingStatus, target: MeetingStatus) -> None:
    """Raise InvalidTransitionError unless the change is allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


class Meeting(BaseEntity):
    """One recorded conversation owned by the user who created it."""

    user_id: str = Field(min_length=1, description="Owning user identifier")
    title: str = Field(default="Untitled meeting", max_length=500)
    status: MeetingStatus = Field(default=MeetingStatus.RECORDING)
    duration_seconds: int | None = Field(default=None, ge=0)
    expected_speakers: int = Field(
        default=2,
        ge=1,
        le=3,
        description="Expected speaker count; 3 stands for three or more",
    )
    raw_audio_path: str | None = Field(default=None)
    raw_audio_format: str | None = Field(default=None)
    mp3_audio_path: str | None = Field(default=None)
    used_streaming_transcription: bool = Field(default=False)
    error_message: str | None = Field(default=None)

    def transition_to(self, target: MeetingStatus) -> None:
        """Move to a new status, enforcing the forward-only rule."""
        ensure_transition(self.status, target)
        self.status = target
        self.touch()

    @property
    def is_terminal(self) -> bool:
        """True once the meeting is ready or failed."""
        return self.status in (MeetingStatus.READY, MeetingStatus.FAILED)
