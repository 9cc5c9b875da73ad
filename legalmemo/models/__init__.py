"""Domain models for meetings, transcripts, jobs and summaries."""

from legalmemo.models.ai_output import (
    AIOutput,
    MeetingOverview,
    MeetingTask,
    Participant,
    TaskPriority,
)
from legalmemo.models.base import BaseEntity
from legalmemo.models.job import JobStatus, JobStep, ProcessingJob
from legalmemo.models.meeting import (
    InvalidTransitionError,
    Meeting,
    MeetingStatus,
    can_transition,
)
from legalmemo.models.transcript import (
    DiarizedUtterance,
    RawTranscript,
    SpeakerLabel,
    TranscriptSegment,
    TranscriptTurn,
)

__all__ = [
    "AIOutput",
    "BaseEntity",
    "DiarizedUtterance",
    "InvalidTransitionError",
    "JobStatus",
    "JobStep",
    "Meeting",
    "MeetingOverview",
    "MeetingStatus",
    "MeetingTask",
    "Participant",
    "ProcessingJob",
    "RawTranscript",
    "SpeakerLabel",
    "TaskPriority",
    "TranscriptSegment",
    "TranscriptTurn",
    "can_transition",
]
