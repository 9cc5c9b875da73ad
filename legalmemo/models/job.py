"""Processing job record tracking pipeline progress for a meeting."""

from enum import Enum
from uuid import UUID

from pydantic import Field

from legalmemo.models.base import BaseEntity


class JobStatus(str, Enum):
    """Execution status of a processing job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStep(str, Enum):
    """Pipeline stages, in execution order."""

    TRANSCRIBE = "transcribe"
    ATTRIBUTE = "attribute"
    SUMMARIZE = "summarize"
    INDEX = "index"
    FINALIZE = "finalize"


PIPELINE_STEPS: list[JobStep] = list(JobStep)


class ProcessingJob(BaseEntity):
    """One job per meeting; terminal at completed or failed."""

    meeting_id: UUID
    status: JobStatus = Field(default=JobStatus.QUEUED)
    step: JobStep | None = Field(
        default=None, description="Stage currently running or last entered"
    )
    attempts: int = Field(default=0, ge=0)
    last_error: str | None = Field(default=None)
    detected_speakers: int | None = Field(default=None, ge=0)
    speaker_mismatch: bool = Field(default=False)
