"""Structured meeting summary and the tasks derived from it."""

from datetime import date
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from legalmemo.models.base import BaseEntity
from legalmemo.models.transcript import SpeakerLabel

AI_DISCLAIMER = (
    "This summary is AI-generated for documentation support and may contain "
    "errors. It is not legal advice."
)

Certainty = Literal["explicit", "unclear"]


class TaskPriority(str, Enum):
    """Priority assigned to a meeting task."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Participant(BaseModel):
    """A participant identified by role and, if mentioned, by name."""

    label: SpeakerLabel = Field(default=SpeakerLabel.UNKNOWN)
    name: str | None = Field(default=None)


class TimeSpan(BaseModel):
    """Transcript time range supporting a stated fact."""

    start_ms: int = Field(ge=0)
    end_ms: int = Field(ge=0)


class MeetingOverview(BaseModel):
    """One-sentence summary, participants and topics of a meeting."""

    one_sentence_summary: str = Field(default="")
    participants: list[Participant] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)


class KeyFact(BaseModel):
    fact: str
    stated_by: SpeakerLabel = Field(default=SpeakerLabel.UNKNOWN)
    support: list[TimeSpan] = Field(default_factory=list)
    certainty: Certainty = Field(default="unclear")


class LegalIssue(BaseModel):
    issue: str
    raised_by: SpeakerLabel = Field(default=SpeakerLabel.UNKNOWN)
    certainty: Certainty = Field(default="unclear")


class DecisionMade(BaseModel):
    decision: str
    certainty: Certainty = Field(default="unclear")


class RiskRaised(BaseModel):
    risk: str
    raised_by: SpeakerLabel = Field(default=SpeakerLabel.UNKNOWN)
    certainty: Certainty = Field(default="unclear")


class FollowUpAction(BaseModel):
    action: str
    owner: SpeakerLabel = Field(default=SpeakerLabel.UNKNOWN)
    deadline: str | None = Field(default=None)
    certainty: Certainty = Field(default="unclear")


class OpenQuestion(BaseModel):
    question: str
    asked_by: SpeakerLabel = Field(default=SpeakerLabel.UNKNOWN)
    certainty: Certainty = Field(default="unclear")


class AIOutput(BaseEntity):
    """One structured-extraction record per meeting."""

    meeting_id: UUID
    provider: str = Field(default="anthropic")
    model: str | None = Field(default=None)
    overview: MeetingOverview = Field(default_factory=MeetingOverview)
    key_facts: list[KeyFact] = Field(default_factory=list)
    legal_issues: list[LegalIssue] = Field(default_factory=list)
    decisions: list[DecisionMade] = Field(default_factory=list)
    risks: list[RiskRaised] = Field(default_factory=list)
    follow_up_actions: list[FollowUpAction] = Field(default_factory=list)
    open_questions: list[OpenQuestion] = Field(default_factory=list)
    is_fallback: bool = Field(
        default=False, description="True when produced without the language model"
    )
    disclaimer: str = Field(default=AI_DISCLAIMER)


class MeetingTask(BaseEntity):
    """An actionable task extracted from a meeting."""

    meeting_id: UUID
    user_id: str
    title: str = Field(min_length=1)
    description: str | None = Field(default=None)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    owner: str | None = Field(default=None)
    owner_role: SpeakerLabel = Field(default=SpeakerLabel.UNKNOWN)
    deadline: date | None = Field(default=None)
    completed: bool = Field(default=False)
