"""Pydantic models for LLM output.

These schemas describe what the model returns. They differ from the domain
models on purpose:
- segment boundaries are percentages, converted to milliseconds later
- task deadlines are raw strings, normalized to dates later
- no ids or timestamps
"""

from pydantic import BaseModel, Field

from legalmemo.models.ai_output import (
    DecisionMade,
    FollowUpAction,
    KeyFact,
    LegalIssue,
    MeetingOverview,
    OpenQuestion,
    RiskRaised,
    TaskPriority,
)
from legalmemo.models.transcript import SpeakerLabel


class AttributedSpeechSegment(BaseModel):
    """One stretch of speech attributed to a single speaker."""

    speaker_label: SpeakerLabel = Field(
        description="LAWYER, CLIENT, OTHER, or UNKNOWN"
    )
    speaker_name: str | None = Field(
        default=None, description="Speaker name if mentioned in the conversation"
    )
    text: str = Field(description="Exact text spoken in this segment")
    position: float = Field(
        ge=0,
        le=100,
        description="Where this segment starts, as a percentage (0-100) of the conversation",
    )


class SpeakerMapping(BaseModel):
    label: SpeakerLabel
    name: str | None = None
    reasoning: str | None = Field(
        default=None, description="Cues used to identify this speaker"
    )


class SpeakerAttribution(BaseModel):
    """Container for the speaker attribution pass."""

    segments: list[AttributedSpeechSegment] = Field(default_factory=list)
    speaker_mapping: list[SpeakerMapping] = Field(default_factory=list)


class ExtractedTask(BaseModel):
    """An actionable task proposed by the model."""

    title: str = Field(description="Short actionable task title")
    description: str | None = Field(default=None)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    owner: str | None = Field(
        default=None, description="Name of the person responsible, if mentioned"
    )
    owner_role: SpeakerLabel = Field(default=SpeakerLabel.UNKNOWN)
    suggested_deadline: str | None = Field(
        default=None,
        description="Deadline as mentioned (e.g. 'next Friday', 'end of month')",
    )


class MeetingSummaryExtraction(BaseModel):
    """Full structured summary of a meeting."""

    meeting_overview: MeetingOverview
    key_facts_stated: list[KeyFact] = Field(default_factory=list)
    legal_issues_discussed: list[LegalIssue] = Field(default_factory=list)
    decisions_made: list[DecisionMade] = Field(default_factory=list)
    risks_or_concerns_raised: list[RiskRaised] = Field(default_factory=list)
    follow_up_actions: list[FollowUpAction] = Field(default_factory=list)
    open_questions: list[OpenQuestion] = Field(default_factory=list)
    tasks: list[ExtractedTask] = Field(default_factory=list)
