"""Meeting summarization and task extraction.

Runs one structured LLM call over the speaker-labelled transcript. Weak
answers are repaired with keyword heuristics, and a failed call is
replaced by a fallback overview with no tasks.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

import structlog

from legalmemo.models.ai_output import AIOutput, MeetingTask, TaskPriority
from legalmemo.models.transcript import SpeakerLabel, TranscriptSegment
from legalmemo.pipeline.fallbacks import (
    extract_topics,
    fallback_overview,
    fallback_summary,
    format_transcript,
    heuristic_key_facts,
    is_weak_summary,
)
from legalmemo.pipeline.prompts import MEETING_SUMMARY_PROMPT
from legalmemo.pipeline.schemas import ExtractedTask, MeetingSummaryExtraction
from legalmemo.pipeline.task_policy import (
    is_duplicate_task,
    normalize_deadline,
    suggest_deadline,
    suggest_owner,
)
from legalmemo.services.llm_client import LLMClient

logger = structlog.get_logger()


@dataclass
class SummaryResult:
    """AIOutput plus the tasks derived from it."""

    ai_output: AIOutput
    tasks: list[MeetingTask] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return self.ai_output.is_fallback


class MeetingSummarizer:
    """Builds the AIOutput and task list for a meeting."""

    def __init__(self, llm_client: LLMClient):
        self._llm_client = llm_client

    async def summarize(
        self,
        meeting_id: UUID,
        user_id: str,
        segments: list[TranscriptSegment],
        duration_seconds: int,
        meeting_date: datetime,
    ) -> SummaryResult:
        """Summarize a meeting.

        Args:
            meeting_id: Meeting being summarized
            user_id: Owner of the meeting, copied onto tasks
            segments: Speaker-attributed segments in start order
            duration_seconds: Recording length
            meeting_date: Reference date for task deadlines

        Returns:
            SummaryResult; on model failure a fallback output with no tasks
        """
        transcript_text = " ".join(s.text for s in segments)
        prompt = MEETING_SUMMARY_PROMPT.format(
            transcript=format_transcript(segments) or "No transcript available.",
            duration_seconds=duration_seconds,
            duration_minutes=round(duration_seconds / 60),
        )

        try:
            extraction = await self._llm_client.extract(prompt, MeetingSummaryExtraction)
        except Exception as e:
            logger.error("summary generation failed", meeting_id=str(meeting_id), error=str(e))
            return SummaryResult(
                ai_output=self.fallback_output(
                    meeting_id, transcript_text, duration_seconds, segments
                )
            )

        overview = extraction.meeting_overview
        if is_weak_summary(overview.one_sentence_summary):
            overview.one_sentence_summary = fallback_summary(transcript_text, duration_seconds)
        if not overview.topics:
            overview.topics = extract_topics(transcript_text)

        ai_output = AIOutput(
            meeting_id=meeting_id,
            model=self._llm_client.model,
            overview=overview,
            key_facts=extraction.key_facts_stated,
            legal_issues=extraction.legal_issues_discussed,
            decisions=extraction.decisions_made,
            risks=extraction.risks_or_concerns_raised,
            follow_up_actions=extraction.follow_up_actions,
            open_questions=extraction.open_questions,
        )
        tasks = self.build_tasks(meeting_id, user_id, extraction, meeting_date)
        logger.info(
            "summary generated",
            meeting_id=str(meeting_id),
            topics=len(overview.topics),
            tasks=len(tasks),
        )
        return SummaryResult(ai_output=ai_output, tasks=tasks)

    def fallback_output(
        self,
        meeting_id: UUID,
        transcript_text: str,
        duration_seconds: int,
        segments: list[TranscriptSegment],
    ) -> AIOutput:
        """AIOutput built without the model."""
        return AIOutput(
            meeting_id=meeting_id,
            provider="fallback",
            model=None,
            overview=fallback_overview(transcript_text, duration_seconds, segments),
            key_facts=heuristic_key_facts(transcript_text),
            is_fallback=True,
        )

    def build_tasks(
        self,
        meeting_id: UUID,
        user_id: str,
        extraction: MeetingSummaryExtraction,
        meeting_date: datetime,
    ) -> list[MeetingTask]:
        """Convert extracted tasks and uncovered follow-ups into MeetingTasks."""
        participant_names = [
            p.name for p in extraction.meeting_overview.participants if p.name
        ]
        candidates = list(extraction.tasks)
        titles = [t.title for t in candidates]
        for action in extraction.follow_up_actions:
            if not is_duplicate_task(action.action, titles):
                candidates.append(
                    ExtractedTask(
                        title=action.action,
                        priority=TaskPriority.MEDIUM,
                        owner_role=action.owner,
                        suggested_deadline=action.deadline,
                    )
                )
                titles.append(action.action)

        tasks = []
        for candidate in candidates:
            title = candidate.title.strip()
            if not title:
                continue
            text = f"{title} {candidate.description or ''}"

            owner = candidate.owner
            if not owner and candidate.owner_role != SpeakerLabel.UNKNOWN:
                owner = candidate.owner_role.value
            if not owner:
                owner = suggest_owner(text, participant_names)

            deadline = normalize_deadline(
                candidate.suggested_deadline, meeting_date
            ) or suggest_deadline(text, meeting_date)

            tasks.append(
                MeetingTask(
                    meeting_id=meeting_id,
                    user_id=user_id,
                    title=title,
                    description=candidate.description,
                    priority=candidate.priority,
                    owner=owner,
                    owner_role=candidate.owner_role,
                    deadline=deadline,
                )
            )
        return tasks
