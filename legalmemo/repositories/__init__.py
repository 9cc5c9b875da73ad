"""Persistence layer over the libSQL database."""

from dataclasses import dataclass

from legalmemo.db.turso import TursoClient
from legalmemo.events.bus import EventBus
from legalmemo.repositories.ai_output_repo import AIOutputRepository
from legalmemo.repositories.job_repo import ProcessingJobRepository
from legalmemo.repositories.meeting_repo import (
    MeetingNotFoundError,
    MeetingRepository,
    MeetingStatusConflictError,
)
from legalmemo.repositories.transcript_repo import TranscriptRepository
from legalmemo.search.index import MeetingSearchIndex


@dataclass
class Repositories:
    """All repositories sharing one database client."""

    meetings: MeetingRepository
    jobs: ProcessingJobRepository
    transcripts: TranscriptRepository
    ai_outputs: AIOutputRepository
    search_index: MeetingSearchIndex


async def create_repositories(
    db: TursoClient, event_bus: EventBus | None = None
) -> Repositories:
    """Build every repository and create its tables."""
    repos = Repositories(
        meetings=MeetingRepository(db, event_bus),
        jobs=ProcessingJobRepository(db),
        transcripts=TranscriptRepository(db),
        ai_outputs=AIOutputRepository(db),
        search_index=MeetingSearchIndex(db),
    )
    for repo in (
        repos.meetings,
        repos.jobs,
        repos.transcripts,
        repos.ai_outputs,
        repos.search_index,
    ):
        await repo.initialize()
    return repos


__all__ = [
    "AIOutputRepository",
    "MeetingNotFoundError",
    "MeetingRepository",
    "MeetingSearchIndex",
    "MeetingStatusConflictError",
    "ProcessingJobRepository",
    "Repositories",
    "TranscriptRepository",
    "create_repositories",
]
