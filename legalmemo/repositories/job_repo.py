"""Repository for per-meeting processing jobs."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from legalmemo.db.turso import TursoClient
from legalmemo.models.job import JobStatus, JobStep, ProcessingJob

logger = logging.getLogger(__name__)


class ProcessingJobRepository:
    """One job row per meeting, reused across retries."""

    def __init__(self, db_client: TursoClient):
        self._db = db_client

    async def initialize(self) -> None:
        """Create the processing_jobs table if it doesn't exist."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS processing_jobs (
                id TEXT PRIMARY KEY,
                meeting_id TEXT NOT NULL UNIQUE,
                status TEXT NOT NULL,
                step TEXT,
                attempts INTEGER NOT NULL DEFAULT 0,
                last_error TEXT,
                detected_speakers INTEGER,
                speaker_mismatch INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        logger.info("Processing jobs table initialized")

    async def get(self, meeting_id: UUID | str) -> ProcessingJob | None:
        row = await self._db.fetch_one(
            "SELECT * FROM processing_jobs WHERE meeting_id = ?", [str(meeting_id)]
        )
        return ProcessingJob.model_validate(row) if row else None

    async def enqueue(self, meeting_id: UUID | str) -> ProcessingJob:
        """Create the job, or reset an existing one to queued from the first step.

        Attempts are preserved across resets.
        """
        now = datetime.now(UTC).isoformat()
        await self._db.execute(
            """
            INSERT INTO processing_jobs (
                id, meeting_id, status, step, attempts, created_at, updated_at
            ) VALUES (?, ?, ?, NULL, 0, ?, ?)
            ON CONFLICT(meeting_id) DO UPDATE SET
                status = excluded.status,
                step = NULL,
                last_error = NULL,
                updated_at = excluded.updated_at
            """,
            [str(uuid4()), str(meeting_id), JobStatus.QUEUED.value, now, now],
        )
        return await self._require(meeting_id)

    async def start(self, meeting_id: UUID | str) -> ProcessingJob:
        """Mark the job processing and count the attempt."""
        await self._update(
            meeting_id,
            "status = ?, attempts = attempts + 1, last_error = NULL",
            [JobStatus.PROCESSING.value],
        )
        return await self._require(meeting_id)

    async def set_step(self, meeting_id: UUID | str, step: JobStep) -> None:
        await self._update(meeting_id, "step = ?", [step.value])

    async def record_speakers(
        self, meeting_id: UUID | str, detected: int, expected: int
    ) -> None:
        await self._update(
            meeting_id,
            "detected_speakers = ?, speaker_mismatch = ?",
            [detected, int(detected != expected)],
        )

    async def complete(self, meeting_id: UUID | str) -> None:
        await self._update(
            meeting_id,
            "status = ?, step = ?, last_error = NULL",
            [JobStatus.COMPLETED.value, JobStep.FINALIZE.value],
        )

    async def fail(self, meeting_id: UUID | str, error: str) -> None:
        await self._update(
            meeting_id, "status = ?, last_error = ?", [JobStatus.FAILED.value, error]
        )

    async def list_stalled(self, older_than: timedelta) -> list[ProcessingJob]:
        """Jobs still queued or processing whose last update is older than the cutoff."""
        cutoff = (datetime.now(UTC) - older_than).isoformat()
        rows = await self._db.fetch_all(
            """
            SELECT * FROM processing_jobs
            WHERE status IN (?, ?) AND updated_at < ?
            ORDER BY updated_at
            """,
            [JobStatus.QUEUED.value, JobStatus.PROCESSING.value, cutoff],
        )
        return [ProcessingJob.model_validate(row) for row in rows]

    async def _require(self, meeting_id: UUID | str) -> ProcessingJob:
        job = await self.get(meeting_id)
        if job is None:
            raise RuntimeError(f"No processing job for meeting {meeting_id}")
        return job

    async def _update(
        self, meeting_id: UUID | str, assignments: str, params: list[Any]
    ) -> None:
        await self._db.execute(
            f"UPDATE processing_jobs SET {assignments}, updated_at = ? WHERE meeting_id = ?",
            [*params, datetime.now(UTC).isoformat(), str(meeting_id)],
        )
