"""Repository for meeting records and their status transitions."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from legalmemo.db.turso import TursoClient
from legalmemo.events.bus import EventBus
from legalmemo.events.types import MeetingStatusChanged
from legalmemo.models.meeting import (
    InvalidTransitionError,
    Meeting,
    MeetingStatus,
    ensure_transition,
)

logger = logging.getLogger(__name__)

UPDATABLE_COLUMNS = {
    "title",
    "duration_seconds",
    "expected_speakers",
    "raw_audio_path",
    "raw_audio_format",
    "mp3_audio_path",
    "used_streaming_transcription",
    "error_message",
}

# Child tables removed together with a meeting, children first.
CASCADE_TABLES = [
    "meeting_search_fts",
    "meeting_search_index",
    "meeting_tasks",
    "ai_outputs",
    "transcript_segments",
    "transcripts",
    "processing_jobs",
]


class MeetingNotFoundError(Exception):
    """Raised when a meeting does not exist or is not owned by the caller."""

    pass


class MeetingStatusConflictError(InvalidTransitionError):
    """Raised when the stored status changed between read and write."""

    pass


class MeetingRepository:
    """Persists meetings and enforces the forward-only status rule."""

    def __init__(self, db_client: TursoClient, event_bus: EventBus | None = None):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
            event_bus: Optional bus receiving MeetingStatusChanged events
        """
        self._db = db_client
        self._bus = event_bus

    async def initialize(self) -> None:
        """Create the meetings table if it doesn't exist."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS meetings (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                title TEXT NOT NULL,
                status TEXT NOT NULL,
                duration_seconds INTEGER,
                expected_speakers INTEGER NOT NULL DEFAULT 2,
                raw_audio_path TEXT,
                raw_audio_format TEXT,
                mp3_audio_path TEXT,
                used_streaming_transcription INTEGER NOT NULL DEFAULT 0,
                error_message TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await self._db.execute(
            "CREATE INDEX IF NOT EXISTS idx_meetings_user ON meetings(user_id)"
        )
        logger.info("Meetings table initialized")

    async def create(self, meeting: Meeting) -> Meeting:
        """Insert a new meeting."""
        await self._db.execute(
            """
            INSERT INTO meetings (
                id, user_id, title, status, duration_seconds, expected_speakers,
                raw_audio_path, raw_audio_format, mp3_audio_path,
                used_streaming_transcription, error_message, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                str(meeting.id),
                meeting.user_id,
                meeting.title,
                meeting.status.value,
                meeting.duration_seconds,
                meeting.expected_speakers,
                meeting.raw_audio_path,
                meeting.raw_audio_format,
                meeting.mp3_audio_path,
                int(meeting.used_streaming_transcription),
                meeting.error_message,
                meeting.created_at.isoformat(),
                meeting.updated_at.isoformat(),
            ],
        )
        return meeting

    async def get(self, meeting_id: UUID | str, user_id: str | None = None) -> Meeting | None:
        """Fetch a meeting, optionally scoped to its owner."""
        sql = "SELECT * FROM meetings WHERE id = ?"
        params: list[Any] = [str(meeting_id)]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        row = await self._db.fetch_one(sql, params)
        return Meeting.model_validate(row) if row else None

    async def require(self, meeting_id: UUID | str, user_id: str | None = None) -> Meeting:
        """Fetch a meeting or raise MeetingNotFoundError."""
        meeting = await self.get(meeting_id, user_id)
        if meeting is None:
            raise MeetingNotFoundError(f"Meeting {meeting_id} not found")
        return meeting

    async def list_for_user(self, user_id: str, limit: int = 100) -> list[Meeting]:
        rows = await self._db.fetch_all(
            "SELECT * FROM meetings WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
            [user_id, limit],
        )
        return [Meeting.model_validate(row) for row in rows]

    async def list_queued_without_job(self, older_than: timedelta) -> list[Meeting]:
        """Queued meetings that never got a processing job, oldest first."""
        cutoff = (datetime.now(UTC) - older_than).isoformat()
        rows = await self._db.fetch_all(
            """
            SELECT m.* FROM meetings m
            LEFT JOIN processing_jobs j ON j.meeting_id = m.id
            WHERE m.status = ? AND j.id IS NULL AND m.updated_at < ?
            ORDER BY m.updated_at
            """,
            [MeetingStatus.QUEUED.value, cutoff],
        )
        return [Meeting.model_validate(row) for row in rows]

    async def update_fields(self, meeting_id: UUID | str, **fields: Any) -> None:
        """Update non-status columns.

        Raises:
            ValueError: If a column is not updatable
        """
        if not fields:
            return
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update meeting columns: {sorted(unknown)}")

        assignments = [f"{column} = ?" for column in fields]
        params = [
            int(value) if isinstance(value, bool) else value
            for value in fields.values()
        ]
        assignments.append("updated_at = ?")
        params.extend([datetime.now(UTC).isoformat(), str(meeting_id)])
        await self._db.execute(
            f"UPDATE meetings SET {', '.join(assignments)} WHERE id = ?",
            params,
        )

    async def update_status(
        self,
        meeting_id: UUID | str,
        status: MeetingStatus,
        **fields: Any,
    ) -> Meeting:
        """Move a meeting to a new status, updating other columns with it.

        Args:
            meeting_id: Meeting to update
            status: Target status
            **fields: Additional columns to set in the same statement

        Returns:
            The updated meeting

        Raises:
            MeetingNotFoundError: If the meeting does not exist
            InvalidTransitionError: If the move is not allowed
            MeetingStatusConflictError: If another writer changed the status
                after it was read
        """
        meeting = await self.require(meeting_id)
        previous = meeting.status
        ensure_transition(previous, status)

        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update meeting columns: {sorted(unknown)}")

        now = datetime.now(UTC)
        assignments = ["status = ?", "updated_at = ?"]
        params: list[Any] = [status.value, now.isoformat()]
        for column, value in fields.items():
            assignments.append(f"{column} = ?")
            params.append(int(value) if isinstance(value, bool) else value)
        params.extend([str(meeting_id), previous.value])

        result = await self._db.execute(
            f"UPDATE meetings SET {', '.join(assignments)} WHERE id = ? AND status = ?",
            params,
        )
        if result.rows_affected == 0:
            logger.warning(
                f"Meeting {meeting_id} left '{previous.value}' before move to '{status.value}'"
            )
            raise MeetingStatusConflictError(previous, status)

        updated = meeting.model_copy(update={"status": status, "updated_at": now, **fields})
        if previous != status:
            logger.info(f"Meeting {meeting_id}: {previous.value} -> {status.value}")
            if self._bus is not None:
                await self._bus.publish(
                    MeetingStatusChanged(
                        aggregate_id=meeting.id,
                        previous_status=previous.value,
                        status=status.value,
                        error_message=updated.error_message,
                    )
                )
        return updated

    async def delete(self, meeting_id: UUID | str) -> None:
        """Delete a meeting together with its job, segments, outputs and index."""
        meeting_key = str(meeting_id)
        statements: list = [
            (f"DELETE FROM {table} WHERE meeting_id = ?", [meeting_key])
            for table in CASCADE_TABLES
        ]
        statements.append(("DELETE FROM meetings WHERE id = ?", [meeting_key]))
        await self._db.execute_batch(statements)
        logger.info(f"Deleted meeting {meeting_key} and dependent records")
