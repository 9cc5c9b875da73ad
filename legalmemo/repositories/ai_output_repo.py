"""Repository for per-meeting AI summaries and extracted tasks."""

import json
import logging
from datetime import UTC, datetime
from uuid import UUID

from legalmemo.db.turso import TursoClient
from legalmemo.models.ai_output import AIOutput, MeetingTask

logger = logging.getLogger(__name__)

# AIOutput list sections, stored as JSON text columns of the same name.
_SECTIONS = [
    "key_facts",
    "legal_issues",
    "decisions",
    "risks",
    "follow_up_actions",
    "open_questions",
]


class AIOutputRepository:
    """Upserts one AIOutput per meeting and replaces its task list."""

    def __init__(self, db_client: TursoClient):
        self._db = db_client

    async def initialize(self) -> None:
        """Create ai_outputs and meeting_tasks tables."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS ai_outputs (
                id TEXT PRIMARY KEY,
                meeting_id TEXT NOT NULL UNIQUE,
                provider TEXT NOT NULL,
                model TEXT,
                overview TEXT NOT NULL,
                key_facts TEXT NOT NULL,
                legal_issues TEXT NOT NULL,
                decisions TEXT NOT NULL,
                risks TEXT NOT NULL,
                follow_up_actions TEXT NOT NULL,
                open_questions TEXT NOT NULL,
                is_fallback INTEGER NOT NULL DEFAULT 0,
                disclaimer TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS meeting_tasks (
                id TEXT PRIMARY KEY,
                meeting_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                priority TEXT NOT NULL,
                owner TEXT,
                owner_role TEXT NOT NULL,
                deadline TEXT,
                completed INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        logger.info("AI output tables initialized")

    async def upsert(self, output: AIOutput) -> None:
        """Insert or replace the AIOutput for output.meeting_id."""
        sections = [
            json.dumps([item.model_dump(mode="json") for item in getattr(output, name)])
            for name in _SECTIONS
        ]
        now = datetime.now(UTC).isoformat()
        await self._db.execute(
            f"""
            INSERT INTO ai_outputs (
                id, meeting_id, provider, model, overview, {", ".join(_SECTIONS)},
                is_fallback, disclaimer, created_at, updated_at
            ) VALUES ({", ".join(["?"] * (9 + len(_SECTIONS)))})
            ON CONFLICT(meeting_id) DO UPDATE SET
                provider = excluded.provider,
                model = excluded.model,
                overview = excluded.overview,
                {", ".join(f"{name} = excluded.{name}" for name in _SECTIONS)},
                is_fallback = excluded.is_fallback,
                disclaimer = excluded.disclaimer,
                updated_at = excluded.updated_at
            """,
            [
                str(output.id),
                str(output.meeting_id),
                output.provider,
                output.model,
                output.overview.model_dump_json(),
                *sections,
                int(output.is_fallback),
                output.disclaimer,
                output.created_at.isoformat(),
                now,
            ],
        )

    async def get(self, meeting_id: UUID | str) -> AIOutput | None:
        row = await self._db.fetch_one(
            "SELECT * FROM ai_outputs WHERE meeting_id = ?", [str(meeting_id)]
        )
        if row is None:
            return None
        data = dict(row)
        data["overview"] = json.loads(data["overview"])
        for name in _SECTIONS:
            data[name] = json.loads(data[name])
        return AIOutput.model_validate(data)

    async def replace_tasks(self, meeting_id: UUID | str, tasks: list[MeetingTask]) -> None:
        """Replace all tasks extracted for a meeting."""
        statements: list = [
            ("DELETE FROM meeting_tasks WHERE meeting_id = ?", [str(meeting_id)])
        ]
        for task in tasks:
            statements.append(
                (
                    """
                    INSERT INTO meeting_tasks (
                        id, meeting_id, user_id, title, description, priority,
                        owner, owner_role, deadline, completed, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        str(task.id),
                        str(meeting_id),
                        task.user_id,
                        task.title,
                        task.description,
                        task.priority.value,
                        task.owner,
                        task.owner_role.value,
                        task.deadline.isoformat() if task.deadline else None,
                        int(task.completed),
                        task.created_at.isoformat(),
                        task.updated_at.isoformat(),
                    ],
                )
            )
        await self._db.execute_batch(statements)

    async def list_tasks(self, meeting_id: UUID | str) -> list[MeetingTask]:
        rows = await self._db.fetch_all(
            "SELECT * FROM meeting_tasks WHERE meeting_id = ? ORDER BY created_at, rowid",
            [str(meeting_id)],
        )
        return [MeetingTask.model_validate(row) for row in rows]
