"""Meeting search index backed by FTS5.

Each meeting has one denormalized search string (summary, topics,
participant names and every segment's text). The string is kept in
meeting_search_index and mirrored into an FTS5 table for ranked queries.
"""

import logging
from uuid import UUID

from pydantic import BaseModel, Field

from legalmemo.db.turso import TursoClient
from legalmemo.models.ai_output import AIOutput
from legalmemo.models.transcript import TranscriptSegment

logger = logging.getLogger(__name__)


class MeetingSearchResult(BaseModel):
    """One matching meeting with a highlighted snippet."""

    meeting_id: str
    title: str
    snippet: str = Field(description="Highlighted context snippet")
    relevance: float = Field(description="BM25 relevance score")


def build_search_text(
    ai_output: AIOutput | None,
    segments: list[TranscriptSegment],
) -> str:
    """Concatenate summary, topics, participant names and segment text."""
    parts: list[str] = []
    if ai_output is not None:
        overview = ai_output.overview
        if overview.one_sentence_summary:
            parts.append(overview.one_sentence_summary)
        parts.extend(overview.topics)
        parts.extend(p.name for p in overview.participants if p.name)
    parts.extend(f"{s.speaker_label.value}: {s.text}" for s in segments)
    return " ".join(parts)


def escape_fts_query(query: str) -> str:
    """Quote terms containing FTS5 operator characters."""
    special_chars = set('*^"():-')
    escaped_words = []
    for word in query.split():
        if any(c in word for c in special_chars):
            word = word.replace('"', "")
            escaped_words.append(f'"{word}"')
        else:
            escaped_words.append(word)
    return " ".join(escaped_words)


class MeetingSearchIndex:
    """Upserts and queries the per-meeting search text."""

    def __init__(self, db_client: TursoClient):
        self._db = db_client

    async def initialize(self) -> None:
        """Create the index table and its FTS5 mirror."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS meeting_search_index (
                meeting_id TEXT PRIMARY KEY,
                searchable_text TEXT NOT NULL,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        await self._db.execute("""
            CREATE VIRTUAL TABLE IF NOT EXISTS meeting_search_fts USING fts5(
                meeting_id UNINDEXED,
                searchable_text,
                tokenize='porter unicode61'
            )
        """)
        logger.info("Meeting search index initialized")

    async def upsert(self, meeting_id: UUID | str, searchable_text: str) -> None:
        """Replace the search text for a meeting."""
        key = str(meeting_id)
        await self._db.execute_batch(
            [
                (
                    """
                    INSERT INTO meeting_search_index (meeting_id, searchable_text, updated_at)
                    VALUES (?, ?, datetime('now'))
                    ON CONFLICT(meeting_id) DO UPDATE SET
                        searchable_text = excluded.searchable_text,
                        updated_at = excluded.updated_at
                    """,
                    [key, searchable_text],
                ),
                ("DELETE FROM meeting_search_fts WHERE meeting_id = ?", [key]),
                (
                    "INSERT INTO meeting_search_fts (meeting_id, searchable_text) "
                    "VALUES (?, ?)",
                    [key, searchable_text],
                ),
            ]
        )

    async def get_text(self, meeting_id: UUID | str) -> str | None:
        row = await self._db.fetch_one(
            "SELECT searchable_text FROM meeting_search_index WHERE meeting_id = ?",
            [str(meeting_id)],
        )
        return row["searchable_text"] if row else None

    async def search(
        self, user_id: str, query: str, limit: int = 20
    ) -> list[MeetingSearchResult]:
        """Full-text search over the caller's meetings, best match first."""
        if not query.strip():
            return []
        # bm25() is negative; more negative is more relevant
        rows = await self._db.fetch_all(
            """
            SELECT
                f.meeting_id AS meeting_id,
                m.title AS title,
                snippet(meeting_search_fts, 1, '<mark>', '</mark>', '...', 24) AS snippet,
                bm25(meeting_search_fts) AS relevance
            FROM meeting_search_fts f
            JOIN meetings m ON m.id = f.meeting_id
            WHERE meeting_search_fts MATCH ? AND m.user_id = ?
            ORDER BY bm25(meeting_search_fts)
            LIMIT ?
            """,
            [escape_fts_query(query), user_id, limit],
        )
        return [
            MeetingSearchResult(
                meeting_id=row["meeting_id"],
                title=row["title"],
                snippet=row["snippet"] or "",
                relevance=abs(row["relevance"]) if row["relevance"] else 0.0,
            )
            for row in rows
        ]
