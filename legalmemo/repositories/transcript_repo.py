"""Repository for raw transcripts and speaker-attributed segments."""

import json
import logging
from datetime import UTC, datetime
from uuid import UUID

from legalmemo.db.turso import TursoClient
from legalmemo.models.transcript import (
    DiarizedUtterance,
    RawTranscript,
    TranscriptSegment,
)

logger = logging.getLogger(__name__)


class TranscriptRepository:
    """Stores the transcription stage output and the attributed segments.

    Segments for a meeting are always replaced as a whole, inside one
    transaction, so readers never see a mix of old and new rows.
    """

    def __init__(self, db_client: TursoClient):
        self._db = db_client

    async def initialize(self) -> None:
        """Create transcripts and transcript_segments tables."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS transcripts (
                meeting_id TEXT PRIMARY KEY,
                provider_transcript_id TEXT,
                full_text TEXT NOT NULL,
                utterances_json TEXT,
                audio_duration_seconds REAL,
                created_at TEXT NOT NULL
            )
        """)
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS transcript_segments (
                id TEXT PRIMARY KEY,
                meeting_id TEXT NOT NULL,
                speaker_label TEXT NOT NULL,
                speaker_name TEXT,
                text TEXT NOT NULL,
                start_ms INTEGER NOT NULL,
                end_ms INTEGER NOT NULL,
                confidence REAL,
                is_streaming_result INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await self._db.execute(
            "CREATE INDEX IF NOT EXISTS idx_segments_meeting "
            "ON transcript_segments(meeting_id, start_ms)"
        )
        logger.info("Transcript tables initialized")

    async def save_raw(self, transcript: RawTranscript) -> None:
        """Upsert the raw transcription result for a meeting."""
        utterances = (
            json.dumps([u.model_dump() for u in transcript.utterances])
            if transcript.utterances is not None
            else None
        )
        await self._db.execute(
            """
            INSERT INTO transcripts (
                meeting_id, provider_transcript_id, full_text, utterances_json,
                audio_duration_seconds, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(meeting_id) DO UPDATE SET
                provider_transcript_id = excluded.provider_transcript_id,
                full_text = excluded.full_text,
                utterances_json = excluded.utterances_json,
                audio_duration_seconds = excluded.audio_duration_seconds,
                created_at = excluded.created_at
            """,
            [
                str(transcript.meeting_id),
                transcript.provider_transcript_id,
                transcript.text,
                utterances,
                transcript.audio_duration_seconds,
                datetime.now(UTC).isoformat(),
            ],
        )

    async def get_raw(self, meeting_id: UUID | str) -> RawTranscript | None:
        row = await self._db.fetch_one(
            "SELECT * FROM transcripts WHERE meeting_id = ?", [str(meeting_id)]
        )
        if row is None:
            return None
        utterances = None
        if row["utterances_json"] is not None:
            utterances = [
                DiarizedUtterance.model_validate(u)
                for u in json.loads(row["utterances_json"])
            ]
        return RawTranscript(
            meeting_id=row["meeting_id"],
            provider_transcript_id=row["provider_transcript_id"],
            text=row["full_text"],
            utterances=utterances,
            audio_duration_seconds=row["audio_duration_seconds"],
        )

    async def replace_segments(
        self,
        meeting_id: UUID | str,
        segments: list[TranscriptSegment],
    ) -> None:
        """Delete the meeting's existing segments and bulk insert new ones."""
        statements: list = [
            ("DELETE FROM transcript_segments WHERE meeting_id = ?", [str(meeting_id)])
        ]
        for segment in segments:
            statements.append(
                (
                    """
                    INSERT INTO transcript_segments (
                        id, meeting_id, speaker_label, speaker_name, text,
                        start_ms, end_ms, confidence, is_streaming_result,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        str(segment.id),
                        str(meeting_id),
                        segment.speaker_label.value,
                        segment.speaker_name,
                        segment.text,
                        segment.start_ms,
                        segment.end_ms,
                        segment.confidence,
                        int(segment.is_streaming_result),
                        segment.created_at.isoformat(),
                        segment.updated_at.isoformat(),
                    ],
                )
            )
        await self._db.execute_batch(statements)
        logger.info(f"Saved {len(segments)} segments for meeting {meeting_id}")

    async def list_segments(self, meeting_id: UUID | str) -> list[TranscriptSegment]:
        """Segments ordered by start time."""
        rows = await self._db.fetch_all(
            """
            SELECT * FROM transcript_segments
            WHERE meeting_id = ?
            ORDER BY start_ms, rowid
            """,
            [str(meeting_id)],
        )
        return [TranscriptSegment.model_validate(row) for row in rows]
