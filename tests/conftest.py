"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("DISABLE_RECOVERY_SCHEDULER", "1")

from legalmemo.archive.convert import Mp3Converter
from legalmemo.archive.storage import AudioStorage
from legalmemo.db.turso import TursoClient
from legalmemo.events.bus import EventBus
from legalmemo.main import app
from legalmemo.models.meeting import Meeting, MeetingStatus
from legalmemo.pipeline.processor import MeetingProcessor
from legalmemo.pipeline.speaker_attribution import SpeakerAttributor
from legalmemo.pipeline.summarizer import MeetingSummarizer
from legalmemo.pipeline.transcription import BatchTranscriptionClient
from legalmemo.repositories import Repositories, create_repositories
from legalmemo.services.llm_client import LLMClient
from legalmemo.services.supervisor import TaskSupervisor
from legalmemo.streaming.token import StreamingTokenProvider

USER_ID = "user-1"
MP3_BYTES = b"ID3\x04\x00mp3-frames"


@pytest.fixture
async def db(tmp_path: Path) -> AsyncIterator[TursoClient]:
    """File-backed libSQL database in a temp directory."""
    db = TursoClient(url=f"file:{tmp_path / 'test.db'}")
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
async def repos(db: TursoClient, event_bus: EventBus) -> Repositories:
    return await create_repositories(db, event_bus)


@pytest.fixture
def storage(tmp_path: Path) -> AudioStorage:
    return AudioStorage(tmp_path / "audio")


@pytest.fixture
def mock_llm_client():
    """Create a mock LLM client."""
    client = MagicMock(spec=LLMClient)
    client.model = "test-model"
    client.extract = AsyncMock()
    return client


@pytest.fixture
def mock_transcriber():
    transcriber = MagicMock(spec=BatchTranscriptionClient)
    transcriber.transcribe = AsyncMock()
    return transcriber


@pytest.fixture
def mock_converter():
    converter = MagicMock(spec=Mp3Converter)
    converter.to_mp3 = AsyncMock(return_value=MP3_BYTES)
    return converter


@pytest.fixture
def processor(
    repos: Repositories,
    storage: AudioStorage,
    mock_transcriber,
    mock_converter,
    mock_llm_client,
    event_bus: EventBus,
) -> MeetingProcessor:
    return MeetingProcessor(
        repos=repos,
        storage=storage,
        transcriber=mock_transcriber,
        attributor=SpeakerAttributor(mock_llm_client),
        summarizer=MeetingSummarizer(mock_llm_client),
        event_bus=event_bus,
        supervisor=TaskSupervisor(),
        converter=mock_converter,
    )


@pytest.fixture
def make_meeting(repos: Repositories):
    """Factory persisting a meeting owned by USER_ID."""

    async def _make(
        status: MeetingStatus = MeetingStatus.RECORDING,
        user_id: str = USER_ID,
        **fields,
    ) -> Meeting:
        meeting = Meeting(user_id=user_id, status=status, **fields)
        return await repos.meetings.create(meeting)

    return _make


@pytest.fixture
def meeting_id() -> UUID:
    """Fixed meeting UUID for tests."""
    return UUID("12345678-1234-5678-1234-567812345678")


@pytest.fixture
async def client(
    db: TursoClient,
    repos: Repositories,
    storage: AudioStorage,
    processor: MeetingProcessor,
    event_bus: EventBus,
) -> AsyncIterator[AsyncClient]:
    """Async test client for the FastAPI app with a temp database."""
    token_provider = MagicMock(spec=StreamingTokenProvider)
    token_provider.get_streaming_token = AsyncMock()

    app.state.db = db
    app.state.event_bus = event_bus
    app.state.repos = repos
    app.state.storage = storage
    app.state.processor = processor
    app.state.token_provider = token_provider

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await processor.supervisor.cancel_all()
    del app.state.db
    del app.state.event_bus
    del app.state.repos
    del app.state.storage
    del app.state.processor
    del app.state.token_provider
