"""FastAPI application entry point."""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI

from legalmemo.api.router import api_router
from legalmemo.archive.convert import Mp3Converter
from legalmemo.archive.storage import AudioStorage
from legalmemo.config import settings
from legalmemo.db.turso import TursoClient
from legalmemo.events.bus import EventBus
from legalmemo.pipeline.processor import MeetingProcessor
from legalmemo.pipeline.speaker_attribution import SpeakerAttributor
from legalmemo.pipeline.summarizer import MeetingSummarizer
from legalmemo.pipeline.transcription import BatchTranscriptionClient
from legalmemo.repositories import create_repositories
from legalmemo.services.llm_client import LLMClient
from legalmemo.services.supervisor import TaskSupervisor
from legalmemo.streaming.token import StreamingTokenProvider

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _build_processor(app: FastAPI) -> MeetingProcessor:
    """Wire the pipeline stages to the repositories and external clients."""
    llm_client = LLMClient()
    return MeetingProcessor(
        repos=app.state.repos,
        storage=app.state.storage,
        transcriber=BatchTranscriptionClient(),
        attributor=SpeakerAttributor(llm_client),
        summarizer=MeetingSummarizer(llm_client),
        event_bus=app.state.event_bus,
        supervisor=TaskSupervisor(),
        converter=Mp3Converter(),
    )


def _get_recovery_scheduler_context(processor: MeetingProcessor):
    """Get recovery scheduler lifespan context manager.

    Returns a no-op context if the scheduler is disabled via environment.
    """
    from legalmemo.pipeline.scheduler import recovery_scheduler_lifespan

    if os.environ.get("DISABLE_RECOVERY_SCHEDULER"):

        @asynccontextmanager
        async def noop_context():
            yield

        return noop_context()

    return recovery_scheduler_lifespan(processor)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan management.

    Startup:
    - Connect the database and create tables
    - Wire the event bus, object store and pipeline
    - Start the recovery scheduler

    Shutdown:
    - Cancel background pipeline runs
    - Close database connection
    """
    logger.info(f"Starting {settings.app_name}...")

    db = TursoClient()
    await db.connect()
    app.state.db = db
    logger.info(f"Database connected: {db.url}")

    app.state.event_bus = EventBus()
    app.state.repos = await create_repositories(db, app.state.event_bus)
    app.state.storage = AudioStorage()
    app.state.token_provider = StreamingTokenProvider()
    logger.info(f"Audio storage at {app.state.storage.root}")

    processor = _build_processor(app)
    app.state.processor = processor
    logger.info("Processing pipeline initialized")

    async with AsyncExitStack() as stack:
        await stack.enter_async_context(_get_recovery_scheduler_context(processor))
        yield

    logger.info(f"Shutting down {settings.app_name}...")
    await processor.supervisor.cancel_all()
    await db.close()
    logger.info("Database connection closed")


app = FastAPI(
    title=settings.app_name,
    description="Recording-to-ready pipeline for legal meeting notes",
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "legalmemo.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
