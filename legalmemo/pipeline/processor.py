"""Meeting processing pipeline.

Stages run strictly in order for one meeting:

    transcribe -> attribute -> summarize -> index -> finalize

Each stage persists its own output before the next starts, so a failure in
one stage leaves the earlier outputs in place. Any exception escaping a
stage marks the meeting and its job failed; the meeting never reaches
ready with a stage missing. Index failures are logged and skipped.

The transcribe stage converts the archived recording to MP3 (stored beside
it and recorded on the meeting) and sends the MP3 to speech-to-text.
"""

import functools
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from uuid import UUID

import structlog

from legalmemo.archive.convert import Mp3Converter
from legalmemo.archive.storage import AudioStorage, mp3_key
from legalmemo.archive.wav import read_wav_header
from legalmemo.events.bus import EventBus
from legalmemo.events.types import (
    MeetingProcessed,
    MeetingProcessingFailed,
    PipelineStageCompleted,
)
from legalmemo.models.ai_output import AIOutput
from legalmemo.models.job import PIPELINE_STEPS, JobStep, ProcessingJob
from legalmemo.models.meeting import (
    PIPELINE_ORDER,
    InvalidTransitionError,
    Meeting,
    MeetingStatus,
)
from legalmemo.models.transcript import RawTranscript, TranscriptSegment
from legalmemo.pipeline.speaker_attribution import SpeakerAttributor
from legalmemo.pipeline.summarizer import MeetingSummarizer
from legalmemo.pipeline.transcription import BatchTranscriptionClient
from legalmemo.repositories import Repositories
from legalmemo.search.index import build_search_text
from legalmemo.services.supervisor import TaskSupervisor

logger = structlog.get_logger()

DEFAULT_DURATION_SECONDS = 60


class PipelineError(Exception):
    """Raised when a stage's preconditions are not met."""

    pass


class StageFailure(Exception):
    """The exception that ended a run, with the stage it escaped from."""

    def __init__(self, step: JobStep | None, error: Exception):
        super().__init__(str(error))
        self.step = step
        self.error = error


class ProcessingOutcome(str, Enum):
    READY = "ready"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class PipelineContext:
    """Outputs carried between stages of one run."""

    meeting: Meeting
    raw: RawTranscript | None = None
    segments: list[TranscriptSegment] | None = None
    ai_output: AIOutput | None = None
    task_count: int = 0


class MeetingProcessor:
    """Runs, resumes and retries the processing pipeline."""

    def __init__(
        self,
        repos: Repositories,
        storage: AudioStorage,
        transcriber: BatchTranscriptionClient,
        attributor: SpeakerAttributor,
        summarizer: MeetingSummarizer,
        event_bus: EventBus | None = None,
        supervisor: TaskSupervisor | None = None,
        converter: Mp3Converter | None = None,
    ):
        self._meetings = repos.meetings
        self._jobs = repos.jobs
        self._transcripts = repos.transcripts
        self._ai_outputs = repos.ai_outputs
        self._search_index = repos.search_index
        self._storage = storage
        self._converter = converter or Mp3Converter()
        self._transcriber = transcriber
        self._attributor = attributor
        self._summarizer = summarizer
        self._bus = event_bus
        self.supervisor = supervisor or TaskSupervisor()
        self._in_flight: set[str] = set()
        self._stages: dict[JobStep, Callable[[PipelineContext], Awaitable[None]]] = {
            JobStep.TRANSCRIBE: self._transcribe,
            JobStep.ATTRIBUTE: self._attribute,
            JobStep.SUMMARIZE: self._summarize,
            JobStep.INDEX: self._index,
            JobStep.FINALIZE: self._finalize,
        }

    def is_running(self, meeting_id: UUID | str) -> bool:
        return str(meeting_id) in self._in_flight

    def enqueue(self, meeting_id: UUID | str, resume: bool = False):
        """Run the pipeline for a meeting in a supervised background task."""
        return self.supervisor.spawn(
            self.process_meeting(meeting_id, resume=resume),
            name=f"process-meeting-{meeting_id}",
            on_error=functools.partial(self._record_failure, meeting_id, None),
        )

    async def process_meeting(
        self, meeting_id: UUID | str, resume: bool = False
    ) -> ProcessingOutcome:
        """Run the pipeline for one meeting.

        Idempotent: ready meetings and meetings already running in this
        process are skipped. A failed meeting is moved back to queued and
        processed from the first stage.

        Args:
            meeting_id: Meeting to process
            resume: Start from the job's persisted step, reusing stage
                outputs already written

        Returns:
            The outcome; exceptions never propagate past this call
        """
        key = str(meeting_id)
        if key in self._in_flight:
            logger.info("pipeline already running", meeting_id=key)
            return ProcessingOutcome.SKIPPED

        self._in_flight.add(key)
        try:
            return await self._run(key, resume)
        except StageFailure as e:
            step, error = e.step, e.error
        except Exception as e:
            step, error = None, e
        finally:
            self._in_flight.discard(key)

        # Released before the failed status is visible, so a retry reacting
        # to it is not skipped as already running.
        await self._record_failure(key, step, error)
        return ProcessingOutcome.FAILED

    async def retry_processing(
        self, meeting_id: UUID | str, user_id: str | None = None
    ) -> Meeting:
        """Reset a failed meeting to queued and re-run the pipeline in the background.

        Raises:
            MeetingNotFoundError: If the meeting does not exist or is not owned
            InvalidTransitionError: If the meeting is not failed
        """
        meeting = await self._meetings.require(meeting_id, user_id)
        if meeting.status != MeetingStatus.FAILED:
            raise InvalidTransitionError(meeting.status, MeetingStatus.QUEUED)

        meeting = await self._meetings.update_status(
            meeting_id, MeetingStatus.QUEUED, error_message=None
        )
        await self._jobs.enqueue(meeting_id)
        logger.info("retrying meeting processing", meeting_id=str(meeting_id))
        self.enqueue(meeting_id)
        return meeting

    async def resume_stalled(self, older_than: timedelta) -> int:
        """Resume jobs left queued or processing, e.g. after a restart.

        Returns:
            Number of meetings resumed
        """
        resumed = 0
        for job in await self._jobs.list_stalled(older_than):
            if self.is_running(job.meeting_id):
                continue
            logger.info(
                "resuming stalled meeting",
                meeting_id=str(job.meeting_id),
                step=job.step.value if job.step else None,
            )
            self.enqueue(job.meeting_id, resume=True)
            resumed += 1
        for meeting in await self._meetings.list_queued_without_job(older_than):
            if self.is_running(meeting.id):
                continue
            logger.info("starting queued meeting without a job", meeting_id=str(meeting.id))
            self.enqueue(meeting.id)
            resumed += 1
        return resumed

    async def _run(self, meeting_id: str, resume: bool) -> ProcessingOutcome:
        meeting = await self._meetings.get(meeting_id)
        if meeting is None:
            logger.warning("meeting not found for processing", meeting_id=meeting_id)
            return ProcessingOutcome.SKIPPED
        if meeting.status == MeetingStatus.READY:
            logger.info("meeting already processed", meeting_id=meeting_id)
            return ProcessingOutcome.SKIPPED
        if meeting.status == MeetingStatus.FAILED:
            meeting = await self._meetings.update_status(
                meeting_id, MeetingStatus.QUEUED, error_message=None
            )
            resume = False

        job = await self._jobs.get(meeting_id)
        if job is None or not resume:
            job = await self._jobs.enqueue(meeting_id)
        first_step = await self._resume_point(job) if resume else JobStep.TRANSCRIBE
        await self._jobs.start(meeting_id)

        ctx = PipelineContext(meeting=meeting)
        step: JobStep | None = None
        started = time.monotonic()
        logger.info("pipeline started", meeting_id=meeting_id, first_step=first_step.value)
        try:
            for step in PIPELINE_STEPS[PIPELINE_STEPS.index(first_step):]:
                await self._jobs.set_step(meeting_id, step)
                stage_started = time.monotonic()
                await self._stages[step](ctx)
                await self._publish(
                    PipelineStageCompleted(
                        aggregate_id=meeting.id,
                        step=step.value,
                        duration_ms=int((time.monotonic() - stage_started) * 1000),
                    )
                )
        except Exception as e:
            raise StageFailure(step, e) from e

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info("pipeline complete", meeting_id=meeting_id, elapsed_ms=elapsed_ms)
        await self._publish(
            MeetingProcessed(
                aggregate_id=meeting.id,
                segment_count=len(ctx.segments or []),
                task_count=ctx.task_count,
                used_fallback_summary=bool(ctx.ai_output and ctx.ai_output.is_fallback),
                processing_time_ms=elapsed_ms,
            )
        )
        return ProcessingOutcome.READY

    async def _resume_point(self, job: ProcessingJob) -> JobStep:
        """Earliest step whose inputs are all persisted, capped at the job's step."""
        step = job.step or JobStep.TRANSCRIBE
        if step == JobStep.TRANSCRIBE:
            return step
        if await self._transcripts.get_raw(job.meeting_id) is None:
            return JobStep.TRANSCRIBE
        if step == JobStep.ATTRIBUTE:
            return step
        if not await self._transcripts.list_segments(job.meeting_id):
            return JobStep.ATTRIBUTE
        if step == JobStep.SUMMARIZE:
            return step
        if await self._ai_outputs.get(job.meeting_id) is None:
            return JobStep.SUMMARIZE
        return step

    async def _advance(self, ctx: PipelineContext, target: MeetingStatus) -> None:
        """Move the meeting forward to target unless it is already there or beyond."""
        current = ctx.meeting.status
        if PIPELINE_ORDER.index(current) < PIPELINE_ORDER.index(target):
            ctx.meeting = await self._meetings.update_status(ctx.meeting.id, target)

    def _duration_seconds(self, ctx: PipelineContext) -> int:
        if ctx.meeting.duration_seconds:
            return ctx.meeting.duration_seconds
        if ctx.raw is not None and ctx.raw.audio_duration_seconds:
            return round(ctx.raw.audio_duration_seconds)
        return DEFAULT_DURATION_SECONDS

    async def _transcribe(self, ctx: PipelineContext) -> None:
        meeting = ctx.meeting
        if not meeting.raw_audio_path:
            raise PipelineError("Meeting has no archived audio")

        await self._advance(ctx, MeetingStatus.CONVERTING)
        audio = await self._mp3_audio(ctx)

        await self._advance(ctx, MeetingStatus.TRANSCRIBING)
        result = await self._transcriber.transcribe(audio, meeting.expected_speakers)
        ctx.raw = RawTranscript(
            meeting_id=meeting.id,
            provider_transcript_id=result.id,
            text=result.text,
            utterances=result.utterances,
            audio_duration_seconds=result.audio_duration_seconds,
        )
        await self._transcripts.save_raw(ctx.raw)
        if result.utterances is not None:
            await self._jobs.record_speakers(
                meeting.id, result.detected_speakers, meeting.expected_speakers
            )

    async def _mp3_audio(self, ctx: PipelineContext) -> bytes:
        """Stored MP3 for the meeting, converting the archived audio on first use."""
        meeting = ctx.meeting
        if meeting.mp3_audio_path and await self._storage.exists(meeting.mp3_audio_path):
            logger.info("reusing converted audio", meeting_id=str(meeting.id))
            return await self._storage.download(meeting.mp3_audio_path)

        raw = await self._storage.download(meeting.raw_audio_path)
        if meeting.raw_audio_format == "wav":
            header = read_wav_header(raw)
            logger.info(
                "archived audio loaded",
                meeting_id=str(meeting.id),
                seconds=round(header.data_length / header.byte_rate, 1),
            )
        mp3 = await self._converter.to_mp3(raw)
        key = await self._storage.upload(mp3_key(meeting.raw_audio_path), mp3)
        await self._meetings.update_fields(meeting.id, mp3_audio_path=key)
        ctx.meeting = meeting.model_copy(update={"mp3_audio_path": key})
        return mp3

    async def _attribute(self, ctx: PipelineContext) -> None:
        if ctx.raw is None:
            ctx.raw = await self._transcripts.get_raw(ctx.meeting.id)
        if ctx.raw is None:
            raise PipelineError("No transcript available for speaker attribution")

        await self._advance(ctx, MeetingStatus.TRANSCRIBING)
        result = await self._attributor.attribute(
            ctx.meeting.id,
            ctx.raw.text,
            self._duration_seconds(ctx),
            ctx.raw.utterances,
        )
        await self._transcripts.replace_segments(ctx.meeting.id, result.segments)
        ctx.segments = result.segments

    async def _summarize(self, ctx: PipelineContext) -> None:
        if ctx.segments is None:
            ctx.segments = await self._transcripts.list_segments(ctx.meeting.id)
        if ctx.raw is None:
            ctx.raw = await self._transcripts.get_raw(ctx.meeting.id)

        await self._advance(ctx, MeetingStatus.TRANSCRIBING)
        result = await self._summarizer.summarize(
            ctx.meeting.id,
            ctx.meeting.user_id,
            ctx.segments,
            self._duration_seconds(ctx),
            ctx.meeting.created_at,
        )
        await self._ai_outputs.upsert(result.ai_output)
        await self._ai_outputs.replace_tasks(ctx.meeting.id, result.tasks)
        ctx.ai_output = result.ai_output
        ctx.task_count = len(result.tasks)

    async def _index(self, ctx: PipelineContext) -> None:
        try:
            if ctx.ai_output is None:
                ctx.ai_output = await self._ai_outputs.get(ctx.meeting.id)
            if ctx.segments is None:
                ctx.segments = await self._transcripts.list_segments(ctx.meeting.id)
            await self._search_index.upsert(
                ctx.meeting.id, build_search_text(ctx.ai_output, ctx.segments)
            )
        except Exception as e:
            logger.warning(
                "search index update failed", meeting_id=str(ctx.meeting.id), error=str(e)
            )

    async def _finalize(self, ctx: PipelineContext) -> None:
        # Job first: a meeting that reached ready can no longer be failed.
        await self._jobs.complete(ctx.meeting.id)
        ctx.meeting = await self._meetings.update_status(
            ctx.meeting.id, MeetingStatus.READY, error_message=None
        )

    async def _record_failure(
        self, meeting_id: UUID | str, step: JobStep | None, error: BaseException
    ) -> None:
        message = str(error) or error.__class__.__name__
        stage = step.value if step else "pipeline"
        logger.error(
            "pipeline failed", meeting_id=str(meeting_id), step=stage, error=message
        )
        # Job before meeting: a retry reacting to the failed status re-queues
        # the job, and that write must be the last one.
        try:
            await self._jobs.fail(meeting_id, f"{stage}: {error.__class__.__name__}: {message}")
        except Exception as e:
            logger.error("could not mark job failed", meeting_id=str(meeting_id), error=str(e))
        try:
            meeting = await self._meetings.update_status(
                meeting_id, MeetingStatus.FAILED, error_message=message
            )
        except Exception as e:
            logger.error("could not mark meeting failed", meeting_id=str(meeting_id), error=str(e))
            return
        await self._publish(
            MeetingProcessingFailed(aggregate_id=meeting.id, step=stage, error=message)
        )

    async def _publish(self, event) -> None:
        if self._bus is not None:
            await self._bus.publish(event)
