"""Recording session controller.

Owns start/pause/resume/stop for one recording at a time:

    idle -> recording <-> paused -> stopped

Frames from the frame source go onto a FrameChannel with two consumers:
the socket sender and the chunk archiver. Frames captured while paused are
dropped before they reach the channel. On stop the archived audio is
uploaded and the pipeline triggered in a supervised background task, so
stop returns as soon as the local WAV is assembled.
"""

import asyncio
import functools
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

import structlog

from legalmemo.archive.storage import AudioStorage, recording_key
from legalmemo.archive.wav import ArchiveError, ChunkArchiver
from legalmemo.capture.channel import FrameChannel
from legalmemo.capture.frame_source import AudioFrameSource
from legalmemo.config import settings
from legalmemo.events.bus import EventBus
from legalmemo.events.types import StreamingConnectionChanged, StreamingTurnReceived
from legalmemo.models.meeting import Meeting, MeetingStatus
from legalmemo.repositories.job_repo import ProcessingJobRepository
from legalmemo.repositories.meeting_repo import MeetingRepository
from legalmemo.services.supervisor import TaskSupervisor
from legalmemo.streaming.assembler import AssemblyUpdate, TurnAssembler
from legalmemo.streaming.client import StreamingTranscriptionClient
from legalmemo.streaming.token import StreamingTokenProvider

logger = structlog.get_logger()

# Plain callables run inline; coroutine results run under the supervisor.
PipelineTrigger = Callable[[str], Any]

TICK_MS = 100
SENDER_QUEUE_SIZE = 50


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"


class RecordingStateError(Exception):
    """Raised when an operation is not valid in the current recording state."""

    pass


@dataclass
class StopResult:
    """What stop() has done by the time it returns."""

    meeting: Meeting
    duration_seconds: int
    upload_task: asyncio.Task | None = None
    error_message: str | None = None


class RecordingSessionController:
    """Drives one live recording from microphone to archived upload."""

    def __init__(
        self,
        frame_source: AudioFrameSource,
        client: StreamingTranscriptionClient,
        token_provider: StreamingTokenProvider,
        meetings: MeetingRepository,
        storage: AudioStorage,
        event_bus: EventBus,
        jobs: ProcessingJobRepository,
        pipeline_trigger: PipelineTrigger | None = None,
        supervisor: TaskSupervisor | None = None,
        assembler: TurnAssembler | None = None,
        sample_rate: int | None = None,
    ):
        """Initialize the controller.

        Args:
            frame_source: Produces PCM frames
            client: Streaming transcription client
            token_provider: Mints the short-lived socket token
            meetings: Meeting repository for status and duration updates
            storage: Object store receiving the archived WAV
            event_bus: Bus the streaming client publishes turns on
            jobs: Job repository; the processing job is created when audio is queued
            pipeline_trigger: Called with the meeting id once audio is queued. A
                coroutine result is run as a supervised background task.
            supervisor: Runs the upload handoff in the background
            assembler: Live turn assembler. A fresh one is created if omitted.
            sample_rate: Sample rate written into the WAV header
        """
        self._source = frame_source
        self._client = client
        self._tokens = token_provider
        self._meetings = meetings
        self._storage = storage
        self._bus = event_bus
        self._jobs = jobs
        self._trigger = pipeline_trigger
        self.supervisor = supervisor or TaskSupervisor()
        self.assembler = assembler or TurnAssembler()
        self._sample_rate = sample_rate or settings.streaming_sample_rate

        self.state = RecordingState.IDLE
        self.meeting_id: str | None = None
        self.user_id: str | None = None
        self.elapsed_ms = 0
        self.last_update: AssemblyUpdate | None = None
        self.connection_error: str | None = None
        self.archiver = ChunkArchiver(sample_rate=self._sample_rate)

        self._channel: FrameChannel | None = None
        self._consumers: list[asyncio.Task] = []
        self._timer: asyncio.Task | None = None

    @property
    def duration_seconds(self) -> int:
        return round(self.elapsed_ms / 1000)

    @property
    def partial_text(self) -> str:
        return self.assembler.current_partial

    async def start(self, meeting_id: UUID | str, user_id: str | None) -> None:
        """Begin a recording for an existing meeting.

        Raises:
            RecordingStateError: If a recording is already in progress
            MicrophonePermissionError: If capture is not permitted
            StreamingTokenError: If no streaming token could be obtained
            StreamingConnectionError: If the socket session does not begin
        """
        if self.state not in (RecordingState.IDLE, RecordingState.STOPPED):
            raise RecordingStateError(f"Cannot start while {self.state.value}")

        await self._source.ensure_permission()
        token = await self._tokens.get_streaming_token()
        await self._client.connect(token.token)

        self.meeting_id = str(meeting_id)
        self.user_id = user_id
        self.elapsed_ms = 0
        self.last_update = None
        self.connection_error = None
        self.assembler.clear()
        self.archiver.clear()
        self._bus.subscribe(StreamingTurnReceived, self._on_turn)
        self._bus.subscribe(StreamingConnectionChanged, self._on_connection_changed)

        self._channel = FrameChannel()
        sender = self._channel.subscribe("sender", maxsize=SENDER_QUEUE_SIZE)
        archive = self._channel.subscribe("archiver")
        self._consumers = [
            asyncio.create_task(self._send_frames(sender.frames()), name="frame-sender"),
            asyncio.create_task(self._archive_frames(archive.frames()), name="frame-archiver"),
        ]

        try:
            self._source.start(self._on_frame)
        except Exception:
            await self._teardown()
            raise

        self.state = RecordingState.RECORDING
        self._start_timer()
        logger.info("recording started", meeting_id=self.meeting_id)

    def pause(self) -> None:
        """Stop sending frames and counting time. The socket stays open."""
        if self.state != RecordingState.RECORDING:
            raise RecordingStateError(f"Cannot pause while {self.state.value}")
        self.state = RecordingState.PAUSED
        self._stop_timer()
        logger.info("recording paused", meeting_id=self.meeting_id, elapsed_ms=self.elapsed_ms)

    def resume(self) -> None:
        if self.state != RecordingState.PAUSED:
            raise RecordingStateError(f"Cannot resume while {self.state.value}")
        self.state = RecordingState.RECORDING
        self._start_timer()
        logger.info("recording resumed", meeting_id=self.meeting_id)

    def tick(self) -> None:
        """Advance the duration clock by one tick if recording."""
        if self.state == RecordingState.RECORDING:
            self.elapsed_ms += TICK_MS

    async def stop(self) -> StopResult:
        """End the recording and hand the audio off for processing.

        The socket is terminated gracefully so the last turn arrives before
        the meeting moves to uploading. The upload and pipeline trigger
        continue in the background after this returns.

        Returns:
            StopResult with the updated meeting and the background upload task

        Raises:
            RecordingStateError: If no recording is in progress
        """
        if self.state not in (RecordingState.RECORDING, RecordingState.PAUSED):
            raise RecordingStateError(f"Cannot stop while {self.state.value}")

        self.state = RecordingState.STOPPED
        await self._teardown()

        meeting_id = self.meeting_id
        duration = self.duration_seconds
        meeting = await self._meetings.update_status(
            meeting_id,
            MeetingStatus.UPLOADING,
            duration_seconds=duration,
            used_streaming_transcription=True,
        )
        logger.info(
            "recording stopped",
            meeting_id=meeting_id,
            duration_seconds=duration,
            chunks=self.archiver.chunk_count,
            turns=len(self.assembler.turns),
        )

        if not self.user_id:
            logger.info("no user for upload, finishing with live transcript", meeting_id=meeting_id)
            meeting = await self._meetings.update_status(meeting_id, MeetingStatus.READY)
            return StopResult(meeting=meeting, duration_seconds=duration)

        try:
            audio = self.archiver.assemble()
        except ArchiveError as e:
            message = await self._record_archive_error(meeting_id, e)
            return StopResult(
                meeting=await self._meetings.require(meeting_id),
                duration_seconds=duration,
                error_message=message,
            )

        task = self.supervisor.spawn(
            self._upload_and_enqueue(meeting_id, self.user_id, audio),
            name=f"upload-recording-{meeting_id}",
            on_error=functools.partial(self._record_archive_error, meeting_id),
        )
        return StopResult(meeting=meeting, duration_seconds=duration, upload_task=task)

    async def _upload_and_enqueue(self, meeting_id: str, user_id: str, audio: bytes) -> None:
        key = recording_key(user_id, meeting_id)
        await self._storage.upload(key, audio)
        await self._meetings.update_status(
            meeting_id,
            MeetingStatus.QUEUED,
            raw_audio_path=key,
            raw_audio_format="wav",
        )
        await self._jobs.enqueue(meeting_id)
        logger.info("recording queued for processing", meeting_id=meeting_id, key=key)
        if self._trigger is None:
            return
        result = self._trigger(meeting_id)
        if asyncio.iscoroutine(result):
            self.supervisor.spawn(result, name=f"process-meeting-{meeting_id}")

    async def _record_archive_error(self, meeting_id: str, error: BaseException) -> str:
        """Flag the meeting without touching its status or live transcript."""
        message = f"Speaker detection failed: {error}"
        logger.error("audio archive handoff failed", meeting_id=meeting_id, error=str(error))
        await self._meetings.update_fields(meeting_id, error_message=message)
        return message

    def _on_frame(self, frame: bytes) -> None:
        if self.state != RecordingState.RECORDING or self._channel is None:
            return
        self._channel.publish(frame)

    def _on_turn(self, event: StreamingTurnReceived) -> None:
        self.last_update = self.assembler.on_turn(event.turn)

    def _on_connection_changed(self, event: StreamingConnectionChanged) -> None:
        if event.error:
            self.connection_error = event.error
            logger.warning(
                "live transcription interrupted, archiving continues",
                meeting_id=self.meeting_id,
                error=event.error,
            )

    async def _send_frames(self, frames) -> None:
        async for frame in frames:
            await self._client.send_frame(frame)

    async def _archive_frames(self, frames) -> None:
        async for frame in frames:
            self.archiver.append(frame)

    def _start_timer(self) -> None:
        if self._timer is None or self._timer.done():
            self._timer = asyncio.create_task(self._run_timer(), name="recording-timer")

    def _stop_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(TICK_MS / 1000)
            self.tick()

    async def _teardown(self) -> None:
        """Stop capture, drain the consumers and close the socket session."""
        self._source.stop()
        self._stop_timer()
        if self._channel is not None:
            self._channel.close()
        consumers, self._consumers = self._consumers, []
        results = await asyncio.gather(*consumers, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("frame consumer failed", error=str(result))
        try:
            await self._client.terminate()
        except Exception as e:
            logger.warning("streaming terminate failed", error=str(e))
        self._bus.unsubscribe(StreamingTurnReceived, self._on_turn)
        self._bus.unsubscribe(StreamingConnectionChanged, self._on_connection_changed)
        self._channel = None
