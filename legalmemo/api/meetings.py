"""Meeting endpoints: create, inspect, process, retry and delete."""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from legalmemo.api.deps import (
    get_processor,
    get_repositories,
    get_storage,
    get_user_id,
)
from legalmemo.archive.storage import AudioStorage
from legalmemo.models.ai_output import AIOutput, MeetingTask
from legalmemo.models.meeting import InvalidTransitionError, Meeting, MeetingStatus
from legalmemo.models.transcript import TranscriptSegment
from legalmemo.pipeline.processor import MeetingProcessor
from legalmemo.repositories import MeetingNotFoundError, Repositories

logger = structlog.get_logger()

router = APIRouter(prefix="/meetings", tags=["meetings"])


class CreateMeetingRequest(BaseModel):
    title: str = Field(default="Untitled meeting", max_length=500)
    expected_speakers: int = Field(default=2, ge=1, le=3)


class MeetingResponse(BaseModel):
    """Meeting as seen by its owner."""

    id: str
    title: str
    status: MeetingStatus
    duration_seconds: int | None
    expected_speakers: int
    used_streaming_transcription: bool
    error_message: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_meeting(cls, meeting: Meeting) -> "MeetingResponse":
        return cls(
            id=str(meeting.id),
            title=meeting.title,
            status=meeting.status,
            duration_seconds=meeting.duration_seconds,
            expected_speakers=meeting.expected_speakers,
            used_streaming_transcription=meeting.used_streaming_transcription,
            error_message=meeting.error_message,
            created_at=meeting.created_at,
            updated_at=meeting.updated_at,
        )


class ProcessingAccepted(BaseModel):
    meeting_id: str
    status: MeetingStatus


async def _owned_meeting(repos: Repositories, meeting_id: str, user_id: str) -> Meeting:
    try:
        return await repos.meetings.require(meeting_id, user_id)
    except MeetingNotFoundError:
        raise HTTPException(status_code=404, detail="Meeting not found")


@router.post("", response_model=MeetingResponse, status_code=201)
async def create_meeting(
    body: CreateMeetingRequest,
    user_id: str = Depends(get_user_id),
    repos: Repositories = Depends(get_repositories),
) -> MeetingResponse:
    """Create a meeting in the recording state."""
    meeting = Meeting(
        user_id=user_id,
        title=body.title,
        expected_speakers=body.expected_speakers,
    )
    meeting = await repos.meetings.create(meeting)
    return MeetingResponse.from_meeting(meeting)


@router.get("/{meeting_id}", response_model=MeetingResponse)
async def get_meeting(
    meeting_id: str,
    user_id: str = Depends(get_user_id),
    repos: Repositories = Depends(get_repositories),
) -> MeetingResponse:
    return MeetingResponse.from_meeting(await _owned_meeting(repos, meeting_id, user_id))


@router.get("/{meeting_id}/segments", response_model=list[TranscriptSegment])
async def list_segments(
    meeting_id: str,
    user_id: str = Depends(get_user_id),
    repos: Repositories = Depends(get_repositories),
) -> list[TranscriptSegment]:
    """Speaker-attributed segments ordered by start time."""
    await _owned_meeting(repos, meeting_id, user_id)
    return await repos.transcripts.list_segments(meeting_id)


@router.get("/{meeting_id}/ai-output", response_model=AIOutput)
async def get_ai_output(
    meeting_id: str,
    user_id: str = Depends(get_user_id),
    repos: Repositories = Depends(get_repositories),
) -> AIOutput:
    await _owned_meeting(repos, meeting_id, user_id)
    output = await repos.ai_outputs.get(meeting_id)
    if output is None:
        raise HTTPException(status_code=404, detail="Summary not available yet")
    return output


@router.get("/{meeting_id}/tasks", response_model=list[MeetingTask])
async def list_tasks(
    meeting_id: str,
    user_id: str = Depends(get_user_id),
    repos: Repositories = Depends(get_repositories),
) -> list[MeetingTask]:
    await _owned_meeting(repos, meeting_id, user_id)
    return await repos.ai_outputs.list_tasks(meeting_id)


@router.post("/{meeting_id}/process", response_model=ProcessingAccepted, status_code=202)
async def process_meeting(
    meeting_id: str,
    user_id: str = Depends(get_user_id),
    repos: Repositories = Depends(get_repositories),
    processor: MeetingProcessor = Depends(get_processor),
) -> ProcessingAccepted:
    """Run the processing pipeline in the background.

    Ready meetings and meetings already being processed are left alone.
    """
    meeting = await _owned_meeting(repos, meeting_id, user_id)
    if meeting.status in (MeetingStatus.RECORDING, MeetingStatus.UPLOADING):
        raise HTTPException(
            status_code=409,
            detail=f"Meeting audio is not archived yet (status '{meeting.status.value}')",
        )
    processor.enqueue(meeting.id)
    return ProcessingAccepted(meeting_id=str(meeting.id), status=meeting.status)


@router.post("/{meeting_id}/retry", response_model=ProcessingAccepted, status_code=202)
async def retry_processing(
    meeting_id: str,
    user_id: str = Depends(get_user_id),
    repos: Repositories = Depends(get_repositories),
    processor: MeetingProcessor = Depends(get_processor),
) -> ProcessingAccepted:
    """Re-run the pipeline for a failed meeting."""
    await _owned_meeting(repos, meeting_id, user_id)
    try:
        meeting = await processor.retry_processing(meeting_id, user_id)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ProcessingAccepted(meeting_id=str(meeting.id), status=meeting.status)


@router.delete("/{meeting_id}", status_code=204)
async def delete_meeting(
    meeting_id: str,
    user_id: str = Depends(get_user_id),
    repos: Repositories = Depends(get_repositories),
    storage: AudioStorage = Depends(get_storage),
) -> Response:
    """Delete a meeting with its job, transcript, summary, tasks and audio."""
    meeting = await _owned_meeting(repos, meeting_id, user_id)
    await repos.meetings.delete(meeting.id)
    await storage.delete_meeting(user_id, str(meeting.id))
    logger.info("meeting deleted", meeting_id=str(meeting.id))
    return Response(status_code=204)
