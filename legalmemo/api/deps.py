"""Shared FastAPI dependencies."""

from fastapi import Header, HTTPException, Request

from legalmemo.archive.storage import AudioStorage
from legalmemo.pipeline.processor import MeetingProcessor
from legalmemo.repositories import Repositories
from legalmemo.streaming.token import StreamingTokenProvider


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, set by the authenticating proxy in front of the API."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def get_repositories(request: Request) -> Repositories:
    """Get Repositories from app state."""
    if not hasattr(request.app.state, "repos"):
        raise HTTPException(status_code=500, detail="Repositories not initialized")
    return request.app.state.repos


def get_processor(request: Request) -> MeetingProcessor:
    """Get MeetingProcessor from app state."""
    if not hasattr(request.app.state, "processor"):
        raise HTTPException(status_code=500, detail="MeetingProcessor not initialized")
    return request.app.state.processor


def get_storage(request: Request) -> AudioStorage:
    return request.app.state.storage


def get_token_provider(request: Request) -> StreamingTokenProvider:
    return request.app.state.token_provider
