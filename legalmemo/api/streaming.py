"""Streaming token endpoint for live capture clients."""

from fastapi import APIRouter, Depends, HTTPException

from legalmemo.api.deps import get_token_provider, get_user_id
from legalmemo.streaming.token import (
    StreamingToken,
    StreamingTokenError,
    StreamingTokenProvider,
)

router = APIRouter(prefix="/streaming", tags=["streaming"])


@router.get("/token", response_model=StreamingToken)
async def get_streaming_token(
    user_id: str = Depends(get_user_id),
    provider: StreamingTokenProvider = Depends(get_token_provider),
) -> StreamingToken:
    """Mint a short-lived token for the streaming socket."""
    try:
        return await provider.get_streaming_token()
    except StreamingTokenError as e:
        raise HTTPException(status_code=502, detail=str(e))
