"""Short-lived streaming token exchange."""

from datetime import UTC, datetime, timedelta

import httpx
import structlog
from pydantic import BaseModel, Field

from legalmemo.config import settings

logger = structlog.get_logger()


class StreamingTokenError(Exception):
    """Raised when a streaming token cannot be obtained."""

    pass


class StreamingToken(BaseModel):
    """A temporary token accepted by the streaming socket."""

    token: str = Field(min_length=1)
    expires_at: datetime


class StreamingTokenProvider:
    """Mints temporary streaming tokens with the long-lived API key.

    The API key never leaves the server; capture clients receive only the
    short-lived token.
    """

    def __init__(
        self,
        api_key: str | None = None,
        token_url: str | None = None,
        ttl_seconds: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key or settings.assemblyai_api_key
        self._token_url = token_url or settings.assemblyai_token_url
        self._ttl_seconds = ttl_seconds or settings.streaming_token_ttl_seconds
        self._http = http_client

    async def get_streaming_token(self) -> StreamingToken:
        """Request a new token.

        Returns:
            StreamingToken with the token and its expiry

        Raises:
            StreamingTokenError: If no API key is configured or the request fails
        """
        if not self._api_key:
            raise StreamingTokenError(
                "AssemblyAI API key not configured. Set ASSEMBLYAI_API_KEY."
            )

        params = {"expires_in_seconds": self._ttl_seconds}
        headers = {"Authorization": self._api_key}
        try:
            if self._http is not None:
                response = await self._http.get(
                    self._token_url, params=params, headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=15.0) as client:
                    response = await client.get(
                        self._token_url, params=params, headers=headers
                    )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            logger.error("streaming token request failed", error=str(e))
            raise StreamingTokenError(f"Token request failed: {e}") from e

        token = payload.get("token")
        if not token:
            raise StreamingTokenError("Token response did not include a token")

        ttl = payload.get("expires_in_seconds", self._ttl_seconds)
        return StreamingToken(
            token=token,
            expires_at=datetime.now(UTC) + timedelta(seconds=ttl),
        )
