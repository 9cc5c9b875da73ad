"""Message models for the v3 streaming speech-to-text socket.

After connecting, the client sends raw binary PCM frames. The service
replies with JSON text messages:

    {"type": "Begin", "id": ..., "expires_at": ...}
    {"type": "Turn", "turn_order": ..., "end_of_turn": ..., "transcript": ...,
     "end_of_turn_confidence": ..., "words": [{text, start, end, confidence}]}
    {"type": "Termination", "audio_duration_seconds": ...,
     "session_duration_seconds": ...}
    {"error": "..."}

The only control message the client sends is {"type": "Terminate"}.
"""

import json
from typing import Any, Literal
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, ValidationError

TERMINATE_MESSAGE = json.dumps({"type": "Terminate"})


class StreamingProtocolError(Exception):
    """Raised when an inbound message cannot be decoded."""

    pass


class WordTiming(BaseModel):
    """Timing and confidence for one recognized word."""

    model_config = ConfigDict(frozen=True)

    text: str
    start: int = Field(ge=0, description="Start offset in milliseconds")
    end: int = Field(ge=0, description="End offset in milliseconds")
    confidence: float = Field(default=0.0)


class BeginMessage(BaseModel):
    """Session is open and ready for audio."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["Begin"] = "Begin"
    id: str
    expires_at: int | None = None


class TurnMessage(BaseModel):
    """Incremental transcription for the current turn."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["Turn"] = "Turn"
    turn_order: int = 0
    end_of_turn: bool = False
    transcript: str = ""
    end_of_turn_confidence: float = 0.0
    words: list[WordTiming] = Field(default_factory=list)


class TerminationMessage(BaseModel):
    """Session ended; final audio and session durations."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["Termination"] = "Termination"
    audio_duration_seconds: float | None = None
    session_duration_seconds: float | None = None


class ErrorMessage(BaseModel):
    """Service-reported error; aborts the session."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    error: str


StreamingMessage = BeginMessage | TurnMessage | TerminationMessage | ErrorMessage

_MESSAGE_TYPES: dict[str, type[BaseModel]] = {
    "Begin": BeginMessage,
    "Turn": TurnMessage,
    "Termination": TerminationMessage,
}


def parse_message(raw: str | bytes) -> StreamingMessage | None:
    """Decode one inbound text frame.

    Args:
        raw: JSON text received on the socket

    Returns:
        The typed message, or None for message types this client ignores

    Raises:
        StreamingProtocolError: If the frame is not valid JSON or does not
            match the schema for its type
    """
    try:
        data: Any = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise StreamingProtocolError(f"Invalid JSON message: {e}") from e

    if not isinstance(data, dict):
        raise StreamingProtocolError("Message is not a JSON object")

    try:
        if "error" in data:
            return ErrorMessage.model_validate(data)
        model = _MESSAGE_TYPES.get(data.get("type", ""))
        if model is None:
            return None
        return model.model_validate(data)
    except ValidationError as e:
        raise StreamingProtocolError(f"Malformed {data.get('type')} message: {e}") from e


def build_streaming_url(base_url: str, token: str, sample_rate: int = 16000) -> str:
    """Build the socket URI; the token travels in the query string."""
    query = urlencode({"sample_rate": sample_rate, "token": token})
    return f"{base_url}?{query}"
