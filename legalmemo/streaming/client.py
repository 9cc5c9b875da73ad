"""Streaming transcription client over the v3 websocket protocol.

The client owns one socket session at a time. It publishes connection
state changes, Turn messages and the final Termination on the event bus
and never persists anything itself.
"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from legalmemo.config import settings
from legalmemo.events.bus import EventBus
from legalmemo.events.types import (
    StreamingConnectionChanged,
    StreamingSessionTerminated,
    StreamingTurnReceived,
)
from legalmemo.streaming.protocol import (
    TERMINATE_MESSAGE,
    BeginMessage,
    ErrorMessage,
    StreamingProtocolError,
    TerminationMessage,
    TurnMessage,
    build_streaming_url,
    parse_message,
)

logger = structlog.get_logger()

Connector = Callable[..., Awaitable[Any]]


class ConnectionState(str, Enum):
    """Lifecycle of a streaming socket session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"
    CLOSED = "closed"
    ERROR = "error"


class StreamingConnectionError(Exception):
    """Raised when the socket cannot be opened or the session fails."""

    pass


@dataclass
class StreamingSession:
    """An open session as announced by the Begin message."""

    session_id: str
    expires_at: int | None


class StreamingTranscriptionClient:
    """Client for the real-time speech-to-text socket.

    Usage:
        client = StreamingTranscriptionClient(event_bus)
        session = await client.connect(token)
        await client.send_frame(pcm_bytes)
        await client.terminate()
    """

    def __init__(
        self,
        event_bus: EventBus,
        url: str | None = None,
        sample_rate: int | None = None,
        connect_timeout: float | None = None,
        terminate_wait: float | None = None,
        connector: Connector | None = None,
    ):
        """Initialize the client.

        Args:
            event_bus: Bus that receives connection, turn and termination events
            url: Socket base URL. Defaults to settings.
            sample_rate: PCM sample rate declared to the service
            connect_timeout: Seconds to wait for Begin before giving up
            terminate_wait: Seconds to wait for Termination after Terminate
            connector: Socket factory, for dependency injection in tests
        """
        self._bus = event_bus
        self._url = url or settings.assemblyai_streaming_url
        self._sample_rate = sample_rate or settings.streaming_sample_rate
        self._connect_timeout = (
            connect_timeout or settings.streaming_connect_timeout_seconds
        )
        self._terminate_wait = (
            settings.streaming_terminate_wait_seconds
            if terminate_wait is None
            else terminate_wait
        )
        self._connector = connector or ws_connect

        self._ws: Any = None
        self._receiver: asyncio.Task | None = None
        self._begun: asyncio.Future[StreamingSession] | None = None
        self._terminated = asyncio.Event()
        self._state = ConnectionState.DISCONNECTED
        self.session: StreamingSession | None = None
        self.last_error: str | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    async def connect(self, token: str) -> StreamingSession:
        """Open a session authenticated by a short-lived token.

        Args:
            token: Temporary streaming token, carried in the connection URI

        Returns:
            StreamingSession once the Begin message has been received

        Raises:
            StreamingConnectionError: If the socket cannot be opened, the
                service reports an error, or no Begin arrives in time
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            raise StreamingConnectionError("Streaming session already active")

        self.session = None
        self.last_error = None
        self._terminated.clear()
        self._begun = asyncio.get_running_loop().create_future()
        await self._set_state(ConnectionState.CONNECTING)

        uri = build_streaming_url(self._url, token, self._sample_rate)
        try:
            async with asyncio.timeout(self._connect_timeout):
                self._ws = await self._connector(uri, open_timeout=None)
                self._receiver = asyncio.create_task(self._receive_loop())
                session = await asyncio.shield(self._begun)
        except TimeoutError:
            await self._abort("Timed out waiting for streaming session to begin")
            raise StreamingConnectionError(
                f"No session started within {self._connect_timeout}s"
            ) from None
        except StreamingConnectionError:
            await self._abort(self.last_error or "Streaming session failed")
            raise
        except (OSError, WebSocketException) as e:
            await self._abort(str(e))
            raise StreamingConnectionError(f"Could not open streaming socket: {e}") from e

        logger.info("streaming session started", session_id=session.session_id)
        return session

    async def send_frame(self, frame: bytes) -> bool:
        """Send one binary PCM frame.

        Returns:
            True if the frame was written, False when no session is open
        """
        if not self.is_connected or self._ws is None:
            return False
        try:
            await self._ws.send(frame)
            return True
        except ConnectionClosed as e:
            logger.warning("frame dropped, socket closed", error=str(e))
            return False

    async def terminate(self) -> None:
        """End the session gracefully.

        Sends Terminate, waits briefly for the Termination message so the
        final buffered turn is delivered, then closes the socket. The wait
        is bounded; this never blocks indefinitely.
        """
        if self._ws is None:
            return

        if self._state == ConnectionState.CONNECTED:
            await self._set_state(ConnectionState.CLOSING)
            try:
                await self._ws.send(TERMINATE_MESSAGE)
            except ConnectionClosed:
                logger.debug("socket already closed before terminate")
            else:
                with contextlib.suppress(TimeoutError):
                    async with asyncio.timeout(self._terminate_wait):
                        await self._terminated.wait()

        await self._close_socket()
        if self._state != ConnectionState.ERROR:
            await self._set_state(ConnectionState.CLOSED)

    async def _receive_loop(self) -> None:
        try:
            async for raw in self._ws:
                if isinstance(raw, bytes):
                    continue
                try:
                    message = parse_message(raw)
                except StreamingProtocolError as e:
                    logger.warning("ignoring malformed message", error=str(e))
                    continue
                if message is not None:
                    await self._dispatch(message)
        except (WebSocketException, OSError) as e:
            if self._state == ConnectionState.CONNECTED:
                await self._fail(f"Streaming connection closed unexpectedly: {e}")
        finally:
            if self._begun is not None and not self._begun.done():
                self._begun.set_exception(
                    StreamingConnectionError(
                        self.last_error or "Socket closed before session began"
                    )
                )
            self._terminated.set()

    async def _dispatch(self, message) -> None:
        if isinstance(message, BeginMessage):
            self.session = StreamingSession(message.id, message.expires_at)
            await self._set_state(ConnectionState.CONNECTED)
            if self._begun is not None and not self._begun.done():
                self._begun.set_result(self.session)
        elif isinstance(message, TurnMessage):
            await self._bus.publish(StreamingTurnReceived(turn=message))
        elif isinstance(message, TerminationMessage):
            logger.info(
                "streaming session terminated",
                audio_duration_seconds=message.audio_duration_seconds,
                session_duration_seconds=message.session_duration_seconds,
            )
            await self._bus.publish(
                StreamingSessionTerminated(
                    audio_duration_seconds=message.audio_duration_seconds,
                    session_duration_seconds=message.session_duration_seconds,
                )
            )
            self._terminated.set()
        elif isinstance(message, ErrorMessage):
            await self._fail(message.error)
            if self._ws is not None:
                with contextlib.suppress(ConnectionClosed):
                    await self._ws.close()

    async def _fail(self, error: str) -> None:
        self.last_error = error
        logger.error("streaming session error", error=error)
        await self._set_state(ConnectionState.ERROR, error=error)

    async def _abort(self, error: str) -> None:
        if self._begun is not None and not self._begun.done():
            self._begun.cancel()
        await self._close_socket()
        if self._state != ConnectionState.ERROR:
            await self._fail(error)

    async def _close_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            with contextlib.suppress(ConnectionClosed, OSError):
                await ws.close()
        receiver, self._receiver = self._receiver, None
        if receiver is not None and receiver is not asyncio.current_task():
            if not receiver.done():
                receiver.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await receiver

    async def _set_state(self, state: ConnectionState, error: str | None = None) -> None:
        if state == self._state:
            return
        self._state = state
        await self._bus.publish(
            StreamingConnectionChanged(
                state=state.value,
                session_id=self.session.session_id if self.session else None,
                error=error,
            )
        )
