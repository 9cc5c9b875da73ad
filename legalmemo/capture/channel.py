"""Single-producer frame channel with independent consumer queues.

The capture callback publishes each frame once; every subscriber (the
socket sender, the archiver) drains its own queue at its own pace.
"""

import asyncio
from collections.abc import AsyncIterator

import structlog

logger = structlog.get_logger()

_CLOSED = None


class FrameSubscription:
    """One consumer's view of the channel."""

    def __init__(self, name: str, maxsize: int = 0):
        self.name = name
        self.queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, frame: bytes | None) -> None:
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            if frame is _CLOSED:
                # Make room for the close marker.
                self.queue.get_nowait()
                self.dropped += 1
                self.queue.put_nowait(frame)
                return
            self.dropped += 1
            if self.dropped == 1 or self.dropped % 100 == 0:
                logger.warning("frame queue full", consumer=self.name, dropped=self.dropped)

    async def frames(self) -> AsyncIterator[bytes]:
        """Yield frames until the channel is closed."""
        while True:
            frame = await self.queue.get()
            if frame is _CLOSED:
                return
            yield frame


class FrameChannel:
    """Fan-out channel from the frame source to its consumers."""

    def __init__(self):
        self._subscribers: list[FrameSubscription] = []
        self.closed = False
        self.published = 0

    def subscribe(self, name: str, maxsize: int = 0) -> FrameSubscription:
        """Register a consumer.

        Args:
            name: Consumer name used in log messages
            maxsize: Queue bound; 0 means unbounded
        """
        subscription = FrameSubscription(name, maxsize)
        self._subscribers.append(subscription)
        return subscription

    def publish(self, frame: bytes) -> None:
        if self.closed:
            return
        self.published += 1
        for subscription in self._subscribers:
            subscription.offer(frame)

    def close(self) -> None:
        """Signal end of stream to every consumer."""
        if self.closed:
            return
        self.closed = True
        for subscription in self._subscribers:
            subscription.offer(_CLOSED)
