"""Async event bus for in-process pub/sub.

Publishers (the streaming client, the recording controller, the pipeline)
emit events; subscribers receive the event types they registered for.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from legalmemo.events.base import Event

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Event)
EventHandler = Callable[[Event], None] | Callable[[Event], Awaitable[None]]


class EventBus:
    """Simple async event bus.

    Handlers for one event run concurrently. A failing handler is logged
    and does not affect the others or the publisher.
    """

    def __init__(self):
        self._subscribers: dict[type[Event], list[EventHandler]] = {}

    def subscribe(
        self,
        event_type: type[T],
        handler: Callable[[T], None] | Callable[[T], Awaitable[None]],
    ) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: The event class to subscribe to
            handler: Function to call when event is published
        """
        self._subscribers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type.__name__}")

    def unsubscribe(
        self,
        event_type: type[T],
        handler: EventHandler,
    ) -> None:
        """Unsubscribe a handler from an event type."""
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            logger.debug(f"Unsubscribed handler from {event_type.__name__}")

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers.

        Sync handlers are called inline on the event loop; they are expected
        to be quick state updates.

        Args:
            event: The event to publish
        """
        handlers = list(self._subscribers.get(type(event), []))
        logger.debug(f"Publishing {event.event_type} to {len(handlers)} handler(s)")

        tasks = [self._run_handler(handler, event) for handler in handlers]
        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Handler error for {event.event_type}: {result}")

    async def _run_handler(self, handler: EventHandler, event: Event) -> None:
        result = handler(event)
        if asyncio.iscoroutine(result):
            await result

    def subscriber_count(self, event_type: type[Event]) -> int:
        """Get number of subscribers for an event type."""
        return len(self._subscribers.get(event_type, []))
