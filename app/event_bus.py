"""Async event bus using asyncio.Queue."""
import asyncio
import itertools
import logging
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

EventPayload = dict[str, Any]
EventHandler = Callable[[EventPayload], Coroutine[Any, Any, None]]


class EventBus:
    """Topic-based pub/sub. Handlers run on a single dispatcher task, in emit order."""

    def __init__(self) -> None:
        self._handlers: dict[str, dict[int, EventHandler]] = {}
        self._tokens = itertools.count(1)
        self._queue: asyncio.Queue[tuple[str, EventPayload]] | None = None
        self._dispatcher_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._dispatcher_task is not None and not self._dispatcher_task.done()

    def subscribe(self, topic: str, handler: EventHandler) -> int:
        """Register a handler; returns a token for unsubscribe()."""
        token = next(self._tokens)
        self._handlers.setdefault(topic, {})[token] = handler
        return token

    def unsubscribe(self, token: int) -> bool:
        for handlers in self._handlers.values():
            if handlers.pop(token, None) is not None:
                return True
        return False

    def subscriber_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, {}))

    async def emit(self, topic: str, payload: EventPayload) -> None:
        """Emit an event to the bus. Non-blocking; dropped when the bus is not running."""
        if self._queue is not None:
            await self._queue.put((topic, payload))
        else:
            logger.debug("Event bus not running, dropped %s", topic)

    async def join(self) -> None:
        """Wait until every queued event has been dispatched."""
        if self._queue is not None:
            await self._queue.join()

    async def _dispatch_loop(self) -> None:
        """Process events from queue and invoke handlers."""
        assert self._queue is not None
        while True:
            try:
                topic, payload = await self._queue.get()
            except asyncio.CancelledError:
                break
            try:
                # Copy so handlers may unsubscribe while being called
                for h in list(self._handlers.get(topic, {}).values()):
                    try:
                        await h(payload)
                    except Exception as e:
                        logger.exception("Event handler %s failed for %s: %s", getattr(h, "__name__", h), topic, e)
            finally:
                self._queue.task_done()

    async def start(self) -> None:
        self._queue = asyncio.Queue()
        self._dispatcher_task = asyncio.create_task(self._dispatch_loop())
        logger.info("Event bus started")

    async def stop(self) -> None:
        if self._dispatcher_task:
            self._dispatcher_task.cancel()
            try:
                await self._dispatcher_task
            except asyncio.CancelledError:
                pass
            self._dispatcher_task = None
        self._queue = None
        logger.info("Event bus stopped")


bus = EventBus()


async def emit(topic: str, payload: EventPayload) -> None:
    await bus.emit(topic, payload)


async def start_event_bus() -> None:
    """Start the event bus dispatcher."""
    await bus.start()


async def stop_event_bus() -> None:
    """Stop the event bus dispatcher."""
    await bus.stop()
