"""Watch subscriptions — debounced re-fetch on contract events."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Sequence, TypeVar

from ..interfaces.events import ContractEvent, EventFilter, EventSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription(Generic[T]):
    """Handle returned by every ``watch_*`` call.

    Event listeners only push block numbers onto this subscription's queue.
    A single task drains the queue: it waits for a first notification,
    keeps collecting for ``debounce_seconds``, then fetches once at the
    highest block seen and invokes the callback once.

    Must be created while an event loop is running.
    """

    def __init__(
        self,
        name: str,
        events: EventSource,
        filters: Sequence[EventFilter],
        fetch: Callable[[int], Awaitable[T]],
        callback: Callable[[T], None],
        debounce_seconds: float,
    ) -> None:
        self.name = name
        self._events = events
        self._filters = tuple(filters)
        self._fetch = fetch
        self._callback = callback
        self._debounce = debounce_seconds
        self._queue: asyncio.Queue[int] = asyncio.Queue()
        self._closed = False

        self._listener = self._on_event
        registered: list[EventFilter] = []
        try:
            for event_filter in self._filters:
                events.on(event_filter, self._listener)
                registered.append(event_filter)
        except Exception:
            for event_filter in registered:
                events.remove_listener(event_filter, self._listener)
            raise

        self._task = asyncio.get_running_loop().create_task(self._run())

    @property
    def active(self) -> bool:
        return not self._closed

    def _on_event(self, event: ContractEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event.block_number)

    def unsubscribe(self) -> None:
        """Detach every listener and cancel any pending fetch. Idempotent."""
        if self._closed:
            return
        self._closed = True
        for event_filter in self._filters:
            self._events.remove_listener(event_filter, self._listener)
        self._task.cancel()
        logger.debug("Unsubscribed from %s", self.name)

    __call__ = unsubscribe

    async def _collect(self) -> int:
        """Wait for one notification, then coalesce a window's worth."""
        block = await self._queue.get()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._debounce

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                block = max(block, await asyncio.wait_for(self._queue.get(), remaining))
            except asyncio.TimeoutError:
                break

        while not self._queue.empty():
            block = max(block, self._queue.get_nowait())
        return block

    async def _run(self) -> None:
        while True:
            block = await self._collect()
            logger.debug("Refreshing %s at block %d", self.name, block)

            try:
                value = await self._fetch(block)
            except Exception as e:
                logger.error("Refreshing %s at block %d failed: %s", self.name, block, e)
                continue

            if self._closed:
                return

            try:
                self._callback(value)
            except Exception as e:
                logger.error("%s callback failed: %s", self.name, e)
