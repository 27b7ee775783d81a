"""Contract event source backed by ``eth_getLogs`` polling."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from ...interfaces.events import ContractEvent, EventFilter, EventListener
from .abi import decode_address, decode_words, encode_address
from .client import EthereumClient

logger = logging.getLogger(__name__)


def _decode_log(event_filter: EventFilter, log: dict[str, Any]) -> ContractEvent:
    topics = log.get("topics", [])
    account: Optional[str] = None
    if len(topics) > 1:
        account = decode_address(int(topics[1], 16))
    return ContractEvent(
        event=event_filter.event,
        address=event_filter.address,
        block_number=int(log["blockNumber"], 16),
        account=account,
        words=tuple(decode_words(log.get("data", "0x"))),
    )


class LogPoller:
    """Poll for new logs and dispatch them to registered listeners.

    Polling starts with the first listener and stops when the last one is
    removed. The first poll only records the current head, so listeners
    see events from blocks mined after they subscribed.
    """

    def __init__(
        self,
        client: EthereumClient,
        event_topics: dict[str, str],
        poll_interval: float = 4.0,
    ) -> None:
        self._client = client
        self._topics = dict(event_topics)
        self._poll_interval = poll_interval
        self._listeners: dict[EventFilter, list[EventListener]] = {}
        self._task: Optional[asyncio.Task[None]] = None
        self._last_block: Optional[int] = None

    @property
    def listener_count(self) -> int:
        return sum(len(listeners) for listeners in self._listeners.values())

    def on(self, event_filter: EventFilter, listener: EventListener) -> None:
        if event_filter.event not in self._topics:
            raise ValueError(f"No topic configured for event '{event_filter.event}'")

        self._listeners.setdefault(event_filter, []).append(listener)
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    def remove_listener(self, event_filter: EventFilter, listener: EventListener) -> None:
        listeners = self._listeners.get(event_filter)
        if listeners and listener in listeners:
            listeners.remove(listener)
            if not listeners:
                del self._listeners[event_filter]

        if not self._listeners and self._task is not None:
            self._task.cancel()
            self._task = None
            self._last_block = None

    def _topic_filter(self, event_filter: EventFilter) -> list[Optional[str]]:
        topics: list[Optional[str]] = [self._topics[event_filter.event]]
        if event_filter.account:
            topics.append("0x" + encode_address(event_filter.account))
        return topics

    async def poll_once(self) -> None:
        """Fetch logs mined since the previous poll and dispatch them.

        Nothing is dispatched until every filter's logs are fetched, so a
        failed fetch leaves the range to be retried in full next time.
        """
        latest = await self._client.get_block_number()
        if self._last_block is None:
            self._last_block = latest
            return
        if latest <= self._last_block:
            return

        from_block = self._last_block + 1
        fetched: list[tuple[EventFilter, list[ContractEvent]]] = []
        for event_filter in list(self._listeners):
            logs = await self._client.get_logs(
                event_filter.address,
                self._topic_filter(event_filter),
                from_block,
                latest,
            )
            fetched.append((event_filter, [_decode_log(event_filter, log) for log in logs]))

        self._last_block = latest
        for event_filter, events in fetched:
            for event in events:
                for listener in list(self._listeners.get(event_filter, ())):
                    try:
                        listener(event)
                    except Exception as e:
                        logger.error("Listener for %s failed: %s", event.event, e)

    async def _run(self) -> None:
        logger.debug("Log polling started (every %.1fs)", self._poll_interval)
        while True:
            try:
                await self.poll_once()
            except Exception as e:
                logger.error("Log polling failed: %s", e)
            await asyncio.sleep(self._poll_interval)
