"""Event source protocol — contract event subscription abstraction."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol


@dataclass(frozen=True)
class EventFilter:
    """Match one named event of one contract, optionally for one account."""

    address: str
    event: str
    account: Optional[str] = None


@dataclass(frozen=True)
class ContractEvent:
    """Decoded log: the event name, its block, indexed account and data words."""

    event: str
    address: str
    block_number: int
    account: Optional[str] = None
    words: tuple[int, ...] = ()


EventListener = Callable[[ContractEvent], None]


class EventSource(Protocol):
    """Abstract interface for subscribing to contract events."""

    def on(self, event_filter: EventFilter, listener: EventListener) -> None: ...

    def remove_listener(
        self, event_filter: EventFilter, listener: EventListener
    ) -> None: ...
