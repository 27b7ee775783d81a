"""Protocol interfaces for the remote collaborators."""
from .contracts import HintReader, ProtocolReader
from .events import ContractEvent, EventFilter, EventListener, EventSource
from .transactions import TransactionPopulator, TransactionSender

__all__ = [
    "ContractEvent",
    "EventFilter",
    "EventListener",
    "EventSource",
    "HintReader",
    "ProtocolReader",
    "TransactionPopulator",
    "TransactionSender",
]
