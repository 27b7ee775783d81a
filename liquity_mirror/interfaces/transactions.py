"""Transaction protocols — calldata population and submission."""
from typing import Any, Optional, Protocol

from ..models import TransactionRequest


class TransactionPopulator(Protocol):
    """Turns a named contract method and arguments into a request."""

    def populate(
        self, method: str, args: tuple[Any, ...] = (), value: int = 0
    ) -> TransactionRequest: ...


class TransactionSender(Protocol):
    """Abstract interface for submitting transactions and reading receipts."""

    async def send_transaction(self, request: TransactionRequest) -> str: ...

    async def get_transaction_receipt(
        self, tx_hash: str
    ) -> Optional[dict[str, Any]]: ...
