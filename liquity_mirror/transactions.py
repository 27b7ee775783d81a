"""Transaction pipeline: Prepared → Submitted → Resolved.

A :class:`LiquityTransaction` is a tagged, immutable value. Each stage has
exactly one transition function, and calling it from any other stage
raises :class:`TransactionStageError`.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Literal, Optional

from .errors import TransactionFailedError, TransactionStageError
from .interfaces.transactions import TransactionSender
from .models import TransactionRequest

logger = logging.getLogger(__name__)


class TransactionStage(Enum):
    PREPARED = "prepared"
    SUBMITTED = "submitted"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class Receipt:
    status: Literal["pending", "failed", "succeeded"]
    raw: Optional[dict[str, Any]] = None

    @classmethod
    def from_raw(cls, raw: Optional[dict[str, Any]]) -> Receipt:
        """Classify an ``eth_getTransactionReceipt`` result."""
        if raw is None:
            return cls("pending")
        status = raw.get("status")
        if isinstance(status, str):
            status = int(status, 16)
        return cls("succeeded" if status == 1 else "failed", raw)


@dataclass(frozen=True)
class LiquityTransaction:
    """A state-changing call and how far it got.

    ``details`` carries whatever the preparing helper computed (change
    descriptor, resulting entity, insertion hint) so the caller can show it
    before and after sending.
    """

    stage: TransactionStage
    request: TransactionRequest
    details: Any = None
    tx_hash: Optional[str] = None
    receipt: Optional[Receipt] = None


def _require_stage(tx: LiquityTransaction, stage: TransactionStage) -> None:
    if tx.stage is not stage:
        raise TransactionStageError(
            f"Expected a {stage.value} transaction, got {tx.stage.value}"
        )


def prepare(request: TransactionRequest, details: Any = None) -> LiquityTransaction:
    return LiquityTransaction(TransactionStage.PREPARED, request, details)


async def submit(tx: LiquityTransaction, sender: TransactionSender) -> LiquityTransaction:
    """Send a prepared transaction."""
    _require_stage(tx, TransactionStage.PREPARED)
    tx_hash = await sender.send_transaction(tx.request)
    logger.info("Submitted transaction %s to %s", tx_hash, tx.request.to)
    return replace(tx, stage=TransactionStage.SUBMITTED, tx_hash=tx_hash)


async def resolve(
    tx: LiquityTransaction,
    sender: TransactionSender,
    poll_interval: float = 1.0,
    timeout: Optional[float] = None,
) -> LiquityTransaction:
    """Wait until a submitted transaction is mined.

    Raises:
        asyncio.TimeoutError: no receipt within ``timeout`` seconds.
    """
    _require_stage(tx, TransactionStage.SUBMITTED)
    if tx.tx_hash is None:
        raise TransactionStageError("Submitted transaction has no hash")

    async def _poll() -> Receipt:
        while True:
            receipt = Receipt.from_raw(await sender.get_transaction_receipt(tx.tx_hash))
            if receipt.status != "pending":
                return receipt
            await asyncio.sleep(poll_interval)

    receipt = await asyncio.wait_for(_poll(), timeout)
    logger.info("Transaction %s %s", tx.tx_hash, receipt.status)
    return replace(tx, stage=TransactionStage.RESOLVED, receipt=receipt)


async def transact(
    tx: LiquityTransaction,
    sender: TransactionSender,
    poll_interval: float = 1.0,
    timeout: Optional[float] = None,
) -> LiquityTransaction:
    """Submit and resolve; raise if the transaction reverted."""
    resolved = await resolve(
        await submit(tx, sender), sender, poll_interval=poll_interval, timeout=timeout
    )
    if resolved.receipt is None or resolved.receipt.status != "succeeded":
        raise TransactionFailedError(f"Transaction {resolved.tx_hash} failed")
    return resolved
