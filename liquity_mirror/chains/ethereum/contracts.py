"""Liquity contract binding — maps protocol reads and writes onto eth_call."""
from __future__ import annotations

import logging
from typing import Any, Optional

from ...config import AbiConfig, ContractsConfig
from ...errors import RemoteReadError
from ...interfaces.events import EventFilter
from ...models import SnapshotRecord, TransactionRequest, TroveRecord, TroveStatus
from .abi import decode_address, decode_words, encode_call
from .client import EthereumClient

logger = logging.getLogger(__name__)

# Contract that emits each watched event.
_EVENT_CONTRACTS: dict[str, str] = {
    "CDPCreated": "CDPManager",
    "CDPUpdated": "CDPManager",
    "CDPClosed": "CDPManager",
    "CDPLiquidated": "CDPManager",
    "UserDepositChanged": "PoolManager",
    "PriceUpdated": "PriceFeed",
}


class LiquityContracts:
    """Read Liquity state and populate calls through an :class:`EthereumClient`.

    Methods are addressed as ``Contract.method``; the 4-byte selector for
    each comes from :class:`AbiConfig`.
    """

    def __init__(
        self, client: EthereumClient, contracts: ContractsConfig, abi: AbiConfig
    ) -> None:
        self._client = client
        self._selectors = dict(abi.selectors)
        self._addresses = {
            "CDPManager": contracts.cdp_manager,
            "SortedCDPs": contracts.sorted_cdps,
            "PriceFeed": contracts.price_feed,
            "PoolManager": contracts.pool_manager,
        }

    # ------------------------------------------------------------------
    # Encoding helpers
    # ------------------------------------------------------------------

    def populate(
        self, method: str, args: tuple[Any, ...] = (), value: int = 0
    ) -> TransactionRequest:
        contract, _, _ = method.partition(".")
        address = self._addresses.get(contract)
        if not address:
            raise ValueError(f"Unknown contract in '{method}'")
        selector = self._selectors.get(method)
        if not selector:
            raise ValueError(f"No selector configured for '{method}'")
        return TransactionRequest(to=address, data=encode_call(selector, *args), value=value)

    def event_filter(self, event: str, account: Optional[str] = None) -> EventFilter:
        contract = _EVENT_CONTRACTS.get(event)
        if contract is None:
            raise ValueError(f"Unknown event '{event}'")
        return EventFilter(address=self._addresses[contract], event=event, account=account)

    async def _call(
        self,
        method: str,
        args: tuple[Any, ...] = (),
        block: Optional[int] = None,
        min_words: int = 1,
    ) -> list[int]:
        request = self.populate(method, args)
        words = decode_words(await self._client.call(request.to, request.data, block))
        if len(words) < min_words:
            raise RemoteReadError(
                f"{method} returned {len(words)} words, expected {min_words}"
            )
        return words

    async def _call_uint(
        self, method: str, args: tuple[Any, ...] = (), block: Optional[int] = None
    ) -> int:
        return (await self._call(method, args, block))[0]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_block_number(self) -> int:
        return await self._client.get_block_number()

    async def get_trove_record(
        self, address: str, block: Optional[int] = None
    ) -> TroveRecord:
        debt, collateral, stake, status = (
            await self._call("CDPManager.CDPs", (address,), block, min_words=4)
        )[:4]
        try:
            trove_status = TroveStatus(status)
        except ValueError as e:
            raise RemoteReadError(f"Unknown trove status {status}") from e
        return TroveRecord(debt=debt, collateral=collateral, stake=stake, status=trove_status)

    async def get_reward_snapshot(
        self, address: str, block: Optional[int] = None
    ) -> SnapshotRecord:
        collateral, debt = (
            await self._call("CDPManager.rewardSnapshots", (address,), block, min_words=2)
        )[:2]
        return SnapshotRecord(collateral=collateral, debt=debt)

    async def get_total_redistributed_collateral(self, block: Optional[int] = None) -> int:
        return await self._call_uint("CDPManager.L_ETH", block=block)

    async def get_total_redistributed_debt(self, block: Optional[int] = None) -> int:
        return await self._call_uint("CDPManager.L_CLVDebt", block=block)

    async def get_number_of_troves(self, block: Optional[int] = None) -> int:
        return await self._call_uint("CDPManager.getCDPOwnersCount", block=block)

    async def get_price(self, block: Optional[int] = None) -> int:
        return await self._call_uint("PriceFeed.getPrice", block=block)

    async def get_deposit(self, address: str, block: Optional[int] = None) -> int:
        return await self._call_uint("PoolManager.deposit", (address,), block)

    async def get_deposit_snapshot(
        self, address: str, block: Optional[int] = None
    ) -> SnapshotRecord:
        collateral, debt = (
            await self._call("PoolManager.snapshot", (address,), block, min_words=2)
        )[:2]
        return SnapshotRecord(collateral=collateral, debt=debt)

    async def get_pool_collateral_gain_per_unit(self, block: Optional[int] = None) -> int:
        return await self._call_uint("PoolManager.S_ETH", block=block)

    async def get_pool_loss_per_unit(self, block: Optional[int] = None) -> int:
        return await self._call_uint("PoolManager.S_CLV", block=block)

    async def get_total_deposits(self, block: Optional[int] = None) -> int:
        return await self._call_uint("PoolManager.getStabilityPoolCLV", block=block)

    async def get_active_collateral(self, block: Optional[int] = None) -> int:
        return await self._call_uint("PoolManager.getActiveColl", block=block)

    async def get_active_debt(self, block: Optional[int] = None) -> int:
        return await self._call_uint("PoolManager.getActiveDebt", block=block)

    async def get_liquidated_collateral(self, block: Optional[int] = None) -> int:
        return await self._call_uint("PoolManager.getLiquidatedColl", block=block)

    async def get_closed_debt(self, block: Optional[int] = None) -> int:
        return await self._call_uint("PoolManager.getClosedDebt", block=block)

    # ------------------------------------------------------------------
    # Hint reads
    # ------------------------------------------------------------------

    async def get_approx_hint(self, collateral_ratio: int, trials: int) -> str:
        word = await self._call_uint(
            "CDPManager.getApproxHint", (collateral_ratio, trials)
        )
        return decode_address(word)

    async def find_insert_position(
        self, collateral_ratio: int, prev_id: str, next_id: str
    ) -> tuple[str, str]:
        upper, lower = (
            await self._call(
                "SortedCDPs.findInsertPosition",
                (collateral_ratio, prev_id, next_id),
                min_words=2,
            )
        )[:2]
        return decode_address(upper), decode_address(lower)
