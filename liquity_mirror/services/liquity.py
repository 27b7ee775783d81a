"""Liquity read/watch orchestration and change preparation."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ..accounting import apply_rewards, compute_stability_deposit
from ..chains.ethereum import EthereumClient, LiquityContracts, LogPoller
from ..config import AppConfig, WatchConfig
from ..errors import UnappliedRewardsError
from ..fixed_point import Decimalish, Difference, FixedPointDecimal
from ..hints import HintResolver, InsertionHint
from ..interfaces.contracts import ProtocolReader
from ..interfaces.events import EventFilter, EventSource
from ..interfaces.transactions import TransactionPopulator, TransactionSender
from ..models import (
    Pool,
    PoolAccumulators,
    StabilityDeposit,
    Trove,
    TroveChange,
    TroveWithPendingRewards,
    build_trove_with_pending_rewards,
)
from ..transactions import LiquityTransaction, prepare, transact
from .subscription import Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TroveChangeDetails:
    """What a trove transaction will do, and the hint it was prepared with."""

    new_trove: Trove
    change: Optional[TroveChange]
    hint: InsertionHint


@dataclass(frozen=True)
class StabilityDepositChangeDetails:
    new_deposit: StabilityDeposit
    difference: Difference


def _wire(amount: Decimalish) -> int:
    return FixedPointDecimal.from_value(amount).to_wire()


def _require_applied(trove: Trove) -> None:
    if isinstance(trove, TroveWithPendingRewards):
        raise UnappliedRewardsError(
            "Apply pending redistribution rewards before preparing a trove change"
        )


class LiquityService:
    """Point-in-time reads, debounced watchers and change helpers.

    Every value returned is already stale once a new block is mined. Reads
    that combine several fields are pinned to one block.
    """

    def __init__(
        self,
        reader: ProtocolReader,
        events: EventSource,
        hints: HintResolver,
        populator: TransactionPopulator,
        watch_config: WatchConfig,
        account: str = "",
        sender: Optional[TransactionSender] = None,
    ) -> None:
        self._reader = reader
        self._events = events
        self._hints = hints
        self._populator = populator
        self._watch_config = watch_config
        self._account = account
        self._sender = sender

    @classmethod
    def from_config(cls, config: AppConfig) -> LiquityService:
        """Wire the JSON-RPC client, contract binding and log poller."""
        client = EthereumClient(config.chain, account=config.account)
        contracts = LiquityContracts(client, config.contracts, config.abi)
        poller = LogPoller(client, config.abi.event_topics, config.chain.poll_interval)
        return cls(
            reader=contracts,
            events=poller,
            hints=HintResolver(contracts, config.hints),
            populator=contracts,
            watch_config=config.watch,
            account=config.account,
            sender=client,
        )

    def _require_address(self, address: Optional[str]) -> str:
        address = address or self._account
        if not address:
            raise ValueError("An address is required")
        return address

    async def _pin(self, block: Optional[int]) -> int:
        if block is not None:
            return block
        return await self._reader.get_block_number()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_block_number(self) -> int:
        return await self._reader.get_block_number()

    async def find_hint(
        self, trove: Trove, price: Decimalish, address: Optional[str] = None
    ) -> InsertionHint:
        return await self._hints.find_hint(trove, price, self._require_address(address))

    async def get_price(self, block: Optional[int] = None) -> FixedPointDecimal:
        return FixedPointDecimal.from_wire(await self._reader.get_price(block))

    async def get_number_of_troves(self, block: Optional[int] = None) -> int:
        return await self._reader.get_number_of_troves(block)

    async def get_total_redistributed(self, block: Optional[int] = None) -> Trove:
        """Cumulative collateral and debt redistributed per unit of stake."""
        block = await self._pin(block)
        collateral, debt = await asyncio.gather(
            self._reader.get_total_redistributed_collateral(block),
            self._reader.get_total_redistributed_debt(block),
        )
        return Trove(
            collateral=FixedPointDecimal.from_wire(collateral),
            debt=FixedPointDecimal.from_wire(debt),
        )

    async def get_trove_before_redistribution(
        self, address: Optional[str] = None, block: Optional[int] = None
    ) -> TroveWithPendingRewards:
        address = self._require_address(address)
        block = await self._pin(block)
        record, snapshot = await asyncio.gather(
            self._reader.get_trove_record(address, block),
            self._reader.get_reward_snapshot(address, block),
        )
        return build_trove_with_pending_rewards(record, snapshot)

    async def get_trove(
        self, address: Optional[str] = None, block: Optional[int] = None
    ) -> Trove:
        """The trove's true collateral and debt, pending rewards included.

        A closed or never-opened trove is returned as an empty trove.
        """
        address = self._require_address(address)
        block = await self._pin(block)
        position, total_redistributed = await asyncio.gather(
            self.get_trove_before_redistribution(address, block),
            self.get_total_redistributed(block),
        )
        return apply_rewards(position, total_redistributed)

    async def get_collateral_ratio(
        self, address: Optional[str] = None, block: Optional[int] = None
    ) -> FixedPointDecimal:
        """Trove and price read at the same block."""
        block = await self._pin(block)
        trove, price = await asyncio.gather(
            self.get_trove(address, block), self.get_price(block)
        )
        return trove.collateral_ratio(price)

    async def get_stability_deposit(
        self, address: Optional[str] = None, block: Optional[int] = None
    ) -> StabilityDeposit:
        address = self._require_address(address)
        block = await self._pin(block)
        deposit, snapshot, gain_per_unit, loss_per_unit = await asyncio.gather(
            self._reader.get_deposit(address, block),
            self._reader.get_deposit_snapshot(address, block),
            self._reader.get_pool_collateral_gain_per_unit(block),
            self._reader.get_pool_loss_per_unit(block),
        )
        current = PoolAccumulators(
            collateral_gain_per_unit=FixedPointDecimal.from_wire(gain_per_unit),
            loss_per_unit=FixedPointDecimal.from_wire(loss_per_unit),
        )
        return compute_stability_deposit(
            FixedPointDecimal.from_wire(deposit),
            PoolAccumulators.from_record(snapshot),
            current,
        )

    async def get_total_deposits(self, block: Optional[int] = None) -> FixedPointDecimal:
        return FixedPointDecimal.from_wire(await self._reader.get_total_deposits(block))

    async def get_pool(self, block: Optional[int] = None) -> Pool:
        block = await self._pin(block)
        active_collateral, active_debt, liquidated_collateral, closed_debt = (
            await asyncio.gather(
                self._reader.get_active_collateral(block),
                self._reader.get_active_debt(block),
                self._reader.get_liquidated_collateral(block),
                self._reader.get_closed_debt(block),
            )
        )
        return Pool(
            active_collateral=FixedPointDecimal.from_wire(active_collateral),
            active_debt=FixedPointDecimal.from_wire(active_debt),
            liquidated_collateral=FixedPointDecimal.from_wire(liquidated_collateral),
            closed_debt=FixedPointDecimal.from_wire(closed_debt),
        )

    # ------------------------------------------------------------------
    # Watchers
    # ------------------------------------------------------------------

    def _watch(
        self,
        name: str,
        events: list[EventFilter],
        fetch: Callable[[int], Awaitable[T]],
        callback: Callable[[T], None],
    ) -> Subscription[T]:
        return Subscription(
            name,
            self._events,
            events,
            fetch,
            callback,
            self._watch_config.debounce_seconds,
        )

    def watch_trove(
        self, callback: Callable[[Trove], None], address: Optional[str] = None
    ) -> Subscription[Trove]:
        """Re-read the trove whenever it is touched or a liquidation redistributes."""
        address = self._require_address(address)
        ef = self._reader.event_filter
        return self._watch(
            f"trove {address}",
            [
                ef("CDPCreated", address),
                ef("CDPUpdated", address),
                ef("CDPClosed", address),
                ef("CDPLiquidated"),
            ],
            lambda block: self.get_trove(address, block),
            callback,
        )

    def watch_stability_deposit(
        self, callback: Callable[[StabilityDeposit], None], address: Optional[str] = None
    ) -> Subscription[StabilityDeposit]:
        address = self._require_address(address)
        ef = self._reader.event_filter
        return self._watch(
            f"stability deposit {address}",
            [ef("UserDepositChanged", address), ef("CDPLiquidated")],
            lambda block: self.get_stability_deposit(address, block),
            callback,
        )

    def watch_price(
        self, callback: Callable[[FixedPointDecimal], None]
    ) -> Subscription[FixedPointDecimal]:
        return self._watch(
            "price",
            [self._reader.event_filter("PriceUpdated")],
            self.get_price,
            callback,
        )

    def watch_number_of_troves(
        self, callback: Callable[[int], None]
    ) -> Subscription[int]:
        ef = self._reader.event_filter
        return self._watch(
            "number of troves",
            [ef("CDPCreated"), ef("CDPClosed"), ef("CDPLiquidated")],
            self.get_number_of_troves,
            callback,
        )

    # ------------------------------------------------------------------
    # Change preparation
    # ------------------------------------------------------------------

    async def _prepare_trove_change(
        self,
        method: str,
        initial: Trove,
        final: Trove,
        price: Decimalish,
        args: Callable[[str], tuple],
        value: int = 0,
        address: Optional[str] = None,
    ) -> LiquityTransaction:
        _require_applied(initial)
        address = self._require_address(address)
        hint = await self._hints.find_hint(final, price, address)
        request = self._populator.populate(method, args(hint.hint), value=value)
        return prepare(
            request,
            TroveChangeDetails(new_trove=final, change=initial.what_changed(final), hint=hint),
        )

    async def prepare_open_trove(self, trove: Trove, price: Decimalish) -> LiquityTransaction:
        empty = Trove(collateral=FixedPointDecimal.ZERO, debt=FixedPointDecimal.ZERO)
        return await self._prepare_trove_change(
            "CDPManager.openLoan",
            empty,
            trove,
            price,
            lambda hint: (trove.debt.to_wire(), hint),
            value=trove.collateral.to_wire(),
        )

    async def prepare_deposit_collateral(
        self,
        initial: Trove,
        amount: Decimalish,
        price: Decimalish,
        address: Optional[str] = None,
    ) -> LiquityTransaction:
        """Top up the collateral of ``address``, the configured account by default."""
        _require_applied(initial)
        address = self._require_address(address)
        return await self._prepare_trove_change(
            "CDPManager.addColl",
            initial,
            initial.add_collateral(amount),
            price,
            lambda hint: (address, hint),
            value=_wire(amount),
            address=address,
        )

    async def prepare_withdraw_collateral(
        self, initial: Trove, amount: Decimalish, price: Decimalish
    ) -> LiquityTransaction:
        _require_applied(initial)
        return await self._prepare_trove_change(
            "CDPManager.withdrawColl",
            initial,
            initial.subtract_collateral(amount),
            price,
            lambda hint: (_wire(amount), hint),
        )

    async def prepare_borrow(
        self, initial: Trove, amount: Decimalish, price: Decimalish
    ) -> LiquityTransaction:
        _require_applied(initial)
        return await self._prepare_trove_change(
            "CDPManager.withdrawCLV",
            initial,
            initial.add_debt(amount),
            price,
            lambda hint: (_wire(amount), hint),
        )

    async def prepare_repay(
        self, initial: Trove, amount: Decimalish, price: Decimalish
    ) -> LiquityTransaction:
        _require_applied(initial)
        return await self._prepare_trove_change(
            "CDPManager.repayCLV",
            initial,
            initial.subtract_debt(amount),
            price,
            lambda hint: (_wire(amount), hint),
        )

    async def prepare_adjust_trove(
        self, original: Trove, edited: Trove, price: Decimalish
    ) -> LiquityTransaction:
        """Prepare the call that moves ``original`` toward ``edited``.

        One component changes per transaction, collateral first; call again
        with the new trove to apply a debt change as well.
        """
        _require_applied(original)
        change = original.what_changed(edited)
        if change is None:
            raise ValueError("Trove is unchanged")

        amount = change.difference.absolute_value
        if amount is None:
            raise ValueError(f"Undefined {change.component} change")
        if change.component == "collateral":
            if change.difference.positive:
                return await self.prepare_deposit_collateral(original, amount, price)
            return await self.prepare_withdraw_collateral(original, amount, price)
        if change.difference.positive:
            return await self.prepare_borrow(original, amount, price)
        return await self.prepare_repay(original, amount, price)

    def prepare_deposit_in_stability_pool(self, amount: Decimalish) -> LiquityTransaction:
        return prepare(self._populator.populate("PoolManager.provideToSP", (_wire(amount),)))

    def prepare_withdraw_from_stability_pool(self, amount: Decimalish) -> LiquityTransaction:
        return prepare(self._populator.populate("PoolManager.withdrawFromSP", (_wire(amount),)))

    def prepare_stability_deposit_change(
        self, original: StabilityDeposit, target: Decimalish
    ) -> LiquityTransaction:
        """Deposit or withdraw so the post-loss balance becomes ``target``."""
        target_deposit = StabilityDeposit(
            deposit=FixedPointDecimal.from_value(target),
            pending_collateral_gain=FixedPointDecimal.ZERO,
            pending_deposit_loss=FixedPointDecimal.ZERO,
        )
        difference = original.calculate_difference(target_deposit)
        if difference is None:
            raise ValueError("Stability deposit is unchanged")

        amount = difference.absolute_value
        if amount is None:
            raise ValueError("Undefined stability deposit change")
        if difference.positive:
            tx = self.prepare_deposit_in_stability_pool(amount)
        else:
            tx = self.prepare_withdraw_from_stability_pool(amount)

        return prepare(
            tx.request,
            StabilityDepositChangeDetails(
                new_deposit=original.apply(difference), difference=difference
            ),
        )

    def prepare_liquidate(self, max_count: int) -> LiquityTransaction:
        return prepare(self._populator.populate("CDPManager.liquidateCDPs", (max_count,)))

    def prepare_set_price(self, price: Decimalish) -> LiquityTransaction:
        return prepare(self._populator.populate("PriceFeed.setPrice", (_wire(price),)))

    async def send(self, tx: LiquityTransaction) -> LiquityTransaction:
        """Submit a prepared transaction and wait for a successful receipt."""
        if self._sender is None:
            raise ValueError("No transaction sender configured")
        return await transact(tx, self._sender)
