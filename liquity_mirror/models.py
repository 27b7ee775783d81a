"""Data models — all frozen (immutable).

Protocol values are :class:`FixedPointDecimal`; wire records carry the raw
integers exactly as the contracts return them.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Literal, NoReturn, Optional

from .errors import UnappliedRewardsError
from .fixed_point import Decimalish, Difference, FixedPointDecimal

MINIMUM_COLLATERAL_RATIO = FixedPointDecimal.from_value("1.1")
CRITICAL_COLLATERAL_RATIO = FixedPointDecimal.from_value("1.5")


def _normalise(instance: object, name: str) -> FixedPointDecimal:
    """Coerce a dataclass field to FixedPointDecimal and reject negatives."""
    value = FixedPointDecimal.from_value(getattr(instance, name))
    if value.mantissa < 0:
        raise ValueError(
            f"{type(instance).__name__}.{name} cannot be negative: {value}"
        )
    object.__setattr__(instance, name, value)
    return value


def _collateral_ratio(
    collateral: FixedPointDecimal, debt: FixedPointDecimal, price: Decimalish
) -> FixedPointDecimal:
    if debt.is_zero:
        return FixedPointDecimal.INFINITY
    return collateral.mul_div(price, debt)


def _require_applied(trove: Trove) -> None:
    if isinstance(trove, TroveWithPendingRewards):
        raise UnappliedRewardsError(
            "Apply pending redistribution rewards before deriving a trove"
        )


# ---------------------------------------------------------------------------
# Wire records
# ---------------------------------------------------------------------------


class TroveStatus(IntEnum):
    NON_EXISTENT = 0
    ACTIVE = 1
    CLOSED = 2


@dataclass(frozen=True)
class TroveRecord:
    """Position record as stored by the CDP manager."""

    debt: int
    collateral: int
    stake: int
    status: TroveStatus


@dataclass(frozen=True)
class SnapshotRecord:
    """Accumulator snapshot pair (collateral side, debt side)."""

    collateral: int
    debt: int


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TroveChange:
    """Which component of a trove changed, and by how much."""

    component: Literal["collateral", "debt"]
    difference: Difference


@dataclass(frozen=True)
class Trove:
    """Collateralized debt position."""

    collateral: FixedPointDecimal
    debt: FixedPointDecimal

    def __post_init__(self) -> None:
        _normalise(self, "collateral")
        _normalise(self, "debt")

    @property
    def is_empty(self) -> bool:
        return self.collateral.is_zero and self.debt.is_zero

    def collateral_ratio(self, price: Decimalish) -> FixedPointDecimal:
        """``collateral * price / debt``; ``INFINITY`` when there is no debt."""
        return _collateral_ratio(self.collateral, self.debt, price)

    def is_below_minimum_collateral_ratio(self, price: Decimalish) -> bool:
        return self.collateral_ratio(price).lt(MINIMUM_COLLATERAL_RATIO)

    def add(self, other: Trove) -> Trove:
        _require_applied(other)
        return Trove(
            collateral=self.collateral.add(other.collateral),
            debt=self.debt.add(other.debt),
        )

    def subtract(self, other: Trove) -> Trove:
        _require_applied(other)
        return Trove(
            collateral=self.collateral.sub(other.collateral),
            debt=self.debt.sub(other.debt),
        )

    def multiply(self, factor: Decimalish) -> Trove:
        return Trove(
            collateral=self.collateral.mul(factor), debt=self.debt.mul(factor)
        )

    def add_collateral(self, amount: Decimalish) -> Trove:
        return Trove(collateral=self.collateral.add(amount), debt=self.debt)

    def add_debt(self, amount: Decimalish) -> Trove:
        return Trove(collateral=self.collateral, debt=self.debt.add(amount))

    def subtract_collateral(self, amount: Decimalish) -> Trove:
        return Trove(collateral=self.collateral.sub(amount), debt=self.debt)

    def subtract_debt(self, amount: Decimalish) -> Trove:
        return Trove(collateral=self.collateral, debt=self.debt.sub(amount))

    def set_collateral(self, collateral: Decimalish) -> Trove:
        return Trove(collateral=collateral, debt=self.debt)

    def set_debt(self, debt: Decimalish) -> Trove:
        return Trove(collateral=self.collateral, debt=debt)

    def what_changed(self, edited: Trove) -> Optional[TroveChange]:
        """Describe the first component that differs in ``edited``.

        Collateral is compared before debt; ``None`` means no change.
        """
        _require_applied(edited)
        if not edited.collateral.eq(self.collateral):
            return TroveChange(
                "collateral", Difference.between(edited.collateral, self.collateral)
            )
        if not edited.debt.eq(self.debt):
            return TroveChange("debt", Difference.between(edited.debt, self.debt))
        return None

    def apply(self, change: Optional[TroveChange]) -> Trove:
        """Replay a change descriptor onto this trove."""
        if change is None or change.difference.non_zero is None:
            return self
        if change.component == "collateral":
            return self.set_collateral(change.difference.apply_to(self.collateral))
        return self.set_debt(change.difference.apply_to(self.debt))


@dataclass(frozen=True)
class TroveWithPendingRewards(Trove):
    """Trove as last written on-chain, before redistribution rewards.

    The raw collateral/debt are stale whenever the protocol-wide
    redistribution totals moved past ``snapshot_of_total_redistributed``,
    so ratio operations and every derivation of a new trove are refused
    until rewards are applied.
    """

    stake: FixedPointDecimal
    snapshot_of_total_redistributed: Trove

    def __post_init__(self) -> None:
        super().__post_init__()
        _normalise(self, "stake")

    def collateral_ratio(self, price: Decimalish) -> FixedPointDecimal:
        raise UnappliedRewardsError(
            "Apply pending redistribution rewards before computing a collateral ratio"
        )

    def _derive(self, *args: object, **kwargs: object) -> NoReturn:
        raise UnappliedRewardsError(
            "Apply pending redistribution rewards before deriving a trove"
        )

    add = subtract = multiply = _derive
    add_collateral = add_debt = subtract_collateral = subtract_debt = _derive
    set_collateral = set_debt = what_changed = apply = _derive


def build_trove_with_pending_rewards(
    record: TroveRecord, snapshot: SnapshotRecord
) -> TroveWithPendingRewards:
    """Build a reward-unaware trove from its wire records.

    A position that is not active is represented as an empty trove with
    zero stake, so it picks up no redistribution rewards.
    """
    if record.status != TroveStatus.ACTIVE:
        return TroveWithPendingRewards(
            collateral=FixedPointDecimal.ZERO,
            debt=FixedPointDecimal.ZERO,
            stake=FixedPointDecimal.ZERO,
            snapshot_of_total_redistributed=Trove(
                collateral=FixedPointDecimal.ZERO, debt=FixedPointDecimal.ZERO
            ),
        )

    return TroveWithPendingRewards(
        collateral=FixedPointDecimal.from_wire(record.collateral),
        debt=FixedPointDecimal.from_wire(record.debt),
        stake=FixedPointDecimal.from_wire(record.stake),
        snapshot_of_total_redistributed=Trove(
            collateral=FixedPointDecimal.from_wire(snapshot.collateral),
            debt=FixedPointDecimal.from_wire(snapshot.debt),
        ),
    )


# ---------------------------------------------------------------------------
# Stability pool
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PoolAccumulators:
    """Cumulative stability-pool gain and loss per unit deposited."""

    collateral_gain_per_unit: FixedPointDecimal
    loss_per_unit: FixedPointDecimal

    def __post_init__(self) -> None:
        _normalise(self, "collateral_gain_per_unit")
        _normalise(self, "loss_per_unit")

    @classmethod
    def from_record(cls, record: SnapshotRecord) -> PoolAccumulators:
        return cls(
            collateral_gain_per_unit=FixedPointDecimal.from_wire(record.collateral),
            loss_per_unit=FixedPointDecimal.from_wire(record.debt),
        )


@dataclass(frozen=True)
class StabilityDeposit:
    """Stability pool deposit with its pending gain and loss.

    ``pending_deposit_loss`` is capped at ``deposit``: a depositor can lose
    at most what they put in.
    """

    deposit: FixedPointDecimal
    pending_collateral_gain: FixedPointDecimal
    pending_deposit_loss: FixedPointDecimal

    def __post_init__(self) -> None:
        deposit = _normalise(self, "deposit")
        _normalise(self, "pending_collateral_gain")
        loss = _normalise(self, "pending_deposit_loss")
        if loss.gt(deposit):
            object.__setattr__(self, "pending_deposit_loss", deposit)

    @property
    def deposit_after_loss(self) -> FixedPointDecimal:
        return self.deposit.sub(self.pending_deposit_loss)

    @property
    def is_empty(self) -> bool:
        return (
            self.deposit.is_zero
            and self.pending_collateral_gain.is_zero
            and self.pending_deposit_loss.is_zero
        )

    def calculate_difference(self, that: StabilityDeposit) -> Optional[Difference]:
        """Change in the post-loss balance from ``self`` to ``that``."""
        if that.deposit_after_loss.eq(self.deposit_after_loss):
            return None
        return Difference.between(that.deposit_after_loss, self.deposit_after_loss)

    def apply(self, difference: Optional[Difference]) -> StabilityDeposit:
        """Replay a balance change onto ``deposit_after_loss``.

        Any deposit change settles the pending gain and loss on-chain, so the
        result starts from a clean snapshot. The balance never goes below
        zero.
        """
        if difference is None or difference.non_zero is None:
            return self

        balance = difference.apply_to(self.deposit_after_loss)
        if balance.mantissa < 0:
            balance = FixedPointDecimal.ZERO

        return StabilityDeposit(
            deposit=balance,
            pending_collateral_gain=FixedPointDecimal.ZERO,
            pending_deposit_loss=FixedPointDecimal.ZERO,
        )


# ---------------------------------------------------------------------------
# Protocol-wide totals
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Pool:
    """Protocol-wide collateral and debt held by the active and default pools."""

    active_collateral: FixedPointDecimal
    active_debt: FixedPointDecimal
    liquidated_collateral: FixedPointDecimal
    closed_debt: FixedPointDecimal

    def __post_init__(self) -> None:
        _normalise(self, "active_collateral")
        _normalise(self, "active_debt")
        _normalise(self, "liquidated_collateral")
        _normalise(self, "closed_debt")

    @property
    def total_collateral(self) -> FixedPointDecimal:
        return self.active_collateral.add(self.liquidated_collateral)

    @property
    def total_debt(self) -> FixedPointDecimal:
        return self.active_debt.add(self.closed_debt)

    def total_collateral_ratio(self, price: Decimalish) -> FixedPointDecimal:
        return _collateral_ratio(self.total_collateral, self.total_debt, price)

    def is_recovery_mode_active(self, price: Decimalish) -> bool:
        return self.total_collateral_ratio(price).lt(CRITICAL_COLLATERAL_RATIO)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransactionRequest:
    """Unsigned call ready to be sent: target, calldata and attached value (wei)."""

    to: str
    data: str
    value: int = 0
