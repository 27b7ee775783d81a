"""Pure redistribution and stability-pool accounting — no I/O.

Both sides of the protocol use the same scheme: a protocol-wide
accumulator only ever grows, each position remembers the value it saw at
its last on-chain update, and what it is owed is the accumulator delta
scaled by its stake (or deposit size).
"""
from __future__ import annotations

from .errors import RemoteReadError
from .fixed_point import FixedPointDecimal
from .models import PoolAccumulators, StabilityDeposit, Trove, TroveWithPendingRewards


def compute_pending_reward(
    snapshot: FixedPointDecimal,
    current: FixedPointDecimal,
    stake: FixedPointDecimal,
) -> FixedPointDecimal:
    """``(current - snapshot) * stake``.

    Raises:
        RemoteReadError: the accumulator is below the snapshot, which the
            contracts never allow.
    """
    if stake.is_zero:
        return FixedPointDecimal.ZERO

    reward_per_stake = current.sub(snapshot)
    if reward_per_stake.mantissa < 0:
        raise RemoteReadError(
            f"Accumulator went backwards: snapshot {snapshot}, current {current}"
        )
    return reward_per_stake.mul(stake)


def apply_rewards(
    position: TroveWithPendingRewards, total_redistributed: Trove
) -> Trove:
    """Return the position's true collateral and debt.

    Reproduces the amount the CDP manager adds to the position the next
    time it touches its storage.
    """
    if position.stake.is_zero:
        return Trove(collateral=position.collateral, debt=position.debt)

    snapshot = position.snapshot_of_total_redistributed
    pending_collateral = compute_pending_reward(
        snapshot.collateral, total_redistributed.collateral, position.stake
    )
    pending_debt = compute_pending_reward(
        snapshot.debt, total_redistributed.debt, position.stake
    )

    return Trove(
        collateral=position.collateral.add(pending_collateral),
        debt=position.debt.add(pending_debt),
    )


def compute_stability_deposit(
    deposit: FixedPointDecimal,
    snapshot: PoolAccumulators,
    current: PoolAccumulators,
) -> StabilityDeposit:
    """Combine a deposit with the pool accumulators it has not seen yet.

    The loss is clamped by :class:`StabilityDeposit` so the deposit can be
    wiped out but never goes negative.
    """
    pending_collateral_gain = compute_pending_reward(
        snapshot.collateral_gain_per_unit, current.collateral_gain_per_unit, deposit
    )
    pending_deposit_loss = compute_pending_reward(
        snapshot.loss_per_unit, current.loss_per_unit, deposit
    )

    return StabilityDeposit(
        deposit=deposit,
        pending_collateral_gain=pending_collateral_gain,
        pending_deposit_loss=pending_deposit_loss,
    )
