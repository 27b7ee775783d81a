"""Unit tests for redistribution and stability-pool accounting."""
from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from liquity_mirror.accounting import (
    apply_rewards,
    compute_pending_reward,
    compute_stability_deposit,
)
from liquity_mirror.errors import RemoteReadError
from liquity_mirror.fixed_point import FixedPointDecimal
from liquity_mirror.models import PoolAccumulators, Trove, TroveWithPendingRewards

D = FixedPointDecimal.from_value

amounts = st.integers(min_value=0, max_value=10**30).map(FixedPointDecimal)


def _position(collateral, debt, stake, snapshot: Trove) -> TroveWithPendingRewards:
    return TroveWithPendingRewards(
        collateral=D(collateral),
        debt=D(debt),
        stake=D(stake),
        snapshot_of_total_redistributed=snapshot,
    )


class TestComputePendingReward:
    def test_delta_times_stake(self) -> None:
        assert compute_pending_reward(D(10), D(14), D(2)) == D(8)

    def test_zero_stake(self) -> None:
        assert compute_pending_reward(D(10), D(14), D(0)).is_zero

    def test_accumulator_going_backwards_raises(self) -> None:
        with pytest.raises(RemoteReadError, match="went backwards"):
            compute_pending_reward(D(10), D(9), D(1))


class TestApplyRewards:
    def test_redistribution_added_to_raw_values(self) -> None:
        position = _position(50, 3000, 2, Trove(collateral=D(10), debt=D(5)))
        trove = apply_rewards(position, Trove(collateral=D(14), debt=D(7)))
        assert trove == Trove(collateral=D(58), debt=D(3004))

    def test_result_is_reward_aware(self) -> None:
        position = _position(1, 100, 1, Trove(collateral=D(0), debt=D(0)))
        trove = apply_rewards(position, Trove(collateral=D(0), debt=D(0)))
        assert type(trove) is Trove
        assert trove.collateral_ratio(200) == D(2)

    def test_zero_stake_picks_up_nothing(self) -> None:
        position = _position(0, 0, 0, Trove(collateral=D(0), debt=D(0)))
        trove = apply_rewards(position, Trove(collateral=D(14), debt=D(7)))
        assert trove.is_empty

    @given(amounts, amounts, amounts, amounts, amounts)
    @settings(max_examples=100)
    def test_rewards_are_exact(self, stake, c0, d0, dc, dd) -> None:
        position = _position(1, 1, stake, Trove(collateral=c0, debt=d0))
        totals = Trove(collateral=c0.add(dc), debt=d0.add(dd))
        trove = apply_rewards(position, totals)
        assert trove.collateral == D(1).add(dc.mul(stake))
        assert trove.debt == D(1).add(dd.mul(stake))


class TestComputeStabilityDeposit:
    def test_gain_and_loss(self) -> None:
        deposit = compute_stability_deposit(
            D(100),
            PoolAccumulators(collateral_gain_per_unit=D("0.01"), loss_per_unit=D("0.1")),
            PoolAccumulators(collateral_gain_per_unit=D("0.03"), loss_per_unit=D("0.3")),
        )
        assert deposit.pending_collateral_gain == D(2)
        assert deposit.pending_deposit_loss == D(20)
        assert deposit.deposit_after_loss == D(80)

    def test_loss_clamped_to_deposit(self) -> None:
        deposit = compute_stability_deposit(
            D(100),
            PoolAccumulators(collateral_gain_per_unit=D(0), loss_per_unit=D(0)),
            PoolAccumulators(collateral_gain_per_unit=D(0), loss_per_unit=D("1.5")),
        )
        assert deposit.pending_deposit_loss == D(100)
        assert deposit.deposit_after_loss.is_zero

    @given(amounts, amounts)
    @settings(max_examples=100)
    def test_deposit_after_loss_never_negative(self, size, loss_per_unit) -> None:
        zero = PoolAccumulators(collateral_gain_per_unit=D(0), loss_per_unit=D(0))
        current = PoolAccumulators(collateral_gain_per_unit=D(0), loss_per_unit=loss_per_unit)
        deposit = compute_stability_deposit(size, zero, current)
        assert deposit.pending_deposit_loss.lte(size)
        assert deposit.deposit_after_loss.gte(0)
