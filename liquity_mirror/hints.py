"""Insertion-hint resolution for the remote sorted trove list.

The list is ordered by descending collateral ratio. Walking it on-chain
costs gas proportional to its length, so callers pass a hint: an address
believed to sit next to the right insertion point. Resolution is two
remote reads:

1. ``get_approx_hint`` samples ``ceil(sqrt(N))`` random troves and returns
   the one whose ratio is closest to the target.
2. ``find_insert_position`` walks the list from that sample to the exact
   ``(prev, next)`` pair.

Both reads are views; the list may change before the caller's transaction
lands, which is fine because the contracts re-validate the position.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

from .config import HintConfig
from .errors import HintResolutionError
from .fixed_point import Decimalish
from .interfaces.contracts import HintReader
from .models import Trove

logger = logging.getLogger(__name__)

NULL_ADDRESS = "0x" + "0" * 40

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class InsertionHint:
    """Neighbours of the insertion point: ``upper`` has the higher ratio."""

    upper: str
    lower: str

    @property
    def hint(self) -> str:
        """Single hint for contract methods that accept only one."""
        return self.upper


def number_of_trials(list_size: int, config: HintConfig) -> int:
    """Sample count for the approximate hint: ``ceil(sqrt(N)) * multiplier``."""
    trials = math.ceil(math.sqrt(list_size)) * config.trials_multiplier
    if config.max_trials is not None:
        trials = min(trials, config.max_trials)
    return max(trials, 1)


def _require_address(value: object, what: str) -> str:
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise HintResolutionError(f"Malformed {what}: {value!r}")
    return value


class HintResolver:
    """Resolve an insertion hint for a trove about to be created or adjusted."""

    def __init__(self, reader: HintReader, config: HintConfig) -> None:
        self._reader = reader
        self._config = config

    async def find_hint(
        self, trove: Trove, price: Decimalish, address: str
    ) -> InsertionHint:
        """Find the ``(upper, lower)`` neighbours for ``trove`` at ``price``.

        Args:
            trove: The trove as it will be after the change, rewards applied.
            price: Collateral price used for the ratio.
            address: The owner's address, used as the default hint.

        Raises:
            HintResolutionError: a remote read failed or returned garbage.
            UnappliedRewardsError: ``trove`` still has pending rewards.
        """
        collateral_ratio = trove.collateral_ratio(price)
        if not self._config.enabled:
            return InsertionHint(address, address)

        try:
            list_size = await self._reader.get_number_of_troves()
        except Exception as e:
            raise HintResolutionError(f"Could not read the number of troves: {e}") from e

        if not list_size:
            return InsertionHint(address, address)

        if collateral_ratio.is_infinite:
            # Debt-free troves sort first; an empty hint pair starts the
            # on-chain search at the head, which is already the right spot.
            return InsertionHint(NULL_ADDRESS, NULL_ADDRESS)

        trials = number_of_trials(list_size, self._config)
        ratio = collateral_ratio.to_wire()

        try:
            approx = await self._reader.get_approx_hint(ratio, trials)
        except Exception as e:
            raise HintResolutionError(f"Approximate hint lookup failed: {e}") from e
        approx = _require_address(approx, "approximate hint")

        try:
            position = await self._reader.find_insert_position(ratio, approx, approx)
        except Exception as e:
            raise HintResolutionError(f"Insert position lookup failed: {e}") from e

        if not isinstance(position, (tuple, list)) or len(position) != 2:
            raise HintResolutionError(f"Malformed insert position: {position!r}")
        upper = _require_address(position[0], "upper hint")
        lower = _require_address(position[1], "lower hint")

        logger.debug(
            "Resolved hint for ratio %s over %d troves (%d trials): %s / %s",
            collateral_ratio, list_size, trials, upper, lower,
        )
        return InsertionHint(upper, lower)
