"""Off-chain mirror of Liquity protocol state."""
from .errors import (
    HintResolutionError,
    LiquityError,
    ParseError,
    RemoteReadError,
    TransactionFailedError,
    TransactionStageError,
    UnappliedRewardsError,
)
from .fixed_point import Difference, FixedPointDecimal
from .models import (
    CRITICAL_COLLATERAL_RATIO,
    MINIMUM_COLLATERAL_RATIO,
    Pool,
    StabilityDeposit,
    Trove,
    TroveChange,
    TroveWithPendingRewards,
)

__all__ = [
    "CRITICAL_COLLATERAL_RATIO",
    "Difference",
    "FixedPointDecimal",
    "HintResolutionError",
    "LiquityError",
    "MINIMUM_COLLATERAL_RATIO",
    "ParseError",
    "Pool",
    "RemoteReadError",
    "StabilityDeposit",
    "TransactionFailedError",
    "TransactionStageError",
    "Trove",
    "TroveChange",
    "TroveWithPendingRewards",
    "UnappliedRewardsError",
]
