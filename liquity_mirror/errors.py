"""Exception taxonomy — every error raised by the package derives from LiquityError."""
from __future__ import annotations


class LiquityError(Exception):
    """Base class for all liquity-mirror errors."""


class ParseError(LiquityError, ValueError):
    """Malformed or out-of-range numeric input."""


class UnappliedRewardsError(LiquityError):
    """A ratio was requested from a position whose pending rewards were never applied."""


class RemoteReadError(LiquityError, RuntimeError):
    """Fetching remote state failed (transport failure or malformed response)."""


class HintResolutionError(LiquityError):
    """Insertion-hint resolution failed."""


class TransactionStageError(LiquityError):
    """A transaction pipeline transition was called from the wrong stage."""


class TransactionFailedError(LiquityError):
    """A transaction was mined but reverted."""
