"""Service modules"""
from .liquity import LiquityService, StabilityDepositChangeDetails, TroveChangeDetails
from .subscription import Subscription

__all__ = [
    "LiquityService",
    "StabilityDepositChangeDetails",
    "Subscription",
    "TroveChangeDetails",
]
