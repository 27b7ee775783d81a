"""Ethereum JSON-RPC transport and Liquity contract binding."""
from .client import EthereumClient
from .contracts import LiquityContracts
from .events import LogPoller

__all__ = ["EthereumClient", "LiquityContracts", "LogPoller"]
