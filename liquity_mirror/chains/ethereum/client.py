"""Ethereum JSON-RPC client with fallback support."""
from __future__ import annotations

import logging
import ssl
from typing import Any, Optional

import aiohttp
import certifi

from ...config import ChainConfig
from ...errors import RemoteReadError
from ...models import TransactionRequest

logger = logging.getLogger(__name__)


def _block_tag(block: Optional[int]) -> str:
    return "latest" if block is None else hex(block)


class EthereumClient:
    """Ethereum JSON-RPC client with automatic endpoint fallback."""

    def __init__(self, config: ChainConfig, account: str = "") -> None:
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.account = account
        self.current_rpc_index = 0

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make RPC call with fallback to alternative endpoints.

        Raises:
            RemoteReadError: every endpoint failed or returned an error.
        """
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        rpc_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        result = await response.json()
                        if "error" in result:
                            raise RemoteReadError(f"RPC Error: {result['error']}")

                        if rpc_index != self.current_rpc_index:
                            logger.info("Switched to RPC endpoint: %s", rpc_url)
                            self.current_rpc_index = rpc_index

                        return result.get("result")
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        raise RemoteReadError(f"All RPC endpoints failed. Last error: {last_error}")

    async def get_block_number(self) -> int:
        result = await self.rpc_call("eth_blockNumber", [])
        try:
            return int(result, 16)
        except (TypeError, ValueError) as e:
            raise RemoteReadError(f"Malformed block number: {result!r}") from e

    async def call(self, to: str, data: str, block: Optional[int] = None) -> str:
        """Execute a read-only contract call and return the raw hex result."""
        result = await self.rpc_call(
            "eth_call", [{"to": to, "data": data}, _block_tag(block)]
        )
        if not isinstance(result, str):
            raise RemoteReadError(f"Malformed eth_call result: {result!r}")
        return result

    async def get_logs(
        self,
        address: str,
        topics: list[Optional[str]],
        from_block: int,
        to_block: int,
    ) -> list[dict[str, Any]]:
        result = await self.rpc_call(
            "eth_getLogs",
            [
                {
                    "address": address,
                    "topics": topics,
                    "fromBlock": hex(from_block),
                    "toBlock": hex(to_block),
                }
            ],
        )
        if not isinstance(result, list):
            raise RemoteReadError(f"Malformed eth_getLogs result: {result!r}")
        return result

    async def send_transaction(self, request: TransactionRequest) -> str:
        """Send from the node-managed ``account`` and return the tx hash."""
        if not self.account:
            raise ValueError("An account is required to send transactions")
        tx: dict[str, Any] = {"from": self.account, "to": request.to, "data": request.data}
        if request.value:
            tx["value"] = hex(request.value)
        result = await self.rpc_call("eth_sendTransaction", [tx])
        if not isinstance(result, str):
            raise RemoteReadError(f"Malformed transaction hash: {result!r}")
        return result

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict[str, Any]]:
        """Receipt for ``tx_hash``, or ``None`` while it is still pending."""
        return await self.rpc_call("eth_getTransactionReceipt", [tx_hash])
