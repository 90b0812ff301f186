"""Solana JSON-RPC client utilities."""

from types import TracebackType
from typing import Any

import httpx

from src.helpers.constants import DEFAULT_TIMEOUT
from src.helpers.http import create_http_client
from src.helpers.http_models import JsonObject
from src.helpers.logging import get_logger
from src.helpers.parsers import parse_block_time
from src.helpers.rpc_models import (
    ConnectionInfo,
    GetBlockRequest,
    GetSlotRequest,
    JsonRpcRequest,
)


logger = get_logger(__name__)


class RPCError(Exception):
    """Raised when a JSON-RPC response carries an error object."""

    def __init__(self, method: str, error: Any) -> None:
        self.method = method
        self.error = error
        if isinstance(error, dict):
            self.code = error.get("code")
            message = error.get("message", error)
        else:
            self.code = None
            message = error
        super().__init__(f"RPC error in {method}: {message}")


class SolanaRPCClient:
    """Solana JSON-RPC client.

    Owns an httpx.AsyncClient unless one is passed in. Use it as an async
    context manager, or call aclose() when done.

    Example:
        ```python
        from src.helpers.rpc import SolanaRPCClient

        async with SolanaRPCClient(rpc_url) as rpc:
            await rpc.test_connectivity()
            latest = await rpc.latest_slot()
            block = await rpc.fetch_block(latest - 20)
        ```
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize RPC client.

        Args:
            rpc_url: Solana JSON-RPC endpoint URL
            timeout: Default timeout for requests in seconds
            http_client: Optional shared HTTP client (not closed by aclose)

        Raises:
            ValueError: If rpc_url is empty or None
        """
        if not rpc_url:
            msg = "RPC URL cannot be empty"
            raise ValueError(msg)

        self.rpc_url = rpc_url
        self.timeout = timeout
        self._owns_client = http_client is None
        self.client = http_client or create_http_client(timeout=timeout)

    async def __aenter__(self) -> "SolanaRPCClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def send(
        self, request: JsonRpcRequest, *, timeout: float | None = None
    ) -> Any:
        """Send a JSON-RPC request model and return its result.

        Raises:
            httpx.HTTPError: If the HTTP request fails
            RPCError: If the RPC response contains an error
        """
        response = await self.client.post(
            self.rpc_url,
            json=request.model_dump(),
            timeout=timeout or self.timeout,
        )
        response.raise_for_status()
        result = response.json()

        if "error" in result:
            raise RPCError(request.method, result["error"])

        return result.get("result")

    async def call(
        self,
        method: str,
        params: list[Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Make a single JSON-RPC call.

        Args:
            method: RPC method name (e.g., "getSlot")
            params: Method parameters list
            timeout: Optional timeout override

        Returns:
            RPC result value

        Raises:
            httpx.HTTPError: If the HTTP request fails
            RPCError: If the RPC response contains an error
        """
        request = JsonRpcRequest(method=method, params=params or [])
        return await self.send(request, timeout=timeout)

    async def fetch_block(self, slot: int) -> JsonObject:
        """Fetch one block with full, jsonParsed transaction detail.

        Args:
            slot: Slot number

        Returns:
            Raw getBlock result

        Raises:
            RPCError: If the node returns an error or no block for the slot
        """
        logger.debug("Fetching block at slot %s", slot)
        result = await self.send(GetBlockRequest.for_slot(slot))
        if result is None:
            raise RPCError("getBlock", f"no block available for slot {slot}")
        logger.debug("Fetched block at slot %s", slot)
        return result

    async def latest_slot(self) -> int:
        """Get the latest slot from the node."""
        return int(await self.send(GetSlotRequest()))

    async def get_version(self) -> JsonObject:
        """Get the node's software version."""
        return await self.call("getVersion")

    async def test_connectivity(self) -> None:
        """Check that the endpoint answers getVersion.

        Raises:
            httpx.HTTPError: If the endpoint cannot be reached
            RPCError: If the node answers with an error
        """
        version = await self.get_version()
        logger.debug("Connected to Solana node %s", version.get("solana-core"))

    async def get_latest_blockhash(self) -> str:
        """Get the most recent blockhash."""
        result = await self.call("getLatestBlockhash")
        return result["value"]["blockhash"]

    async def get_block_time(self, slot: int) -> int | None:
        """Get the estimated production time of a slot (Unix seconds)."""
        return await self.call("getBlockTime", [slot])

    async def get_connection_info(self) -> ConnectionInfo:
        """Collect endpoint, latest blockhash, slot and its block time.

        A missing block time for the current slot is reported as None rather
        than failing, since the tip slot is often not yet timestamped.
        """
        blockhash = await self.get_latest_blockhash()
        slot = await self.latest_slot()
        try:
            block_time = await self.get_block_time(slot)
        except RPCError as e:
            logger.debug("No block time for slot %s: %s", slot, e)
            block_time = None

        return ConnectionInfo(
            endpoint=self.rpc_url,
            blockhash=blockhash,
            slot=slot,
            timestamp=parse_block_time(block_time),
        )


__all__ = [
    "RPCError",
    "SolanaRPCClient",
]
