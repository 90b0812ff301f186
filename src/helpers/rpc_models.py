"""Pydantic models for Solana JSON-RPC requests."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.helpers.constants import MAX_SUPPORTED_TRANSACTION_VERSION


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request model."""

    jsonrpc: str = Field(default="2.0", description="JSON-RPC version")
    method: str = Field(..., description="Method name to call")
    params: list[Any] = Field(
        default_factory=list, description="Method parameters"
    )
    id: int | str = Field(default=1, description="Request ID")


class GetBlockConfig(BaseModel):
    """Configuration object sent as the second getBlock parameter.

    Requests name-resolved (jsonParsed) instructions with full transaction
    detail so the normalizer sees program ids and parsed transfer payloads.
    """

    encoding: str = "jsonParsed"
    transaction_details: str = Field(default="full", alias="transactionDetails")
    rewards: bool = True
    max_supported_transaction_version: int = Field(
        default=MAX_SUPPORTED_TRANSACTION_VERSION,
        alias="maxSupportedTransactionVersion",
    )

    model_config = ConfigDict(populate_by_name=True)


class GetBlockRequest(JsonRpcRequest):
    """JSON-RPC request for getBlock."""

    method: str = Field(default="getBlock", frozen=True)

    @classmethod
    def for_slot(
        cls, slot: int, config: GetBlockConfig | None = None
    ) -> "GetBlockRequest":
        """Build a getBlock request for one slot."""
        block_config = config or GetBlockConfig()
        return cls(params=[slot, block_config.model_dump(by_alias=True)])


class GetSlotRequest(JsonRpcRequest):
    """JSON-RPC request for getSlot."""

    method: str = Field(default="getSlot", frozen=True)
    params: list[Any] = Field(default_factory=list, frozen=True)


class ConnectionInfo(BaseModel):
    """Snapshot of the RPC endpoint shown at startup."""

    endpoint: str
    blockhash: str
    slot: int
    timestamp: datetime | None = None


__all__ = [
    "ConnectionInfo",
    "GetBlockConfig",
    "GetBlockRequest",
    "GetSlotRequest",
    "JsonRpcRequest",
]
