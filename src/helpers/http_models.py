"""Type definitions for JSON-RPC payloads."""

from typing import Any


# A decoded JSON object (block, transaction, instruction records)
type JsonObject = dict[str, Any]

__all__ = ["JsonObject"]
