"""SPL Token and Token-2022 instruction parser."""

from typing import Any, NamedTuple


TRANSFER_TYPES = frozenset({"transfer", "transferChecked"})

UNKNOWN_MINT = "unknown"


class TokenTransfer(NamedTuple):
    """Token transfer decoded from a Token program instruction."""

    amount: int
    mint: str
    source: str
    destination: str


def _parse_amount(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def parse_token_transfer(instruction: Any) -> TokenTransfer | None:
    """Extract a token transfer from a jsonParsed Token program instruction.

    ``transfer`` carries the amount in ``info.amount``; ``transferChecked``
    nests it under ``info.tokenAmount.amount``. The direct field is tried
    first. The mint is only present on ``transferChecked`` and defaults to
    "unknown".

    Args:
        instruction: Raw instruction object with a ``parsed`` payload

    Returns:
        TokenTransfer, or None if the instruction is not a decodable transfer
    """
    if not isinstance(instruction, dict):
        return None
    parsed = instruction.get("parsed")
    if not isinstance(parsed, dict) or parsed.get("type") not in TRANSFER_TYPES:
        return None

    info = parsed.get("info")
    if not isinstance(info, dict):
        return None

    amount = _parse_amount(info.get("amount"))
    if amount is None:
        token_amount = info.get("tokenAmount")
        if isinstance(token_amount, dict):
            amount = _parse_amount(token_amount.get("amount"))
    if amount is None:
        return None

    source = info.get("source")
    destination = info.get("destination")
    if not isinstance(source, str) or not isinstance(destination, str):
        return None

    mint = info.get("mint")
    return TokenTransfer(
        amount,
        mint if isinstance(mint, str) else UNKNOWN_MINT,
        source,
        destination,
    )


__all__ = ["TRANSFER_TYPES", "UNKNOWN_MINT", "TokenTransfer", "parse_token_transfer"]
