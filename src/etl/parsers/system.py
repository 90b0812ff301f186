"""System program instruction parser."""

from typing import Any, NamedTuple


class SystemTransfer(NamedTuple):
    """Native SOL transfer decoded from a System program instruction."""

    lamports: int
    source: str
    destination: str


def parse_system_transfer(instruction: Any) -> SystemTransfer | None:
    """Extract a SOL transfer from a jsonParsed System program instruction.

    Only ``parsed.type == "transfer"`` matches. Other instruction types
    (createAccount, advanceNonce, ...) and incomplete payloads return None.

    Args:
        instruction: Raw instruction object with a ``parsed`` payload

    Returns:
        SystemTransfer, or None if the instruction is not a decodable transfer

    Example:
        >>> parse_system_transfer({
        ...     "parsed": {
        ...         "type": "transfer",
        ...         "info": {"lamports": 1000, "source": "A", "destination": "B"},
        ...     }
        ... })
        SystemTransfer(lamports=1000, source='A', destination='B')
    """
    if not isinstance(instruction, dict):
        return None
    parsed = instruction.get("parsed")
    if not isinstance(parsed, dict) or parsed.get("type") != "transfer":
        return None

    info = parsed.get("info")
    if not isinstance(info, dict):
        return None

    lamports = info.get("lamports")
    source = info.get("source")
    destination = info.get("destination")
    if (
        not isinstance(lamports, int)
        or isinstance(lamports, bool)
        or not isinstance(source, str)
        or not isinstance(destination, str)
    ):
        return None

    return SystemTransfer(lamports, source, destination)


__all__ = ["SystemTransfer", "parse_system_transfer"]
