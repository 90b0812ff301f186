"""Parsing utilities for common data transformations."""

from datetime import UTC, datetime

from src.helpers.constants import LAMPORTS_PER_SOL


def parse_block_time(block_time: int | None) -> datetime | None:
    """Parse a Unix block timestamp into a UTC datetime.

    Args:
        block_time: Seconds since the epoch, or None when the node has none

    Returns:
        datetime | None: Timezone-aware datetime, or None if input was None

    Example:
        >>> parse_block_time(1700000000)
        datetime.datetime(2023, 11, 14, 22, 13, 20, tzinfo=datetime.timezone.utc)
        >>> parse_block_time(None)
        None
    """
    if block_time is None:
        return None
    return datetime.fromtimestamp(block_time, tz=UTC)


def lamports_to_sol(lamports: int | None) -> float | None:
    """Convert lamports to SOL (divide by 1e9).

    Args:
        lamports: Amount in lamports, or None

    Returns:
        float | None: Amount in SOL, or None if input was None

    Example:
        >>> lamports_to_sol(1_500_000_000)
        1.5
    """
    return lamports / LAMPORTS_PER_SOL if lamports is not None else None


def format_number(value: int) -> str:
    """Format an integer with thousands separators.

    Example:
        >>> format_number(1234567)
        '1,234,567'
    """
    return f"{value:,}"


__all__ = [
    "format_number",
    "lamports_to_sol",
    "parse_block_time",
]
