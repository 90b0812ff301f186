"""Fetch and normalize blocks over a slot range."""

import asyncio
import time
from typing import Protocol

from src.etl.classifier import classify
from src.etl.models import Block, ExtractionStats
from src.etl.normalizer import normalize_block
from src.etl.registry import ProgramRegistry
from src.helpers.http_models import JsonObject
from src.helpers.logging import get_logger
from src.helpers.parsers import format_number, lamports_to_sol
from src.helpers.retry import SleepFunc


logger = get_logger(__name__)

PROGRESS_EVERY = 10


class BlockSource(Protocol):
    """Anything that can serve raw blocks by slot (e.g. SolanaRPCClient)."""

    async def fetch_block(self, slot: int) -> JsonObject: ...

    async def latest_slot(self) -> int: ...

    async def test_connectivity(self) -> None: ...


async def extract_block(source: BlockSource, slot: int) -> Block:
    """Fetch one block and normalize it.

    Raises:
        Exception: Whatever the source raises, or BlockDecodeError
    """
    record = await source.fetch_block(slot)
    return normalize_block(slot, record)


def _record_block(stats: ExtractionStats, block: Block, registry: ProgramRegistry) -> None:
    stats.blocks_fetched += 1
    stats.total_transactions += len(block.transactions)
    for transaction in block.transactions:
        if transaction.success:
            stats.successful_transactions += 1
        else:
            stats.failed_transactions += 1
        stats.total_fees += transaction.fee
        stats.count_category(classify(transaction.program_ids, registry))


def _log_summary(stats: ExtractionStats, elapsed: float) -> None:
    blocks_per_sec = stats.blocks_fetched / elapsed if elapsed > 0 else 0.0
    logger.info(
        "Extraction complete in %.2fs: %s blocks fetched, %s failed (%.2f blocks/sec)",
        elapsed,
        format_number(stats.blocks_fetched),
        format_number(stats.blocks_failed),
        blocks_per_sec,
    )
    logger.info(
        "Transactions: %s total, %s successful, %s failed, fees %.6f SOL",
        format_number(stats.total_transactions),
        format_number(stats.successful_transactions),
        format_number(stats.failed_transactions),
        lamports_to_sol(stats.total_fees),
    )
    if stats.total_transactions:
        logger.info(
            "Types: %s",
            ", ".join(f"{name}={count}" for name, count in stats.category_tally().items()),
        )


async def extract_range(
    source: BlockSource,
    start_slot: int,
    end_slot: int,
    rate_limit_ms: int,
    registry: ProgramRegistry | None = None,
    *,
    sleep: SleepFunc = asyncio.sleep,
) -> tuple[list[Block], ExtractionStats]:
    """Extract every slot in [start_slot, end_slot], one at a time.

    A slot that fails to fetch or decode is logged and counted in
    ``blocks_failed``; the range continues. Between two slots the extractor
    waits rate_limit_ms (never after the last slot, never when 0).

    Args:
        source: Block source to fetch from
        start_slot: First slot (inclusive)
        end_slot: Last slot (inclusive)
        rate_limit_ms: Pause between requests in milliseconds
        registry: Registry for the category tally (default: built-in table)
        sleep: Async sleep function, replaceable in tests

    Returns:
        Tuple of (blocks in slot order, extraction statistics)

    Raises:
        ValueError: If start_slot > end_slot

    Example:
        ```python
        async with SolanaRPCClient(rpc_url) as rpc:
            blocks, stats = await extract_range(rpc, 1000, 1009, 100)
            assert stats.blocks_fetched + stats.blocks_failed == 10
        ```
    """
    if start_slot > end_slot:
        msg = f"Start slot {start_slot} is greater than end slot {end_slot}"
        raise ValueError(msg)

    registry = registry or ProgramRegistry.default()
    total_blocks = end_slot - start_slot + 1
    logger.info(
        "Extracting %s blocks (slots %s-%s, %dms between requests)",
        format_number(total_blocks),
        format_number(start_slot),
        format_number(end_slot),
        rate_limit_ms,
    )

    blocks: list[Block] = []
    stats = ExtractionStats()
    start_time = time.monotonic()

    for slot in range(start_slot, end_slot + 1):
        try:
            block = await extract_block(source, slot)
        except Exception as e:
            stats.blocks_failed += 1
            logger.warning("Failed to extract block at slot %d: %s", slot, e)
        else:
            blocks.append(block)
            _record_block(stats, block, registry)

        done = stats.blocks_fetched + stats.blocks_failed
        if done % PROGRESS_EVERY == 0 or done == total_blocks:
            elapsed = time.monotonic() - start_time
            logger.debug(
                "Progress: %d/%d blocks (%.1f%%) in %.1fs",
                done,
                total_blocks,
                done / total_blocks * 100,
                elapsed,
            )

        if slot < end_slot and rate_limit_ms > 0:
            await sleep(rate_limit_ms / 1000)

    _log_summary(stats, time.monotonic() - start_time)
    return blocks, stats


__all__ = [
    "BlockSource",
    "extract_block",
    "extract_range",
]
