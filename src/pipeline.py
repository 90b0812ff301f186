"""Extract -> classify -> load orchestration over a slot range."""

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterator, Sequence
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel, Field, model_validator
from rich.console import Console

from src.etl.extract import BlockSource, extract_range
from src.etl.models import Block, ExtractionStats
from src.etl.registry import ProgramRegistry
from src.helpers.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_RATE_LIMIT_MS,
    MAX_RETRIES,
    RETRY_DELAY,
)
from src.helpers.logging import get_logger
from src.helpers.parsers import format_number
from src.helpers.progress import create_standard_progress, track_batches
from src.helpers.retry import RetryExhaustedError, RetryPolicy, SleepFunc


logger = get_logger(__name__)

MAX_ERRORS_SHOWN = 5

type Extractor = Callable[[int, int], Awaitable[tuple[list[Block], ExtractionStats]]]


class BlockSink(Protocol):
    """Persistence target for a batch (e.g. src.etl.load.Database)."""

    async def batch_upsert(
        self, blocks: Sequence[Block], registry: ProgramRegistry
    ) -> tuple[int, int]: ...


class ExtractionError(Exception):
    """Raised when an extraction attempt produced no block at all."""


class PipelineStage(StrEnum):
    """Stage of a batch an error is attributed to."""

    EXTRACT = "Extract"
    TRANSFORM = "Transform"
    LOAD = "Load"


class PipelineError(BaseModel):
    """A batch-level failure recorded during a run."""

    stage: PipelineStage
    slot: int | None = None
    message: str
    retryable: bool = False


class PipelineStats(BaseModel):
    """Run statistics; each batch produces a delta that run() merges."""

    blocks_attempted: int = 0
    blocks_succeeded: int = 0
    blocks_failed: int = 0
    transactions_processed: int = 0
    transactions_inserted: int = 0
    elapsed_seconds: float = 0.0
    errors: list[PipelineError] = Field(default_factory=list)

    def merge(self, other: "PipelineStats") -> None:
        """Add the counters and errors of another stats value to this one."""
        self.blocks_attempted += other.blocks_attempted
        self.blocks_succeeded += other.blocks_succeeded
        self.blocks_failed += other.blocks_failed
        self.transactions_processed += other.transactions_processed
        self.transactions_inserted += other.transactions_inserted
        self.elapsed_seconds += other.elapsed_seconds
        self.errors.extend(other.errors)

    @property
    def success_rate(self) -> float:
        """Succeeded blocks as a percentage of attempted blocks."""
        if self.blocks_attempted == 0:
            return 0.0
        return self.blocks_succeeded / self.blocks_attempted * 100

    @property
    def blocks_per_second(self) -> float:
        """Succeeded blocks per second of elapsed time."""
        if self.elapsed_seconds == 0:
            return 0.0
        return self.blocks_succeeded / self.elapsed_seconds

    @property
    def transactions_per_second(self) -> float:
        """Inserted transactions per second of elapsed time."""
        if self.elapsed_seconds == 0:
            return 0.0
        return self.transactions_inserted / self.elapsed_seconds


class PipelineConfig(BaseModel):
    """Validated settings for one pipeline run."""

    start_slot: int = Field(ge=0)
    end_slot: int = Field(ge=0)
    max_retries: int = Field(default=MAX_RETRIES, gt=0)
    retry_delay: float = Field(default=RETRY_DELAY, ge=0, description="Seconds")
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0)
    rate_limit_ms: int = Field(default=DEFAULT_RATE_LIMIT_MS, ge=0)

    @model_validator(mode="after")
    def check_slot_range(self) -> "PipelineConfig":
        if self.start_slot > self.end_slot:
            msg = (
                f"Start slot ({self.start_slot}) must be less than or equal to "
                f"end slot ({self.end_slot})"
            )
            raise ValueError(msg)
        return self

    @property
    def total_slots(self) -> int:
        return self.end_slot - self.start_slot + 1

    def batches(self) -> Iterator[tuple[int, int]]:
        """Consecutive (first, last) slot pairs; the last batch may be shorter."""
        for first in range(self.start_slot, self.end_slot + 1, self.batch_size):
            yield first, min(first + self.batch_size - 1, self.end_slot)


class Pipeline:
    """Run extraction and loading batch by batch with bounded retries.

    Batches are processed strictly in slot order. A batch whose extract or
    load exhausts its retries is recorded as an error and the run moves on;
    run() always returns the accumulated statistics.

    Example:
        ```python
        from src.pipeline import Pipeline, PipelineConfig

        config = PipelineConfig(start_slot=1000, end_slot=1099)
        pipeline = Pipeline(rpc, database, registry, config)
        stats = await pipeline.run()
        print(stats.success_rate)
        ```
    """

    def __init__(
        self,
        source: BlockSource,
        sink: BlockSink,
        registry: ProgramRegistry,
        config: PipelineConfig,
        *,
        extractor: Extractor | None = None,
        sleep: SleepFunc = asyncio.sleep,
        console: Console | None = None,
        show_progress: bool = True,
    ) -> None:
        """Initialize the pipeline.

        Args:
            source: Block source used by the default extractor
            sink: Persistence target for each batch
            registry: Program registry used for classification
            config: Validated run configuration
            extractor: Replacement for the per-batch extraction step
            sleep: Async sleep used for rate limiting and retry backoff
            console: Rich console for reports (default: new Console)
            show_progress: Render a progress bar while running
        """
        self.source = source
        self.sink = sink
        self.registry = registry
        self.config = config
        self.sleep = sleep
        self.extractor = extractor or self._extract_batch
        self.retry_policy = RetryPolicy(
            max_attempts=config.max_retries,
            base_delay=config.retry_delay,
            sleep=sleep,
        )
        self.console = console or Console()
        self.show_progress = show_progress

    async def _extract_batch(
        self, start_slot: int, end_slot: int
    ) -> tuple[list[Block], ExtractionStats]:
        blocks, stats = await extract_range(
            self.source,
            start_slot,
            end_slot,
            self.config.rate_limit_ms,
            self.registry,
            sleep=self.sleep,
        )
        if not blocks and stats.blocks_failed:
            msg = f"No block could be extracted in slots {start_slot}-{end_slot}"
            raise ExtractionError(msg)
        return blocks, stats

    async def process_batch(self, start_slot: int, end_slot: int) -> PipelineStats:
        """Extract then load one batch.

        Returns:
            Statistics for this batch only
        """
        size = end_slot - start_slot + 1
        delta = PipelineStats(blocks_attempted=size)

        try:
            blocks, _ = await self.retry_policy.execute(
                lambda: self.extractor(start_slot, end_slot),
                operation=f"Extract slots {start_slot}-{end_slot}",
            )
        except RetryExhaustedError as e:
            delta.blocks_failed = size
            delta.errors.append(
                PipelineError(
                    stage=PipelineStage.EXTRACT,
                    slot=start_slot,
                    message=f"Max retries exceeded: {e.last_exception}",
                    retryable=False,
                )
            )
            return delta

        delta.blocks_failed = size - len(blocks)
        delta.transactions_processed = sum(len(b.transactions) for b in blocks)
        if not blocks:
            return delta

        try:
            _, transactions_inserted = await self.retry_policy.execute(
                lambda: self.sink.batch_upsert(blocks, self.registry),
                operation=f"Load slots {start_slot}-{end_slot}",
            )
        except RetryExhaustedError as e:
            delta.blocks_failed += len(blocks)
            delta.errors.append(
                PipelineError(
                    stage=PipelineStage.LOAD,
                    slot=blocks[0].slot,
                    message=f"Max retries exceeded: {e.last_exception}",
                    retryable=False,
                )
            )
            return delta

        delta.blocks_succeeded = len(blocks)
        delta.transactions_inserted = transactions_inserted
        logger.info(
            "Loaded %d blocks with %d transactions (slots %d-%d)",
            len(blocks),
            transactions_inserted,
            start_slot,
            end_slot,
        )
        return delta

    async def run(self) -> PipelineStats:
        """Process every batch of the configured range."""
        config = self.config
        stats = PipelineStats()
        batches = list(config.batches())
        started = time.monotonic()

        logger.info(
            "Starting pipeline for slots %d to %d", config.start_slot, config.end_slot
        )
        self.console.print("\n[bold blue]Starting ETL pipeline[/bold blue]")
        self.console.print(
            f"[cyan]Slot range: {format_number(config.start_slot)} to "
            f"{format_number(config.end_slot)} ({config.total_slots} blocks)[/cyan]"
        )
        self.console.print(f"[cyan]Max retries: {config.max_retries}[/cyan]")
        self.console.print(f"[cyan]Batch size: {config.batch_size}[/cyan]\n")

        progress = create_standard_progress(
            console=self.console, disable=not self.show_progress
        )
        with progress:
            task_id = progress.add_task("Processing slots", total=config.total_slots)
            for batch_num, (first, last) in enumerate(batches, start=1):
                delta = await self.process_batch(first, last)
                stats.merge(delta)
                track_batches(
                    progress,
                    task_id,
                    batch_num,
                    len(batches),
                    delta.blocks_attempted,
                    "Processing slots",
                )

        stats.elapsed_seconds = time.monotonic() - started
        self.print_final_stats(stats)
        return stats

    def print_final_stats(self, stats: PipelineStats) -> None:
        """Print the run summary and up to five errors."""
        self.console.print("\n[bold green]✓ Pipeline complete[/bold green]")
        self.console.print(f"  Total time: {stats.elapsed_seconds:.2f}s")
        self.console.print(
            f"  Blocks: {stats.blocks_attempted} attempted, "
            f"{stats.blocks_succeeded} succeeded, {stats.blocks_failed} failed"
        )
        self.console.print(f"  Success rate: {stats.success_rate:.1f}%")
        self.console.print(
            f"  Transactions processed: {format_number(stats.transactions_processed)}"
        )
        self.console.print(
            f"  Transactions inserted: {format_number(stats.transactions_inserted)}"
        )
        self.console.print(f"  Speed: {stats.blocks_per_second:.2f} blocks/sec")
        self.console.print(
            f"  Throughput: {stats.transactions_per_second:.0f} txs/sec"
        )

        if not stats.errors:
            return

        self.console.print(f"\n[red]Errors encountered: {len(stats.errors)}[/red]")
        for i, error in enumerate(stats.errors[:MAX_ERRORS_SHOWN], start=1):
            self.console.print(
                f"  {i}. [{error.stage}] Slot {error.slot}: {error.message}",
                markup=False,
            )
        if len(stats.errors) > MAX_ERRORS_SHOWN:
            self.console.print(
                f"  ... and {len(stats.errors) - MAX_ERRORS_SHOWN} more errors"
            )


__all__ = [
    "BlockSink",
    "ExtractionError",
    "Pipeline",
    "PipelineConfig",
    "PipelineError",
    "PipelineStage",
    "PipelineStats",
]
