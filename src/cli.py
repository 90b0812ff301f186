"""Command-line entry point for the Solana block ETL pipeline.

Examples:
  # Process the ten most recent finalized blocks
  python -m src.cli

  # Process 100 blocks starting at a given slot
  python -m src.cli --start-slot 250000000 --num-blocks 100

  # Keep ingesting new blocks every 10 seconds
  python -m src.cli --continuous --interval 10
"""

import asyncio
import signal
import sys
from argparse import ArgumentParser, Namespace, RawDescriptionHelpFormatter
from collections.abc import Awaitable, Callable

from rich.console import Console

from src.etl.extract import BlockSource
from src.etl.load import Database
from src.etl.registry import ProgramRegistry
from src.helpers.config import get_int_env, get_solana_rpc_url
from src.helpers.constants import (
    CONTINUOUS_INTERVAL,
    DEFAULT_BATCH_SIZE,
    DEFAULT_BLOCK_WINDOW,
    DEFAULT_RATE_LIMIT_MS,
    DEFAULT_START_OFFSET,
    FINALITY_OFFSET,
    MAX_RETRIES,
    RETRY_DELAY,
)
from src.helpers.db import get_database_url
from src.helpers.logging import LOG_LEVELS, get_logger, set_log_level
from src.helpers.parsers import format_number
from src.helpers.rpc import SolanaRPCClient
from src.pipeline import Pipeline, PipelineConfig, PipelineStats


logger = get_logger(__name__)

EXIT_OK = 0
EXIT_STARTUP_ERROR = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> ArgumentParser:
    """Build the argument parser.

    BATCH_SIZE, MAX_RETRIES and RATE_LIMIT_MS override the built-in defaults;
    a non-integer value there is a usage error.
    """
    parser = ArgumentParser(
        prog="solana-etl",
        description=(
            "Extract, classify and load Solana blocks and transactions "
            "into PostgreSQL"
        ),
        formatter_class=RawDescriptionHelpFormatter,
        epilog=__doc__.split("\n", 2)[2] if __doc__ else None,
    )
    try:
        batch_size = get_int_env("BATCH_SIZE", DEFAULT_BATCH_SIZE)
        max_retries = get_int_env("MAX_RETRIES", MAX_RETRIES)
        rate_limit_ms = get_int_env("RATE_LIMIT_MS", DEFAULT_RATE_LIMIT_MS)
    except ValueError as e:
        parser.error(str(e))

    parser.add_argument(
        "-s",
        "--start-slot",
        type=int,
        metavar="SLOT",
        help=f"Starting slot (default: latest - {DEFAULT_START_OFFSET})",
    )
    range_end = parser.add_mutually_exclusive_group()
    range_end.add_argument(
        "-e",
        "--end-slot",
        type=int,
        metavar="SLOT",
        help=f"Ending slot (default: latest - {FINALITY_OFFSET})",
    )
    range_end.add_argument(
        "-n",
        "--num-blocks",
        type=int,
        metavar="COUNT",
        help="Number of blocks to fetch (alternative to --end-slot)",
    )
    parser.add_argument(
        "-r",
        "--rpc-url",
        metavar="URL",
        help="RPC endpoint URL (overrides HELIUS_RPC_URL / SOLANA_RPC_URL)",
    )
    parser.add_argument(
        "-d",
        "--database-url",
        metavar="URL",
        help="Database connection URL (overrides DATABASE_URL)",
    )
    parser.add_argument(
        "-b",
        "--batch-size",
        type=int,
        default=batch_size,
        metavar="SIZE",
        help=f"Blocks per batch (default: $BATCH_SIZE or {DEFAULT_BATCH_SIZE})",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=max_retries,
        metavar="COUNT",
        help=f"Maximum attempts per stage (default: $MAX_RETRIES or {MAX_RETRIES})",
    )
    parser.add_argument(
        "--retry-delay",
        type=float,
        default=RETRY_DELAY,
        metavar="SECONDS",
        help=f"Base retry delay, multiplied by the attempt (default: {RETRY_DELAY:g})",
    )
    parser.add_argument(
        "--rate-limit",
        type=int,
        default=rate_limit_ms,
        metavar="MS",
        help=(
            "Pause between block requests "
            f"(default: $RATE_LIMIT_MS or {DEFAULT_RATE_LIMIT_MS})"
        ),
    )
    parser.add_argument(
        "-c",
        "--continuous",
        action="store_true",
        help="Keep processing the latest finalized blocks",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=CONTINUOUS_INTERVAL,
        metavar="SECONDS",
        help=f"Seconds between continuous runs (default: {CONTINUOUS_INTERVAL})",
    )
    parser.add_argument(
        "--log-level",
        choices=list(LOG_LEVELS),
        type=str.upper,
        help="Logging level (default: $LOG_LEVEL or INFO)",
    )
    return parser


def validate_args(args: Namespace) -> None:
    """Reject inconsistent arguments before anything connects.

    Raises:
        ValueError: On the first invalid argument
    """
    if (
        args.start_slot is not None
        and args.end_slot is not None
        and args.start_slot > args.end_slot
    ):
        msg = (
            f"Start slot ({args.start_slot}) must be less than or equal to "
            f"end slot ({args.end_slot})"
        )
        raise ValueError(msg)
    if args.batch_size <= 0:
        msg = "Batch size must be greater than 0"
        raise ValueError(msg)
    if args.max_retries <= 0:
        msg = "Max retries must be greater than 0"
        raise ValueError(msg)
    if args.num_blocks is not None and args.num_blocks <= 0:
        msg = "Number of blocks must be greater than 0"
        raise ValueError(msg)
    if args.retry_delay < 0:
        msg = "Retry delay cannot be negative"
        raise ValueError(msg)
    if args.rate_limit < 0:
        msg = "Rate limit cannot be negative"
        raise ValueError(msg)
    if args.interval <= 0:
        msg = "Interval must be greater than 0"
        raise ValueError(msg)


def calculate_end_slot(
    start_slot: int, num_blocks: int | None = None, end_slot: int | None = None
) -> int:
    """End slot from a block count, an explicit end, or the default window.

    Example:
        >>> calculate_end_slot(1000, num_blocks=5)
        1004
        >>> calculate_end_slot(1000)
        1009
    """
    if num_blocks is not None:
        return start_slot + num_blocks - 1
    if end_slot is not None:
        return end_slot
    return start_slot + DEFAULT_BLOCK_WINDOW - 1


def resolve_slot_range(args: Namespace, latest_slot: int) -> tuple[int, int]:
    """Slot range for the first run.

    With no range arguments the run covers latest - 30 to latest - 20.
    """
    start_slot = (
        args.start_slot
        if args.start_slot is not None
        else max(latest_slot - DEFAULT_START_OFFSET, 0)
    )
    if args.start_slot is None and args.end_slot is None and args.num_blocks is None:
        return start_slot, max(latest_slot - FINALITY_OFFSET, 0)
    return start_slot, calculate_end_slot(start_slot, args.num_blocks, args.end_slot)


def build_config(args: Namespace, start_slot: int, end_slot: int) -> PipelineConfig:
    return PipelineConfig(
        start_slot=start_slot,
        end_slot=end_slot,
        max_retries=args.max_retries,
        retry_delay=args.retry_delay,
        batch_size=args.batch_size,
        rate_limit_ms=args.rate_limit,
    )


async def run_continuous(
    source: BlockSource,
    process: Callable[[int, int], Awaitable[PipelineStats]],
    stop_event: asyncio.Event,
    *,
    interval: float,
    num_blocks: int | None = None,
    last_end_slot: int | None = None,
) -> int:
    """Process the newest finalized window every interval until stopped.

    Windows end FINALITY_OFFSET slots behind the tip. Slots already covered
    by a previous window are skipped. A failed latest-slot lookup is logged
    and retried on the next tick.

    Args:
        source: Block source queried for the latest slot
        process: Runs one pipeline over (start_slot, end_slot)
        stop_event: Set to stop the loop (e.g. from a signal handler)
        interval: Seconds between two windows
        num_blocks: Window size (default: DEFAULT_BLOCK_WINDOW)
        last_end_slot: Last slot already processed, if any

    Returns:
        Number of windows processed
    """
    window = num_blocks or DEFAULT_BLOCK_WINDOW
    windows = 0

    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except TimeoutError:
            pass
        else:
            break

        try:
            latest_slot = await source.latest_slot()
        except Exception as e:
            logger.warning("Failed to get latest slot: %s", e)
            continue

        end_slot = latest_slot - FINALITY_OFFSET
        start_slot = max(end_slot - window + 1, 0)
        if last_end_slot is not None:
            if end_slot <= last_end_slot:
                logger.info("No new finalized slots since %d", last_end_slot)
                continue
            start_slot = max(start_slot, last_end_slot + 1)

        logger.info("Continuous mode: processing slots %d to %d", start_slot, end_slot)
        await process(start_slot, end_slot)
        last_end_slot = end_slot
        windows += 1

    return windows


async def main(args: Namespace, console: Console | None = None) -> int:
    """Run the ETL pipeline from parsed arguments.

    Returns:
        Process exit code: 0 on completion, 1 when the RPC node or database
        cannot be reached at startup, 2 on configuration errors
    """
    console = console or Console()
    if args.log_level:
        set_log_level(args.log_level)

    try:
        validate_args(args)
        rpc_url = get_solana_rpc_url(args.rpc_url)
        database_url = get_database_url(args.database_url)
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        return EXIT_CONFIG_ERROR

    console.print("[bold blue]Starting Solana block ETL[/bold blue]")

    async with SolanaRPCClient(rpc_url) as rpc:
        database: Database | None = None
        try:
            try:
                database = Database(database_url)
                await rpc.test_connectivity()
                info = await rpc.get_connection_info()
                console.print(f"[green]✓ Connected to: {info.endpoint}[/green]")
                console.print(f"[cyan]Latest blockhash: {info.blockhash}[/cyan]")
                console.print(f"[cyan]Current slot: {format_number(info.slot)}[/cyan]")
                if info.timestamp:
                    console.print(
                        f"[cyan]Timestamp: {info.timestamp:%Y-%m-%d %H:%M:%S} UTC[/cyan]"
                    )

                console.print("\n[cyan]Connecting to PostgreSQL...[/cyan]")
                await database.test_connectivity()
                await database.migrate()
                registry: ProgramRegistry = await database.load_registry()
                console.print(
                    f"[green]✓ Loaded {len(registry)} programs from registry[/green]"
                )
                latest_slot = await rpc.latest_slot()
            except Exception as e:
                logger.exception("Startup failed")
                console.print(f"[red]Startup failed: {e}[/red]")
                return EXIT_STARTUP_ERROR

            try:
                start_slot, end_slot = resolve_slot_range(args, latest_slot)
                config = build_config(args, start_slot, end_slot)
            except ValueError as e:
                console.print(f"[red]Configuration error: {e}[/red]")
                return EXIT_CONFIG_ERROR

            await Pipeline(rpc, database, registry, config, console=console).run()

            if args.continuous:
                await _run_continuous_mode(
                    args, rpc, database, registry, config, console
                )
        finally:
            if database is not None:
                await database.dispose()

    console.print("\n[bold green]✨ Pipeline execution complete[/bold green]")
    return EXIT_OK


async def _run_continuous_mode(
    args: Namespace,
    rpc: SolanaRPCClient,
    database: Database,
    registry: ProgramRegistry,
    config: PipelineConfig,
    console: Console,
) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    async def process(start_slot: int, end_slot: int) -> PipelineStats:
        window = build_config(args, start_slot, end_slot)
        return await Pipeline(rpc, database, registry, window, console=console).run()

    console.print(
        f"\n[bold blue]Entering continuous mode "
        f"(every {args.interval:g} seconds, Ctrl+C to stop)[/bold blue]"
    )
    try:
        await run_continuous(
            rpc,
            process,
            stop_event,
            interval=args.interval,
            num_blocks=args.num_blocks,
            last_end_slot=config.end_slot,
        )
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
    logger.info("Continuous mode stopped")


def run() -> None:
    """Console script entry point."""
    args = build_parser().parse_args()
    try:
        exit_code = asyncio.run(main(args))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, exiting...")
        exit_code = 130
    sys.exit(exit_code)


__all__ = [
    "build_config",
    "build_parser",
    "calculate_end_slot",
    "main",
    "resolve_slot_range",
    "run",
    "run_continuous",
    "validate_args",
]


if __name__ == "__main__":
    run()
