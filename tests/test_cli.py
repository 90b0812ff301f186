"""Tests for the command-line entry point."""

import asyncio
from argparse import Namespace
from datetime import UTC, datetime
from io import StringIO
from types import TracebackType

import pytest
from rich.console import Console

from src import cli
from src.cli import (
    EXIT_CONFIG_ERROR,
    EXIT_OK,
    EXIT_STARTUP_ERROR,
    build_config,
    build_parser,
    calculate_end_slot,
    resolve_slot_range,
    run_continuous,
    validate_args,
)
from src.etl.registry import ProgramRegistry
from src.helpers.rpc_models import ConnectionInfo
from src.pipeline import PipelineStats
from tests.factories import FakeBlockSource


def parse(*argv: str) -> Namespace:
    return build_parser().parse_args(list(argv))


class SequenceSource(FakeBlockSource):
    """Block source whose latest slot follows a script; None raises."""

    def __init__(self, latest_slots: list[int | None]) -> None:
        super().__init__()
        self.latest_slots = list(latest_slots)

    async def latest_slot(self) -> int:
        value = self.latest_slots.pop(0) if self.latest_slots else None
        if value is None:
            msg = "getSlot timed out"
            raise TimeoutError(msg)
        return value


class TestParser:
    """Tests for build_parser."""

    @pytest.fixture(autouse=True)
    def _clear_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key in ("BATCH_SIZE", "MAX_RETRIES", "RATE_LIMIT_MS"):
            monkeypatch.delenv(key, raising=False)

    def test_defaults(self) -> None:
        args = parse()

        assert args.start_slot is None
        assert args.end_slot is None
        assert args.num_blocks is None
        assert args.batch_size == 10
        assert args.max_retries == 3
        assert args.retry_delay == 2.0
        assert args.rate_limit == 100
        assert args.continuous is False
        assert args.interval == 10

    def test_short_options(self) -> None:
        args = parse("-s", "1000", "-n", "5", "-b", "2", "-c", "-r", "https://rpc")

        assert (args.start_slot, args.num_blocks, args.batch_size) == (1000, 5, 2)
        assert args.continuous is True
        assert args.rpc_url == "https://rpc"

    def test_end_slot_and_num_blocks_exclusive(self) -> None:
        """Test that --end-slot and --num-blocks cannot be combined."""
        with pytest.raises(SystemExit):
            parse("-s", "1", "-e", "5", "-n", "5")

    def test_log_level_case_insensitive(self) -> None:
        assert parse("--log-level", "debug").log_level == "DEBUG"

    def test_defaults_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that numeric defaults can be set through the environment."""
        monkeypatch.setenv("BATCH_SIZE", "25")
        monkeypatch.setenv("MAX_RETRIES", "5")
        monkeypatch.setenv("RATE_LIMIT_MS", "0")

        args = parse()

        assert (args.batch_size, args.max_retries, args.rate_limit) == (25, 5, 0)
        assert parse("-b", "2").batch_size == 2

    def test_non_integer_environment_default(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a malformed environment default is a usage error."""
        monkeypatch.setenv("BATCH_SIZE", "ten")

        with pytest.raises(SystemExit) as exc_info:
            parse()

        assert exc_info.value.code == 2


class TestValidateArgs:
    """Tests for validate_args."""

    def test_valid(self) -> None:
        validate_args(parse("-s", "1", "-e", "5"))

    @pytest.mark.parametrize(
        ("argv", "message"),
        [
            (("-s", "10", "-e", "9"), "must be less than or equal"),
            (("-b", "0",), "Batch size must be greater than 0"),
            (("--max-retries", "0"), "Max retries must be greater than 0"),
            (("-n", "0"), "Number of blocks must be greater than 0"),
            (("--rate-limit", "-1"), "Rate limit cannot be negative"),
            (("--interval", "0"), "Interval must be greater than 0"),
        ],
    )
    def test_invalid(self, argv: tuple[str, ...], message: str) -> None:
        with pytest.raises(ValueError, match=message):
            validate_args(parse(*argv))


class TestSlotRange:
    """Tests for calculate_end_slot and resolve_slot_range."""

    def test_num_blocks(self) -> None:
        assert calculate_end_slot(1000, num_blocks=5) == 1004

    def test_default_window(self) -> None:
        """Test that a start slot alone covers ten slots."""
        assert calculate_end_slot(1000) == 1009

    def test_explicit_end(self) -> None:
        assert calculate_end_slot(1000, end_slot=1500) == 1500

    def test_no_arguments_uses_finalized_window(self) -> None:
        """Test the latest - 30 to latest - 20 default."""
        assert resolve_slot_range(parse(), 5000) == (4970, 4980)

    def test_start_only(self) -> None:
        assert resolve_slot_range(parse("-s", "1000"), 5000) == (1000, 1009)

    def test_start_and_count(self) -> None:
        assert resolve_slot_range(parse("-s", "1000", "-n", "50"), 5000) == (1000, 1049)

    def test_young_chain_clamped(self) -> None:
        assert resolve_slot_range(parse(), 10) == (0, 0)

    def test_build_config(self) -> None:
        config = build_config(parse("-b", "4", "--rate-limit", "0"), 10, 20)

        assert (config.start_slot, config.end_slot) == (10, 20)
        assert config.batch_size == 4
        assert config.rate_limit_ms == 0

    def test_build_config_rejects_inverted_range(self) -> None:
        """Test that an end-only range before the default start is rejected."""
        args = parse("-e", "100")
        start, end = resolve_slot_range(args, 5000)

        with pytest.raises(ValueError):
            build_config(args, start, end)


class TestRunContinuous:
    """Tests for run_continuous."""

    @pytest.mark.asyncio
    async def test_processes_new_windows(self) -> None:
        """Test window bounds, skipping of covered slots and stopping."""
        source = SequenceSource([1030, 1030, 1035, 1100])
        stop_event = asyncio.Event()
        windows: list[tuple[int, int]] = []

        async def process(start: int, end: int) -> PipelineStats:
            windows.append((start, end))
            if len(windows) == 3:
                stop_event.set()
            return PipelineStats()

        count = await run_continuous(
            source, process, stop_event, interval=0.01, num_blocks=5
        )

        assert count == 3
        assert windows == [(1006, 1010), (1011, 1015), (1076, 1080)]

    @pytest.mark.asyncio
    async def test_skips_already_processed_range(self) -> None:
        """Test that the first window resumes after the initial run."""
        source = SequenceSource([1050])
        stop_event = asyncio.Event()
        windows: list[tuple[int, int]] = []

        async def process(start: int, end: int) -> PipelineStats:
            windows.append((start, end))
            stop_event.set()
            return PipelineStats()

        await run_continuous(
            source, process, stop_event, interval=0.01, last_end_slot=1025
        )

        assert windows == [(1026, 1030)]

    @pytest.mark.asyncio
    async def test_latest_slot_failure_keeps_running(self) -> None:
        """Test that a failed latest-slot lookup is retried on the next tick."""
        source = SequenceSource([None, 1040])
        stop_event = asyncio.Event()
        windows: list[tuple[int, int]] = []

        async def process(start: int, end: int) -> PipelineStats:
            windows.append((start, end))
            stop_event.set()
            return PipelineStats()

        count = await run_continuous(source, process, stop_event, interval=0.01)

        assert count == 1
        assert windows == [(1011, 1020)]

    @pytest.mark.asyncio
    async def test_stop_before_first_tick(self) -> None:
        stop_event = asyncio.Event()
        stop_event.set()

        async def process(start: int, end: int) -> PipelineStats:
            raise AssertionError

        assert await run_continuous(FakeBlockSource(), process, stop_event, interval=5) == 0


class FakeRPC(FakeBlockSource):
    """Stand-in for SolanaRPCClient used by main()."""

    def __init__(self, rpc_url: str, fail_connectivity: bool = False) -> None:
        super().__init__(latest=5000)
        self.rpc_url = rpc_url
        self.fail_connectivity = fail_connectivity

    async def __aenter__(self) -> "FakeRPC":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        return None

    async def test_connectivity(self) -> None:
        if self.fail_connectivity:
            msg = "connection refused"
            raise ConnectionError(msg)

    async def get_connection_info(self) -> ConnectionInfo:
        return ConnectionInfo(
            endpoint=self.rpc_url,
            blockhash="LatestHash",
            slot=self.latest,
            timestamp=datetime(2024, 1, 1, tzinfo=UTC),
        )


class FakeDatabase:
    instances: list["FakeDatabase"] = []

    def __init__(self, database_url: str, fail_connectivity: bool = False) -> None:
        self.database_url = database_url
        self.fail_connectivity = fail_connectivity
        self.loaded: list[int] = []
        self.disposed = False
        FakeDatabase.instances.append(self)

    async def test_connectivity(self) -> None:
        if self.fail_connectivity:
            msg = "database unreachable"
            raise ConnectionError(msg)

    async def migrate(self) -> None:
        return None

    async def load_registry(self) -> ProgramRegistry:
        return ProgramRegistry.default()

    async def batch_upsert(self, blocks, registry) -> tuple[int, int]:
        self.loaded.extend(b.slot for b in blocks)
        return len(blocks), sum(len(b.transactions) for b in blocks)

    async def dispose(self) -> None:
        self.disposed = True


@pytest.fixture
def fake_backends(monkeypatch: pytest.MonkeyPatch) -> type[FakeDatabase]:
    """Replace the RPC client and database used by main()."""
    FakeDatabase.instances = []
    monkeypatch.setattr(cli, "SolanaRPCClient", FakeRPC)
    monkeypatch.setattr(cli, "Database", FakeDatabase)
    return FakeDatabase


class TestMain:
    """Tests for main()."""

    @pytest.mark.asyncio
    async def test_invalid_arguments_exit_code(self) -> None:
        """Test that validation errors exit with the configuration code."""
        output = StringIO()

        code = await cli.main(parse("-b", "0"), Console(file=output))

        assert code == EXIT_CONFIG_ERROR
        assert "Batch size must be greater than 0" in output.getvalue()

    @pytest.mark.asyncio
    async def test_missing_rpc_url_exit_code(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HELIUS_RPC_URL", raising=False)
        monkeypatch.delenv("SOLANA_RPC_URL", raising=False)

        code = await cli.main(parse("-d", "postgresql://u:p@h/db"), Console(file=StringIO()))

        assert code == EXIT_CONFIG_ERROR

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("fake_backends")
    async def test_malformed_database_url_exit_code(self) -> None:
        """Test that an unparsable database URL is a configuration error."""
        output = StringIO()
        args = parse("-r", "https://rpc.test", "-d", "not a url")

        code = await cli.main(args, Console(file=output, width=120))

        assert code == EXIT_CONFIG_ERROR
        assert "Invalid database URL" in output.getvalue()
        assert FakeDatabase.instances == []

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("fake_backends")
    async def test_engine_creation_failure_exit_code(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a database that cannot be built exits with the startup code."""

        def broken_database(database_url: str) -> FakeDatabase:
            msg = "unsupported driver"
            raise ValueError(msg)

        monkeypatch.setattr(cli, "Database", broken_database)
        output = StringIO()
        args = parse("-r", "https://rpc.test", "-d", "postgresql://u:p@h/db")

        code = await cli.main(args, Console(file=output, width=120))

        assert code == EXIT_STARTUP_ERROR
        assert "unsupported driver" in output.getvalue()

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("fake_backends")
    async def test_runs_requested_range(self) -> None:
        """Test a full run over an explicit slot range."""
        output = StringIO()
        args = parse(
            "-s", "100", "-n", "3", "--rate-limit", "0",
            "-r", "https://rpc.test", "-d", "postgresql://u:p@h/db",
        )

        code = await cli.main(args, Console(file=output, width=120))

        database = FakeDatabase.instances[0]
        assert code == EXIT_OK
        assert database.loaded == [100, 101, 102]
        assert database.database_url == "postgresql+psycopg://u:p@h/db"
        assert database.disposed
        assert "Connected to: https://rpc.test" in output.getvalue()

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("fake_backends")
    async def test_startup_failure_exit_code(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an unreachable RPC node exits with the startup code."""
        monkeypatch.setattr(
            cli, "SolanaRPCClient", lambda url: FakeRPC(url, fail_connectivity=True)
        )
        args = parse("-r", "https://rpc.test", "-d", "postgresql://u:p@h/db")

        code = await cli.main(args, Console(file=StringIO()))

        assert code == EXIT_STARTUP_ERROR
        assert FakeDatabase.instances[0].disposed
        assert FakeDatabase.instances[0].loaded == []
