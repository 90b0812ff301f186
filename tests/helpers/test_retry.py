"""Tests for the bounded retry policy."""

import asyncio

import httpx
import pytest

from src.helpers.retry import RetryExhaustedError, RetryPolicy, linear_backoff


def failing(times: int, result: str = "ok"):
    """Coroutine factory that raises for the first `times` calls."""
    calls = {"count": 0}

    async def func() -> str:
        calls["count"] += 1
        if calls["count"] <= times:
            msg = f"failure {calls['count']}"
            raise ConnectionError(msg)
        return result

    func.calls = calls  # type: ignore[attr-defined]
    return func


class TestLinearBackoff:
    def test_grows_with_attempt(self) -> None:
        """Test delay = base * attempt."""
        assert [linear_backoff(2.0, n) for n in (1, 2, 3)] == [2.0, 4.0, 6.0]


class TestRetryPolicy:
    """Tests for RetryPolicy class."""

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError, match="max_attempts must be at least 1"):
            RetryPolicy(max_attempts=0)

    def test_rejects_negative_delay(self) -> None:
        with pytest.raises(ValueError, match="base_delay cannot be negative"):
            RetryPolicy(base_delay=-1.0)

    @pytest.mark.asyncio
    async def test_success_first_try_does_not_sleep(
        self, recording_sleep, sleeps: list[float]
    ) -> None:
        """Test that a successful first attempt never sleeps."""
        policy = RetryPolicy(max_attempts=3, base_delay=2.0, sleep=recording_sleep)

        assert await policy.execute(failing(0)) == "ok"
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_recovers_after_max_minus_one_failures(
        self, recording_sleep, sleeps: list[float]
    ) -> None:
        """Test that max_attempts - 1 failures still succeed with linear backoff."""
        policy = RetryPolicy(max_attempts=3, base_delay=2.0, sleep=recording_sleep)
        func = failing(2)

        assert await policy.execute(func, operation="extract") == "ok"
        assert func.calls["count"] == 3  # type: ignore[attr-defined]
        assert sleeps == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_with_last_exception(
        self, recording_sleep, sleeps: list[float]
    ) -> None:
        """Test that max_attempts failures raise RetryExhaustedError."""
        policy = RetryPolicy(max_attempts=3, base_delay=1.0, sleep=recording_sleep)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await policy.execute(failing(3), operation="load")

        error = exc_info.value
        assert error.attempts == 3
        assert error.operation == "load"
        assert isinstance(error.last_exception, ConnectionError)
        assert str(error.last_exception) == "failure 3"
        # No sleep after the final attempt
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_timeouts_are_retried(self, recording_sleep) -> None:
        """Test that httpx timeouts count as retryable failures."""
        attempts = []

        async def func() -> int:
            attempts.append(1)
            if len(attempts) == 1:
                msg = "read timed out"
                raise httpx.ReadTimeout(msg)
            return 7

        policy = RetryPolicy(max_attempts=2, base_delay=0.0, sleep=recording_sleep)

        assert await policy.execute(func) == 7

    @pytest.mark.asyncio
    async def test_cancellation_not_retried(self, recording_sleep) -> None:
        """Test that CancelledError propagates on the first attempt."""
        attempts = []

        async def func() -> None:
            attempts.append(1)
            raise asyncio.CancelledError

        policy = RetryPolicy(max_attempts=3, sleep=recording_sleep)

        with pytest.raises(asyncio.CancelledError):
            await policy.execute(func)
        assert len(attempts) == 1

    def test_custom_backoff(self) -> None:
        """Test that a custom backoff function is used for delays."""
        policy = RetryPolicy(base_delay=1.0, backoff=lambda base, n: base * 2**n)

        assert policy.delay_for(3) == 8.0
