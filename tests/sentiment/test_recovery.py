"""
Tests for sentiment recovery (with_retry, with_fallback, ProviderRecovery).
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from resilience import (
    AllProvidersFailedError,
    CircuitBreaker,
    CircuitOpenError,
    OperationTimeoutError,
    RetryCancelledError,
    RetryError,
)
from sentiment import FallbackResult, ProviderRecovery, with_fallback, with_retry


# ============================================================
# WITH_RETRY
# ============================================================

class TestWithRetry:
    """Tests for config-driven with_retry."""

    @pytest.mark.asyncio
    async def test_succeeds_on_third_attempt(self, config_manager, no_sleep):
        op = AsyncMock(side_effect=[ValueError("a"), ValueError("b"), "ok"])

        result = await with_retry("reddit", op, config_manager=config_manager, sleep=no_sleep)

        assert result == "ok"
        assert op.call_count == 3
        assert no_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_retry_error(self, config_manager, no_sleep):
        op = AsyncMock(side_effect=ValueError("boom"))

        with pytest.raises(RetryError) as exc_info:
            await with_retry("news", op, config_manager=config_manager, sleep=no_sleep)

        error = exc_info.value
        assert str(error) == "Failed after 3 attempts: boom"
        assert error.attempts == 3
        assert error.provider == "news"
        assert isinstance(error.last_error, ValueError)
        assert op.call_count == 3
        assert len(no_sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_delays_follow_provider_strategy(self, config_manager, no_sleep):
        op = AsyncMock(side_effect=ValueError("boom"))

        with pytest.raises(RetryError):
            await with_retry("twitter", op, config_manager=config_manager, sleep=no_sleep)

        assert op.call_count == 5
        assert no_sleep.delays == [2.0, 4.0, 8.0, 16.0]

    @pytest.mark.asyncio
    async def test_options_override_and_cap_delay(self, config_manager, no_sleep):
        op = AsyncMock(side_effect=ValueError("boom"))

        with pytest.raises(RetryError):
            await with_retry(
                "reddit",
                op,
                {"attempts": 4, "base_delay": 10.0, "max_delay": 15.0},
                config_manager=config_manager,
                sleep=no_sleep,
            )

        assert no_sleep.delays == [10.0, 15.0, 15.0]

    @pytest.mark.asyncio
    async def test_single_attempt_option(self, config_manager, no_sleep):
        op = AsyncMock(side_effect=ValueError("boom"))

        with pytest.raises(RetryError) as exc_info:
            await with_retry("reddit", op, {"attempts": 1}, config_manager=config_manager, sleep=no_sleep)

        assert exc_info.value.attempts == 1
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failed_attempt(self, config_manager, no_sleep):
        finished = []

        async def slow():
            await asyncio.sleep(1)
            finished.append(True)

        with pytest.raises(RetryError) as exc_info:
            await with_retry(
                "news",
                slow,
                {"attempts": 2, "timeout": 0.01},
                config_manager=config_manager,
                sleep=no_sleep,
            )

        assert isinstance(exc_info.value.last_error, OperationTimeoutError)
        assert "Operation timed out" in str(exc_info.value)
        assert finished == []

    @pytest.mark.asyncio
    async def test_timeout_raised_by_operation_keeps_its_type(self, config_manager, no_sleep):
        op = AsyncMock(side_effect=TimeoutError("upstream read timed out"))

        with pytest.raises(RetryError) as exc_info:
            await with_retry("news", op, config_manager=config_manager, sleep=no_sleep)

        last_error = exc_info.value.last_error
        assert isinstance(last_error, TimeoutError)
        assert not isinstance(last_error, OperationTimeoutError)
        assert str(exc_info.value) == "Failed after 3 attempts: upstream read timed out"
        assert op.call_count == 3

    @pytest.mark.asyncio
    async def test_no_retry_strategy_calls_once(self, config_manager, no_sleep):
        config_manager.set_provider_config("news", retry_strategy=None)
        op = AsyncMock(side_effect=ValueError("boom"))

        with pytest.raises(ValueError):
            await with_retry("news", op, config_manager=config_manager, sleep=no_sleep)

        assert op.call_count == 1

    @pytest.mark.asyncio
    async def test_unknown_provider_calls_once(self, config_manager):
        op = AsyncMock(return_value=7)

        assert await with_retry("myspace", op, config_manager=config_manager) == 7
        assert op.call_count == 1

    @pytest.mark.asyncio
    async def test_cancel_stops_retrying(self, config_manager, no_sleep):
        cancel = asyncio.Event()
        cancel.set()
        op = AsyncMock(side_effect=ValueError("boom"))

        with pytest.raises(RetryCancelledError):
            await with_retry(
                "reddit", op, config_manager=config_manager, sleep=no_sleep, cancel_event=cancel
            )

        assert op.call_count == 1


# ============================================================
# WITH_FALLBACK
# ============================================================

class TestWithFallback:
    """Tests for ordered failover."""

    @pytest.fixture
    def enabled_manager(self, config_manager):
        config_manager.set_provider_config("twitter", enabled=True)
        config_manager.set_provider_config("news", enabled=True)
        return config_manager

    @pytest.mark.asyncio
    async def test_disabled_provider_is_skipped(self, enabled_manager):
        op = AsyncMock(return_value=0.4)

        outcome = await with_fallback(["reddit", "news"], op, config_manager=enabled_manager)

        assert outcome == FallbackResult(0.4, "news")
        op.assert_awaited_once_with("news")

    @pytest.mark.asyncio
    async def test_first_success_wins(self, enabled_manager):
        op = AsyncMock(side_effect=[ValueError("twitter down"), 0.2])
        seen = []

        def on_error(error, provider):
            seen.append((error, provider))

        outcome = await with_fallback(
            ["twitter", "news"], op, on_error, config_manager=enabled_manager
        )

        assert outcome.provider == "news"
        assert outcome.result == 0.2
        [(error, provider)] = seen
        assert provider == "twitter"
        assert str(error) == "twitter down"

    @pytest.mark.asyncio
    async def test_async_error_callback_awaited(self, enabled_manager):
        op = AsyncMock(side_effect=ValueError("down"))
        on_error = AsyncMock()

        with pytest.raises(AllProvidersFailedError):
            await with_fallback(["twitter", "news"], op, on_error, config_manager=enabled_manager)

        assert on_error.await_count == 2

    @pytest.mark.asyncio
    async def test_all_failing_collects_errors(self, enabled_manager):
        op = AsyncMock(side_effect=ValueError("down"))

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await with_fallback(["twitter", "reddit", "news"], op, config_manager=enabled_manager)

        assert [name for name, _ in exc_info.value.errors] == ["twitter", "news"]
        assert str(exc_info.value) == "All providers failed"

    @pytest.mark.asyncio
    async def test_all_disabled_never_calls_operation(self, config_manager):
        op = AsyncMock()

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await with_fallback(["twitter", "reddit"], op, config_manager=config_manager)

        op.assert_not_called()
        assert exc_info.value.errors == []


# ============================================================
# PROVIDER RECOVERY
# ============================================================

class TestProviderRecovery:
    """Tests for the per-adapter recovery wrapper."""

    @pytest.fixture
    def recovery(self, health_monitor, no_sleep, mock_clock):
        breaker = CircuitBreaker(3, 300, name="twitter", clock=mock_clock)
        return ProviderRecovery.create(
            "twitter", health_monitor, sleep=no_sleep, circuit_breaker=breaker
        )

    @pytest.mark.asyncio
    async def test_success_records_latency(self, recovery, health_monitor):
        assert await recovery.execute(AsyncMock(return_value="ok")) == "ok"

        record = health_monitor.get_provider_status("twitter")
        assert record.latency.samples == 1
        assert record.last_success is not None

    @pytest.mark.asyncio
    async def test_failure_recorded_once_and_raised(self, recovery, health_monitor):
        op = AsyncMock(side_effect=ConnectionError("connection refused"))

        with pytest.raises(ConnectionError):
            await recovery.execute(op)

        assert op.call_count == 3
        record = health_monitor.get_provider_status("twitter")
        assert record.error_count == 1
        assert record.errors.network == 1

    @pytest.mark.asyncio
    async def test_error_handler_result_returned(self, recovery, health_monitor):
        op = AsyncMock(side_effect=ValueError("bad payload"))
        handler = AsyncMock(return_value="recovered")

        assert await recovery.execute(op, error_handler=handler) == "recovered"
        handler.assert_awaited_once()
        assert health_monitor.get_provider_status("twitter").error_count == 1

    @pytest.mark.asyncio
    async def test_open_circuit_reported(self, recovery, health_monitor):
        op = AsyncMock(side_effect=ValueError("bad payload"))
        for _ in range(3):
            with pytest.raises(ValueError):
                await recovery.execute(op)

        with pytest.raises(CircuitOpenError):
            await recovery.execute(op)

        assert op.call_count == 3
        assert health_monitor.get_provider_status("twitter").error_count == 4

    @pytest.mark.asyncio
    async def test_cancellation_not_recorded(self, recovery, health_monitor):
        cancel = asyncio.Event()
        cancel.set()
        op = AsyncMock(side_effect=ConnectionError("connection refused"))

        with pytest.raises(RetryCancelledError):
            await recovery.execute(op, cancel_event=cancel)

        assert health_monitor.get_all_status() == {}
