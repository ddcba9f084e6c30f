"""
Tests for the Provider Health Monitor.

============================================================
PURPOSE
============================================================
- Status derivation from error counts (healthy/degraded/down)
- Gradual recovery on success
- Error classification and per-category counters
- Latency statistics
- TTL expiry of stale records
- Health summary

============================================================
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from data_source_health import (
    ErrorType,
    HealthMonitorConfig,
    HealthStatus,
    ProviderHealthMonitor,
    StatusThresholds,
    classify_error,
    get_health_monitor,
    reset_health_monitor,
    set_health_monitor,
    status_for,
)
from sentiment.exceptions import AuthenticationError, RateLimitError


# ============================================================
# STATUS RULE
# ============================================================

class TestStatusRule:
    """Tests for error-count thresholds."""

    @pytest.mark.parametrize("count,expected", [
        (0, HealthStatus.HEALTHY),
        (2, HealthStatus.HEALTHY),
        (3, HealthStatus.DEGRADED),
        (7, HealthStatus.DEGRADED),
        (8, HealthStatus.DOWN),
        (50, HealthStatus.DOWN),
    ])
    def test_status_for_count(self, count, expected):
        assert status_for(count, HealthMonitorConfig()) == expected

    def test_invalid_thresholds_rejected(self):
        with pytest.raises(ValueError):
            StatusThresholds(degraded_at=5, down_at=5)

    def test_thresholds_from_env(self, monkeypatch):
        monkeypatch.setenv("PROVIDER_HEALTH_DEGRADED_AT", "2")
        monkeypatch.setenv("PROVIDER_HEALTH_DOWN_AT", "4")
        monkeypatch.setenv("PROVIDER_HEALTH_TTL_SECONDS", "60")

        config = HealthMonitorConfig.from_env()

        assert config.thresholds.get_status(2) == HealthStatus.DEGRADED
        assert config.thresholds.get_status(4) == HealthStatus.DOWN
        assert config.record_ttl_seconds == 60

    def test_bad_env_falls_back_to_defaults(self, monkeypatch):
        monkeypatch.setenv("PROVIDER_HEALTH_DOWN_AT", "many")

        config = HealthMonitorConfig.from_env()

        assert config.thresholds.down_at == 8
        assert config.record_ttl_seconds == 300


# ============================================================
# RECORDING
# ============================================================

class TestRecording:
    """Tests for record_error / record_success."""

    def test_errors_walk_through_statuses(self, health_monitor):
        statuses = [
            health_monitor.record_error("twitter", "boom").status
            for _ in range(8)
        ]

        assert statuses[:2] == [HealthStatus.HEALTHY] * 2
        assert statuses[2:7] == [HealthStatus.DEGRADED] * 5
        assert statuses[7] == HealthStatus.DOWN

    def test_recovery_is_gradual(self, health_monitor):
        for _ in range(8):
            health_monitor.record_error("reddit", "boom")

        for _ in range(5):
            record = health_monitor.record_success("reddit")
        assert record.error_count == 3
        assert record.status == HealthStatus.DEGRADED

        for _ in range(5):
            record = health_monitor.record_success("reddit")
        assert record.error_count == 0
        assert record.status == HealthStatus.HEALTHY

    def test_error_records_message_and_category(self, health_monitor):
        record = health_monitor.record_error(
            "twitter", RateLimitError("Twitter API rate limit exceeded")
        )

        assert record.last_error == "Twitter API rate limit exceeded"
        assert record.errors.get(ErrorType.RATE_LIMIT) == 1
        assert record.errors.total == 1

    def test_success_records_timestamp(self, health_monitor, mock_clock):
        when = mock_clock.now() - timedelta(seconds=30)

        record = health_monitor.record_success("news", timestamp=when)

        assert record.last_success == when
        assert record.last_check == mock_clock.now()

    def test_latency_statistics(self, health_monitor):
        for latency in (100, 300, 200):
            record = health_monitor.record_success("news", latency_ms=latency)

        assert record.latency.min == 100
        assert record.latency.max == 300
        assert record.latency.avg == pytest.approx(200)
        assert record.latency.samples == 3

    def test_success_without_latency_keeps_stats_empty(self, health_monitor):
        record = health_monitor.record_success("news")

        assert record.latency.samples == 0
        assert record.to_dict()["latency"]["min"] is None

    def test_returned_records_are_copies(self, health_monitor):
        record = health_monitor.record_error("twitter", "boom")
        record.error_count = 99

        assert health_monitor.get_provider_status("twitter").error_count == 1

    def test_concurrent_recording(self, health_monitor):
        def hammer(_):
            for _ in range(100):
                health_monitor.record_error("twitter", "network down")

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(hammer, range(8)))

        record = health_monitor.get_provider_status("twitter")
        assert record.errors.total == 800
        assert record.errors.network == 800


# ============================================================
# CLASSIFICATION
# ============================================================

class TestClassifyError:
    """Tests for error classification."""

    @pytest.mark.parametrize("message,expected", [
        ("Twitter API rate limit exceeded", ErrorType.RATE_LIMIT),
        ("HTTP 429", ErrorType.RATE_LIMIT),
        ("Network error: unreachable", ErrorType.NETWORK),
        ("Connection reset by peer", ErrorType.NETWORK),
        ("request timeout", ErrorType.NETWORK),
        ("Reddit authentication failed", ErrorType.AUTH),
        ("status 403", ErrorType.AUTH),
        ("Unexpected payload", ErrorType.OTHER),
        ("Operation timed out", ErrorType.OTHER),
    ])
    def test_classification(self, message, expected):
        assert classify_error(message) == expected

    def test_classifies_exceptions_by_message(self):
        assert classify_error(AuthenticationError("Reddit token expired")) == ErrorType.OTHER
        assert classify_error(AuthenticationError("auth rejected")) == ErrorType.AUTH


# ============================================================
# EXPIRY
# ============================================================

class TestExpiry:
    """Tests for TTL handling."""

    def test_stale_records_disappear(self, health_monitor, mock_clock):
        health_monitor.record_error("twitter", "boom")

        mock_clock.advance(299)
        assert "twitter" in health_monitor.get_all_status()

        mock_clock.advance(2)
        assert health_monitor.get_all_status() == {}

    def test_expired_provider_reads_as_default(self, health_monitor, mock_clock):
        for _ in range(8):
            health_monitor.record_error("reddit", "boom")
        mock_clock.advance(301)

        record = health_monitor.get_provider_status("reddit")

        assert record.status == HealthStatus.HEALTHY
        assert record.error_count == 0
        assert health_monitor.get_all_status() == {}

    def test_recording_after_expiry_starts_fresh(self, health_monitor, mock_clock):
        for _ in range(5):
            health_monitor.record_error("news", "boom")
        mock_clock.advance(301)

        record = health_monitor.record_error("news", "boom")

        assert record.error_count == 1
        assert record.errors.total == 1

    def test_unknown_provider_is_not_stored(self, health_monitor):
        record = health_monitor.get_provider_status("news")

        assert record.provider == "news"
        assert record.is_healthy()
        assert health_monitor.get_all_status() == {}


# ============================================================
# SUMMARY AND LIFECYCLE
# ============================================================

class TestSummary:
    """Tests for get_health_summary / reset."""

    def test_system_healthy_with_two_healthy_providers(self, health_monitor):
        health_monitor.record_success("twitter")
        health_monitor.record_error("reddit", "rate limit")

        summary = health_monitor.get_health_summary()

        assert summary["healthy_providers"] == 2
        assert summary["total_errors"] == 1
        assert summary["is_system_healthy"] is True
        assert summary["providers"]["reddit"]["errors"]["rateLimit"] == 1

    def test_any_down_provider_makes_system_unhealthy(self, health_monitor):
        health_monitor.record_success("twitter")
        health_monitor.record_success("reddit")
        for _ in range(8):
            health_monitor.record_error("news", "boom")

        summary = health_monitor.get_health_summary()

        assert summary["healthy_providers"] == 2
        assert summary["is_system_healthy"] is False

    def test_single_healthy_provider_is_not_enough(self, health_monitor):
        health_monitor.record_success("twitter")

        assert health_monitor.get_health_summary()["is_system_healthy"] is False

    def test_reset_restores_defaults(self, health_monitor):
        for _ in range(8):
            health_monitor.record_error("twitter", "boom")

        health_monitor.reset("twitter")

        record = health_monitor.get_all_status()["twitter"]
        assert record.status == HealthStatus.HEALTHY
        assert record.error_count == 0
        assert record.errors.total == 0

    def test_clear_drops_everything(self, health_monitor):
        health_monitor.record_success("twitter")
        health_monitor.clear()

        assert health_monitor.get_all_status() == {}


class TestGlobalMonitor:
    """Tests for the process-wide monitor."""

    def test_singleton_lifecycle(self):
        first = get_health_monitor()
        assert get_health_monitor() is first

        custom = ProviderHealthMonitor()
        set_health_monitor(custom)
        assert get_health_monitor() is custom

        reset_health_monitor()
        assert get_health_monitor() is not custom
