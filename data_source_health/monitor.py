"""
Data Source Health - Provider Health Monitor.

============================================================
MAIN ENTRY POINT
============================================================

The ProviderHealthMonitor tracks one health record per
sentiment provider:
- Records successes (with latency) and errors
- Classifies errors (rate limit / network / auth / other)
- Derives status from the error count
- Ages out records older than the TTL

============================================================
PUBLIC INTERFACE
============================================================

```python
monitor = get_health_monitor()

monitor.record_success("twitter", latency_ms=180)
monitor.record_error("reddit", error)

status = monitor.get_provider_status("reddit")
if status.status == HealthStatus.DOWN:
    # Skip or alert
    pass

summary = monitor.get_health_summary()
```

============================================================
STATUS RULE
============================================================

errorCount >= 8 -> DOWN
errorCount >= 3 -> DEGRADED
otherwise       -> HEALTHY

A success decrements the error count by one (floor 0), so
recovery from DOWN is gradual.

============================================================
"""

import copy
import threading
from datetime import datetime
from typing import Any, Dict, Optional, Union
import logging

from core.clock import ClockFactory, ClockProtocol

from .config import HealthMonitorConfig, get_config
from .models import ErrorType, HealthStatus, ProviderHealthStatus


logger = logging.getLogger(__name__)


def classify_error(error: Union[BaseException, str]) -> ErrorType:
    """Map an error to its category by inspecting the message."""
    message = str(error).lower()

    if "rate limit" in message or "429" in message:
        return ErrorType.RATE_LIMIT
    if "network" in message or "timeout" in message or "connection" in message:
        return ErrorType.NETWORK
    if "auth" in message or "401" in message or "403" in message:
        return ErrorType.AUTH
    return ErrorType.OTHER


def status_for(error_count: int, config: Optional[HealthMonitorConfig] = None) -> HealthStatus:
    """Status as a pure function of the error count."""
    return (config or get_config()).thresholds.get_status(error_count)


class ProviderHealthMonitor:
    """
    Per-provider health tracking.

    Records are created lazily on the first report and are
    treated as unseen once their last_check is older than the
    configured TTL.

    A lock guards the record map: record calls may arrive from
    concurrent provider tasks or worker threads.
    """

    def __init__(
        self,
        config: Optional[HealthMonitorConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._config = config or get_config()
        self._clock = clock
        self._records: Dict[str, ProviderHealthStatus] = {}
        self._lock = threading.Lock()

    @property
    def clock(self) -> ClockProtocol:
        return self._clock or ClockFactory.get_clock()

    @property
    def config(self) -> HealthMonitorConfig:
        return self._config

    # =========================================================
    # RECORDING
    # =========================================================

    def record_success(
        self,
        provider: str,
        timestamp: Optional[datetime] = None,
        latency_ms: Optional[float] = None,
    ) -> ProviderHealthStatus:
        """
        Record a successful call.

        Args:
            provider: Provider name
            timestamp: Time of the success (defaults to now)
            latency_ms: Call latency, folded into the running stats

        Returns:
            Copy of the updated record
        """
        now = self.clock.now()
        with self._lock:
            record = self._live_record(provider, now)
            record.last_check = now
            record.last_success = timestamp or now
            record.error_count = max(0, record.error_count - 1)
            if latency_ms is not None:
                record.latency.add(latency_ms)
            self._update_status(record)
            return copy.deepcopy(record)

    def record_error(
        self,
        provider: str,
        error: Union[BaseException, str],
    ) -> ProviderHealthStatus:
        """
        Record a failed call.

        Args:
            provider: Provider name
            error: The exception (or message) that caused the failure

        Returns:
            Copy of the updated record
        """
        error_type = classify_error(error)
        now = self.clock.now()
        with self._lock:
            record = self._live_record(provider, now)
            record.last_check = now
            record.last_error = str(error)
            record.error_count += 1
            record.errors.increment(error_type)
            self._update_status(record)
            snapshot = copy.deepcopy(record)

        logger.debug(
            f"[{provider}] Error recorded ({error_type.value}), "
            f"count={snapshot.error_count}, status={snapshot.status.value}"
        )
        return snapshot

    # =========================================================
    # QUERIES
    # =========================================================

    def get_all_status(self) -> Dict[str, ProviderHealthStatus]:
        """Snapshot of every non-expired record."""
        with self._lock:
            self._purge_expired()
            return {
                name: copy.deepcopy(record)
                for name, record in self._records.items()
            }

    def get_provider_status(self, provider: str) -> ProviderHealthStatus:
        """
        Snapshot of one provider.

        Missing or expired providers yield a fresh default record,
        which is not stored.
        """
        now = self.clock.now()
        with self._lock:
            self._purge_expired()
            record = self._records.get(provider)
            if record is None:
                return ProviderHealthStatus(provider=provider, last_check=now)
            return copy.deepcopy(record)

    def get_health_summary(self) -> Dict[str, Any]:
        """
        Aggregate view for dashboards.

        The system counts as healthy when at least
        ``min_healthy_for_system`` providers are healthy and
        none is down.
        """
        statuses = self.get_all_status()
        healthy = [name for name, s in statuses.items() if s.status == HealthStatus.HEALTHY]
        any_down = any(s.status == HealthStatus.DOWN for s in statuses.values())

        return {
            "total_errors": sum(s.errors.total for s in statuses.values()),
            "healthy_providers": len(healthy),
            "is_system_healthy": (
                len(healthy) >= self._config.min_healthy_for_system and not any_down
            ),
            "providers": {name: s.to_dict() for name, s in statuses.items()},
        }

    # =========================================================
    # LIFECYCLE
    # =========================================================

    def reset(self, provider: str) -> None:
        """Reinitialize a provider's record to healthy defaults."""
        with self._lock:
            self._records[provider] = ProviderHealthStatus(
                provider=provider,
                last_check=self.clock.now(),
            )
        logger.info(f"[{provider}] Health record reset")

    def clear(self) -> None:
        """Drop every record."""
        with self._lock:
            self._records.clear()

    # =========================================================
    # INTERNAL
    # =========================================================

    def _is_expired(self, record: ProviderHealthStatus) -> bool:
        return self.clock.elapsed_since(record.last_check) > self._config.record_ttl_seconds

    def _live_record(self, provider: str, now: datetime) -> ProviderHealthStatus:
        record = self._records.get(provider)
        if record is None or self._is_expired(record):
            record = ProviderHealthStatus(provider=provider, last_check=now)
            self._records[provider] = record
        return record

    def _purge_expired(self) -> None:
        expired = [
            name for name, record in self._records.items()
            if self._is_expired(record)
        ]
        for name in expired:
            logger.debug(f"[{name}] Health record expired")
            del self._records[name]

    def _update_status(self, record: ProviderHealthStatus) -> None:
        previous = record.status
        record.status = self._config.thresholds.get_status(record.error_count)
        if record.status != previous:
            logger.info(
                f"[{record.provider}] Health {previous.value} -> {record.status.value}"
            )


# =============================================================
# SINGLETON ACCESS
# =============================================================


_default_monitor: Optional[ProviderHealthMonitor] = None
_monitor_lock = threading.Lock()


def get_health_monitor() -> ProviderHealthMonitor:
    """
    Get the global health monitor.

    Created on first use.
    """
    global _default_monitor

    with _monitor_lock:
        if _default_monitor is None:
            _default_monitor = ProviderHealthMonitor()
        return _default_monitor


def set_health_monitor(monitor: ProviderHealthMonitor) -> None:
    """Set the global health monitor."""
    global _default_monitor

    with _monitor_lock:
        _default_monitor = monitor


def reset_health_monitor() -> None:
    """Drop the global health monitor (used by tests)."""
    global _default_monitor

    with _monitor_lock:
        _default_monitor = None
