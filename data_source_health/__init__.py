"""
Data Source Health Module.

============================================================
PROVIDER HEALTH TRACKING
============================================================

Tracks the operational health of every external sentiment
provider from the outcome of its calls.

HEALTH STATES (from the provider's error count):

- HEALTHY  (errors < 3): Normal operation
- DEGRADED (3 <= errors < 8): Still queried, flagged in the UI
- DOWN     (errors >= 8): Provider considered unavailable

Records not touched for the TTL (5 minutes) expire and the
provider reverts to "unseen".

============================================================
USAGE
============================================================

```python
from data_source_health import get_health_monitor, HealthStatus

monitor = get_health_monitor()

monitor.record_success("twitter", latency_ms=150)
monitor.record_error("news", error)

status = monitor.get_provider_status("news")
print(f"{status.provider}: {status.status.value} ({status.error_count} errors)")
```

============================================================
"""

from .models import (
    ErrorStats,
    ErrorType,
    HealthStatus,
    LatencyStats,
    ProviderHealthStatus,
)

from .config import (
    HealthMonitorConfig,
    StatusThresholds,
    get_config,
    set_config,
)

from .monitor import (
    ProviderHealthMonitor,
    classify_error,
    get_health_monitor,
    reset_health_monitor,
    set_health_monitor,
    status_for,
)


__all__ = [
    # Models
    "HealthStatus",
    "ErrorType",
    "LatencyStats",
    "ErrorStats",
    "ProviderHealthStatus",

    # Config
    "HealthMonitorConfig",
    "StatusThresholds",
    "get_config",
    "set_config",

    # Monitor
    "ProviderHealthMonitor",
    "classify_error",
    "status_for",
    "get_health_monitor",
    "set_health_monitor",
    "reset_health_monitor",
]
