"""
Data Source Health - Configuration.

============================================================
CONFIGURABLE HEALTH MONITORING
============================================================

- Status thresholds (error counts)
- Record TTL (stale records are dropped)

Configuration can be loaded from:
- Default values
- Environment variables

============================================================
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional
import logging

from .models import HealthStatus


logger = logging.getLogger(__name__)


# =============================================================
# STATUS THRESHOLDS
# =============================================================


@dataclass
class StatusThresholds:
    """
    Error-count thresholds for health states.

    - HEALTHY:  error_count < degraded_at
    - DEGRADED: degraded_at <= error_count < down_at
    - DOWN:     error_count >= down_at
    """
    degraded_at: int = 3
    down_at: int = 8

    def __post_init__(self) -> None:
        if self.degraded_at < 1:
            raise ValueError("degraded_at must be >= 1")
        if self.down_at <= self.degraded_at:
            raise ValueError("down_at must be > degraded_at")

    def get_status(self, error_count: int) -> HealthStatus:
        """Determine status from error count."""
        if error_count >= self.down_at:
            return HealthStatus.DOWN
        elif error_count >= self.degraded_at:
            return HealthStatus.DEGRADED
        else:
            return HealthStatus.HEALTHY

    def to_dict(self) -> Dict[str, int]:
        return {
            "degraded_at": self.degraded_at,
            "down_at": self.down_at,
        }


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass
class HealthMonitorConfig:
    """Configuration for the provider health monitor."""
    thresholds: StatusThresholds = None  # type: ignore[assignment]
    record_ttl_seconds: float = 300.0  # 5 minutes
    min_healthy_for_system: int = 2

    def __post_init__(self) -> None:
        if self.thresholds is None:
            self.thresholds = StatusThresholds()
        if self.record_ttl_seconds <= 0:
            raise ValueError("record_ttl_seconds must be > 0")

    @classmethod
    def from_env(cls) -> "HealthMonitorConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - PROVIDER_HEALTH_DEGRADED_AT
        - PROVIDER_HEALTH_DOWN_AT
        - PROVIDER_HEALTH_TTL_SECONDS
        """
        try:
            thresholds = StatusThresholds(
                degraded_at=int(os.getenv("PROVIDER_HEALTH_DEGRADED_AT", "3")),
                down_at=int(os.getenv("PROVIDER_HEALTH_DOWN_AT", "8")),
            )
            ttl = float(os.getenv("PROVIDER_HEALTH_TTL_SECONDS", "300"))
            return cls(thresholds=thresholds, record_ttl_seconds=ttl)
        except ValueError as e:
            logger.warning(f"Invalid provider health settings in environment: {e}")
            return cls()

    def to_dict(self) -> Dict:
        return {
            "thresholds": self.thresholds.to_dict(),
            "record_ttl_seconds": self.record_ttl_seconds,
            "min_healthy_for_system": self.min_healthy_for_system,
        }


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_config: Optional[HealthMonitorConfig] = None


def get_config() -> HealthMonitorConfig:
    """Get the global health monitor configuration."""
    global _default_config
    if _default_config is None:
        _default_config = HealthMonitorConfig.from_env()
    return _default_config


def set_config(config: Optional[HealthMonitorConfig]) -> None:
    """Set (or clear, with None) the global health monitor configuration."""
    global _default_config
    _default_config = config
