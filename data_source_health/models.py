"""
Data Source Health - Data Models.

============================================================
CORE DATA STRUCTURES
============================================================

- HealthStatus: healthy / degraded / down
- ErrorType: Error taxonomy used for counters (not a throwable)
- LatencyStats: Running min / max / avg of call latency
- ErrorStats: Per-category error counters
- ProviderHealthStatus: Complete health record for a provider

============================================================
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


# =============================================================
# ENUMS
# =============================================================


class HealthStatus(str, Enum):
    """
    Health classification of a provider.

    Derived purely from the provider's error count:
    - HEALTHY:  error_count < degraded threshold
    - DEGRADED: degraded threshold <= error_count < down threshold
    - DOWN:     error_count >= down threshold
    """
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"

    def is_usable(self) -> bool:
        """Check if the provider should still be queried."""
        return self in (HealthStatus.HEALTHY, HealthStatus.DEGRADED)


class ErrorType(str, Enum):
    """Error categories tracked per provider."""
    RATE_LIMIT = "rateLimit"
    NETWORK = "network"
    AUTH = "auth"
    OTHER = "other"


# =============================================================
# DATA CLASSES
# =============================================================


@dataclass
class LatencyStats:
    """Running latency statistics in milliseconds."""
    min: float = math.inf
    max: float = 0.0
    avg: float = 0.0
    samples: int = 0

    def add(self, latency_ms: float) -> None:
        """Fold one sample in: avg' = (avg * n + x) / (n + 1)."""
        self.min = min(self.min, latency_ms)
        self.max = max(self.max, latency_ms)
        self.avg = (self.avg * self.samples + latency_ms) / (self.samples + 1)
        self.samples += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min": self.min if self.samples else None,
            "max": self.max,
            "avg": round(self.avg, 3),
            "samples": self.samples,
        }


@dataclass
class ErrorStats:
    """Error counters by category."""
    rate_limit: int = 0
    network: int = 0
    auth: int = 0
    other: int = 0
    total: int = 0

    def increment(self, error_type: ErrorType) -> None:
        if error_type == ErrorType.RATE_LIMIT:
            self.rate_limit += 1
        elif error_type == ErrorType.NETWORK:
            self.network += 1
        elif error_type == ErrorType.AUTH:
            self.auth += 1
        else:
            self.other += 1
        self.total += 1

    def get(self, error_type: ErrorType) -> int:
        return {
            ErrorType.RATE_LIMIT: self.rate_limit,
            ErrorType.NETWORK: self.network,
            ErrorType.AUTH: self.auth,
            ErrorType.OTHER: self.other,
        }[error_type]

    def to_dict(self) -> Dict[str, int]:
        return {
            "rateLimit": self.rate_limit,
            "network": self.network,
            "auth": self.auth,
            "other": self.other,
            "total": self.total,
        }


@dataclass
class ProviderHealthStatus:
    """
    Health record for one provider.

    Created lazily on the first report, mutated on every
    record call, expired after the monitor's TTL.
    """
    provider: str
    last_check: datetime
    status: HealthStatus = HealthStatus.HEALTHY
    error_count: int = 0
    last_error: Optional[str] = None
    last_success: Optional[datetime] = None
    latency: LatencyStats = field(default_factory=LatencyStats)
    errors: ErrorStats = field(default_factory=ErrorStats)

    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "status": self.status.value,
            "last_check": self.last_check.isoformat(),
            "error_count": self.error_count,
            "last_error": self.last_error,
            "last_success": self.last_success.isoformat() if self.last_success else None,
            "latency": self.latency.to_dict(),
            "errors": self.errors.to_dict(),
        }
