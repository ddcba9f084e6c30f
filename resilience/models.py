"""
Resilience Layer - Data Models.

Core types shared by the circuit breaker, the backoff loop and
the composed retry strategy.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Protocol


class CircuitState(str, Enum):
    """
    Circuit breaker state.

    - CLOSED:    Normal operation, calls pass through
    - OPEN:      Failing fast, operation is never invoked
    - HALF_OPEN: Cooldown elapsed, next call is a probe
    """
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Circuit breaker tuning."""
    failure_threshold: int = 3
    reset_timeout: float = 300.0  # seconds

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.reset_timeout < 0:
            raise ValueError("reset_timeout must be >= 0")


@dataclass(frozen=True)
class BackoffConfig:
    """Exponential backoff tuning."""
    initial_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    factor: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if self.max_delay < 0:
            raise ValueError("max_delay must be >= 0")
        if self.factor < 1:
            raise ValueError("factor must be >= 1")


@dataclass
class CircuitSnapshot:
    """Point-in-time view of a circuit breaker."""
    name: Optional[str]
    state: CircuitState
    failures: int
    last_failure_time: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failures": self.failures,
            "last_failure_time": self.last_failure_time,
        }


class SleepFunc(Protocol):
    """Protocol for injectable async sleep."""

    async def __call__(self, seconds: float) -> None: ...
