"""
Resilience Layer - Circuit Breaker.

============================================================
STATE MACHINE
============================================================

CLOSED    --(failure_threshold consecutive failures)--> OPEN
OPEN      --(reset_timeout elapsed, next call)-------> HALF_OPEN
HALF_OPEN --(probe succeeds)-------------------------> CLOSED
HALF_OPEN --(probe fails)----------------------------> OPEN

While OPEN and inside the cooldown, execute() raises
CircuitOpenError without invoking the operation. Only one probe
runs at a time: other HALF_OPEN callers fail fast the same way.

One breaker per provider. Breakers are never shared.

============================================================
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from core.clock import ClockFactory, ClockProtocol

from .exceptions import CircuitOpenError, RetryCancelledError
from .models import CircuitBreakerConfig, CircuitSnapshot, CircuitState


logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitBreaker:
    """Fail-fast gate that probes for recovery after a cooldown."""

    def __init__(
        self,
        failure_threshold: int = 3,
        reset_timeout: float = 300.0,
        name: Optional[str] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._config = CircuitBreakerConfig(
            failure_threshold=failure_threshold,
            reset_timeout=reset_timeout,
        )
        self.name = name
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure_time: Optional[float] = None
        self._probe_in_flight = False

    @classmethod
    def from_config(
        cls,
        config: CircuitBreakerConfig,
        name: Optional[str] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> "CircuitBreaker":
        return cls(config.failure_threshold, config.reset_timeout, name, clock)

    @property
    def clock(self) -> ClockProtocol:
        return self._clock or ClockFactory.get_clock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def last_failure_time(self) -> Optional[float]:
        return self._last_failure_time

    def get_state(self) -> str:
        """State as a plain string ("CLOSED", "OPEN", "HALF_OPEN")."""
        return self._state.value

    def snapshot(self) -> CircuitSnapshot:
        return CircuitSnapshot(
            name=self.name,
            state=self._state,
            failures=self._failures,
            last_failure_time=self._last_failure_time,
        )

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` through the breaker.

        Raises:
            CircuitOpenError: Circuit is OPEN and the cooldown has not
                elapsed, or a HALF_OPEN probe is already in flight
        """
        probe = False
        if self._state == CircuitState.OPEN:
            elapsed = self.clock.timestamp() - (self._last_failure_time or 0.0)
            if elapsed >= self._config.reset_timeout:
                logger.info(f"[{self.name}] Circuit HALF_OPEN, probing")
                self._state = CircuitState.HALF_OPEN
                probe = True
            else:
                raise CircuitOpenError(
                    source_name=self.name,
                    retry_in_seconds=self._config.reset_timeout - elapsed,
                )
        elif self._state == CircuitState.HALF_OPEN:
            if self._probe_in_flight:
                raise CircuitOpenError(source_name=self.name, retry_in_seconds=0.0)
            probe = True

        if probe:
            self._probe_in_flight = True
        try:
            result = await operation()
        except RetryCancelledError:
            raise
        except Exception:
            self._on_failure()
            raise
        finally:
            if probe:
                self._probe_in_flight = False

        self._on_success()
        return result

    def reset(self) -> None:
        """Force the circuit back to CLOSED."""
        self._failures = 0
        self._last_failure_time = None
        self._state = CircuitState.CLOSED
        self._probe_in_flight = False

    def _on_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            logger.info(f"[{self.name}] Probe succeeded, circuit CLOSED")
        self._state = CircuitState.CLOSED
        self._failures = 0

    def _on_failure(self) -> None:
        self._failures += 1
        self._last_failure_time = self.clock.timestamp()

        if self._state == CircuitState.HALF_OPEN:
            logger.warning(f"[{self.name}] Probe failed, circuit OPEN")
            self._state = CircuitState.OPEN
        elif self._failures >= self._config.failure_threshold:
            if self._state != CircuitState.OPEN:
                logger.warning(
                    f"[{self.name}] Circuit OPEN after {self._failures} consecutive failures"
                )
            self._state = CircuitState.OPEN
