"""
Resilience Layer - Composed Retry Strategy.

execute(op) = circuit_breaker.execute(lambda: backoff.execute(op))

The breaker sits outside: a whole retried sequence counts as one
failure, individual backoff attempts never trip it on their own.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from .backoff import ExponentialBackoff
from .circuit_breaker import CircuitBreaker
from .models import CircuitState


T = TypeVar("T")


class RetryStrategy:
    """Circuit breaker (outer) wrapped around exponential backoff (inner)."""

    def __init__(
        self,
        circuit_breaker: CircuitBreaker,
        backoff: ExponentialBackoff,
        max_attempts: Optional[int] = None,
    ) -> None:
        self.circuit_breaker = circuit_breaker
        self.backoff = backoff
        self.max_attempts = max_attempts

    @property
    def state(self) -> CircuitState:
        return self.circuit_breaker.state

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> T:
        return await self.circuit_breaker.execute(
            lambda: self.backoff.execute(
                operation,
                max_attempts=self.max_attempts,
                cancel_event=cancel_event,
            )
        )

    def reset(self) -> None:
        self.circuit_breaker.reset()
        self.backoff.reset()
