"""
Resilience Layer - Provider-agnostic failure handling.

Components:
- CircuitBreaker: Fails fast after repeated failures, probes after a cooldown
- ExponentialBackoff: Retries transient errors with growing delays
- RetryStrategy: Breaker (outer) composed with backoff (inner)

Usage:
    breaker = CircuitBreaker(failure_threshold=3, reset_timeout=300)
    backoff = ExponentialBackoff(initial_delay=1.0, max_delay=30.0)
    strategy = RetryStrategy(breaker, backoff, max_attempts=3)

    result = await strategy.execute(lambda: client.fetch(symbol))

Per-provider, config-driven entry points (with_retry, with_fallback)
live in sentiment.recovery.
"""

from .backoff import ExponentialBackoff, cancellable_sleep, is_retryable_error
from .circuit_breaker import CircuitBreaker
from .exceptions import (
    AllProvidersFailedError,
    CircuitOpenError,
    OperationTimeoutError,
    ResilienceError,
    RetryCancelledError,
    RetryError,
)
from .models import BackoffConfig, CircuitBreakerConfig, CircuitSnapshot, CircuitState, SleepFunc
from .strategy import RetryStrategy


__all__ = [
    # Primitives
    "CircuitBreaker",
    "ExponentialBackoff",
    "RetryStrategy",
    "cancellable_sleep",
    "is_retryable_error",

    # Models
    "BackoffConfig",
    "CircuitBreakerConfig",
    "CircuitSnapshot",
    "CircuitState",
    "SleepFunc",

    # Exceptions
    "ResilienceError",
    "CircuitOpenError",
    "OperationTimeoutError",
    "RetryError",
    "RetryCancelledError",
    "AllProvidersFailedError",
]
