"""
Sentiment Recovery - Config-aware retry and failover.

============================================================
ENTRY POINTS
============================================================

with_retry(provider, operation, options=None)
    Retries per the provider's retry_strategy config; each
    attempt runs under a timeout. Raises RetryError when the
    attempts are exhausted.

with_fallback(providers, operation, on_error=None)
    Tries providers in order, skipping disabled ones; first
    success wins. Raises AllProvidersFailedError otherwise.

ProviderRecovery
    Per-adapter wrapper: runs a call through the adapter's
    RetryStrategy, times it, reports the outcome to the
    health monitor and optionally hands the error to a
    provider-supplied handler.

============================================================
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Mapping, NamedTuple, Optional, TypeVar, Union

from data_source_health import ProviderHealthMonitor, get_health_monitor
from resilience import (
    AllProvidersFailedError,
    CircuitBreaker,
    ExponentialBackoff,
    OperationTimeoutError,
    RetryCancelledError,
    RetryError,
    RetryStrategy,
    SleepFunc,
    cancellable_sleep,
)

from .config import ConfigManager, get_config_manager
from .models import RetryStrategyConfig


logger = logging.getLogger(__name__)

T = TypeVar("T")


# Adapter-level strategy settings
RECOVERY_FAILURE_THRESHOLD = 3
RECOVERY_RESET_TIMEOUT = 300.0  # 5 minutes
RECOVERY_INITIAL_DELAY = 1.0
RECOVERY_MAX_DELAY = 30.0
RECOVERY_FACTOR = 2.0
RECOVERY_MAX_ATTEMPTS = 3


# ─────────────────────────────────────────────────────────────
# with_retry
# ─────────────────────────────────────────────────────────────


def _merge_retry_options(
    base: RetryStrategyConfig,
    options: Optional[Union[Mapping[str, Any], RetryStrategyConfig]],
) -> RetryStrategyConfig:
    if options is None:
        return base
    if isinstance(options, RetryStrategyConfig):
        options = options.to_dict()
    merged = {**base.to_dict(), **{k: v for k, v in options.items() if v is not None}}
    return RetryStrategyConfig(
        attempts=max(1, int(merged["attempts"])),
        base_delay=max(0.0, float(merged["base_delay"])),
        max_delay=max(0.0, float(merged["max_delay"])),
        timeout=float(merged["timeout"]),
    )


async def _run_attempt(operation: Callable[[], Awaitable[T]], timeout: float, provider: str) -> T:
    """
    Await one attempt, cancelling it if ``timeout`` elapses first.

    Only an expired deadline becomes OperationTimeoutError; a
    TimeoutError raised by the operation itself propagates as is.
    """
    task = asyncio.ensure_future(operation())
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if not done:
        task.cancel()
        await asyncio.wait({task})
        raise OperationTimeoutError(timeout, provider)
    return task.result()


async def with_retry(
    provider: str,
    operation: Callable[[], Awaitable[T]],
    options: Optional[Union[Mapping[str, Any], RetryStrategyConfig]] = None,
    *,
    config_manager: Optional[ConfigManager] = None,
    sleep: Optional[SleepFunc] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> T:
    """
    Run ``operation`` with the provider's configured retry policy.

    Without a retry_strategy the operation is called once, unwrapped.
    Otherwise every attempt is bounded by ``timeout`` (the losing
    operation is cancelled) and failed attempts are followed by
    min(base_delay * 2^(n-1), max_delay) seconds of sleep.

    Args:
        provider: Provider name, used for config lookup and errors
        operation: Zero-argument coroutine factory
        options: Overrides merged over the configured strategy
        config_manager: Config source (defaults to the global one)
        sleep: Sleep coroutine (defaults to asyncio.sleep)
        cancel_event: Set to abort a pending retry sleep

    Raises:
        RetryError: Every attempt failed (timeouts included)
        RetryCancelledError: cancel_event was set between attempts
    """
    manager = config_manager or get_config_manager()
    provider_config = manager.get_provider_config(provider)

    if provider_config is None or provider_config.retry_strategy is None:
        return await operation()

    strategy = _merge_retry_options(provider_config.retry_strategy, options)
    sleeper = sleep or asyncio.sleep

    last_error: Optional[BaseException] = None
    attempt = 0

    while attempt < strategy.attempts:
        try:
            return await _run_attempt(operation, strategy.timeout, provider)
        except RetryCancelledError:
            raise
        except Exception as e:
            last_error = e

        attempt += 1
        if attempt < strategy.attempts:
            delay = min(strategy.base_delay * 2 ** (attempt - 1), strategy.max_delay)
            logger.warning(
                f"[{provider}] Attempt {attempt}/{strategy.attempts} failed: "
                f"{last_error}, retrying in {delay:.2f}s"
            )
            if await cancellable_sleep(delay, cancel_event, sleeper):
                raise RetryCancelledError(attempt, provider) from last_error

    raise RetryError(
        f"Failed after {attempt} attempts: {last_error}",
        attempts=attempt,
        provider=provider,
        last_error=last_error,
    ) from last_error


# ─────────────────────────────────────────────────────────────
# with_fallback
# ─────────────────────────────────────────────────────────────


class FallbackResult(NamedTuple):
    """Result of with_fallback and the provider that produced it."""
    result: Any
    provider: str


async def with_fallback(
    providers: list[str],
    operation: Callable[[str], Awaitable[T]],
    on_error: Optional[Callable[[BaseException, str], Any]] = None,
    *,
    config_manager: Optional[ConfigManager] = None,
) -> FallbackResult:
    """
    Try providers in order until one succeeds.

    Disabled providers are skipped without calling ``operation``.
    ``on_error(error, provider)`` may be a plain function or a
    coroutine function.

    Raises:
        AllProvidersFailedError: No enabled provider succeeded
    """
    manager = config_manager or get_config_manager()
    errors: list[tuple[str, BaseException]] = []

    for provider in providers:
        if not manager.is_enabled(provider):
            logger.debug(f"[{provider}] Disabled, skipping")
            continue

        try:
            result = await operation(provider)
        except Exception as e:
            logger.warning(f"[{provider}] Fallback candidate failed: {e}")
            errors.append((provider, e))
            if on_error is not None:
                handled = on_error(e, provider)
                if inspect.isawaitable(handled):
                    await handled
            continue

        return FallbackResult(result, provider)

    raise AllProvidersFailedError(errors)


# ─────────────────────────────────────────────────────────────
# ProviderRecovery
# ─────────────────────────────────────────────────────────────


class ProviderRecovery:
    """
    Recovery wrapper owned by one provider adapter.

    Composes (does not inherit) the adapter's RetryStrategy and
    the shared health monitor.
    """

    def __init__(
        self,
        provider: str,
        strategy: RetryStrategy,
        health_monitor: Optional[ProviderHealthMonitor] = None,
    ) -> None:
        self.provider = provider
        self.strategy = strategy
        self._health_monitor = health_monitor

    @classmethod
    def create(
        cls,
        provider: str,
        health_monitor: Optional[ProviderHealthMonitor] = None,
        sleep: Optional[SleepFunc] = None,
        max_attempts: int = RECOVERY_MAX_ATTEMPTS,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ) -> "ProviderRecovery":
        """Build the standard per-adapter strategy."""
        breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=RECOVERY_FAILURE_THRESHOLD,
            reset_timeout=RECOVERY_RESET_TIMEOUT,
            name=provider,
        )
        backoff = ExponentialBackoff(
            initial_delay=RECOVERY_INITIAL_DELAY,
            max_delay=RECOVERY_MAX_DELAY,
            factor=RECOVERY_FACTOR,
            jitter=True,
            sleep=sleep,
            name=provider,
        )
        return cls(
            provider,
            RetryStrategy(breaker, backoff, max_attempts=max_attempts),
            health_monitor,
        )

    @property
    def health_monitor(self) -> ProviderHealthMonitor:
        return self._health_monitor or get_health_monitor()

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        error_handler: Optional[Callable[[BaseException], Awaitable[T]]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> T:
        """
        Run ``operation`` through the retry strategy.

        Success records the latency; failure records the error and,
        when an ``error_handler`` is given, returns its result
        instead of re-raising.
        """
        start = time.perf_counter()
        try:
            result = await self.strategy.execute(operation, cancel_event=cancel_event)
        except RetryCancelledError:
            raise
        except Exception as e:
            self.health_monitor.record_error(self.provider, e)
            if error_handler is not None:
                return await error_handler(e)
            raise

        latency_ms = (time.perf_counter() - start) * 1000
        self.health_monitor.record_success(self.provider, latency_ms=latency_ms)
        return result

    def reset(self) -> None:
        self.strategy.reset()
