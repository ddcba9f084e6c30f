"""
Resilience Layer - Exponential Backoff.

Retries an operation with geometrically growing, optionally
jittered delays. Only transient errors are retried:

- network class errors (connection refused/reset, DNS)
- messages mentioning "rate limit"
- HTTP status >= 500
- ECONNRESET error codes

Auth and validation errors are re-raised immediately.

The loop itself is unbounded; callers pass ``max_attempts``.
"""

import asyncio
import errno
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

import aiohttp

from .exceptions import RetryCancelledError
from .models import BackoffConfig, SleepFunc


logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable_error(error: BaseException) -> bool:
    """Decide whether a failure is transient."""
    if isinstance(error, (ConnectionError, aiohttp.ClientConnectionError)):
        return True
    if getattr(error, "is_network_error", False):
        return True

    if "rate limit" in str(error).lower():
        return True

    status = getattr(error, "status", None)
    if isinstance(status, int) and not isinstance(status, bool) and status >= 500:
        return True

    code = getattr(error, "code", None)
    if code == "ECONNRESET" or getattr(error, "errno", None) == errno.ECONNRESET:
        return True

    return False


async def cancellable_sleep(
    delay: float,
    cancel_event: Optional[asyncio.Event] = None,
    sleep: SleepFunc = asyncio.sleep,
) -> bool:
    """
    Sleep for ``delay`` seconds unless ``cancel_event`` is set first.

    Returns:
        True if the sleep was cut short by the cancel event
    """
    if cancel_event is None:
        await sleep(delay)
        return False
    if cancel_event.is_set():
        return True

    sleeper = asyncio.ensure_future(sleep(delay))
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, waiter):
            if not task.done():
                task.cancel()
    return cancel_event.is_set()


class ExponentialBackoff:
    """Retry loop with delay = min(initial * factor^(n-1), max_delay)."""

    def __init__(
        self,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        factor: float = 2.0,
        jitter: bool = True,
        sleep: Optional[SleepFunc] = None,
        should_retry: Optional[Callable[[BaseException], bool]] = None,
        name: Optional[str] = None,
    ) -> None:
        self._config = BackoffConfig(
            initial_delay=initial_delay,
            max_delay=max_delay,
            factor=factor,
            jitter=jitter,
        )
        self._sleep = sleep or asyncio.sleep
        self._should_retry = should_retry or is_retryable_error
        self.name = name
        # Failed attempts of the most recently finished execute()
        self.attempts = 0

    @classmethod
    def from_config(
        cls,
        config: BackoffConfig,
        sleep: Optional[SleepFunc] = None,
        name: Optional[str] = None,
    ) -> "ExponentialBackoff":
        return cls(
            config.initial_delay,
            config.max_delay,
            config.factor,
            config.jitter,
            sleep=sleep,
            name=name,
        )

    @property
    def config(self) -> BackoffConfig:
        return self._config

    def should_retry(self, error: BaseException) -> bool:
        return self._should_retry(error)

    def calculate_delay(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        delay = min(
            self._config.initial_delay * self._config.factor ** (attempt - 1),
            self._config.max_delay,
        )
        if self._config.jitter:
            delay *= random.random()
        return delay

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> T:
        """
        Call ``operation`` until it succeeds or fails permanently.

        Args:
            operation: Zero-argument coroutine factory
            max_attempts: Stop after this many calls (None = unbounded)
            cancel_event: Set to abort a pending backoff sleep

        Raises:
            The operation's own error when it is not retryable or the
            attempt cap is reached; RetryCancelledError on cancel.
        """
        attempt = 0
        try:
            while True:
                try:
                    return await operation()
                except Exception as e:
                    attempt += 1

                    if not self.should_retry(e):
                        raise
                    if max_attempts is not None and attempt >= max_attempts:
                        raise

                    delay = self.calculate_delay(attempt)
                    logger.warning(
                        f"[{self.name}] Attempt {attempt} failed: {e}, "
                        f"retrying in {delay:.2f}s"
                    )
                    if await cancellable_sleep(delay, cancel_event, self._sleep):
                        raise RetryCancelledError(attempt, self.name) from e
        finally:
            self.attempts = attempt

    def reset(self) -> None:
        self.attempts = 0
