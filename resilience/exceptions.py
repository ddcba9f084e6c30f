"""
Resilience Layer - Exceptions.

============================================================
ERROR TAXONOMY
============================================================

- ResilienceError: Base exception
- CircuitOpenError: Call short-circuited, operation never invoked
- OperationTimeoutError: A single attempt exceeded its timeout
- RetryError: Operation exhausted its configured attempts
- RetryCancelledError: Caller aborted a pending retry sequence
- AllProvidersFailedError: Fallback chain exhausted

============================================================
"""

from typing import Any, Dict, List, Optional, Tuple


class ResilienceError(Exception):
    """Base exception for the resilience layer."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.source_name = source_name
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source_name": self.source_name,
            "details": self.details,
        }


class CircuitOpenError(ResilienceError):
    """
    Raised when the circuit breaker is OPEN.

    The wrapped operation was not invoked.
    """

    def __init__(
        self,
        source_name: Optional[str] = None,
        retry_in_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(
            "Circuit breaker is OPEN",
            source_name=source_name,
            details={"retry_in_seconds": retry_in_seconds},
        )
        self.retry_in_seconds = retry_in_seconds


class OperationTimeoutError(ResilienceError):
    """A single attempt did not finish within its timeout."""

    def __init__(
        self,
        timeout: float,
        source_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            "Operation timed out",
            source_name=source_name,
            details={"timeout_seconds": timeout},
        )
        self.timeout = timeout


class RetryError(ResilienceError):
    """Operation failed on every configured attempt."""

    def __init__(
        self,
        message: str,
        attempts: int,
        provider: str,
        last_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            source_name=provider,
            details={
                "attempts": attempts,
                "last_error": repr(last_error) if last_error else None,
            },
        )
        self.attempts = attempts
        self.provider = provider
        self.last_error = last_error


class RetryCancelledError(ResilienceError):
    """The cancel token was set while a retry sequence was pending."""

    def __init__(self, attempts: int, source_name: Optional[str] = None) -> None:
        super().__init__(
            f"Retry cancelled after {attempts} attempts",
            source_name=source_name,
            details={"attempts": attempts},
        )
        self.attempts = attempts


class AllProvidersFailedError(ResilienceError):
    """Every provider in a fallback chain failed or was disabled."""

    def __init__(self, errors: Optional[List[Tuple[str, BaseException]]] = None) -> None:
        errors = errors or []
        super().__init__(
            "All providers failed",
            details={"errors": {name: str(err) for name, err in errors}},
        )
        self.errors = errors
