"""
Sentiment Exceptions - Custom error hierarchy.

Provider adapters raise these; the aggregator records them in the
health monitor and only surfaces NoSentimentDataError to callers.
"""

from typing import Any, Optional

from core.clock import now_utc


class SentimentSourceError(Exception):
    """Base exception for all sentiment source errors."""

    def __init__(
        self,
        message: str,
        source_name: str = "",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.source_name = source_name
        self.details = details or {}
        self.timestamp = now_utc()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source_name": self.source_name,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class RateLimitError(SentimentSourceError):
    """Rate limit exceeded for the sentiment source."""

    def __init__(
        self,
        message: str,
        source_name: str = "",
        retry_after_seconds: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, details)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class FetchError(SentimentSourceError):
    """Failed to fetch data from the sentiment source."""

    def __init__(
        self,
        message: str,
        source_name: str = "",
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, details)
        self.status_code = status_code
        self.url = url

    @property
    def status(self) -> Optional[int]:
        """HTTP status, read by the backoff retry classifier."""
        return self.status_code

    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "url": self.url,
        })
        return data


class NetworkError(FetchError):
    """Transport-level failure (DNS, connection refused/reset)."""

    is_network_error = True


class AuthenticationError(FetchError):
    """Credentials rejected or access token expired."""

    def __init__(
        self,
        message: str,
        source_name: str = "",
        status_code: Optional[int] = 401,
        url: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, status_code, url, details)


class ParseError(SentimentSourceError):
    """Failed to parse response from sentiment source."""

    def __init__(
        self,
        message: str,
        source_name: str = "",
        raw_data: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, details)
        self.raw_data = raw_data[:500] if raw_data else None


class ProviderNotConfiguredError(SentimentSourceError):
    """Provider was asked for a score before credentials were supplied."""
    pass


class UnknownProviderError(SentimentSourceError):
    """Configuration call referenced a provider outside the schema."""

    def __init__(
        self,
        provider: str,
        known_providers: Optional[list[str]] = None,
    ) -> None:
        message = f"Unknown provider: {provider}"
        details: dict[str, Any] = {}
        if known_providers:
            details["known_providers"] = list(known_providers)
        super().__init__(message, provider, details)
        self.provider = provider


class NoSentimentDataError(SentimentSourceError):
    """Every enabled provider failed during aggregation."""

    def __init__(
        self,
        symbol: str = "",
        failures: Optional[dict[str, str]] = None,
    ) -> None:
        super().__init__(
            "No sentiment data available",
            details={"symbol": symbol, "failures": failures or {}},
        )
        self.symbol = symbol
        self.failures = failures or {}
