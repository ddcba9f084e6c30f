"""
Sentiment HTTP - Injectable HTTP client for provider adapters.

Adapters talk to the network only through HttpClient, so tests
substitute a fake client instead of patching aiohttp globally.

Transport failures surface as NetworkError (retryable);
HTTP status handling is left to each adapter.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

import aiohttp

from .exceptions import NetworkError


logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = "SentimentCore/1.0.0"


def mask_key(key: Optional[str]) -> str:
    """Mask a credential for logging, keeping the last 4 characters."""
    if not key:
        return "<none>"
    if len(key) <= 4:
        return "****"
    return f"****{key[-4:]}"


@dataclass
class HttpResponse:
    """Transport-neutral HTTP response. Header names are lower-cased."""
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None

    def __post_init__(self) -> None:
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def json(self) -> dict[str, Any]:
        """Body as a JSON object ({} when the body is not one)."""
        return self.body if isinstance(self.body, dict) else {}


class HttpClient(ABC):
    """Minimal async HTTP interface used by provider adapters."""

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Union[str, Mapping[str, Any]]] = None,
    ) -> HttpResponse:
        """Perform a request and return the decoded response."""
        pass

    async def get(self, url: str, **kwargs: Any) -> HttpResponse:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> HttpResponse:
        return await self.request("POST", url, **kwargs)

    async def close(self) -> None:
        """Release resources. Override if needed."""
        pass


class AiohttpClient(HttpClient):
    """HttpClient backed by a lazily created aiohttp session."""

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
            )
        return self._session

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Union[str, Mapping[str, Any]]] = None,
    ) -> HttpResponse:
        session = await self._get_session()
        try:
            async with session.request(
                method,
                url,
                headers=dict(headers or {}),
                params=dict(params or {}),
                data=data,
            ) as response:
                text = await response.text()
                try:
                    body: Any = json.loads(text) if text else None
                except ValueError:
                    body = text
                return HttpResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    body=body,
                )
        except aiohttp.ClientConnectionError as e:
            raise NetworkError(f"Network error: {e}", url=url) from e
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Network timeout after {self.timeout}s", url=url) from e

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
