"""
Twitter Sentiment Provider - Social sentiment from recent tweets.

Uses the Twitter API v2 recent-search endpoint with bearer keys:
- Several keys may be configured ("k1,k2,k3") and are rotated
  when the current key's rate-limit budget is spent
- Wrapping back to the first key means every key is exhausted
- HTTP 429 rotates the key and retries once

Scoring: keyword balance per tweet, weighted by log1p(likes + retweets).
"""

import logging
import math
from typing import Any, Optional

from core.clock import ClockFactory, ClockProtocol
from data_source_health import ProviderHealthMonitor

from ..base import SentimentProvider, clamp, keyword_balance
from ..exceptions import FetchError, ProviderNotConfiguredError, RateLimitError
from ..http import AiohttpClient, HttpClient, mask_key
from ..models import ScoreResult
from ..recovery import ProviderRecovery


logger = logging.getLogger(__name__)


POSITIVE_WORDS = ["bullish", "buy", "long", "up", "good", "great", "moon"]
NEGATIVE_WORDS = ["bearish", "sell", "short", "down", "bad", "crash", "dump"]


class TwitterSentimentProvider(SentimentProvider):
    """
    Twitter/X sentiment via the official v2 API.

    API keys are rotated in configuration order. Key rotation
    state is private to the adapter and raw keys are never logged.
    """

    name = "twitter"

    SEARCH_URL = "https://api.twitter.com/2/tweets/search/recent"
    MAX_RESULTS = 100
    KEYWORD_DIVISOR = 5
    CONFIDENCE_SAMPLE = 100
    CONFIDENCE_CAP = 0.9

    def __init__(
        self,
        http_client: Optional[HttpClient] = None,
        recovery: Optional[ProviderRecovery] = None,
        health_monitor: Optional[ProviderHealthMonitor] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._http = http_client or AiohttpClient()
        self._recovery = recovery or ProviderRecovery.create(self.name, health_monitor)
        self._clock = clock

        self._api_keys: list[str] = []
        self._current_key_index = 0
        self._rate_limit_remaining: Optional[int] = None
        self._rate_limit_reset = 0.0  # Unix seconds

    @property
    def clock(self) -> ClockProtocol:
        return self._clock or ClockFactory.get_clock()

    @property
    def recovery(self) -> ProviderRecovery:
        return self._recovery

    @property
    def key_count(self) -> int:
        return len(self._api_keys)

    @property
    def current_key_index(self) -> int:
        return self._current_key_index

    async def initialize(self, credential: str) -> None:
        """Accept one key or a comma-separated list of keys."""
        self._api_keys = [k.strip() for k in credential.split(",") if k.strip()]
        self._current_key_index = 0
        self._rate_limit_remaining = None
        self._rate_limit_reset = 0.0
        logger.info(f"[{self.name}] Initialized with {len(self._api_keys)} API key(s)")

    def rotate_api_key(self) -> None:
        """Advance to the next key, wrapping around."""
        if not self._api_keys:
            return
        self._current_key_index = (self._current_key_index + 1) % len(self._api_keys)
        self._rate_limit_remaining = None
        self._rate_limit_reset = 0.0
        logger.info(
            f"[{self.name}] Rotated to API key "
            f"{mask_key(self._api_keys[self._current_key_index])}"
        )

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def get_score(self, symbol: str) -> ScoreResult:
        if not self._api_keys:
            raise ProviderNotConfiguredError(
                "Twitter API credentials not configured",
                source_name=self.name,
            )

        async def rotate_and_retry(error: BaseException) -> ScoreResult:
            if "rate limit" in str(error).lower() and len(self._api_keys) > 1:
                logger.warning(f"[{self.name}] Rate limited, retrying with next key")
                self.rotate_api_key()
                return await self._recovery.execute(lambda: self._fetch_score(symbol))
            raise error

        return await self._recovery.execute(
            lambda: self._fetch_score(symbol),
            error_handler=rotate_and_retry,
        )

    async def close(self) -> None:
        await self._http.close()

    # ─────────────────────────────────────────────────────────────
    # Internal methods
    # ─────────────────────────────────────────────────────────────

    async def _fetch_score(self, symbol: str) -> ScoreResult:
        data = await self._make_request(f"{symbol} crypto -is:retweet lang:en")
        return self.analyze_tweets(data.get("data") or [])

    async def _make_request(self, query: str) -> dict[str, Any]:
        now = self.clock.timestamp()
        if (
            self._rate_limit_remaining is not None
            and self._rate_limit_remaining <= 0
            and now < self._rate_limit_reset
        ):
            retry_after = int(self._rate_limit_reset - now)
            self.rotate_api_key()
            if self._current_key_index == 0:
                raise RateLimitError(
                    "All API keys rate limited",
                    source_name=self.name,
                    retry_after_seconds=retry_after,
                )

        response = await self._http.get(
            self.SEARCH_URL,
            headers={
                "Authorization": f"Bearer {self._api_keys[self._current_key_index]}",
                "Content-Type": "application/json",
            },
            params={
                "query": query,
                "max_results": str(self.MAX_RESULTS),
                "tweet.fields": "public_metrics",
            },
        )
        self._update_rate_limit(
            response.header("x-rate-limit-remaining"),
            response.header("x-rate-limit-reset"),
        )

        if response.status == 429:
            raise RateLimitError(
                "Twitter API rate limit exceeded",
                source_name=self.name,
                retry_after_seconds=int(max(0.0, self._rate_limit_reset - now)),
            )
        if not response.ok:
            raise FetchError(
                f"Twitter API error: {response.status}",
                source_name=self.name,
                status_code=response.status,
                url=self.SEARCH_URL,
            )
        return response.json()

    def _update_rate_limit(self, remaining: Optional[str], reset: Optional[str]) -> None:
        try:
            self._rate_limit_remaining = int(remaining) if remaining is not None else None
            self._rate_limit_reset = float(reset) if reset is not None else 0.0
        except ValueError:
            logger.debug(f"[{self.name}] Unparseable rate-limit headers: {remaining!r} / {reset!r}")
            self._rate_limit_remaining = None
            self._rate_limit_reset = 0.0

    def analyze_tweets(self, tweets: list[dict[str, Any]]) -> ScoreResult:
        """Engagement-weighted keyword score over a batch of tweets."""
        now = self.clock.now()
        if not tweets:
            return ScoreResult(score=0.0, confidence=0.0, last_updated=now)

        total_score = 0.0
        total_weight = 0.0
        for tweet in tweets:
            metrics = tweet.get("public_metrics") or {}
            engagement = (metrics.get("like_count") or 0) + (metrics.get("retweet_count") or 0)
            weight = math.log1p(max(0, engagement))
            total_score += self.analyze_text(tweet.get("text") or "") * weight
            total_weight += weight

        return ScoreResult(
            score=total_score / total_weight if total_weight > 0 else 0.0,
            confidence=min(len(tweets) / self.CONFIDENCE_SAMPLE, 1.0) * self.CONFIDENCE_CAP,
            last_updated=now,
        )

    def analyze_text(self, text: str) -> float:
        balance = keyword_balance(text, POSITIVE_WORDS, NEGATIVE_WORDS)
        return clamp(balance / self.KEYWORD_DIVISOR)
