"""
News Sentiment Provider - Headline sentiment from NewsAPI.

- Single API key
- Articles cached per symbol for 30 minutes
- Recency weighting: exp(-age_hours / 24)
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional

from core.clock import ClockFactory, ClockProtocol
from data_source_health import ProviderHealthMonitor

from ..base import SentimentProvider, clamp, keyword_balance
from ..exceptions import (
    AuthenticationError,
    FetchError,
    ProviderNotConfiguredError,
    RateLimitError,
)
from ..http import AiohttpClient, HttpClient
from ..models import ScoreResult
from ..recovery import ProviderRecovery


logger = logging.getLogger(__name__)


POSITIVE_WORDS = ["bullish", "surge", "rally", "gain", "rise", "growth", "positive"]
NEGATIVE_WORDS = ["bearish", "plunge", "crash", "drop", "fall", "decline", "negative"]


def _parse_published(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        published = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return published


class NewsSentimentProvider(SentimentProvider):
    """NewsAPI "everything" search with a short response cache."""

    name = "news"

    NEWS_URL = "https://newsapi.org/v2/everything"
    PAGE_SIZE = 25
    CACHE_DURATION = 30 * 60  # 30 minutes
    RECENCY_DECAY_HOURS = 24.0
    KEYWORD_DIVISOR = 4
    CONFIDENCE_SAMPLE = 50
    CONFIDENCE_CAP = 0.8

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

        self._api_key: Optional[str] = None
        self._cache: dict[str, tuple[list[dict[str, Any]], datetime]] = {}

    @property
    def clock(self) -> ClockProtocol:
        return self._clock or ClockFactory.get_clock()

    @property
    def recovery(self) -> ProviderRecovery:
        return self._recovery

    async def initialize(self, credential: str) -> None:
        self._api_key = credential.strip() or None
        self._cache.clear()
        logger.info(f"[{self.name}] Initialized")

    def clear_cache(self) -> None:
        self._cache.clear()

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def get_score(self, symbol: str) -> ScoreResult:
        if not self._api_key:
            raise ProviderNotConfiguredError(
                "NewsAPI key not configured",
                source_name=self.name,
            )
        return await self._recovery.execute(lambda: self._fetch_score(symbol))

    async def close(self) -> None:
        await self._http.close()

    # ─────────────────────────────────────────────────────────────
    # Internal methods
    # ─────────────────────────────────────────────────────────────

    async def _fetch_score(self, symbol: str) -> ScoreResult:
        articles = await self._fetch_articles(symbol)
        return self.analyze_articles(articles)

    async def _fetch_articles(self, symbol: str) -> list[dict[str, Any]]:
        cache_key = symbol.upper()
        cached = self._cache.get(cache_key)
        if cached is not None and self.clock.elapsed_since(cached[1]) < self.CACHE_DURATION:
            logger.debug(f"[{self.name}] Cache hit for {cache_key}")
            return cached[0]

        response = await self._http.get(
            self.NEWS_URL,
            headers={"X-Api-Key": self._api_key or ""},
            params={
                "q": symbol,
                "sortBy": "publishedAt",
                "pageSize": str(self.PAGE_SIZE),
                "language": "en",
            },
        )

        if response.status in (401, 403):
            raise AuthenticationError(
                "News API authentication failed",
                source_name=self.name,
                status_code=response.status,
                url=self.NEWS_URL,
            )
        if response.status == 429:
            raise RateLimitError("News API rate limit exceeded", source_name=self.name)
        if not response.ok:
            raise FetchError(
                f"News API error: {response.status}",
                source_name=self.name,
                status_code=response.status,
                url=self.NEWS_URL,
            )

        articles = response.json().get("articles") or []
        self._cache[cache_key] = (articles, self.clock.now())
        return articles

    def analyze_articles(self, articles: list[dict[str, Any]]) -> ScoreResult:
        """Recency-weighted keyword score over headlines and descriptions."""
        now = self.clock.now()
        if not articles:
            return ScoreResult(score=0.0, confidence=0.0, last_updated=now)

        total_score = 0.0
        total_weight = 0.0
        for article in articles:
            published = _parse_published(article.get("publishedAt"))
            age_hours = 0.0
            if published is not None:
                age_hours = max(0.0, (now - published).total_seconds() / 3600)
            weight = math.exp(-age_hours / self.RECENCY_DECAY_HOURS)

            text = f"{article.get('title') or ''} {article.get('description') or ''}"
            total_score += self.analyze_text(text) * weight
            total_weight += weight

        return ScoreResult(
            score=total_score / total_weight if total_weight > 0 else 0.0,
            confidence=min(len(articles) / self.CONFIDENCE_SAMPLE, 1.0) * self.CONFIDENCE_CAP,
            last_updated=now,
        )

    def analyze_text(self, text: str) -> float:
        balance = keyword_balance(text, POSITIVE_WORDS, NEGATIVE_WORDS)
        return clamp(balance / self.KEYWORD_DIVISOR)
