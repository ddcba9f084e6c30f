"""
Reddit Sentiment Provider - Forum sentiment from crypto subreddits.

OAuth client-credentials flow:
- initialize("client_id:client_secret")
- Access token cached until expires_in elapses
- HTTP 401 on search means the token expired: it is refreshed
  and the call retried once

Scoring per post: title keywords x1.5, body keywords x1.0,
plus an upvote term sign(score) * log1p(|score|) * 0.5.
"""

import base64
import logging
import math
from typing import Any, Optional

from core.clock import ClockFactory, ClockProtocol
from data_source_health import ProviderHealthMonitor

from ..base import SentimentProvider, clamp, keyword_balance
from ..exceptions import (
    AuthenticationError,
    FetchError,
    ParseError,
    ProviderNotConfiguredError,
)
from ..http import AiohttpClient, HttpClient
from ..models import ScoreResult
from ..recovery import ProviderRecovery


logger = logging.getLogger(__name__)


POSITIVE_WORDS = ["bullish", "buy", "long", "moon", "rocket", "up"]
NEGATIVE_WORDS = ["bearish", "sell", "short", "dump", "crash", "down"]

TITLE_WEIGHT = 1.5
TEXT_WEIGHT = 1.0
UPVOTE_WEIGHT = 0.5


class RedditSentimentProvider(SentimentProvider):
    """Reddit search across a fixed set of crypto subreddits."""

    name = "reddit"

    TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
    SEARCH_URL_TEMPLATE = "https://oauth.reddit.com/r/{subreddit}/search.json"
    SUBREDDITS = ("cryptocurrency", "cryptomarkets", "bitcoin")
    POSTS_PER_SUBREDDIT = 25
    USER_AGENT = "SentimentCore/1.0.0"
    KEYWORD_DIVISOR = 3
    CONFIDENCE_CAP = 0.85

    def __init__(
        self,
        http_client: Optional[HttpClient] = None,
        recovery: Optional[ProviderRecovery] = None,
        health_monitor: Optional[ProviderHealthMonitor] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._http = http_client or AiohttpClient(user_agent=self.USER_AGENT)
        self._recovery = recovery or ProviderRecovery.create(self.name, health_monitor)
        self._clock = clock

        self._client_id: Optional[str] = None
        self._client_secret: Optional[str] = None
        self._access_token: Optional[str] = None
        self._token_expiry = 0.0  # Unix seconds

    @property
    def clock(self) -> ClockProtocol:
        return self._clock or ClockFactory.get_clock()

    @property
    def recovery(self) -> ProviderRecovery:
        return self._recovery

    @property
    def has_valid_token(self) -> bool:
        return self._access_token is not None and self.clock.timestamp() < self._token_expiry

    async def initialize(self, credential: str) -> None:
        """
        Accept "client_id:client_secret".

        Raises:
            ProviderNotConfiguredError: Credential is not an id:secret pair
        """
        client_id, sep, client_secret = credential.partition(":")
        if not sep or not client_id.strip() or not client_secret.strip():
            raise ProviderNotConfiguredError(
                "Reddit credentials must be 'client_id:client_secret'",
                source_name=self.name,
            )
        self._client_id = client_id.strip()
        self._client_secret = client_secret.strip()
        self._access_token = None
        self._token_expiry = 0.0
        logger.info(f"[{self.name}] Initialized")

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def get_score(self, symbol: str) -> ScoreResult:
        if not self._client_id or not self._client_secret:
            raise ProviderNotConfiguredError(
                "Reddit API credentials not configured",
                source_name=self.name,
            )

        async def refresh_and_retry(error: BaseException) -> ScoreResult:
            if "token expired" in str(error).lower():
                logger.info(f"[{self.name}] Access token expired, refreshing")
                await self.refresh_access_token()
                return await self._recovery.execute(lambda: self._fetch_score(symbol))
            raise error

        return await self._recovery.execute(
            lambda: self._fetch_score(symbol),
            error_handler=refresh_and_retry,
        )

    async def refresh_access_token(self) -> None:
        """Request a new client-credentials token."""
        self._access_token = None
        self._token_expiry = 0.0

        basic = base64.b64encode(
            f"{self._client_id}:{self._client_secret}".encode("utf-8")
        ).decode("ascii")
        response = await self._http.post(
            self.TOKEN_URL,
            headers={
                "Authorization": f"Basic {basic}",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            data="grant_type=client_credentials",
        )

        if response.status in (401, 403):
            raise AuthenticationError(
                "Reddit authentication failed",
                source_name=self.name,
                status_code=response.status,
                url=self.TOKEN_URL,
            )
        if not response.ok:
            raise FetchError(
                "Failed to get Reddit access token",
                source_name=self.name,
                status_code=response.status,
                url=self.TOKEN_URL,
            )

        body = response.json()
        token = body.get("access_token")
        if not token:
            raise ParseError(
                "Reddit token response missing access_token",
                source_name=self.name,
                raw_data=str(response.body),
            )

        expires_in = body.get("expires_in") or 3600
        self._access_token = token
        self._token_expiry = self.clock.timestamp() + float(expires_in)
        logger.debug(f"[{self.name}] Access token valid for {expires_in}s")

    async def close(self) -> None:
        await self._http.close()

    # ─────────────────────────────────────────────────────────────
    # Internal methods
    # ─────────────────────────────────────────────────────────────

    async def _ensure_token(self) -> None:
        if not self.has_valid_token:
            await self.refresh_access_token()

    async def _fetch_score(self, symbol: str) -> ScoreResult:
        await self._ensure_token()
        posts = await self._fetch_posts(symbol)
        return self.analyze_posts(posts)

    async def _fetch_posts(self, symbol: str) -> list[dict[str, Any]]:
        posts: list[dict[str, Any]] = []
        for subreddit in self.SUBREDDITS:
            url = self.SEARCH_URL_TEMPLATE.format(subreddit=subreddit)
            response = await self._http.get(
                url,
                headers={
                    "Authorization": f"Bearer {self._access_token}",
                    "User-Agent": self.USER_AGENT,
                },
                params={
                    "q": symbol,
                    "sort": "new",
                    "limit": str(self.POSTS_PER_SUBREDDIT),
                },
            )

            if response.status == 401:
                raise AuthenticationError(
                    "Reddit token expired",
                    source_name=self.name,
                    status_code=401,
                    url=url,
                )
            if not response.ok:
                raise FetchError(
                    f"Failed to fetch from r/{subreddit}",
                    source_name=self.name,
                    status_code=response.status,
                    url=url,
                )

            children = (response.json().get("data") or {}).get("children") or []
            posts.extend(child.get("data") or {} for child in children)
        return posts

    def analyze_posts(self, posts: list[dict[str, Any]]) -> ScoreResult:
        """Weighted title/body/upvote score; confidence from keyword matches."""
        now = self.clock.now()
        if not posts:
            return ScoreResult(score=0.0, confidence=0.0, last_updated=now)

        total_score = 0.0
        total_weight = 0.0
        matches = 0

        for post in posts:
            title_score = self.analyze_text(post.get("title") or "") * TITLE_WEIGHT
            text_score = self.analyze_text(post.get("selftext") or "") * TEXT_WEIGHT
            upvotes = post.get("score") or 0
            sign = (upvotes > 0) - (upvotes < 0)
            upvote_score = sign * math.log1p(abs(upvotes)) * UPVOTE_WEIGHT

            total_score += title_score + text_score + upvote_score
            total_weight += TITLE_WEIGHT + TEXT_WEIGHT + UPVOTE_WEIGHT
            matches += (title_score != 0) + (text_score != 0)

        return ScoreResult(
            score=clamp(total_score / total_weight),
            confidence=min(matches / (len(posts) * 2), 1.0) * self.CONFIDENCE_CAP,
            last_updated=now,
        )

    def analyze_text(self, text: str) -> float:
        balance = keyword_balance(text, POSITIVE_WORDS, NEGATIVE_WORDS)
        if balance == 0:
            return 0.0
        return math.copysign(min(abs(balance) / self.KEYWORD_DIVISOR, 1.0), balance)
