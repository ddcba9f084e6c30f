"""
Sentiment Analyzer - Fan-out / fan-in aggregation across providers.

The analyzer:
1. Queries every enabled provider concurrently (not a fallback)
2. Wraps each call in the provider's configured retry policy
3. Reports every outcome to the health monitor
4. Combines the successes into one confidence-weighted score

A single provider failure never aborts the aggregation; only
when nothing usable comes back is NoSentimentDataError raised.

Scoring over succeeding providers S, all enabled providers E:

    score      = sum(s_i * w_i * c_i) / sum(w_i * c_i)      i in S
    confidence = sum(w_i) over S / sum(w_j) over E
"""

import asyncio
import logging
import threading
from datetime import datetime
from typing import Any, Mapping, Optional

from core.clock import ClockFactory, ClockProtocol
from data_source_health import ProviderHealthMonitor, get_health_monitor
from resilience import SleepFunc

from .base import SentimentProvider
from .config import ConfigManager, get_config_manager
from .exceptions import NoSentimentDataError, ProviderNotConfiguredError
from .models import ScoreResult, SentimentConfig, SentimentScore, SentimentSource
from .providers import build_default_providers
from .recovery import with_retry


logger = logging.getLogger(__name__)


ADJUSTMENT_STRENGTH = 0.2


def provider_credential(name: str, api_keys: list[str]) -> Optional[str]:
    """Credential string handed to a provider's initialize()."""
    if not api_keys:
        return None
    if name == "twitter":
        return ",".join(api_keys)
    return api_keys[0]


def aggregate_scores(
    symbol: str,
    results: Mapping[str, ScoreResult],
    config: SentimentConfig,
    timestamp: datetime,
) -> SentimentScore:
    """
    Combine per-provider results into one SentimentScore.

    Args:
        symbol: Asset symbol
        results: Succeeding providers only
        config: Configuration the weights come from
        timestamp: Timestamp of the aggregate

    Raises:
        NoSentimentDataError: No result carries weight
    """
    enabled_weight = sum(
        cfg.weight for cfg in config.providers.values() if cfg.enabled
    )

    sources: list[SentimentSource] = []
    total_score = 0.0
    total_weight = 0.0
    responded_weight = 0.0

    for name, result in results.items():
        weight = config.providers[name].weight
        sources.append(SentimentSource(
            name=name,
            weight=weight,
            confidence=result.confidence,
            last_updated=result.last_updated,
            provider=name,
        ))
        total_score += result.score * weight * result.confidence
        total_weight += weight * result.confidence
        responded_weight += weight

    if total_weight == 0:
        raise NoSentimentDataError(symbol)

    return SentimentScore(
        symbol=symbol,
        score=total_score / total_weight,
        confidence=min(1.0, responded_weight / enabled_weight) if enabled_weight > 0 else 0.0,
        sources=sources,
        timestamp=timestamp,
    )


class SentimentAnalyzer:
    """
    Aggregates sentiment from all enabled providers.

    Usage:
        analyzer = SentimentAnalyzer()
        score = await analyzer.get_sentiment("BTC")
        print(score.score, score.confidence)
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        health_monitor: Optional[ProviderHealthMonitor] = None,
        providers: Optional[Mapping[str, SentimentProvider]] = None,
        clock: Optional[ClockProtocol] = None,
        sleep: Optional[SleepFunc] = None,
    ) -> None:
        self._config_manager = config_manager or get_config_manager()
        self._health_monitor = health_monitor or get_health_monitor()
        self._clock = clock
        self._sleep = sleep
        if providers is None:
            providers = build_default_providers(self._health_monitor, clock)
        self._providers: dict[str, SentimentProvider] = dict(providers)
        self._credentials: dict[str, str] = {}

        # Statistics
        self._stats = {
            "total_requests": 0,
            "successful_aggregations": 0,
            "partial_aggregations": 0,
            "failed_aggregations": 0,
        }

    @property
    def clock(self) -> ClockProtocol:
        return self._clock or ClockFactory.get_clock()

    @property
    def providers(self) -> dict[str, SentimentProvider]:
        return dict(self._providers)

    def register(self, name: str, provider: SentimentProvider) -> None:
        """Register (or replace) the adapter for a provider name."""
        if name in self._providers:
            logger.warning(f"Overwriting existing provider: {name}")
        self._providers[name] = provider
        self._credentials.pop(name, None)
        logger.info(f"Registered sentiment provider: {name}")

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def get_sentiment(
        self,
        symbol: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SentimentScore:
        """
        Aggregate sentiment for ``symbol`` from every enabled provider.

        Raises:
            NoSentimentDataError: No enabled provider produced usable data
        """
        self._stats["total_requests"] += 1
        config = self._config_manager.get_config()
        await self._ensure_initialized(config)

        enabled = config.enabled_providers()
        tasks = {
            name: asyncio.create_task(
                self._score_provider(name, symbol, cancel_event),
                name=f"sentiment-{name}",
            )
            for name in enabled
        }
        outcomes = await asyncio.gather(*tasks.values(), return_exceptions=True)

        results: dict[str, ScoreResult] = {}
        failures: dict[str, str] = {}
        for name, outcome in zip(tasks.keys(), outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(f"[{name}] Sentiment fetch failed: {outcome}")
                self._health_monitor.record_error(name, outcome)
                failures[name] = str(outcome)
            else:
                self._health_monitor.record_success(name, timestamp=outcome.last_updated)
                results[name] = outcome

        try:
            sentiment = aggregate_scores(symbol, results, config, self.clock.now())
        except NoSentimentDataError:
            self._stats["failed_aggregations"] += 1
            raise NoSentimentDataError(symbol, failures)

        if failures:
            self._stats["partial_aggregations"] += 1
        else:
            self._stats["successful_aggregations"] += 1

        if sentiment.confidence < config.min_confidence:
            logger.warning(
                f"Sentiment for {symbol} below min confidence: "
                f"{sentiment.confidence:.2f} < {config.min_confidence:.2f}"
            )
        return sentiment

    async def initialize_providers(self) -> None:
        """Hand current config credentials to the enabled adapters."""
        await self._ensure_initialized(self._config_manager.get_config())

    async def adjust_prediction(
        self,
        symbol: str,
        raw_gain: float,
        raw_confidence: float,
    ) -> tuple[float, float]:
        """
        Blend sentiment into a price prediction.

        Returns:
            (adjusted_gain, adjusted_confidence); the raw values
            when no sentiment is available
        """
        try:
            sentiment = await self.get_sentiment(symbol)
        except NoSentimentDataError as e:
            logger.warning(f"No sentiment for {symbol}, prediction unadjusted: {e}")
            return raw_gain, raw_confidence

        adjusted_gain = raw_gain * (
            1 + sentiment.score * sentiment.confidence * ADJUSTMENT_STRENGTH
        )
        adjusted_confidence = (
            raw_confidence * (1 - ADJUSTMENT_STRENGTH)
            + sentiment.confidence * ADJUSTMENT_STRENGTH
        )
        return adjusted_gain, max(0.0, min(1.0, adjusted_confidence))

    def get_provider_health(self) -> dict[str, str]:
        """Circuit state per provider adapter."""
        health = {}
        for name, provider in self._providers.items():
            recovery = getattr(provider, "recovery", None)
            if recovery is not None:
                health[name] = recovery.strategy.circuit_breaker.get_state()
        return health

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "registered_providers": len(self._providers),
            "provider_names": list(self._providers.keys()),
        }

    async def close(self) -> None:
        """Close all providers."""
        for provider in self._providers.values():
            await provider.close()
        self._credentials.clear()

    # ─────────────────────────────────────────────────────────────
    # Internal methods
    # ─────────────────────────────────────────────────────────────

    async def _ensure_initialized(self, config: SentimentConfig) -> None:
        """(Re)initialize enabled providers whose credentials changed."""
        for name in config.enabled_providers():
            provider = self._providers.get(name)
            credential = provider_credential(name, config.providers[name].api_keys)
            if provider is None or credential is None:
                continue
            if self._credentials.get(name) == credential:
                continue
            try:
                await provider.initialize(credential)
            except Exception as e:
                logger.warning(f"[{name}] Initialization failed: {e}")
                continue
            self._credentials[name] = credential

    async def _score_provider(
        self,
        name: str,
        symbol: str,
        cancel_event: Optional[asyncio.Event],
    ) -> ScoreResult:
        provider = self._providers.get(name)
        if provider is None:
            raise ProviderNotConfiguredError(
                f"No adapter registered for provider: {name}",
                source_name=name,
            )
        return await with_retry(
            name,
            lambda: provider.get_score(symbol),
            config_manager=self._config_manager,
            sleep=self._sleep,
            cancel_event=cancel_event,
        )


# ─────────────────────────────────────────────────────────────
# Global instance
# ─────────────────────────────────────────────────────────────


_default_analyzer: Optional[SentimentAnalyzer] = None
_analyzer_lock = threading.Lock()


def get_analyzer() -> SentimentAnalyzer:
    """Get the default sentiment analyzer."""
    global _default_analyzer

    with _analyzer_lock:
        if _default_analyzer is None:
            _default_analyzer = SentimentAnalyzer()
        return _default_analyzer


def set_analyzer(analyzer: SentimentAnalyzer) -> None:
    """Set the default sentiment analyzer."""
    global _default_analyzer

    with _analyzer_lock:
        _default_analyzer = analyzer


def reset_analyzer() -> None:
    """Drop the default sentiment analyzer (used by tests)."""
    global _default_analyzer

    with _analyzer_lock:
        _default_analyzer = None


async def get_sentiment(symbol: str) -> SentimentScore:
    """Convenience function to get sentiment from the default analyzer."""
    return await get_analyzer().get_sentiment(symbol)
