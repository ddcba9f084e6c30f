"""
Sentiment Data Models - Configuration and score structures.

Configuration:
- RetryStrategyConfig: per-provider retry settings (seconds)
- ProviderConfig: enabled flag, API keys, weight, retry settings
- SentimentConfig: provider map plus global intervals

Scores:
- ScoreResult: one provider's answer for one symbol
- SentimentSource: a provider's contribution to an aggregate
- SentimentScore: the aggregate for one symbol
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


PROVIDER_NAMES: tuple[str, ...] = ("twitter", "reddit", "news")


# ─────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────


@dataclass
class RetryStrategyConfig:
    """Retry settings for one provider. Delays and timeout in seconds."""
    attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 15.0
    timeout: float = 10.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempts": self.attempts,
            "base_delay": self.base_delay,
            "max_delay": self.max_delay,
            "timeout": self.timeout,
        }


@dataclass
class ProviderConfig:
    """
    Settings for one sentiment provider.

    api_keys is ordered: rotation walks the list front to back.
    retry_strategy None means calls are made once, without retry.
    """
    enabled: bool = False
    api_keys: list[str] = field(default_factory=list)
    weight: float = 0.3
    retry_strategy: Optional[RetryStrategyConfig] = field(default_factory=RetryStrategyConfig)

    def to_dict(self, include_keys: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "enabled": self.enabled,
            "weight": self.weight,
            "retry_strategy": self.retry_strategy.to_dict() if self.retry_strategy else None,
        }
        if include_keys:
            data["api_keys"] = list(self.api_keys)
        return data


@dataclass
class SentimentConfig:
    """Complete sentiment configuration."""
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    update_interval: float = 1800.0  # 30 minutes
    min_confidence: float = 0.6
    cache_timeout: float = 3600.0  # 1 hour

    def get_provider(self, name: str) -> Optional[ProviderConfig]:
        return self.providers.get(name)

    def enabled_providers(self) -> list[str]:
        """Names of enabled providers, in configuration order."""
        return [name for name, cfg in self.providers.items() if cfg.enabled]

    def to_dict(self, include_keys: bool = True) -> dict[str, Any]:
        return {
            "providers": {
                name: cfg.to_dict(include_keys=include_keys)
                for name, cfg in self.providers.items()
            },
            "update_interval": self.update_interval,
            "min_confidence": self.min_confidence,
            "cache_timeout": self.cache_timeout,
        }


# ─────────────────────────────────────────────────────────────
# Scores
# ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ScoreResult:
    """
    One provider's sentiment for one symbol.

    score: -1.0 (very bearish) to +1.0 (very bullish)
    confidence: 0.0 to 1.0
    """
    score: float
    confidence: float
    last_updated: datetime

    def __post_init__(self) -> None:
        """Clamp into range."""
        if not -1.0 <= self.score <= 1.0:
            object.__setattr__(self, "score", max(-1.0, min(1.0, self.score)))
        if not 0.0 <= self.confidence <= 1.0:
            object.__setattr__(self, "confidence", max(0.0, min(1.0, self.confidence)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "confidence": self.confidence,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class SentimentSource:
    """A succeeding provider's contribution to an aggregate score."""
    name: str
    weight: float
    confidence: float
    last_updated: datetime
    provider: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "weight": self.weight,
            "confidence": self.confidence,
            "last_updated": self.last_updated.isoformat(),
            "provider": self.provider,
        }


@dataclass
class SentimentScore:
    """Aggregated sentiment for one symbol."""
    symbol: str
    score: float  # -1.0 to +1.0
    confidence: float  # 0.0 to 1.0, share of enabled weight that answered
    sources: list[SentimentSource]
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "score": self.score,
            "confidence": self.confidence,
            "sources": [s.to_dict() for s in self.sources],
            "timestamp": self.timestamp.isoformat(),
        }
