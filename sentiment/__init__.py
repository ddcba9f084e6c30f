"""
Sentiment Aggregation Layer - Multi-provider sentiment with recovery.

This package provides:
- Twitter: Engagement-weighted social sentiment (key rotation)
- Reddit: Forum sentiment over crypto subreddits (OAuth)
- News: Recency-weighted headline sentiment (cached)
- ConfigManager: Sanitized per-provider settings
- with_retry / with_fallback: Config-driven recovery primitives
- SentimentAnalyzer: Concurrent fan-out with weighted aggregation

Usage:
    from sentiment import get_config_manager, SentimentAnalyzer

    config = get_config_manager()
    config.set_provider_config("twitter", enabled=True)
    config.add_api_key("twitter", "bearer-key")

    analyzer = SentimentAnalyzer(config_manager=config)
    result = await analyzer.get_sentiment("BTC")

    print(f"Score: {result.score}")
    print(f"Confidence: {result.confidence}")
    print(f"Sources: {[s.name for s in result.sources]}")

Output Schema:
- score: -1.0 (very bearish) to +1.0 (very bullish)
- confidence: share of enabled provider weight that answered
- sources: one entry per succeeding provider

Default Provider Weights:
- Twitter: 0.4
- Reddit: 0.3
- News: 0.3
"""

from .analyzer import (
    SentimentAnalyzer,
    aggregate_scores,
    get_analyzer,
    get_sentiment,
    reset_analyzer,
    set_analyzer,
)
from .base import SentimentProvider
from .config import (
    API_KEYS_STORAGE_KEY,
    CONFIG_STORAGE_KEY,
    DEFAULT_CONFIG,
    ConfigManager,
    apply_env_overrides,
    default_config,
    get_config_manager,
    load_yaml_config,
    reset_config_manager,
    set_config_manager,
    validate_config,
)
from .exceptions import (
    AuthenticationError,
    FetchError,
    NetworkError,
    NoSentimentDataError,
    ParseError,
    ProviderNotConfiguredError,
    RateLimitError,
    SentimentSourceError,
    UnknownProviderError,
)
from .http import AiohttpClient, HttpClient, HttpResponse, mask_key
from .models import (
    PROVIDER_NAMES,
    ProviderConfig,
    RetryStrategyConfig,
    ScoreResult,
    SentimentConfig,
    SentimentScore,
    SentimentSource,
)
from .providers import (
    NewsSentimentProvider,
    RedditSentimentProvider,
    TwitterSentimentProvider,
    build_default_providers,
)
from .recovery import FallbackResult, ProviderRecovery, with_fallback, with_retry
from .storage import JsonFileStore, KeyValueStore, MemoryStore


__all__ = [
    # Analyzer
    "SentimentAnalyzer",
    "aggregate_scores",
    "get_analyzer",
    "set_analyzer",
    "reset_analyzer",
    "get_sentiment",

    # Providers
    "SentimentProvider",
    "TwitterSentimentProvider",
    "RedditSentimentProvider",
    "NewsSentimentProvider",
    "build_default_providers",

    # Recovery
    "with_retry",
    "with_fallback",
    "FallbackResult",
    "ProviderRecovery",

    # Config
    "ConfigManager",
    "DEFAULT_CONFIG",
    "CONFIG_STORAGE_KEY",
    "API_KEYS_STORAGE_KEY",
    "default_config",
    "validate_config",
    "load_yaml_config",
    "apply_env_overrides",
    "get_config_manager",
    "set_config_manager",
    "reset_config_manager",

    # Storage
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",

    # HTTP
    "HttpClient",
    "HttpResponse",
    "AiohttpClient",
    "mask_key",

    # Models
    "PROVIDER_NAMES",
    "ProviderConfig",
    "RetryStrategyConfig",
    "SentimentConfig",
    "ScoreResult",
    "SentimentSource",
    "SentimentScore",

    # Exceptions
    "SentimentSourceError",
    "RateLimitError",
    "FetchError",
    "NetworkError",
    "AuthenticationError",
    "ParseError",
    "ProviderNotConfiguredError",
    "UnknownProviderError",
    "NoSentimentDataError",
]


# Version
__version__ = "1.0.0"
