"""Sentiment source providers."""

from typing import Optional

from core.clock import ClockProtocol
from data_source_health import ProviderHealthMonitor

from ..base import SentimentProvider
from .news import NewsSentimentProvider
from .reddit import RedditSentimentProvider
from .twitter import TwitterSentimentProvider


def build_default_providers(
    health_monitor: Optional[ProviderHealthMonitor] = None,
    clock: Optional[ClockProtocol] = None,
) -> dict[str, SentimentProvider]:
    """One adapter per known provider, each with its own HTTP client and strategy."""
    return {
        TwitterSentimentProvider.name: TwitterSentimentProvider(
            health_monitor=health_monitor, clock=clock
        ),
        RedditSentimentProvider.name: RedditSentimentProvider(
            health_monitor=health_monitor, clock=clock
        ),
        NewsSentimentProvider.name: NewsSentimentProvider(
            health_monitor=health_monitor, clock=clock
        ),
    }


__all__ = [
    "NewsSentimentProvider",
    "RedditSentimentProvider",
    "TwitterSentimentProvider",
    "build_default_providers",
]
