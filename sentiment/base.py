"""
Sentiment Provider - Capability interface for sentiment adapters.

Adapters implement initialize/get_score/close and own their
resilience (a ProviderRecovery) and HTTP client by composition.
There is no shared base-class state.
"""

import re
from abc import ABC, abstractmethod
from typing import Iterable

from .models import ScoreResult


class SentimentProvider(ABC):
    """
    Uniform contract for external sentiment sources.

    - initialize(credential): parse provider-specific credentials;
      may be called again to replace them
    - get_score(symbol): score in [-1, 1] with a confidence in [0, 1]
    - close(): release network resources
    """

    name: str = ""

    @abstractmethod
    async def initialize(self, credential: str) -> None:
        """Configure credentials. Re-callable."""
        pass

    @abstractmethod
    async def get_score(self, symbol: str) -> ScoreResult:
        """Fetch and score recent content for ``symbol``."""
        pass

    async def close(self) -> None:
        """Cleanup resources. Override if needed."""
        pass


_WORD_SPLIT = re.compile(r"\W+")


def keyword_balance(
    text: str,
    positive: Iterable[str],
    negative: Iterable[str],
) -> int:
    """Positive minus negative keyword hits over whole words."""
    positive_set = set(positive)
    negative_set = set(negative)
    score = 0
    for word in _WORD_SPLIT.split(text.lower()):
        if word in positive_set:
            score += 1
        if word in negative_set:
            score -= 1
    return score


def clamp(value: float, low: float = -1.0, high: float = 1.0) -> float:
    return max(low, min(high, value))
