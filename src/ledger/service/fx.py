"""
Date-scoped FX rate cache.

Published historical rates never change, so cached entries have no TTL;
the cache is bounded only by size, evicting the least recently stored day.
"""

import logging
from datetime import date
from decimal import Decimal

from src.ledger.protocols.ledger import FxRateProviderProtocol

logger = logging.getLogger(__name__)


class RateCache:
    """Simple bounded cache of daily rates."""

    def __init__(self, maxsize: int) -> None:
        """Initialize cache with max size."""
        self.maxsize = maxsize
        self._cache: dict[date, Decimal] = {}

    def get(self, day: date) -> Decimal | None:
        """Get a cached rate."""
        return self._cache.get(day)

    def __setitem__(self, day: date, rate: Decimal) -> None:
        """Store a rate, evicting the oldest insertion at capacity."""
        if day not in self._cache and len(self._cache) >= self.maxsize:
            oldest = next(iter(self._cache))
            del self._cache[oldest]
        self._cache[day] = rate

    def __contains__(self, day: date) -> bool:
        """Check if a day is cached."""
        return day in self._cache

    def __len__(self) -> int:
        """Return number of cached days."""
        return len(self._cache)

    def clear(self) -> None:
        """Clear all cached rates."""
        self._cache.clear()


class CachedFxProvider:
    """
    FX provider wrapper that asks the upstream at most once per civil date.

    Satisfies FxRateProviderProtocol. Failures are not cached, so a later
    request for the same day tries the upstream again.
    """

    def __init__(self, provider: FxRateProviderProtocol, maxsize: int = 1000) -> None:
        """
        Initialize the cache.

        Args:
            provider: Upstream rate source
            maxsize: Maximum number of cached days

        """
        self.provider = provider
        self.cache = RateCache(maxsize=maxsize)
        self.hits = 0
        self.misses = 0

    async def rate_on(self, day: date) -> Decimal:
        """Get the rate for a day, from cache when possible."""
        cached = self.cache.get(day)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        rate = await self.provider.rate_on(day)
        self.cache[day] = rate
        logger.debug(f"Cached GBP/ZAR {rate} for {day}")
        return rate

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups served from cache."""
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
