from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from .base import RateSource, RateTable, utcnow
from .errors import ProviderUnavailable
from .fallback import fallback_table

"""Process-lifetime rate cache.

Design:
    - One entry per base currency, replaced whole on refresh (never merged).
    - Fresh entries (age < ttl) are served without touching the source.
    - Source failures are absorbed: callers receive the fallback table,
      flagged `is_fallback`. Fallback tables are not stored, so the next
      request tries the provider again.
    - No lock. Concurrent refreshes for the same base are last-writer-wins;
      the worst case is one redundant fetch.
"""

logger = logging.getLogger("expense_tracker.rates.cache")

DEFAULT_TTL_SECONDS = 300


@dataclass(frozen=True)
class CacheEntry:
    table: RateTable
    stored_at: datetime


class RateCache:
    def __init__(
        self,
        source: RateSource,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        *,
        fetch_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        if ttl_seconds <= 0:
            raise ValueError("cache ttl must be positive seconds")
        self._source = source
        self._ttl = timedelta(seconds=ttl_seconds)
        self._fetch_timeout = fetch_timeout
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    @property
    def source(self) -> RateSource:
        return self._source

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def _is_fresh(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.stored_at < self._ttl

    async def get_rates(self, base: str) -> RateTable:
        now = self._clock()
        entry = self._entries.get(base)
        if entry and self._is_fresh(entry, now):
            return entry.table
        try:
            table = await asyncio.wait_for(
                self._source.fetch(base), timeout=self._fetch_timeout
            )
        except ProviderUnavailable as e:
            logger.warning(
                "rate source unavailable, serving fallback: %s",
                e,
                extra={"provider": self._source.name, "base": base},
            )
            return fallback_table(base, now=now)
        except asyncio.TimeoutError:
            logger.warning(
                "rate source timed out, serving fallback",
                extra={"provider": self._source.name, "base": base},
            )
            return fallback_table(base, now=now)
        self._entries[base] = CacheEntry(table=table, stored_at=self._clock())
        return table

    def clear_cache(self) -> None:
        self._entries.clear()
        logger.info("rate cache cleared")

    def cached_bases(self) -> List[str]:
        return sorted(self._entries)
