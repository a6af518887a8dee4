from __future__ import annotations

"""Rate source abstraction and the rate table shape shared by every layer.

A RateSource is the pure I/O boundary: given a base currency it returns a
RateTable or raises ProviderUnavailable. Caching and fallback live one layer
up in RateCache.
"""
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

from expense_tracker.models.constants import CURRENCIES
from .errors import UnsupportedCurrency


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_currency(code: str) -> str:
    """Strip/upper-case a code and check it against the supported set."""
    normalized = (code or "").strip().upper()
    if normalized not in CURRENCIES:
        raise UnsupportedCurrency(normalized or repr(code))
    return normalized


@dataclass(frozen=True)
class RateTable:
    """Multipliers converting 1 unit of `base` into each quoted currency."""

    base: str
    rates: Mapping[str, float]
    last_updated: datetime
    next_update: Optional[datetime] = None
    is_fallback: bool = False

    def rate_for(self, currency: str) -> Optional[float]:
        return self.rates.get(currency)

    def as_dict(self) -> Dict[str, object]:
        return {
            "base": self.base,
            "rates": dict(self.rates),
            "last_updated": self.last_updated,
            "next_update": self.next_update,
            "is_fallback": self.is_fallback,
        }


def build_rate_table(
    base: str,
    raw_rates: Mapping[str, object],
    *,
    last_updated: datetime | None = None,
    next_update: datetime | None = None,
    is_fallback: bool = False,
) -> RateTable:
    """Build a RateTable keeping only positive numeric multipliers.

    The base always maps to 1.0 regardless of what the provider sent.
    """
    rates: Dict[str, float] = {}
    for code, value in raw_rates.items():
        if isinstance(value, bool):
            continue
        try:
            rate = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            continue
        if rate > 0 and math.isfinite(rate):
            rates[str(code).upper()] = rate
    rates[base] = 1.0
    return RateTable(
        base=base,
        rates=rates,
        last_updated=last_updated or utcnow(),
        next_update=next_update,
        is_fallback=is_fallback,
    )


class RateSource(ABC):
    name: str = "abstract"

    @abstractmethod
    async def fetch(self, base: str) -> RateTable:
        """Return the current rate table for `base` or raise ProviderUnavailable."""
        raise NotImplementedError
