from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from expense_tracker.services.money import round2
from .base import RateTable, normalize_currency, utcnow
from .errors import InvalidAmount, RateNotFound

"""Currency conversion engine.

Two arithmetic strategies exist because rates are fetched keyed by source
currency in one path and keyed by a single reference currency in another:

    direct        rates = table(from);       amount * rates[to]
    triangulated  rates = table(reference);  amount / rates[from] * rates[to]

An engine runs exactly one strategy so totals within a report never mix them.
Rounding (round2, half away from zero) happens once per conversion.
"""

DIRECT = "direct"
TRIANGULATED = "triangulated"
STRATEGIES = (DIRECT, TRIANGULATED)


class SupportsRateTables(Protocol):
    async def get_rates(self, base: str) -> RateTable: ...


@dataclass(frozen=True)
class ConversionResult:
    original_amount: float
    converted_amount: float
    from_currency: str
    to_currency: str
    rate: float
    timestamp: datetime
    fallback: bool = False


@dataclass(frozen=True)
class Quote:
    """A resolved rate between two currencies, reusable across many amounts."""

    from_currency: str
    to_currency: str
    source_rate: float
    target_rate: float
    fallback: bool = False

    @property
    def rate(self) -> float:
        return self.target_rate / self.source_rate

    def apply(self, amount: float) -> float:
        if self.from_currency == self.to_currency:
            return amount
        return round2(amount / self.source_rate * self.target_rate)

    def convert(self, amount: float) -> ConversionResult:
        return ConversionResult(
            original_amount=amount,
            converted_amount=self.apply(amount),
            from_currency=self.from_currency,
            to_currency=self.to_currency,
            rate=self.rate,
            timestamp=utcnow(),
            fallback=self.fallback,
        )


def identity_quote(currency: str) -> Quote:
    return Quote(currency, currency, 1.0, 1.0)


def check_amount(amount: float) -> float:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidAmount(f"Amount must be a number, got {amount!r}")
    if not math.isfinite(amount) or amount < 0:
        raise InvalidAmount(f"Amount must be a finite non-negative number, got {amount!r}")
    return float(amount)


class ConversionEngine:
    def __init__(
        self,
        cache: SupportsRateTables,
        strategy: str = DIRECT,
        reference_currency: str = "USD",
    ):
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown conversion strategy '{strategy}'")
        self._cache = cache
        self.strategy = strategy
        self.reference_currency = normalize_currency(reference_currency)

    async def reference_table(self) -> RateTable:
        return await self._cache.get_rates(self.reference_currency)

    async def quote(
        self,
        from_currency: str,
        to_currency: str,
        *,
        reference: Optional[RateTable] = None,
    ) -> Quote:
        """Resolve a reusable rate for one currency pair.

        `reference` lets a batch share one reference table across quotes in
        triangulated mode; it is ignored by the direct strategy.
        """
        src = normalize_currency(from_currency)
        dst = normalize_currency(to_currency)
        if src == dst:
            return identity_quote(src)
        if self.strategy == DIRECT:
            table = await self._cache.get_rates(src)
            target_rate = table.rate_for(dst)
            if target_rate is None:
                raise RateNotFound(dst, base=src)
            return Quote(src, dst, 1.0, target_rate, fallback=table.is_fallback)

        table = reference if reference is not None else await self.reference_table()
        source_rate = table.rate_for(src)
        if source_rate is None:
            raise RateNotFound(src, base=table.base)
        target_rate = table.rate_for(dst)
        if target_rate is None:
            raise RateNotFound(dst, base=table.base)
        return Quote(src, dst, source_rate, target_rate, fallback=table.is_fallback)

    async def convert(
        self, amount: float, from_currency: str, to_currency: str
    ) -> ConversionResult:
        amount = check_amount(amount)
        quote = await self.quote(from_currency, to_currency)
        return quote.convert(amount)
