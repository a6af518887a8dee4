"""Approximate hardcoded rates served when the provider is unreachable.

USD, EUR and GBP carry explicit rows. Any other base present in the USD row is
derived by triangulating through USD; remaining bases get an identity-only
table so conversions from them surface as RateNotFound.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict

from .base import RateTable, build_rate_table, utcnow

FALLBACK_NEXT_UPDATE = timedelta(hours=1)

_FALLBACK_ROWS: Dict[str, Dict[str, float]] = {
    "USD": {
        "EUR": 0.85,
        "GBP": 0.73,
        "INR": 83.12,
        "JPY": 149.50,
        "CAD": 1.25,
        "AUD": 1.52,
        "CHF": 0.91,
        "CNY": 7.31,
        "KRW": 1342.50,
    },
    "EUR": {"USD": 1.18, "GBP": 0.86, "INR": 97.75, "JPY": 176.05, "CAD": 1.47, "AUD": 1.79},
    "GBP": {"USD": 1.37, "EUR": 1.16, "INR": 113.67, "JPY": 204.83, "CAD": 1.71, "AUD": 2.08},
}


def fallback_rates(base: str) -> Dict[str, float]:
    row = _FALLBACK_ROWS.get(base)
    if row is not None:
        return dict(row)
    usd_row = dict(_FALLBACK_ROWS["USD"], USD=1.0)
    base_per_usd = usd_row.get(base)
    if base_per_usd is None:
        return {}
    return {
        code: round(value / base_per_usd, 6)
        for code, value in usd_row.items()
        if code != base
    }


def fallback_table(base: str, now: datetime | None = None) -> RateTable:
    now = now or utcnow()
    return build_rate_table(
        base,
        fallback_rates(base),
        last_updated=now,
        next_update=now + FALLBACK_NEXT_UPDATE,
        is_fallback=True,
    )
