"""Money / rounding helpers.

Every conversion rounds eagerly through `round2` before any summation, so the
dashboard, reports and CSV export all agree to the cent.
"""

from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable


def round2(value: float) -> float:
    """Round half away from zero to 2 decimal places."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def sum2(values: Iterable[float]) -> float:
    # Addends are already 2dp; quantizing the sum only strips float noise.
    return round2(sum(Decimal(str(v)) for v in values))
