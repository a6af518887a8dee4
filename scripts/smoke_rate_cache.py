"""Smoke script for the rate cache against the configured provider.

Demonstrates:
 1. First access triggers a provider fetch (or the fallback table on outage).
 2. A second access within the TTL is served from the cache.
 3. clear_cache() forces the next access to hit the provider again.

NOTE: This is a lightweight diagnostic and not a formal test. It uses the
network when EXCHANGE_RATE_PROVIDER points at an HTTP provider.
"""

import asyncio
from pprint import pprint

from expense_tracker.core.config import get_settings
from expense_tracker.services.rates.cache_service import RateCache
from expense_tracker.services.rates.conversion import ConversionEngine
from expense_tracker.services.rates.providers import make_rate_source


async def run():
    settings = get_settings()
    cache = RateCache(make_rate_source(settings), settings.rates_cache_ttl_seconds)
    engine = ConversionEngine(cache, strategy=settings.conversion_strategy)
    out = {}

    first = await cache.get_rates("USD")
    out["initial"] = {"last_updated": first.last_updated.isoformat(), "fallback": first.is_fallback}

    second = await cache.get_rates("USD")
    out["second_is_cached"] = second is first

    cache.clear_cache()
    third = await cache.get_rates("USD")
    out["after_clear_is_new"] = third is not first

    result = await engine.convert(100, "USD", "EUR")
    out["100 USD -> EUR"] = {"amount": result.converted_amount, "rate": result.rate}

    pprint(out)


if __name__ == "__main__":
    asyncio.run(run())
