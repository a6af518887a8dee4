from __future__ import annotations

"""Concrete rate sources and factory.

'exchangerate-api' is the keyed v6 API (provider reports success via a
`result` discriminator); 'exchangerate-api-open' is the keyless v4 API;
'static' serves the built-in approximate table and never fails.
"""
from abc import abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import httpx

from expense_tracker.services.http_client import HttpError, get_json
from .base import RateSource, RateTable, build_rate_table, utcnow
from .errors import ProviderUnavailable
from .fallback import fallback_rates


def _from_unix(value: Any) -> Optional[datetime]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class _HTTPRateSource(RateSource):
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        retries: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._retries = retries
        self._transport = transport

    @abstractmethod
    def _url(self, base: str) -> str:
        ...

    @abstractmethod
    def _parse(self, base: str, payload: Dict[str, Any]) -> RateTable:
        ...

    async def fetch(self, base: str) -> RateTable:
        try:
            payload = await get_json(
                self._url(base),
                timeout=self._timeout,
                retries=self._retries,
                transport=self._transport,
            )
        except HttpError as e:
            raise ProviderUnavailable(f"{self.name}: {e}") from e
        try:
            return self._parse(base, payload)
        except (TypeError, ValueError, OverflowError) as e:
            raise ProviderUnavailable(f"{self.name}: malformed payload: {e}") from e


class ExchangeRateApiSource(_HTTPRateSource):
    """v6 API: GET {base_url}/{api_key}/latest/{base}."""

    name = "exchangerate-api"

    def __init__(self, base_url: str, api_key: str, **kwargs: Any):
        super().__init__(base_url, **kwargs)
        self._api_key = api_key

    def _url(self, base: str) -> str:
        return f"{self._base_url}/{self._api_key}/latest/{base}"

    def _parse(self, base: str, payload: Dict[str, Any]) -> RateTable:
        if payload.get("result") != "success":
            raise ProviderUnavailable(
                f"{self.name}: API error: {payload.get('error-type', 'unknown')}"
            )
        rates = payload.get("conversion_rates")
        if not isinstance(rates, dict) or not rates:
            raise ProviderUnavailable(f"{self.name}: response missing conversion_rates")
        return build_rate_table(
            base,
            rates,
            last_updated=_from_unix(payload.get("time_last_update_unix")),
            next_update=_from_unix(payload.get("time_next_update_unix")),
        )


class OpenExchangeRateApiSource(_HTTPRateSource):
    """v4 keyless API: GET {base_url}/{base}."""

    name = "exchangerate-api-open"

    def _url(self, base: str) -> str:
        return f"{self._base_url}/{base}"

    def _parse(self, base: str, payload: Dict[str, Any]) -> RateTable:
        rates = payload.get("rates")
        if not isinstance(rates, dict) or not rates:
            raise ProviderUnavailable(f"{self.name}: response missing rates")
        return build_rate_table(
            base,
            rates,
            last_updated=_from_unix(payload.get("time_last_updated")),
            next_update=_from_unix(payload.get("time_next_update")),
        )


class StaticRateSource(RateSource):
    name = "static"

    def __init__(self, rates: Mapping[str, Mapping[str, float]] | None = None):
        # Optional explicit rows per base; otherwise the built-in table.
        self._rows = {k: dict(v) for k, v in (rates or {}).items()}

    async def fetch(self, base: str) -> RateTable:
        row = self._rows.get(base)
        if row is None:
            row = fallback_rates(base)
        return build_rate_table(base, row, last_updated=utcnow())


RATE_SOURCE_KINDS = ("exchangerate-api", "exchangerate-api-open", "static")


def make_rate_source(settings) -> RateSource:
    kind = settings.exchange_rate_provider
    if kind == "exchangerate-api":
        return ExchangeRateApiSource(
            settings.exchange_api_base_url,
            settings.currency_api_key,
            timeout=settings.http_timeout_seconds,
            retries=settings.http_retries,
        )
    if kind == "exchangerate-api-open":
        return OpenExchangeRateApiSource(
            settings.exchange_api_base_url,
            timeout=settings.http_timeout_seconds,
            retries=settings.http_retries,
        )
    if kind == "static":
        return StaticRateSource()
    raise ValueError(f"Unknown rate provider kind '{kind}'")
