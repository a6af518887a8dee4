"""HTTP rate sources against httpx.MockTransport."""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from expense_tracker.core.config import Settings
from expense_tracker.services.rates.cache_service import RateCache
from expense_tracker.services.rates.errors import ProviderUnavailable
from expense_tracker.services.rates.providers import (
    _HTTPRateSource,
    ExchangeRateApiSource,
    OpenExchangeRateApiSource,
    StaticRateSource,
    make_rate_source,
)


def run(coro):
    return asyncio.run(coro)


def transport(handler):
    seen = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return handler(request)

    return httpx.MockTransport(_handler), seen


V6_OK = {
    "result": "success",
    "base_code": "USD",
    "conversion_rates": {"USD": 1, "EUR": 0.85, "GBP": 0.73, "BAD": -1, "TXT": "x"},
    "time_last_update_unix": 1718409601,
    "time_next_update_unix": 1718496001,
}


class TestExchangeRateApiSource:
    def test_parses_success_payload(self):
        mock, seen = transport(lambda r: httpx.Response(200, json=V6_OK))
        source = ExchangeRateApiSource("https://v6.example/v6/", "KEY", transport=mock, retries=0)
        table = run(source.fetch("USD"))
        assert seen == ["https://v6.example/v6/KEY/latest/USD"]
        assert table.base == "USD"
        assert table.rates == {"USD": 1.0, "EUR": 0.85, "GBP": 0.73}
        assert table.last_updated == datetime.fromtimestamp(1718409601, tz=timezone.utc)
        assert table.next_update == datetime.fromtimestamp(1718496001, tz=timezone.utc)
        assert table.is_fallback is False

    def test_provider_error_discriminator(self):
        body = {"result": "error", "error-type": "invalid-key"}
        mock, _ = transport(lambda r: httpx.Response(200, json=body))
        source = ExchangeRateApiSource("https://v6.example/v6", "KEY", transport=mock, retries=0)
        with pytest.raises(ProviderUnavailable, match="invalid-key"):
            run(source.fetch("USD"))

    def test_http_status_failure_after_retries(self):
        mock, seen = transport(lambda r: httpx.Response(503))
        source = ExchangeRateApiSource("https://v6.example/v6", "KEY", transport=mock, retries=1)
        with pytest.raises(ProviderUnavailable):
            run(source.fetch("EUR"))
        assert len(seen) == 2

    def test_network_error(self):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        mock, _ = transport(boom)
        source = ExchangeRateApiSource("https://v6.example/v6", "KEY", transport=mock, retries=0)
        with pytest.raises(ProviderUnavailable):
            run(source.fetch("USD"))

    def test_non_json_body(self):
        mock, _ = transport(lambda r: httpx.Response(200, text="<html>"))
        source = ExchangeRateApiSource("https://v6.example/v6", "KEY", transport=mock, retries=0)
        with pytest.raises(ProviderUnavailable):
            run(source.fetch("USD"))

    def test_out_of_range_timestamps_are_dropped(self):
        body = dict(V6_OK, time_last_update_unix=1e20, time_next_update_unix=-1e20)
        mock, _ = transport(lambda r: httpx.Response(200, json=body))
        source = ExchangeRateApiSource("https://v6.example/v6", "KEY", transport=mock, retries=0)
        table = run(RateCache(source).get_rates("USD"))
        assert table.is_fallback is False
        assert table.rates["EUR"] == 0.85
        assert table.last_updated is None
        assert table.next_update is None

    def test_malformed_rates_container_is_unavailable(self):
        body = dict(V6_OK, conversion_rates=[["EUR", 0.85]])
        mock, _ = transport(lambda r: httpx.Response(200, json=body))
        source = ExchangeRateApiSource("https://v6.example/v6", "KEY", transport=mock, retries=0)
        table = run(RateCache(source).get_rates("USD"))
        assert table.is_fallback is True

    def test_http_base_is_abstract(self):
        with pytest.raises(TypeError):
            _HTTPRateSource("https://example.test")


class TestOpenSource:
    def test_parses_rates(self):
        body = {"base": "EUR", "rates": {"USD": 1.18, "GBP": 0.86}, "time_last_updated": 1718409601}
        mock, seen = transport(lambda r: httpx.Response(200, json=body))
        source = OpenExchangeRateApiSource("https://open.example/v4/latest", transport=mock, retries=0)
        table = run(source.fetch("EUR"))
        assert seen == ["https://open.example/v4/latest/EUR"]
        assert table.rates == {"USD": 1.18, "GBP": 0.86, "EUR": 1.0}
        assert table.next_update is None

    def test_missing_rates(self):
        mock, _ = transport(lambda r: httpx.Response(200, json={"base": "EUR"}))
        source = OpenExchangeRateApiSource("https://open.example/v4/latest", transport=mock, retries=0)
        with pytest.raises(ProviderUnavailable):
            run(source.fetch("EUR"))


class TestStaticSource:
    def test_uses_builtin_rows(self):
        table = run(StaticRateSource().fetch("USD"))
        assert table.rates["EUR"] == 0.85
        assert table.is_fallback is False

    def test_explicit_rows(self):
        table = run(StaticRateSource({"USD": {"EUR": 0.5}}).fetch("USD"))
        assert table.rates == {"EUR": 0.5, "USD": 1.0}


class TestFactory:
    @pytest.mark.parametrize(
        "kind,cls",
        [
            ("exchangerate-api", ExchangeRateApiSource),
            ("exchangerate-api-open", OpenExchangeRateApiSource),
            ("static", StaticRateSource),
        ],
    )
    def test_builds_configured_kind(self, tmp_path, kind, cls):
        s = Settings(db_path=tmp_path / "x.db", exchange_rate_provider=kind)
        s.init_post_load()
        assert isinstance(make_rate_source(s), cls)

    def test_unknown_kind_rejected_by_settings(self, tmp_path):
        s = Settings(db_path=tmp_path / "x.db", exchange_rate_provider="carrier-pigeon")
        with pytest.raises(ValueError):
            s.init_post_load()
