"""Shared fixtures: fake rate sources, a controllable clock, a temp app."""

from datetime import datetime, timedelta, timezone
from typing import Dict, Mapping, Optional

import pytest
from fastapi.testclient import TestClient

from expense_tracker.core.config import Settings
from expense_tracker.main import create_app
from expense_tracker.services.rates.base import RateSource, RateTable, build_rate_table
from expense_tracker.services.rates.errors import ProviderUnavailable

USD_TABLE = {"EUR": 0.85, "GBP": 0.73, "INR": 83.12, "JPY": 149.5}
EUR_TABLE = {"USD": 1.18, "GBP": 0.86}


class FakeRateSource(RateSource):
    """In-memory source counting fetches; `fail=True` simulates an outage."""

    name = "fake"

    def __init__(self, tables: Optional[Mapping[str, Mapping[str, float]]] = None, fail: bool = False):
        self.tables: Dict[str, Dict[str, float]] = {
            k: dict(v) for k, v in (tables or {"USD": USD_TABLE, "EUR": EUR_TABLE}).items()
        }
        self.fail = fail
        self.calls: list = []

    async def fetch(self, base: str) -> RateTable:
        self.calls.append(base)
        if self.fail:
            raise ProviderUnavailable("simulated outage")
        if base not in self.tables:
            raise ProviderUnavailable(f"no table for {base}")
        return build_rate_table(base, self.tables[base])


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def fake_source() -> FakeRateSource:
    return FakeRateSource()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    s = Settings(
        data_dir=tmp_path,
        db_path=tmp_path / "test.sqlite3",
        exchange_rate_provider="static",
        default_currency="USD",
    )
    s.init_post_load()
    return s


@pytest.fixture
def client(settings, fake_source) -> TestClient:
    app = create_app(settings_override=settings, rate_source=fake_source)
    return TestClient(app)
