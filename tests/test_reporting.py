"""ReportingFacade over a real SQLite store and a fake rate source."""

import asyncio
from datetime import date

import pytest

from expense_tracker.db.dal import Database
from expense_tracker.db.schema import init_db
from expense_tracker.models.expense import ExpenseFilter, ExpenseIn
from expense_tracker.services.aggregator import ExpenseAggregator
from expense_tracker.services.rates.cache_service import RateCache
from expense_tracker.services.rates.conversion import ConversionEngine
from expense_tracker.services.reporting import (
    ReportingFacade,
    trailing_months,
    window_bounds,
)

from conftest import FakeRateSource

TODAY = date(2024, 6, 15)  # a Saturday
USER = "u1"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def db(tmp_path):
    path = tmp_path / "reports.sqlite3"
    init_db(path)
    return Database(path)


def add(db, amount, currency, category, day, title="x", user=USER):
    return db.insert_expense(
        user,
        ExpenseIn(title=title, amount=amount, currency=currency, category=category, date=day),
    )


@pytest.fixture
def facade(db, fake_source, clock):
    engine = ConversionEngine(RateCache(fake_source, clock=clock))
    return ReportingFacade(ExpenseAggregator(engine), db)


class TestDateHelpers:
    def test_window_bounds(self):
        w = window_bounds(TODAY)
        assert w["weekly"] == (date(2024, 6, 9), TODAY)
        assert w["monthly"] == (date(2024, 6, 1), TODAY)
        assert w["yearly"] == (date(2024, 1, 1), TODAY)

    def test_trailing_months_cross_year(self):
        months = trailing_months(date(2024, 3, 10))
        assert len(months) == 12
        assert months[0] == (2023, 4)
        assert months[-1] == (2024, 3)


class TestDashboard:
    def test_windows_are_summed_independently(self, db, facade):
        add(db, 50, "USD", "food", TODAY)
        add(db, 50, "EUR", "food", date(2024, 6, 10))
        add(db, 10, "USD", "travel", date(2024, 6, 2))  # month, not week
        add(db, 100, "EUR", "bills", date(2024, 2, 1))  # year only
        add(db, 999, "USD", "bills", date(2023, 12, 31))  # outside
        add(db, 77, "USD", "food", TODAY, user="someone-else")

        d = run(facade.dashboard(USER, "USD", today=TODAY))
        assert d.weekly.total.total == 109.00
        assert d.weekly.total.count == 2
        assert d.monthly.total.total == 119.00
        assert d.yearly.total.total == 237.00
        assert d.yearly.total.count == 4
        assert d.monthly.average == round(119.0 / 3, 2)
        assert [c.category for c in d.top_categories] == ["food", "travel"]

    def test_prefetched_batches_are_used(self, facade):
        batches = {
            "weekly": [{"id": 1, "amount": 50, "currency": "USD"}],
            "monthly": [],
            "yearly": [{"id": 2, "amount": 50, "currency": "EUR"}],
        }
        d = run(facade.dashboard(USER, "USD", today=TODAY, batches=batches))
        assert d.weekly.total.total == 50.0
        assert d.monthly.total.total == 0.0
        assert d.yearly.total.total == 59.0

    def test_failed_records_surface_in_window_total(self, db, facade):
        add(db, 20, "SEK", "food", TODAY)
        d = run(facade.dashboard(USER, "USD", today=TODAY))
        assert d.weekly.total.failed_count == 1
        assert d.weekly.total.normalized is False


class TestCategoryBreakdown:
    def test_converted_totals_and_percentages(self, db, facade):
        add(db, 50, "USD", "food", date(2024, 3, 1))
        add(db, 50, "EUR", "food", date(2024, 3, 2))
        add(db, 91, "USD", "travel", date(2024, 4, 1))
        b = run(
            facade.category_breakdown(USER, "USD", date(2024, 1, 1), TODAY)
        )
        assert [c.category for c in b.categories] == ["food", "travel"]
        food, travel = b.categories
        assert food.total == 109.00
        assert food.count == 2
        assert food.average == 54.5
        assert b.overall_total == 200.00
        assert food.percentage == 54.5
        assert travel.percentage == 45.5

    def test_rows_without_currency_use_reference(self, fake_source, clock):
        class Repo:
            def category_currency_totals(self, user_id, start_date=None, end_date=None):
                return [{"category": "food", "total": 100.0, "count": 4}]

        engine = ConversionEngine(RateCache(fake_source, clock=clock))
        facade = ReportingFacade(ExpenseAggregator(engine), Repo())
        b = run(facade.category_breakdown(USER, "EUR", date(2024, 1, 1), TODAY))
        assert b.categories[0].total == 85.0
        assert b.categories[0].percentage == 100.0

    def test_empty_range_has_zero_total(self, facade):
        b = run(facade.category_breakdown(USER, "USD", date(2024, 1, 1), TODAY))
        assert b.categories == []
        assert b.overall_total == 0.0


class TestMonthSeries:
    def test_monthly_totals_zero_filled(self, db, facade):
        add(db, 50, "EUR", "food", date(2024, 2, 3))
        add(db, 25, "USD", "food", date(2024, 2, 20))
        add(db, 10, "USD", "food", date(2024, 5, 1))
        series = run(facade.monthly_totals(USER, "USD", year=2024))
        assert len(series.months) == 12
        by_label = {m.label: m for m in series.months}
        assert by_label["Feb"].total == 84.0
        assert by_label["Feb"].count == 2
        assert by_label["May"].total == 10.0
        assert by_label["Jan"].total == 0.0
        assert by_label["Jan"].count == 0
        assert series.total == 94.0
        assert series.failed_count == 0

    def test_zero_months_stay_zero_in_any_currency(self, facade):
        series = run(facade.monthly_totals(USER, "JPY", year=2024))
        assert all(m.total == 0.0 for m in series.months)

    def test_empty_months_are_not_failures_without_a_rate(self, db, facade, fake_source):
        # The fake USD table has no CAD row.
        series = run(facade.monthly_totals(USER, "CAD", year=2024))
        assert len(series.months) == 12
        assert all(m.total == 0.0 and m.failed_count == 0 for m in series.months)
        assert series.failed_count == 0
        assert fake_source.calls == []

        add(db, 10, "USD", "food", date(2024, 3, 2))
        series = run(facade.monthly_totals(USER, "CAD", year=2024))
        by_label = {m.label: m for m in series.months}
        assert by_label["Mar"].failed_count == 1
        assert by_label["Apr"].failed_count == 0
        assert series.failed_count == 1

    def test_trends_cover_trailing_year(self, db, facade):
        add(db, 10, "USD", "food", date(2023, 7, 5))
        add(db, 10, "USD", "food", date(2023, 6, 30))  # before the window
        add(db, 20, "EUR", "food", TODAY)
        series = run(facade.trends(USER, "USD", today=TODAY))
        assert series.start_date == date(2023, 7, 1)
        assert (series.months[0].year, series.months[0].month) == (2023, 7)
        assert series.months[0].total == 10.0
        assert series.months[-1].total == 23.6
        assert series.total == 33.6


class TestExportAndSummary:
    def test_export_total_pages_through_everything(self, db, facade, monkeypatch):
        monkeypatch.setattr("expense_tracker.services.reporting.EXPORT_PAGE_SIZE", 2)
        for i in range(5):
            add(db, 10, "EUR", "food", date(2024, 5, i + 1))
        add(db, 3, "SEK", "food", date(2024, 5, 9))
        export = run(facade.export_total(USER, "USD", date(2024, 1, 1), TODAY))
        assert len(export.records) == 6
        assert export.total.total == 62.0  # 5 * 11.80 + 3 SEK at face value
        assert export.total.failed_count == 1

    def test_export_matches_dashboard_total(self, db, facade):
        add(db, 12.34, "EUR", "food", date(2024, 6, 1))
        add(db, 56.78, "GBP", "bills", date(2024, 6, 3))
        add(db, 9.99, "USD", "food", date(2024, 6, 4))
        export = run(facade.export_total(USER, "EUR", date(2024, 6, 1), TODAY))
        d = run(facade.dashboard(USER, "EUR", today=TODAY))
        assert export.total == d.monthly.total

    def test_currency_summary(self, db, facade):
        add(db, 50, "USD", "food", date(2024, 6, 2))
        add(db, 50, "EUR", "food", date(2024, 6, 3))
        add(db, 25, "EUR", "food", date(2024, 6, 4))
        s = run(facade.currency_summary(USER, ["usd", "EUR"], today=TODAY))
        assert s.original_totals == {"EUR": 75.0, "USD": 50.0}
        assert s.conversions["USD"].total == 138.5
        assert s.conversions["EUR"].total == 117.5


class TestConvertedPage:
    def test_pagination_and_page_summary(self, db, facade):
        for i in range(3):
            add(db, 10, "EUR", "food", date(2024, 6, i + 1), title=f"t{i}")
        page = run(
            facade.converted_expenses(ExpenseFilter(user_id=USER), "USD", page=1, limit=2)
        )
        assert page.total_count == 3
        assert page.total_pages == 2
        assert page.has_next and not page.has_prev
        assert [c.record.title for c in page.records] == ["t2", "t1"]
        assert page.summary.total == 23.6
