from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from math import ceil
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from expense_tracker.models.constants import MONTH_NAMES
from expense_tracker.models.expense import ExpenseFilter, ExpenseRecord
from expense_tracker.services.aggregator import (
    AggregateTotal,
    ConvertedRecord,
    ExpenseAggregator,
    total_of,
)
from expense_tracker.services.money import round2, sum2
from expense_tracker.services.rates.base import normalize_currency

"""Currency-normalized report views.

Scopes implemented:
    - Dashboard windows (weekly / monthly / yearly) + top categories
    - Category breakdown with percentage share
    - Monthly totals for a calendar year
    - Trailing 12-month trend
    - CSV export set and total
    - Month-to-date summary in several currencies
    - One page of converted expenses

Design notes:
    Stateless per call; the only shared state is the rate cache behind the
    aggregator. Everything funnels through ExpenseAggregator so the
    per-record fallback policy (and the failed count) is identical in every
    view. Grouped subtotals from the repository stay in their original
    currency; rows without a currency are taken to be in the engine's
    reference currency.
"""

EXPORT_PAGE_SIZE = 500


class ExpenseRepository(Protocol):
    def find_expenses(
        self, flt: ExpenseFilter, page: int = 1, limit: int = 10
    ) -> Tuple[List[ExpenseRecord], int]: ...

    def category_currency_totals(
        self, user_id: str, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> List[Dict[str, Any]]: ...

    def month_currency_totals(
        self, user_id: str, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> List[Dict[str, Any]]: ...


@dataclass(frozen=True)
class Bucket:
    """A grouped subtotal in one original currency."""

    amount: float
    currency: str
    count: int = 0
    key: Any = None


# ---------------- Result types -----------------
@dataclass(frozen=True)
class DashboardWindow:
    name: str
    start_date: date
    end_date: date
    total: AggregateTotal

    @property
    def average(self) -> float:
        return round2(self.total.total / self.total.count) if self.total.count else 0.0


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: float
    count: int
    average: float
    percentage: float
    failed_count: int = 0


@dataclass(frozen=True)
class CategoryBreakdown:
    currency: str
    start_date: date
    end_date: date
    categories: List[CategoryTotal]
    overall_total: float
    failed_count: int


@dataclass(frozen=True)
class Dashboard:
    currency: str
    as_of: date
    weekly: DashboardWindow
    monthly: DashboardWindow
    yearly: DashboardWindow
    top_categories: List[CategoryTotal]


@dataclass(frozen=True)
class MonthTotal:
    year: int
    month: int
    total: float
    count: int
    failed_count: int = 0

    @property
    def label(self) -> str:
        return MONTH_NAMES[self.month - 1]


@dataclass(frozen=True)
class MonthlySeries:
    currency: str
    start_date: date
    end_date: date
    months: List[MonthTotal]
    total: float
    failed_count: int


@dataclass(frozen=True)
class ExportResult:
    currency: str
    records: List[ConvertedRecord]
    total: AggregateTotal


@dataclass(frozen=True)
class CurrencySummary:
    start_date: date
    end_date: date
    original_totals: Dict[str, float]
    conversions: Dict[str, AggregateTotal]


@dataclass(frozen=True)
class ConvertedPage:
    currency: str
    records: List[ConvertedRecord]
    page: int
    limit: int
    total_count: int
    summary: AggregateTotal
    total_pages: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "total_pages", ceil(self.total_count / self.limit) if self.limit else 0
        )

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


# ---------------- Date helpers -----------------
def window_bounds(today: date) -> Dict[str, Tuple[date, date]]:
    """Calendar-aligned dashboard windows ending today (inclusive)."""
    return {
        "weekly": (today - timedelta(days=6), today),
        "monthly": (today.replace(day=1), today),
        "yearly": (date(today.year, 1, 1), today),
    }


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def trailing_months(today: date, count: int = 12) -> List[Tuple[int, int]]:
    return [shift_month(today.year, today.month, d) for d in range(-(count - 1), 1)]


class ReportingFacade:
    def __init__(self, aggregator: ExpenseAggregator, repository: ExpenseRepository):
        self.aggregator = aggregator
        self.repository = repository

    @property
    def reference_currency(self) -> str:
        return self.aggregator.engine.reference_currency

    def _all_expenses(self, flt: ExpenseFilter) -> List[ExpenseRecord]:
        out: List[ExpenseRecord] = []
        page = 1
        while True:
            records, total = self.repository.find_expenses(
                flt, page=page, limit=EXPORT_PAGE_SIZE
            )
            out.extend(records)
            if not records or len(out) >= total:
                return out
            page += 1

    def _bucket(self, row: Mapping[str, Any], key: Any) -> Bucket:
        return Bucket(
            amount=float(row.get("total") or 0.0),
            currency=row.get("currency") or self.reference_currency,
            count=int(row.get("count") or 0),
            key=key,
        )

    # ---------------- Dashboard -----------------
    async def dashboard(
        self,
        user_id: str,
        target: str,
        today: Optional[date] = None,
        batches: Optional[Mapping[str, Sequence[Any]]] = None,
    ) -> Dashboard:
        """Weekly / monthly / yearly totals, each converted and summed independently.

        `batches` may carry pre-fetched records per window name; windows
        without a batch are queried from the repository.
        """
        target = normalize_currency(target)
        today = today or date.today()
        batches = batches or {}
        windows: Dict[str, DashboardWindow] = {}
        for name, (start, end) in window_bounds(today).items():
            records = batches.get(name)
            if records is None:
                records = self._all_expenses(
                    ExpenseFilter(user_id=user_id, start_date=start, end_date=end)
                )
            total = await self.aggregator.sum(records, target)
            windows[name] = DashboardWindow(name, start, end, total)
        month_start, _ = window_bounds(today)["monthly"]
        categories = await self.category_breakdown(
            user_id, target, start_date=month_start, end_date=today
        )
        return Dashboard(
            currency=target,
            as_of=today,
            weekly=windows["weekly"],
            monthly=windows["monthly"],
            yearly=windows["yearly"],
            top_categories=categories.categories[:5],
        )

    # ---------------- Category breakdown -----------------
    async def category_breakdown(
        self,
        user_id: str,
        target: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> CategoryBreakdown:
        target = normalize_currency(target)
        end_date = end_date or date.today()
        start_date = start_date or date(end_date.year, 1, 1)
        rows = self.repository.category_currency_totals(
            user_id, start_date=start_date, end_date=end_date
        )
        buckets = [self._bucket(r, r["category"]) for r in rows]
        converted = await self.aggregator.convert_batch(buckets, target)

        grouped: Dict[str, List[ConvertedRecord]] = {}
        for c in converted:
            grouped.setdefault(c.record.key, []).append(c)
        grand = sum2(c.converted_amount for c in converted)

        categories = []
        for category, items in grouped.items():
            total = sum2(c.converted_amount for c in items)
            count = sum(c.record.count for c in items)
            categories.append(
                CategoryTotal(
                    category=category,
                    total=total,
                    count=count,
                    average=round2(total / count) if count else 0.0,
                    percentage=round2(total / grand * 100) if grand > 0 else 0.0,
                    failed_count=sum(1 for c in items if c.failed),
                )
            )
        categories.sort(key=lambda c: (-c.total, c.category))
        return CategoryBreakdown(
            currency=target,
            start_date=start_date,
            end_date=end_date,
            categories=categories,
            overall_total=grand,
            failed_count=sum(1 for c in converted if c.failed),
        )

    # ---------------- Month series -----------------
    async def _month_series(
        self,
        user_id: str,
        target: str,
        months: List[Tuple[int, int]],
        start_date: date,
        end_date: date,
    ) -> MonthlySeries:
        rows = self.repository.month_currency_totals(
            user_id, start_date=start_date, end_date=end_date
        )
        by_month: Dict[Tuple[int, int], List[Bucket]] = {m: [] for m in months}
        for r in rows:
            key = (int(r["year"]), int(r["month"]))
            if key in by_month:
                by_month[key].append(self._bucket(r, key))
        # Empty months stay at zero and never reach the rate source.
        buckets = [b for items in by_month.values() for b in items]

        converted = await self.aggregator.convert_batch(buckets, target)
        grouped: Dict[Tuple[int, int], List[ConvertedRecord]] = {m: [] for m in months}
        for c in converted:
            grouped[c.record.key].append(c)

        series = [
            MonthTotal(
                year=y,
                month=m,
                total=sum2(c.converted_amount for c in grouped[(y, m)]),
                count=sum(c.record.count for c in grouped[(y, m)]),
                failed_count=sum(1 for c in grouped[(y, m)] if c.failed),
            )
            for (y, m) in months
        ]
        return MonthlySeries(
            currency=target,
            start_date=start_date,
            end_date=end_date,
            months=series,
            total=sum2(p.total for p in series),
            failed_count=sum(p.failed_count for p in series),
        )

    async def monthly_totals(
        self, user_id: str, target: str, year: Optional[int] = None
    ) -> MonthlySeries:
        target = normalize_currency(target)
        year = year or date.today().year
        months = [(year, m) for m in range(1, 13)]
        return await self._month_series(
            user_id, target, months, date(year, 1, 1), date(year, 12, 31)
        )

    async def trends(
        self, user_id: str, target: str, today: Optional[date] = None
    ) -> MonthlySeries:
        target = normalize_currency(target)
        today = today or date.today()
        months = trailing_months(today)
        first_year, first_month = months[0]
        return await self._month_series(
            user_id, target, months, date(first_year, first_month, 1), today
        )

    # ---------------- Export -----------------
    async def export_total(
        self,
        user_id: str,
        target: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> ExportResult:
        target = normalize_currency(target)
        end_date = end_date or date.today()
        start_date = start_date or date(end_date.year, 1, 1)
        records = self._all_expenses(
            ExpenseFilter(user_id=user_id, start_date=start_date, end_date=end_date)
        )
        converted = await self.aggregator.convert_batch(records, target)
        return ExportResult(
            currency=target, records=converted, total=total_of(converted, target)
        )

    # ---------------- Summary -----------------
    async def currency_summary(
        self, user_id: str, targets: Sequence[str], today: Optional[date] = None
    ) -> CurrencySummary:
        """Month-to-date totals per original currency and in each target."""
        today = today or date.today()
        start = today.replace(day=1)
        records = self._all_expenses(
            ExpenseFilter(user_id=user_id, start_date=start, end_date=today)
        )
        by_currency: Dict[str, List[float]] = {}
        for r in records:
            by_currency.setdefault(r.currency, []).append(r.amount)
        conversions: Dict[str, AggregateTotal] = {}
        for t in targets:
            code = normalize_currency(t)
            conversions[code] = await self.aggregator.sum(records, code)
        return CurrencySummary(
            start_date=start,
            end_date=today,
            original_totals={c: sum2(v) for c, v in sorted(by_currency.items())},
            conversions=conversions,
        )

    # ---------------- Converted listing -----------------
    async def converted_expenses(
        self, flt: ExpenseFilter, target: str, page: int = 1, limit: int = 10
    ) -> ConvertedPage:
        target = normalize_currency(target)
        records, total_count = self.repository.find_expenses(flt, page=page, limit=limit)
        converted = await self.aggregator.convert_batch(records, target)
        return ConvertedPage(
            currency=target,
            records=converted,
            page=page,
            limit=limit,
            total_count=total_count,
            summary=total_of(converted, target),
        )
