from __future__ import annotations

import csv
import io
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from expense_tracker.core.config import Settings
from expense_tracker.core.deps import get_app_settings, get_reporting, get_user_id
from expense_tracker.services.reporting import (
    CategoryTotal,
    DashboardWindow,
    MonthlySeries,
    ReportingFacade,
)

"""Reports router: dashboard, category breakdown, monthly totals, trends and
CSV export, all normalized into the requested display currency (defaults to
settings.default_currency).
"""

router = APIRouter(prefix="/reports", tags=["reports"])

CSV_HEADERS = ["Title", "Amount", "Category", "Date", "Description", "Converted", "Note"]


def _display_currency(
    currency: Optional[str] = Query(None, description="Display currency (e.g. EUR)"),
    settings: Settings = Depends(get_app_settings),
) -> str:
    return (currency or settings.default_currency).upper()


def _check_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date cannot be after end_date")


def _window(w: DashboardWindow) -> dict:
    return {
        "start_date": w.start_date,
        "end_date": w.end_date,
        "average": w.average,
        **w.total.as_dict(),
    }


def _category(c: CategoryTotal) -> dict:
    return {
        "category": c.category,
        "total": c.total,
        "count": c.count,
        "avg_amount": c.average,
        "percentage": c.percentage,
        "failed_count": c.failed_count,
    }


def _series(s: MonthlySeries) -> dict:
    return {
        "currency": s.currency,
        "period": {"start_date": s.start_date, "end_date": s.end_date},
        "months": [
            {
                "month": m.label,
                "year": m.year,
                "total": m.total,
                "count": m.count,
                "failed_count": m.failed_count,
            }
            for m in s.months
        ],
        "total": s.total,
        "failed_count": s.failed_count,
    }


@router.get("/dashboard", summary="Weekly / monthly / yearly totals")
async def dashboard(
    currency: str = Depends(_display_currency),
    user_id: str = Depends(get_user_id),
    reporting: ReportingFacade = Depends(get_reporting),
):
    d = await reporting.dashboard(user_id, currency)
    return {
        "success": True,
        "data": {
            "currency": d.currency,
            "as_of": d.as_of,
            "weekly": _window(d.weekly),
            "monthly": _window(d.monthly),
            "yearly": _window(d.yearly),
            "top_categories": [_category(c) for c in d.top_categories],
        },
    }


@router.get("/category", summary="Category totals with percentage share")
async def category_report(
    start_date: Optional[date] = Query(None, description="Defaults to Jan 1 of this year"),
    end_date: Optional[date] = Query(None, description="Defaults to today"),
    currency: str = Depends(_display_currency),
    user_id: str = Depends(get_user_id),
    reporting: ReportingFacade = Depends(get_reporting),
):
    _check_range(start_date, end_date)
    b = await reporting.category_breakdown(
        user_id, currency, start_date=start_date, end_date=end_date
    )
    return {
        "success": True,
        "data": {
            "currency": b.currency,
            "period": {"start_date": b.start_date, "end_date": b.end_date},
            "category_totals": [_category(c) for c in b.categories],
            "overall_total": b.overall_total,
            "failed_count": b.failed_count,
        },
    }


@router.get("/monthly", summary="Monthly totals for a calendar year")
async def monthly_report(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    currency: str = Depends(_display_currency),
    user_id: str = Depends(get_user_id),
    reporting: ReportingFacade = Depends(get_reporting),
):
    series = await reporting.monthly_totals(user_id, currency, year=year)
    return {"success": True, "data": {"year": series.start_date.year, **_series(series)}}


@router.get("/trends", summary="Trailing 12-month totals")
async def trends_report(
    currency: str = Depends(_display_currency),
    user_id: str = Depends(get_user_id),
    reporting: ReportingFacade = Depends(get_reporting),
):
    series = await reporting.trends(user_id, currency)
    return {"success": True, "data": _series(series)}


@router.get("/export/csv", summary="Export expenses as CSV with a converted total")
async def export_csv(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    currency: str = Depends(_display_currency),
    user_id: str = Depends(get_user_id),
    reporting: ReportingFacade = Depends(get_reporting),
):
    _check_range(start_date, end_date)
    export = await reporting.export_total(
        user_id, currency, start_date=start_date, end_date=end_date
    )
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADERS)
    for c in export.records:
        r = c.record
        writer.writerow(
            [
                r.title,
                f"{c.original_amount:.2f} {c.original_currency}",
                r.category,
                r.date.isoformat(),
                r.description or "",
                f"{c.converted_amount:.2f} {c.converted_currency}",
                c.conversion_error or "",
            ]
        )
    total = export.total
    note = "" if total.normalized else f"{total.failed_count} not converted"
    writer.writerow(["Total", "", "", "", "", f"{total.total:.2f} {total.currency}", note])
    suffix = f"{start_date or 'ytd'}_{end_date or 'today'}"
    return Response(
        content=buf.getvalue(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="expenses_{suffix}.csv"'},
    )
