from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from expense_tracker.core.deps import (
    get_rate_cache,
    get_engine,
    get_reporting,
    get_user_id,
)
from expense_tracker.models.constants import CURRENCY_INFO
from expense_tracker.models.expense import ExpenseFilter
from expense_tracker.services.rates.base import normalize_currency
from expense_tracker.services.rates.cache_service import RateCache
from expense_tracker.services.rates.conversion import ConversionEngine
from expense_tracker.services.reporting import ReportingFacade

"""Currency router: supported codes, rate lookup, conversion tool,
converted expense listing, multi-currency summary and cache reset.

Every response uses the envelope {success, data | message}.
"""

router = APIRouter(prefix="/currency", tags=["currency"])


class ConvertPayload(BaseModel):
    amount: float = Field(..., gt=0, description="Amount to convert")
    from_currency: str = Field(..., description="Source currency code")
    to_currency: str = Field(..., description="Target currency code")

    @field_validator("from_currency", "to_currency")
    @classmethod
    def upper(cls, v: str) -> str:
        return v.strip().upper()


@router.get("/supported", summary="List supported currencies")
async def supported_currencies():
    return {
        "success": True,
        "data": [
            {"code": code, "name": name, "symbol": symbol}
            for code, (name, symbol) in CURRENCY_INFO.items()
        ],
    }


@router.get("/rates/{base}", summary="Exchange rates for a base currency")
async def rates_for_base(base: str, cache: RateCache = Depends(get_rate_cache)):
    table = await cache.get_rates(normalize_currency(base))
    return {"success": True, "data": table.as_dict()}


@router.post("/convert", summary="Convert an amount between currencies")
async def convert(
    payload: ConvertPayload, engine: ConversionEngine = Depends(get_engine)
):
    result = await engine.convert(
        payload.amount, payload.from_currency, payload.to_currency
    )
    return {"success": True, "data": result}


@router.get("/expenses/{target}", summary="Expenses converted to a target currency")
async def converted_expenses(
    target: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=1000),
    start_date: Optional[date] = Query(None, description="Filter start date inclusive"),
    end_date: Optional[date] = Query(None, description="Filter end date inclusive"),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    user_id: str = Depends(get_user_id),
    reporting: ReportingFacade = Depends(get_reporting),
):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date cannot be after end_date")
    flt = ExpenseFilter(
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
        category=category,
        search_text=search,
    )
    result = await reporting.converted_expenses(flt, target, page=page, limit=limit)
    return {
        "success": True,
        "data": {
            "expenses": [c.as_dict() for c in result.records],
            "pagination": {
                "current_page": result.page,
                "total_pages": result.total_pages,
                "total_expenses": result.total_count,
                "has_next": result.has_next,
                "has_prev": result.has_prev,
            },
            "summary": result.summary.as_dict(),
        },
    }


@router.get("/summary/{base}", summary="Month-to-date totals in several currencies")
async def currency_summary(
    base: str,
    currencies: str = Query("USD,EUR,GBP,INR", description="Comma separated targets"),
    user_id: str = Depends(get_user_id),
    reporting: ReportingFacade = Depends(get_reporting),
    cache: RateCache = Depends(get_rate_cache),
):
    base = normalize_currency(base)
    targets = [c for c in (s.strip() for s in currencies.split(",")) if c]
    summary = await reporting.currency_summary(user_id, targets)
    table = await cache.get_rates(base)
    return {
        "success": True,
        "data": {
            "period": {"start_date": summary.start_date, "end_date": summary.end_date},
            "original_totals": summary.original_totals,
            "conversions": {k: v.as_dict() for k, v in summary.conversions.items()},
            "base_currency": base,
            "exchange_rates": table.as_dict(),
        },
    }


@router.post("/clear-cache", summary="Drop all cached rate tables")
async def clear_cache(cache: RateCache = Depends(get_rate_cache)):
    cache.clear_cache()
    return {"success": True, "message": "Currency cache cleared successfully"}
