"""FastAPI dependencies resolving per-app services from `app.state`.

The rate cache is owned by the application instance (built in `create_app`),
so separate apps (e.g. one per test) never share cached rates.
"""

from __future__ import annotations

from fastapi import Depends, Header, Request

from expense_tracker.core.config import Settings
from expense_tracker.db.dal import Database
from expense_tracker.services.aggregator import ExpenseAggregator
from expense_tracker.services.rates.cache_service import RateCache
from expense_tracker.services.rates.conversion import ConversionEngine
from expense_tracker.services.reporting import ReportingFacade


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Database:
    return Database(request.app.state.settings.db_path)


def get_rate_cache(request: Request) -> RateCache:
    return request.app.state.rate_cache


def get_engine(request: Request) -> ConversionEngine:
    return request.app.state.engine


def get_aggregator(request: Request) -> ExpenseAggregator:
    return request.app.state.aggregator


def get_reporting(
    aggregator: ExpenseAggregator = Depends(get_aggregator),
    db: Database = Depends(get_db),
) -> ReportingFacade:
    return ReportingFacade(aggregator, db)


def get_user_id(
    request: Request, x_user_id: str | None = Header(None)
) -> str:
    return x_user_id or request.app.state.settings.default_user_id
