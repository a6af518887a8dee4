import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .core import errors
from .db.schema import init_db
from .routers import currency, expenses, reports
from .services.aggregator import ExpenseAggregator
from .services.rates.base import RateSource
from .services.rates.cache_service import RateCache
from .services.rates.conversion import ConversionEngine
from .services.rates.errors import ConversionError
from .services.rates.providers import make_rate_source


def create_app(
    settings_override: Settings | None = None,
    rate_source: RateSource | None = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment (e.g., temp DB). Falls back to cached get_settings().
    rate_source: inject a source (tests, offline runs) instead of the
    configured provider.
    """
    settings = settings_override or get_settings()
    if settings.db_path is None or settings.exchange_api_base_url is None:
        settings.init_post_load()
    init_logging(debug=settings.debug)

    try:
        init_db(settings.db_path)  # type: ignore[arg-type]
    except Exception:
        logging.getLogger("expense_tracker").exception("failed to initialize database")
        raise

    app = FastAPI(
        title=settings.app_name, debug=settings.debug, version=settings.version
    )

    source = rate_source or make_rate_source(settings)
    cache = RateCache(
        source,
        ttl_seconds=settings.rates_cache_ttl_seconds,
        fetch_timeout=settings.http_timeout_seconds * (settings.http_retries + 1) + 1,
    )
    engine = ConversionEngine(
        cache,
        strategy=settings.conversion_strategy,
        reference_currency=settings.reference_currency,
    )
    app.state.settings = settings
    app.state.rate_cache = cache
    app.state.engine = engine
    app.state.aggregator = ExpenseAggregator(engine)
    logging.getLogger("expense_tracker").info(
        "rates: provider=%s ttl=%ss strategy=%s",
        source.name,
        settings.rates_cache_ttl_seconds,
        settings.conversion_strategy,
    )

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, errors.http_error_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(ConversionError, errors.conversion_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(currency.router)
    app.include_router(expenses.router)
    app.include_router(reports.router)

    @app.get("/")
    async def root():
        return {"message": "Expense Tracker API", "version": settings.version}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
