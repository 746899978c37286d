import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .core import errors
from .db.dal import Database
from .db.migrate import apply_migrations
from .routers import backup, costs, health, rates, reports
from .services.ledger import LedgerStore
from .services.rates.provider import RateProvider

logger = logging.getLogger("cost_manager")


def create_app(
    settings_override: Settings | None = None,
    rates_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment (e.g., temp DB). Falls back to cached get_settings().
    rates_transport: optional httpx transport for the rate fetcher (tests use
    ``httpx.MockTransport``).
    """
    settings = settings_override or get_settings()
    settings.init_post_load()
    init_logging(debug=settings.debug)

    try:
        apply_migrations(settings.db_path)  # type: ignore[arg-type]
    except Exception:
        logger.exception("failed to apply migrations on startup")
        raise

    db = Database(settings.db_path)  # type: ignore[arg-type]
    provider = RateProvider(
        db,
        default_url=settings.default_rates_url,
        timeout=settings.http_timeout_seconds,
        retries=settings.http_retries,
        transport=rates_transport,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Rates are acquired once per process before reports are served;
        # a failure here is reported again by the first report request.
        if settings.prime_rates_on_startup:
            try:
                await provider.get_active_rates()
            except errors.CostManagerError as e:
                logger.warning(
                    "rates unavailable at startup: %s",
                    e.message,
                    extra={"error_code": e.code, "error_field": e.field},
                )
        yield

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.rate_provider = provider
    app.state.ledger = LedgerStore(db)

    app.middleware("http")(request_context_middleware)

    app.add_exception_handler(errors.CostManagerError, errors.domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, errors.not_found_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    app.include_router(health.router)
    app.include_router(costs.router)
    app.include_router(reports.router)
    app.include_router(rates.router)
    app.include_router(backup.router)

    @app.get("/")
    async def root():
        return {"message": "Cost Manager API", "version": settings.version}

    return app
