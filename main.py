"""
MealPass API

Wires the routers, the error envelope and the background cutoff job. The
catalog (MongoDB) is optional: without it auto-fill and add-on pricing are
skipped, but every day/credit operation keeps working.
"""

import logging
from contextlib import asynccontextmanager

import anyio
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from adapters import catalog_adapter
from api.middleware import (
    RequestLoggingMiddleware,
    general_exception_handler,
    http_exception_handler,
    service_error_handler,
    validation_exception_handler,
)
from api.routes import courier, health, kitchen, plans, subscriptions, webhooks
from api.routes import settings as settings_routes
from app.config import settings
from app.exceptions import ServiceError
from app.scheduler import scheduler_manager
from domain.models import init_database

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()), format=settings.log_format
)
_logger = logging.getLogger("mealpass.main")

API_ROUTERS = (plans, subscriptions, kitchen, courier, webhooks, settings_routes)


async def _wait_for_database() -> None:
    """Create tables, retrying while the database container comes up."""
    attempts = settings.db_init_attempts
    for attempt in range(1, attempts + 1):
        try:
            await anyio.to_thread.run_sync(init_database)
        except Exception as exc:
            if attempt == attempts:
                _logger.error("Database still unreachable after %d attempts", attempts)
                raise
            _logger.warning("Database not ready (%d/%d): %s", attempt, attempts, exc)
            await anyio.sleep(settings.db_init_delay_sec)
        else:
            _logger.info("Database ready")
            return


def _connect_catalog() -> None:
    try:
        catalog_adapter.connect(settings.mongo_uri, settings.mongo_db_name)
    except Exception as exc:
        _logger.warning("Meal catalog unavailable, auto-fill and add-ons disabled: %s", exc)
    else:
        _logger.info("Meal catalog connected")


@asynccontextmanager
async def lifespan(app: FastAPI):
    _logger.info("MealPass starting (%s)", settings.environment.value)
    await _wait_for_database()
    _connect_catalog()

    run_cutoff_job = settings.scheduler_enabled and not settings.is_testing()
    if run_cutoff_job:
        scheduler_manager.initialize()
        scheduler_manager.start()

    try:
        yield
    finally:
        _logger.info("MealPass stopping")
        if run_cutoff_job:
            scheduler_manager.shutdown(wait=False)
        try:
            catalog_adapter.close()
        except Exception:
            _logger.exception("Error closing the meal catalog connection")


def create_app() -> FastAPI:
    docs_enabled = not settings.is_production()
    prefix = settings.api_prefix

    application = FastAPI(
        title=settings.api_title,
        version=settings.app_version,
        description=settings.api_description,
        lifespan=lifespan,
        debug=settings.debug,
        openapi_url=f"{prefix}/openapi.json" if docs_enabled else None,
        docs_url=f"{prefix}/docs" if docs_enabled else None,
        redoc_url=f"{prefix}/redoc" if docs_enabled else None,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    application.add_middleware(RequestLoggingMiddleware)

    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(ServiceError, service_error_handler)
    application.add_exception_handler(Exception, general_exception_handler)

    # Load balancers probe /health-check outside the API prefix
    application.include_router(health.router)
    for module in API_ROUTERS:
        application.include_router(module.router, prefix=prefix)

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development(),
        log_level=settings.log_level.lower(),
    )
