"""FastAPI application factory with lifespan, CORS, and routers."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from newswatch import __version__
from newswatch.api.deps import error_response, new_correlation_id
from newswatch.config import Settings, get_settings
from newswatch.services import Services, build_services

logger = logging.getLogger(__name__)

_start_time: float = 0.0


def get_uptime() -> float:
    return time.time() - _start_time if _start_time else 0.0


@asynccontextmanager
async def _lifespan(app: FastAPI):
    global _start_time
    _start_time = time.time()

    services: Services = app.state.services
    await services.startup()
    logger.info("Newswatch API v%s starting", __version__)
    yield
    await services.shutdown()
    logger.info("Newswatch API shutting down")


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build and return the fully-configured FastAPI application."""
    settings = settings or (services.settings if services else get_settings())

    app = FastAPI(
        title="Newswatch",
        description="News-driven market alert pipeline",
        version=__version__,
        lifespan=_lifespan,
    )
    app.state.services = services or build_services(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        correlation_id = new_correlation_id()
        logger.error("[api] unhandled error on %s correlation=%s: %s", request.url.path, correlation_id, exc)
        return error_response(500, "Internal server error", "INTERNAL_ERROR", correlation_id)

    from newswatch.api.routes import alert, analyze, system
    app.include_router(analyze.router, prefix="/api")
    app.include_router(alert.router, prefix="/api")
    app.include_router(system.router, prefix="/api")

    return app
