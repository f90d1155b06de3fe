"""Roadside Dispatch API -- Main Application Entry Point

Creates the FastAPI application, configures logging and CORS middleware,
and registers all API route modules under the ``/api`` prefix.

Run with::

    uvicorn roadside.main:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from roadside.api.errors import DispatchHTTPException, dispatch_http_exception_handler
from roadside.api.routes import providers, requests, users
from roadside.core.config import settings

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Startup:
      - Configure logging from ``settings.log_level``.
      - Create tables when ``auto_create_tables`` is set (local development;
        deployed databases are managed by Alembic).

    Shutdown:
      - Dispose of the shared database engine.
    """
    from roadside.api.deps import engine
    from roadside.models import Base

    configure_logging()

    if settings.auto_create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured via create_all")

    logger.info("%s %s started", settings.app_name, settings.app_version)
    yield

    await engine.dispose()


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    origins = [o.strip() for o in settings.cors_allowed_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DispatchHTTPException, dispatch_http_exception_handler)

    @app.get("/health", tags=["Health"])
    async def health():
        """Lightweight health check for load balancers and readiness probes."""
        return {"status": "ok", "version": settings.app_version}

    # Each router defines its own prefix (/requests, /providers, /users)
    app.include_router(requests.router, prefix=settings.api_prefix)
    app.include_router(providers.router, prefix=settings.api_prefix)
    app.include_router(users.router, prefix=settings.api_prefix)

    return app


app = create_app()
