"""ASGI application for the DQ Flags API.

Run with ``uvicorn api.main:app``. The graph backend and the batch worker
pool are created in the lifespan handler and torn down in reverse order.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .dependencies import init_dependencies, shutdown_dependencies
from .middleware import RequestLoggingMiddleware
from .routers import classes_router, flags_router, health_router

logger = structlog.get_logger(__name__)

DESCRIPTION = (
    "Data-quality flags over a property graph. Raise flags on entities, "
    "organize them in a class hierarchy, read per-class statistics and "
    "delete flags in isolated batches."
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(
        "Starting DQ Flags API",
        version=settings.app_version,
        debug=settings.debug,
        graph_backend=settings.graph_backend.value,
    )

    try:
        await init_dependencies(settings)
    except Exception as e:
        logger.error("Startup failed", error=str(e))
        raise

    try:
        yield
    finally:
        logger.info("Shutting down DQ Flags API")
        await shutdown_dependencies()


def _mount_routes(app: FastAPI, settings: Settings) -> None:
    app.include_router(health_router)
    for router in (flags_router, classes_router):
        app.include_router(router, prefix=settings.api_prefix)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health",
        }


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to build with; defaults to the cached settings.

    Returns:
        The configured FastAPI application.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=DESCRIPTION,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # outermost, so CORS preflights are logged too
    app.add_middleware(RequestLoggingMiddleware)

    _mount_routes(app, settings)
    return app


app = create_app()
