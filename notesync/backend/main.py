"""
FastAPI Application Entry Point.

The authoritative notes/tags service consumed by the offline sync client.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notesync.backend.api import health
from notesync.backend.api.v1 import router as api_v1_router
from notesync.backend.core.config import get_app_config
from notesync.backend.core.database import Database
from notesync.backend.core.exception_handlers import register_exception_handlers
from notesync.backend.core.logging import get_logger, setup_logging
from notesync.backend.core.middleware import RequestContextMiddleware
from notesync.backend.services.tag import TagService

logger = get_logger(__name__)

_app: FastAPI | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager: logging, schema, default tags."""
    setup_logging()

    database: Database = app.state.database
    await database.create_all()
    if app.state.seed_default_tags:
        async with database.session() as session:
            await TagService(session).seed_defaults()

    logger.info(
        "Application starting",
        extra={
            "app_name": app.state.settings.name,
            "env": app.state.settings.environment,
            "database": database.engine.url.drivername,
        },
    )
    yield
    logger.info("Application shutting down")
    if app.state.owns_database:
        await database.dispose()


def create_app(
    database: Database | None = None,
    seed_default_tags: bool | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        database: Store to serve. Built from database.yaml when omitted.
        seed_default_tags: Override database.yaml seed_default_tags.
    """
    app_config = get_app_config()
    app_settings = app_config.application

    app = FastAPI(
        title=app_settings.name,
        description=app_settings.description,
        version=app_settings.version,
        docs_url="/docs" if app_settings.docs_enabled else None,
        redoc_url="/redoc" if app_settings.docs_enabled else None,
        lifespan=lifespan,
    )

    app.state.settings = app_settings
    app.state.owns_database = database is None
    app.state.database = database or Database.from_config()
    app.state.seed_default_tags = (
        app_config.database.seed_default_tags
        if seed_default_tags is None
        else seed_default_tags
    )

    app.add_middleware(RequestContextMiddleware)

    cors_origins = app_settings.cors.origins
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["Content-Disposition", "X-Request-ID"],
        )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(api_v1_router, prefix=app_settings.api_prefix)

    return app


def get_app() -> FastAPI:
    """
    Get the application instance (lazy initialization).

    This function creates the app on first call and caches it.
    Use this instead of importing `app` directly to avoid
    import-time configuration errors.
    """
    global _app
    if _app is None:
        _app = create_app()
    return _app


# For uvicorn: `uvicorn notesync.backend.main:app`
def __getattr__(name: str) -> FastAPI:
    """Support lazy access to `app` for uvicorn compatibility."""
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
