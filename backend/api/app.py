"""
FastAPI application factory.

Creates and configures the FastAPI application instance.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from shared.config import Settings
from shared.database import check_connection, get_supabase_client

from .dependencies import get_container, init_container
from .errors import register_exception_handlers
from .routes import admin, health, pages
from .views import STATIC_DIR

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Checks the cookie-signing secret, verifies the database connection when
    a Supabase backend is configured and creates the initial admin account.
    Any failure aborts startup.
    """
    container = get_container()
    settings = container.settings

    try:
        settings.check_session_secret()
    except RuntimeError as e:
        logger.critical("%s", e)
        raise

    if settings.uses_supabase:
        check_connection(get_supabase_client())

    await container.auth.ensure_admin_user(
        settings.admin_initial_name,
        settings.admin_initial_email,
        settings.admin_initial_password,
    )

    logger.info("Starting %s on %s:%s", settings.app_name, settings.host, settings.port)
    yield
    logger.info("Shutting down %s", settings.app_name)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Explicit settings; installs a new service container when given

    Returns:
        Configured FastAPI instance
    """
    if settings is not None:
        init_container(settings)
    else:
        settings = get_container().settings

    app = FastAPI(
        title=settings.app_name,
        description="Session-based signup, login and members portal",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    register_exception_handlers(app)

    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    # Register routes
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(pages.router, tags=["pages"])
    if settings.enable_roles:
        app.include_router(admin.router, prefix="/admin", tags=["admin"])

    return app


# Application instance for uvicorn
app = create_app()
