"""FastAPI application factory."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from src import database
from src.api.errors import register_exception_handlers
from src.api.middleware import CorrelationIdMiddleware
from src.api.routes import router as health_router
from src.api.users import router as users_router
from src.config import Settings, get_settings
from src.services.logging_service import configure_logging, get_logger
from src.services.media_service import LocalMediaStorage, MediaStorage


def _build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the database pool and apply migrations; close on shutdown."""
        configure_logging(settings.log_level)
        logger = get_logger("main")

        app.state.pool = None
        try:
            pool = await database.init_database(settings.postgres_url)
            app.state.pool = pool
            await database.run_migrations(pool)
            logger.info("database_initialized")
        except Exception as e:
            logger.warning(
                "database_initialization_failed",
                error=str(e),
                note="Continuing without database - account endpoints will return 500",
            )

        logger.info("application_started", log_level=settings.log_level)

        yield

        await database.close_database(app.state.pool)
        app.state.pool = None
        logger.info("application_shutdown")

    return lifespan


def create_app(
    settings: Optional[Settings] = None,
    media_storage: Optional[MediaStorage] = None,
) -> FastAPI:
    """Build the application from explicit configuration.

    Args:
        settings: Configuration; defaults to environment-loaded settings
        media_storage: Blob store for uploads; defaults to local files under
            settings.media_root, served at settings.media_base_url

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Stream Hub - Identity API",
        description="Accounts, sessions and channel profiles",
        version="0.1.0",
        lifespan=_build_lifespan(settings),
    )

    if media_storage is None:
        media_storage = LocalMediaStorage(
            settings.media_root,
            settings.media_base_url,
            settings.max_upload_bytes,
        )

    app.state.settings = settings
    app.state.pool = None
    app.state.media_storage = media_storage

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(health_router)
    app.include_router(users_router)

    if isinstance(media_storage, LocalMediaStorage):
        Path(media_storage.root).mkdir(parents=True, exist_ok=True)
        app.mount(
            settings.media_base_url,
            StaticFiles(directory=media_storage.root),
            name="media",
        )

    return app
