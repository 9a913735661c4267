from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from imagebot.config.logging import get_logger, setup_logging
from imagebot.config.settings import Settings, settings as default_settings
from imagebot.infra.database import Database, set_database
from imagebot.v1.core.exceptions import (
    ImageBotException,
    RequestContextMiddleware,
    general_exception_handler,
    http_exception_handler,
    image_bot_exception_handler,
)
from imagebot.v1.core.registries import JobRegistry, job_registry
from imagebot.v1.healthz import router as health_router
from imagebot.v1.infra.jobs.manager import JobManager
from imagebot.v1.infra.jobs.registry_init import register_job_handlers
from imagebot.v1.infra.jobs.repository import JobRepository
from imagebot.v1.infra.jobs.routes import router as jobs_router
from imagebot.v1.infra.jobs.store import JobStore
from imagebot.v1.notify.base import ArtifactStore, Notifier
from imagebot.v1.notify.log import LogNotifier
from imagebot.v1.notify.telegram import TelegramNotifier, create_telegram_client
from imagebot.v1.providers.runpod import create_runpod_client
from imagebot.v1.training.repository import TrainingRepository

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the database, handlers and job manager; stop them on shutdown."""
    settings: Settings = app.state.settings
    registry: JobRegistry = app.state.job_registry

    database = Database(settings)
    set_database(database)
    if settings.db_auto_create:
        await database.create_tables()

    runpod_client = create_runpod_client(
        settings.runpod_base_url, settings.runpod_api_key, settings.runpod_timeout_s
    )
    telegram_client = create_telegram_client(
        settings.telegram_api_url, settings.telegram_timeout_s
    )

    notifier: Notifier | None = app.state.notifier
    if notifier is None:
        if settings.telegram_bot_token:
            notifier = TelegramNotifier(telegram_client, settings.telegram_bot_token)
        else:
            logger.warning("TELEGRAM_BOT_TOKEN not set, notifications are only logged")
            notifier = LogNotifier()

    register_job_handlers(
        settings,
        notifier=notifier,
        runpod_client=runpod_client,
        trainings=TrainingRepository(database.SessionLocal),
        artifacts=app.state.artifacts,
        registry=registry,
    )
    # Freeze registries in non-development environments to prevent runtime modifications
    if settings.environment != "development":
        registry.freeze()

    repository = JobRepository(JobStore(database.SessionLocal))
    if settings.job_stale_running_after_s > 0:
        await repository.fail_stale_running(
            timedelta(seconds=settings.job_stale_running_after_s)
        )

    manager = JobManager(
        repository,
        registry,
        concurrency=settings.job_concurrency,
        tick_interval_ms=settings.job_tick_interval_ms,
    )
    manager.start_periodic()
    app.state.job_manager = manager

    try:
        yield
    finally:
        await manager.stop()
        app.state.job_manager = None
        await runpod_client.aclose()
        await telegram_client.aclose()
        await database.close()
        set_database(None)


def create_app(
    app_settings: Settings | None = None,
    registry: JobRegistry | None = None,
    notifier: Notifier | None = None,
    artifacts: ArtifactStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = app_settings or default_settings

    # Initialize structured logging
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Background job runner for chat-driven model training and image generation",
        version=settings.version,
        debug=settings.debug,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.job_registry = registry if registry is not None else job_registry
    app.state.notifier = notifier
    app.state.artifacts = artifacts
    app.state.job_manager = None

    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(ImageBotException, image_bot_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "imagebot.main:create_app",
        factory=True,
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
    )
