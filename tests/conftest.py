import asyncio
from collections.abc import AsyncGenerator, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from imagebot.config.settings import Settings
from imagebot.infra.database import Base
from imagebot.main import create_app
from imagebot.v1.core.registries import JobRegistry
from imagebot.v1.infra.jobs.manager import JobManager
from imagebot.v1.infra.jobs.repository import JobRepository
from imagebot.v1.infra.jobs.store import JobStore
from imagebot.v1.notify.base import Artifact
from imagebot.v1.training.repository import TrainingRepository

# Import models to ensure they're registered
from imagebot.v1.infra.jobs import models as job_models  # noqa: F401
from imagebot.v1.training import models as training_models  # noqa: F401


class RecordingNotifier:
    """Notifier that keeps every outbound call for assertions."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []
        self.deliveries: list[tuple[str, Artifact, str | None]] = []

    async def notify(self, destination: str, message: str) -> None:
        self.messages.append((destination, message))

    async def deliver(
        self, destination: str, artifact: Artifact, filename: str | None = None
    ) -> None:
        self.deliveries.append((destination, artifact, filename))


class GatedHandler:
    """Handler that blocks until released and tracks how many run at once."""

    def __init__(self):
        self.release = asyncio.Event()
        self.seen: list[Any] = []
        self.running = 0
        self.peak = 0

    async def handle(self, payload: Any) -> Any:
        self.seen.append(payload)
        self.running += 1
        self.peak = max(self.peak, self.running)
        try:
            await self.release.wait()
        finally:
            self.running -= 1
        return {"echo": payload}


class EchoHandler:
    async def handle(self, payload: Any) -> Any:
        return {"echo": payload}


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'imagebot.db'}"


@pytest.fixture
def test_settings(database_url) -> Settings:
    """Settings pointing at a throwaway SQLite file with no external endpoints."""
    return Settings(
        database_url=database_url,
        environment="development",
        debug=True,
        job_concurrency=3,
        job_tick_interval_ms=20,
        job_stale_running_after_s=3600,
        telegram_bot_token=None,
        runpod_api_key=None,
        runpod_train_endpoint_id="",
        runpod_inference_endpoint_id="",
        runpod_check_style_endpoint_id="",
    )


@pytest.fixture
async def session_factory(database_url) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory over a fresh schema."""
    engine = create_async_engine(database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def job_store(session_factory) -> JobStore:
    return JobStore(session_factory)


@pytest.fixture
def job_repository(job_store) -> JobRepository:
    return JobRepository(job_store)


@pytest.fixture
def training_repository(session_factory) -> TrainingRepository:
    return TrainingRepository(session_factory)


@pytest.fixture
def registry() -> JobRegistry:
    """Fresh registry so tests never touch the process-wide one."""
    return JobRegistry()


@pytest.fixture
async def manager(job_repository, registry) -> AsyncGenerator[JobManager, None]:
    job_manager = JobManager(job_repository, registry, concurrency=2, tick_interval_ms=20)
    yield job_manager
    await job_manager.stop()
    # No further dispatch while leftover jobs are cancelled
    job_manager.concurrency = 0
    for task in list(job_manager.active_jobs.values()):
        task.cancel()
    await job_manager.wait_idle()


@pytest.fixture
def gated_handler() -> GatedHandler:
    return GatedHandler()


@pytest.fixture
def echo_handler() -> EchoHandler:
    return EchoHandler()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def app(test_settings, registry, notifier):
    """Application wired to the test database, a fresh registry and a recording notifier."""
    return create_app(test_settings, registry=registry, notifier=notifier)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client (runs the lifespan)."""
    with TestClient(app) as test_client:
        yield test_client
