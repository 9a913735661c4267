"""Tests for the job API endpoints."""

import asyncio
import time
from datetime import UTC, datetime, timedelta

from fastapi.testclient import TestClient
from sqlalchemy import update

from imagebot.infra.database import Database
from imagebot.main import create_app
from imagebot.v1.infra.jobs.models import Job, JobStatus
from imagebot.v1.infra.jobs.repository import RESTART_SWEEP_ERROR, JobRepository
from imagebot.v1.infra.jobs.store import JobStore


def wait_for_job(client: TestClient, job_id: int, status: str, timeout: float = 3.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        job = client.get(f"/v1/jobs/{job_id}").json()["data"]
        if job["status"] == status or time.monotonic() > deadline:
            return job
        time.sleep(0.02)


def test_enqueue_job(client: TestClient, registry, echo_handler):
    registry.register("echo", echo_handler)

    response = client.post("/v1/jobs", json={"type": "echo", "payload": {"n": 1}})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "pending"
    assert isinstance(data["job_id"], int)

    job = wait_for_job(client, data["job_id"], "completed")
    assert job["status"] == "completed"
    assert job["type"] == "echo"
    assert job["payload"] == {"n": 1}
    assert job["result"] == {"echo": {"n": 1}}
    assert job["error"] is None
    assert job["started_at"] is not None
    assert job["completed_at"] is not None


def test_unknown_job_type_fails(client: TestClient):
    response = client.post("/v1/jobs", json={"type": "nope", "payload": {}})
    job_id = response.json()["data"]["job_id"]

    job = wait_for_job(client, job_id, "failed")

    assert job["status"] == "failed"
    assert job["error"] == "No handler found for job type: nope"


def test_payload_is_optional(client: TestClient, registry, echo_handler):
    registry.register("echo", echo_handler)

    response = client.post("/v1/jobs", json={"type": "echo"})
    job = wait_for_job(client, response.json()["data"]["job_id"], "completed")

    assert job["payload"] is None
    assert job["result"] == {"echo": None}


def test_get_missing_job(client: TestClient):
    response = client.get("/v1/jobs/424242")

    assert response.status_code == 404
    body = response.json()
    assert body["ok"] is False
    assert body["error"]["message"] == "Job not found"
    assert body["error"]["details"] == {"job_id": 424242}


def test_enqueue_requires_type(client: TestClient):
    response = client.post("/v1/jobs", json={"type": "", "payload": {}})

    assert response.status_code == 422


def test_job_stats(client: TestClient, registry, echo_handler):
    registry.register("echo", echo_handler)

    done = client.post("/v1/jobs", json={"type": "echo"}).json()["data"]["job_id"]
    failed = client.post("/v1/jobs", json={"type": "nope"}).json()["data"]["job_id"]
    wait_for_job(client, done, "completed")
    wait_for_job(client, failed, "failed")

    response = client.get("/v1/jobs/stats/overview")

    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["by_status"] == {"pending": 0, "running": 0, "completed": 1, "failed": 1}
    assert stats["queue_depth"] == 0
    assert stats["active_jobs"] == 0
    assert stats["concurrency"] == 3
    assert stats["ticking"] is True


def test_jobs_unavailable_without_lifespan(test_settings, registry, notifier):
    app = create_app(test_settings, registry=registry, notifier=notifier)
    client = TestClient(app)

    response = client.post("/v1/jobs", json={"type": "echo"})

    assert response.status_code == 503
    assert response.json()["error"]["message"] == "Job manager is not running"


def test_stale_running_jobs_failed_on_startup(test_settings, registry, notifier):
    """A job left running by a previous process is failed, not rerun."""

    async def seed() -> int:
        database = Database(test_settings)
        await database.create_tables()
        repository = JobRepository(JobStore(database.SessionLocal))
        job_id = await repository.enqueue("echo", {"n": 1})
        await repository.transition(job_id, JobStatus.RUNNING)
        async with database.SessionLocal() as session:
            await session.execute(
                update(Job)
                .where(Job.id == job_id)
                .values(started_at=datetime.now(UTC) - timedelta(hours=2))
            )
            await session.commit()
        await database.close()
        return job_id

    job_id = asyncio.run(seed())

    with TestClient(create_app(test_settings, registry=registry, notifier=notifier)) as client:
        job = client.get(f"/v1/jobs/{job_id}").json()["data"]

    assert job["status"] == "failed"
    assert job["error"] == RESTART_SWEEP_ERROR
