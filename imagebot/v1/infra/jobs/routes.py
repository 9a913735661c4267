"""
Job management API endpoints.

Operator endpoints for enqueueing and inspecting background jobs.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from imagebot.config.logging import get_logger
from imagebot.v1.core.exceptions import NotFoundError, create_success_response
from imagebot.v1.infra.jobs.manager import JobManager
from imagebot.v1.infra.jobs.schemas import (
    JobEnqueueRequest,
    JobEnqueueResponse,
    SchedulerStats,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_job_manager(request: Request) -> JobManager:
    """Job manager started by the application lifespan."""
    manager = getattr(request.app.state, "job_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Job manager is not running")
    return manager


JobManagerDep = Depends(get_job_manager)


@router.post("", response_model=dict)
async def enqueue_job(
    job_request: JobEnqueueRequest,
    manager: JobManager = JobManagerDep,
) -> dict[str, Any]:
    """Enqueue a new background job."""

    job_id = await manager.enqueue(job_request.type, job_request.payload)

    logger.info("Job enqueued via API", job_id=job_id, job_type=job_request.type)

    response = JobEnqueueResponse(job_id=job_id, status="pending")
    return create_success_response(data=response.model_dump())


@router.get("/stats/overview", response_model=dict)
async def get_job_stats(manager: JobManager = JobManagerDep) -> dict[str, Any]:
    """Get queue statistics and scheduler state."""

    stats = await collect_stats(manager)
    return create_success_response(data=stats.model_dump())


@router.get("/{job_id}", response_model=dict)
async def get_job(job_id: int, manager: JobManager = JobManagerDep) -> dict[str, Any]:
    """Get a specific job by ID."""

    job = await manager.get(job_id)
    if job is None:
        raise NotFoundError("Job not found", details={"job_id": job_id})

    return create_success_response(data=job.model_dump(mode="json"))


async def collect_stats(manager: JobManager) -> SchedulerStats:
    by_status = await manager.repository.count_by_status()
    return SchedulerStats(
        by_status=by_status,
        queue_depth=by_status.get("pending", 0) + by_status.get("running", 0),
        active_jobs=manager.active_count,
        concurrency=manager.concurrency,
        ticking=manager.is_ticking,
    )
