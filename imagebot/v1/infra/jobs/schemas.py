"""
Job system Pydantic schemas.
"""

from pydantic import BaseModel, Field, JsonValue


class JobEnqueueRequest(BaseModel):
    """Schema for enqueueing jobs via API."""

    type: str = Field(..., min_length=1, description="Job type")
    payload: JsonValue = Field(default=None, description="Job payload")


class JobEnqueueResponse(BaseModel):
    """Schema for job enqueue response."""

    job_id: int
    status: str


class SchedulerStats(BaseModel):
    """Schema for job manager and queue statistics."""

    by_status: dict[str, int]
    queue_depth: int  # pending + running
    active_jobs: int
    concurrency: int
    ticking: bool
