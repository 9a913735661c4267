"""
Typed access to the job store.

The repository owns the serialization boundary: payloads and results are
schema-less JSON values (``pydantic.JsonValue``) that are dumped to text on
the way in and validated back on the way out.
"""

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, JsonValue, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from imagebot.config.logging import get_logger
from imagebot.v1.core.exceptions import (
    InvalidTransitionError,
    PersistenceError,
    ValidationError,
)
from imagebot.v1.infra.jobs.models import Job, JobStatus
from imagebot.v1.infra.jobs.store import JobStore

logger = get_logger(__name__)

_json_adapter: TypeAdapter[JsonValue] = TypeAdapter(JsonValue)

RESTART_SWEEP_ERROR = "Interrupted by process restart"


def dump_blob(value: JsonValue) -> str | None:
    """Serialize a JSON value for storage. ``None`` is stored as NULL."""
    if value is None:
        return None
    try:
        normalized = _json_adapter.validate_python(value)
    except PydanticValidationError as e:
        raise ValidationError(
            "Value is not JSON-compatible",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e
    return _json_adapter.dump_json(normalized).decode("utf-8")


def load_blob(raw: str | None) -> JsonValue:
    if raw is None:
        return None
    try:
        return _json_adapter.validate_json(raw)
    except PydanticValidationError as e:
        raise PersistenceError(f"Stored value is not valid JSON: {e}") from e


class JobRecord(BaseModel):
    """A job with its payload and result deserialized."""

    model_config = ConfigDict(frozen=True)

    id: int
    type: str
    status: JobStatus
    payload: JsonValue = None
    result: JsonValue = None
    error: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_row(cls, job: Job) -> "JobRecord":
        return cls(
            id=job.id,
            type=job.type,
            status=JobStatus(job.status),
            payload=load_blob(job.payload),
            result=load_blob(job.result),
            error=job.error,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


class JobRepository:
    """Typed accessor over ``JobStore``."""

    def __init__(self, store: JobStore):
        self.store = store

    async def enqueue(self, job_type: str, payload: JsonValue = None) -> int:
        """Persist a new pending job. Store errors propagate to the caller."""
        job_id = await self.store.insert(job_type, dump_blob(payload))
        logger.info("job_enqueued", job_id=job_id, job_type=job_type)
        return job_id

    async def fetch(self, job_id: int) -> JobRecord | None:
        job = await self.store.get(job_id)
        return JobRecord.from_row(job) if job else None

    async def next_pending(self) -> JobRecord | None:
        """
        Oldest pending job (``created_at`` then ``id``), or None.

        A pending row whose payload cannot be decoded is failed with the
        decode error and the next one is returned instead.
        """
        while True:
            job = await self.store.find_oldest_pending()
            if job is None:
                return None
            try:
                return JobRecord.from_row(job)
            except PersistenceError as e:
                logger.error("job_payload_unreadable", job_id=job.id, error=str(e))
                try:
                    await self.store.update(job.id, JobStatus.FAILED, error=str(e))
                except InvalidTransitionError:
                    continue

    async def transition(
        self,
        job_id: int,
        status: JobStatus,
        result: JsonValue = None,
        error: str | None = None,
    ) -> JobRecord:
        """
        Move a job to ``status`` and return the record as persisted.

        ``running`` stamps ``started_at``; ``completed``/``failed`` stamp
        ``completed_at`` together with the result or error.
        """
        job = await self.store.update(
            job_id,
            status,
            result=dump_blob(result) if status is JobStatus.COMPLETED else None,
            error=error if status is JobStatus.FAILED else None,
        )
        return JobRecord.from_row(job)

    async def fail_stale_running(self, older_than: timedelta) -> int:
        """Fail running jobs left behind by a previous process."""
        cutoff = datetime.now(UTC) - older_than
        count = await self.store.fail_running_started_before(cutoff, RESTART_SWEEP_ERROR)
        if count:
            logger.warning(
                "stale_running_jobs_failed",
                count=count,
                older_than_s=int(older_than.total_seconds()),
            )
        return count

    async def count_by_status(self) -> dict[str, int]:
        counts = await self.store.count_by_status()
        return {status.value: counts.get(status.value, 0) for status in JobStatus}
