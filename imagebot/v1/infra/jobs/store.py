"""
Durable job store backed by SQLAlchemy.

Rows are handed out as ``Job`` ORM objects with ``payload``/``result`` still
serialized; typed access goes through ``JobRepository``.
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import AsyncIterator

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from imagebot.config.logging import get_logger
from imagebot.v1.core.exceptions import InvalidTransitionError, PersistenceError
from imagebot.v1.infra.jobs.models import ALLOWED_PREDECESSORS, Job, JobStatus

logger = get_logger(__name__)


class JobStore:
    """Job table accessor. Every write is its own transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error("job_store_error", operation=operation, error=str(e))
            raise PersistenceError(
                f"Job store {operation} failed: {e}",
                details={"operation": operation},
            ) from e

    async def insert(self, job_type: str, payload: str | None) -> int:
        """Insert a pending job and return its id."""
        async with self._session("insert") as session:
            job = Job(type=job_type, status=JobStatus.PENDING.value, payload=payload)
            session.add(job)
            await session.commit()
            return job.id

    async def get(self, job_id: int) -> Job | None:
        async with self._session("get") as session:
            return await session.get(Job, job_id)

    async def find_oldest_pending(self) -> Job | None:
        """Oldest pending job by creation time, ties broken by id."""
        async with self._session("find_oldest_pending") as session:
            result = await session.execute(
                select(Job)
                .where(Job.status == JobStatus.PENDING.value)
                .order_by(Job.created_at, Job.id)
                .limit(1)
            )
            return result.scalars().first()

    async def update(
        self,
        job_id: int,
        status: JobStatus,
        result: str | None = None,
        error: str | None = None,
    ) -> Job:
        """
        Write a status transition and return the updated row.

        The UPDATE only matches rows whose current status may precede
        ``status``, so concurrent writers cannot move a job out of a
        terminal state.
        """
        predecessors = ALLOWED_PREDECESSORS.get(status)
        if predecessors is None:
            raise InvalidTransitionError(job_id, status.value)

        now = datetime.now(UTC)
        values: dict[str, object] = {"status": status.value}
        if status is JobStatus.RUNNING:
            values["started_at"] = now
        else:
            values["completed_at"] = now
        if status is JobStatus.COMPLETED:
            values["result"] = result
        if status is JobStatus.FAILED:
            values["error"] = error

        async with self._session("update") as session:
            outcome = await session.execute(
                update(Job)
                .where(
                    Job.id == job_id,
                    Job.status.in_([s.value for s in predecessors]),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if outcome.rowcount == 0:
                await session.rollback()
                raise InvalidTransitionError(job_id, status.value)

            job = await session.get(Job, job_id)
            await session.commit()
            return job

    async def fail_running_started_before(self, cutoff: datetime, error: str) -> int:
        """Fail every running job that started before ``cutoff``."""
        async with self._session("fail_running_started_before") as session:
            outcome = await session.execute(
                update(Job)
                .where(
                    Job.status == JobStatus.RUNNING.value,
                    Job.started_at < cutoff,
                )
                .values(
                    status=JobStatus.FAILED.value,
                    error=error,
                    completed_at=datetime.now(UTC),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return outcome.rowcount

    async def count_by_status(self) -> dict[str, int]:
        async with self._session("count_by_status") as session:
            result = await session.execute(
                select(Job.status, func.count(Job.id)).group_by(Job.status)
            )
            return dict(result.all())
