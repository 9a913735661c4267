"""
In-process job manager with bounded concurrency.

Jobs are pulled from the store oldest first while fewer than ``concurrency``
are running. Each dispatched job runs as its own asyncio task; when it
finishes its slot is released and another scheduling pass is triggered
immediately, so freed capacity does not wait for the periodic tick.
"""

import asyncio
import contextlib
from typing import Any, Coroutine

from pydantic import JsonValue

from imagebot.config.logging import get_logger
from imagebot.v1.core.exceptions import (
    ConfigurationError,
    InvalidTransitionError,
    JobError,
    PersistenceError,
    ValidationError,
)
from imagebot.v1.core.registries import JobHandler, JobRegistry, job_registry
from imagebot.v1.infra.jobs.models import JobStatus
from imagebot.v1.infra.jobs.repository import JobRecord, JobRepository

logger = get_logger(__name__)


def error_message(error: BaseException) -> str:
    """Text persisted in a failed job's ``error`` column."""
    return str(error) or error.__class__.__name__


def hook_error(error: Exception, message: str) -> Exception:
    """Error handed to ``on_error``; its text is always the persisted message."""
    if str(error) == message:
        return error
    wrapped = JobError(message)
    wrapped.__cause__ = error
    return wrapped


class JobManager:
    """
    Drives pending jobs through ``pending -> running -> completed|failed``.

    A single asyncio event loop owns all of the manager's state, so the
    active-job map needs no further locking. The pass lock is the explicit
    single-flight guard: ``run_pass`` returns at once while it is held.
    """

    def __init__(
        self,
        repository: JobRepository,
        registry: JobRegistry = job_registry,
        concurrency: int = 10,
        tick_interval_ms: int = 1000,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.repository = repository
        self.registry = registry
        self.concurrency = concurrency
        self.tick_interval_ms = tick_interval_ms
        self.active_jobs: dict[int, asyncio.Task] = {}

        self._pass_lock = asyncio.Lock()
        self._tick_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return len(self.active_jobs)

    @property
    def pass_in_progress(self) -> bool:
        return self._pass_lock.locked()

    @property
    def is_ticking(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    async def enqueue(self, job_type: str, payload: JsonValue = None) -> int:
        """Persist a job and trigger a pass without waiting for it to drain."""
        job_id = await self.repository.enqueue(job_type, payload)
        self.trigger()
        return job_id

    async def get(self, job_id: int) -> JobRecord | None:
        return await self.repository.fetch(job_id)

    def trigger(self) -> None:
        """Schedule a scheduling pass in the background."""
        self._spawn(self._run_pass_logged(), name="job-pass")

    async def run_pass(self) -> int:
        """
        Dispatch pending jobs until the ceiling is reached or none remain.

        Returns the number of jobs dispatched; 0 when another pass is
        already in flight. Jobs without a registered handler are failed
        without occupying a slot.
        """
        if self._pass_lock.locked():
            return 0

        async with self._pass_lock:
            dispatched = 0
            try:
                while len(self.active_jobs) < self.concurrency:
                    job = await self.repository.next_pending()
                    if job is None:
                        break

                    handler = self.registry.resolve(job.type)
                    try:
                        if handler is None:
                            await self._fail_unhandled(job)
                            continue
                        await self._start(job, handler)
                    except InvalidTransitionError:
                        # Another writer moved it out of pending first
                        logger.warning("job_dispatch_skipped", job_id=job.id)
                        continue
                    dispatched += 1

            except PersistenceError as e:
                logger.error(
                    "job_pass_aborted", error=str(e), dispatched=dispatched
                )

            return dispatched

    def start_periodic(self, interval_ms: int | None = None) -> None:
        """Run a pass now and then every ``interval_ms``; replaces any timer."""
        if interval_ms is not None:
            if interval_ms <= 0:
                raise ValueError("interval_ms must be positive")
            self.tick_interval_ms = interval_ms

        if self._tick_task is not None:
            self._tick_task.cancel()

        self._tick_task = asyncio.create_task(
            self._tick_loop(self.tick_interval_ms / 1000), name="job-tick"
        )
        logger.info(
            "job_timer_started",
            interval_ms=self.tick_interval_ms,
            concurrency=self.concurrency,
        )

    async def stop(self) -> None:
        """Stop the periodic timer. Running jobs are left to finish."""
        task, self._tick_task = self._tick_task, None
        if task is None:
            return

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

        logger.info("job_timer_stopped", active_jobs=len(self.active_jobs))

    async def wait_idle(self) -> None:
        """Wait until no job is running and no triggered pass is pending."""
        while self.active_jobs or self._background:
            await asyncio.gather(
                *self.active_jobs.values(), *self._background, return_exceptions=True
            )

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _run_pass_logged(self) -> None:
        try:
            await self.run_pass()
        except Exception:
            logger.exception("job_pass_crashed")

    async def _tick_loop(self, interval_s: float) -> None:
        # Passes run outside the timer task; cancelling it only cancels the sleep
        while True:
            self.trigger()
            await asyncio.sleep(interval_s)

    async def _fail_unhandled(self, job: JobRecord) -> None:
        error = ConfigurationError(job.type)
        logger.error("job_handler_missing", job_id=job.id, job_type=job.type)
        await self.repository.transition(job.id, JobStatus.FAILED, error=error.message)

    async def _start(self, job: JobRecord, handler: JobHandler) -> None:
        # Mark running before the next lookup so the same row is not returned again
        running = await self.repository.transition(job.id, JobStatus.RUNNING)
        task = asyncio.create_task(self._run_one(running, handler), name=f"job-{job.id}")
        self.active_jobs[job.id] = task
        logger.info(
            "job_dispatched",
            job_id=job.id,
            job_type=job.type,
            active_jobs=len(self.active_jobs),
        )

    async def _run_one(self, job: JobRecord, handler: JobHandler) -> None:
        job_logger = logger.bind(job_id=job.id, job_type=job.type)

        try:
            try:
                result = await handler.handle(job.payload)
            except Exception as e:
                await self._record_failure(job, handler, e, job_logger)
                return

            try:
                finished = await self.repository.transition(
                    job.id, JobStatus.COMPLETED, result=result
                )
            except ValidationError as e:
                # Result cannot be stored; the job fails instead
                await self._record_failure(job, handler, e, job_logger)
                return
            except JobError as e:
                job_logger.error("job_completion_not_persisted", error=str(e))
                return

            job_logger.info("job_completed")
            await self._call_hook(handler, "on_success", finished.result, finished, job_logger)

        finally:
            self.active_jobs.pop(job.id, None)
            self.trigger()

    async def _record_failure(
        self, job: JobRecord, handler: JobHandler, error: Exception, job_logger
    ) -> None:
        message = error_message(error)
        try:
            finished = await self.repository.transition(
                job.id, JobStatus.FAILED, error=message
            )
        except JobError as e:
            job_logger.error(
                "job_failure_not_persisted", error=message, store_error=str(e)
            )
            return

        job_logger.warning(
            "job_failed", error=message, error_type=error.__class__.__name__
        )
        await self._call_hook(
            handler, "on_error", hook_error(error, message), finished, job_logger
        )

    async def _call_hook(
        self, handler: JobHandler, name: str, value: Any, job: JobRecord, job_logger
    ) -> None:
        hook = getattr(handler, name, None)
        if hook is None:
            return
        try:
            await hook(value, job)
        except Exception:
            job_logger.exception("job_hook_failed", hook=name)
