"""
Polling of externally running tasks.

A ``StatusPoller`` queries a ``StatusSource`` at a fixed interval until the
task reaches a terminal state or the attempt budget runs out. Handlers hold
a poller rather than inheriting the loop.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Protocol

from pydantic import JsonValue

from imagebot.config.logging import get_logger
from imagebot.v1.core.exceptions import ExternalServiceError, JobError, JobTimeoutError

logger = get_logger(__name__)


class TaskState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TaskStatus:
    """Three-way outcome reported by an external status source."""

    state: TaskState
    payload: JsonValue = None
    reason: str | None = None

    @classmethod
    def pending(cls) -> "TaskStatus":
        return cls(TaskState.PENDING)

    @classmethod
    def completed(cls, payload: JsonValue = None) -> "TaskStatus":
        return cls(TaskState.COMPLETED, payload=payload)

    @classmethod
    def failed(cls, reason: str) -> "TaskStatus":
        return cls(TaskState.FAILED, reason=reason)


class StatusSource(Protocol):
    """Provider-specific status lookup for an external task."""

    async def poll_status(self, task_id: str) -> TaskStatus: ...


@dataclass(frozen=True)
class PollPolicy:
    interval_s: float
    max_attempts: int
    warmup_s: float = 0.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval_s < 0 or self.warmup_s < 0:
            raise ValueError("poll delays cannot be negative")


@dataclass
class StatusPoller:
    source: StatusSource
    policy: PollPolicy
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    async def wait_for(self, task_id: str) -> JsonValue:
        """
        Poll until ``task_id`` completes and return its completion payload.

        Raises:
            ExternalServiceError: the source reported failure or could not be queried
            JobTimeoutError: ``max_attempts`` queries returned pending
        """
        if self.policy.warmup_s > 0:
            await self.sleep(self.policy.warmup_s)

        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                status = await self.source.poll_status(task_id)
            except JobError:
                raise
            except Exception as e:
                raise ExternalServiceError(
                    f"Status query for job {task_id} failed: {e}", task_id=task_id
                ) from e

            if status.state is TaskState.FAILED:
                raise ExternalServiceError(
                    status.reason or f"Job {task_id} failed", task_id=task_id
                )

            if status.state is TaskState.COMPLETED:
                logger.info("external_task_completed", task_id=task_id, attempt=attempt)
                return status.payload

            logger.debug(
                "external_task_pending",
                task_id=task_id,
                attempt=attempt,
                max_attempts=self.policy.max_attempts,
            )
            if attempt < self.policy.max_attempts:
                await self.sleep(self.policy.interval_s)

        raise JobTimeoutError(task_id, self.policy.max_attempts)
