"""
Training record persistence used by the training status job.
"""

from datetime import UTC, datetime

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from imagebot.config.logging import get_logger
from imagebot.v1.core.exceptions import PersistenceError
from imagebot.v1.training.models import Training, TrainingStatus

logger = get_logger(__name__)


class TrainingRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, user_id: str) -> Training | None:
        try:
            async with self._session_factory() as session:
                return await session.get(Training, user_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load training for {user_id}: {e}") from e

    async def start_training(self, user_id: str, task_id: str) -> Training:
        """Record a new training run, replacing any previous one."""
        now = datetime.now(UTC)
        try:
            async with self._session_factory() as session:
                training = await session.get(Training, user_id)
                if training is None:
                    training = Training(user_id=user_id, created_at=now)
                    session.add(training)
                training.task_id = task_id
                training.status = TrainingStatus.TRAINING.value
                training.updated_at = now
                await session.commit()
                return training
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to start training for {user_id}: {e}") from e

    async def complete_training(self, user_id: str) -> bool:
        return await self._set_status(user_id, TrainingStatus.COMPLETED)

    async def fail_training(self, user_id: str) -> bool:
        return await self._set_status(user_id, TrainingStatus.FAILED)

    async def _set_status(self, user_id: str, status: TrainingStatus) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(Training)
                    .where(Training.user_id == user_id)
                    .values(status=status.value, updated_at=datetime.now(UTC))
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update training for {user_id}: {e}") from e

        if result.rowcount == 0:
            logger.warning("training_not_found", user_id=user_id, status=status.value)
            return False

        logger.info("training_status_updated", user_id=user_id, status=status.value)
        return True
