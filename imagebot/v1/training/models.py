from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import TIMESTAMP, CheckConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from imagebot.infra.database import Base


class TrainingStatus(str, Enum):
    TRAINING = "training"
    COMPLETED = "completed"
    FAILED = "failed"


class Training(Base):
    """Latest model training run for a user."""

    __tablename__ = "trainings"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    task_id: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="External training task id"
    )
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=TrainingStatus.TRAINING.value
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('training', 'completed', 'failed')",
            name="trainings_status_check",
        ),
    )
