"""create jobs and trainings tables

Revision ID: 3b1f7c2d9a04
Revises:
Create Date: 2026-10-12 09:41:17.208534

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b1f7c2d9a04"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("type", sa.Text, nullable=False, comment="Job type identifier"),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="pending",
            comment="Job status: pending|running|completed|failed",
        ),
        sa.Column(
            "payload", sa.Text, nullable=True, comment="Serialized job parameters"
        ),
        sa.Column("result", sa.Text, nullable=True, comment="Serialized job result"),
        sa.Column("error", sa.Text, nullable=True, comment="Failure description"),
        # Timestamps
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="jobs_status_check",
        ),
    )

    # Oldest-pending lookup runs on every scheduling pass
    op.create_index(
        "ix_jobs_status_created_at", "jobs", ["status", "created_at", "id"]
    )

    op.create_table(
        "trainings",
        sa.Column("user_id", sa.Text, primary_key=True),
        sa.Column(
            "task_id", sa.Text, nullable=True, comment="External training task id"
        ),
        sa.Column(
            "status", sa.Text, nullable=False, server_default="training"
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('training', 'completed', 'failed')",
            name="trainings_status_check",
        ),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("trainings")
    op.drop_index("ix_jobs_status_created_at", table_name="jobs")
    op.drop_table("jobs")
