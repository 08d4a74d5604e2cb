"""scope tasks by user"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_add_user_id"
down_revision = "0002_add_projects"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("tasks", sa.Column("user_id", sa.String(length=64), nullable=True))
    op.drop_index("ix_tasks_date", table_name="tasks")
    op.create_index("ix_tasks_user_date", "tasks", ["user_id", "date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_tasks_user_date", table_name="tasks")
    op.create_index("ix_tasks_date", "tasks", ["date"], unique=False)
    op.drop_column("tasks", "user_id")
