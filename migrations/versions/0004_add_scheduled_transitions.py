"""add scheduled transitions table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0004_add_scheduled_transitions"
down_revision = "0003_add_task_comments"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "scheduled_transitions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "task_id",
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("fire_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("task_id", "kind", name="uq_scheduled_transitions_task_kind"),
    )
    op.create_index("ix_scheduled_transitions_task_id", "scheduled_transitions", ["task_id"], unique=False)
    op.create_index("ix_scheduled_transitions_fire_at", "scheduled_transitions", ["fire_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_scheduled_transitions_fire_at", table_name="scheduled_transitions")
    op.drop_index("ix_scheduled_transitions_task_id", table_name="scheduled_transitions")
    op.drop_table("scheduled_transitions")
