"""create teams and users tables"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_teams_users"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=True),
        sa.Column("location_ids", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_teams_parent_id", "teams", ["parent_id"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("firstname", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("lastname", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("role_id", sa.Integer(), nullable=True),
    )
    op.create_index("ix_users_role_id", "users", ["role_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_users_role_id", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_teams_parent_id", table_name="teams")
    op.drop_table("teams")
