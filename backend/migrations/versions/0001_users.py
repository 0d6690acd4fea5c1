"""Users table

Revision ID: 0001_users
Revises:
Create Date: 2026-02-06

Creates ``users`` when it is absent, then each of its indexes when absent,
so databases created by older deployments are adopted as they are.
"""

from alembic import op
import sqlalchemy as sa

# Alembic revision identifiers
revision = "0001_users"
down_revision = None
branch_labels = None
depends_on = None

_INDEXES = (
    ("idx_users_email", ["email"], True),
    ("idx_users_role", ["role"], False),
    ("idx_users_is_active", ["is_active"], False),
)


def upgrade() -> None:
    bind = op.get_bind()

    if not sa.inspect(bind).has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("email", sa.String(255), nullable=False),
            sa.Column("password", sa.String(255), nullable=False),
            sa.Column("first_name", sa.String(255), nullable=False, server_default=""),
            sa.Column("last_name", sa.String(255), nullable=False, server_default=""),
            sa.Column("role", sa.String(16), nullable=False, server_default="user"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
        )

    existing = {ix["name"] for ix in sa.inspect(bind).get_indexes("users")}
    for name, columns, unique in _INDEXES:
        if name not in existing:
            op.create_index(name, "users", columns, unique=unique)


def downgrade() -> None:
    for name, _columns, _unique in reversed(_INDEXES):
        op.drop_index(name, table_name="users")
    op.drop_table("users")
