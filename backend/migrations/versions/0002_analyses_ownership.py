"""Analyses table owned by users

Revision ID: 0002_analyses_ownership
Revises: 0001_users
Create Date: 2026-02-06

Creates ``analyses`` with its ``user_id`` foreign key.  A table left by an
older deployment without ``user_id`` is upgraded by the storage backend
(rewritten on SQLite, altered in place elsewhere) and every row it holds is
handed to a default owner: the oldest user, or an admin synthesized from
FIRST_ADMIN_EMAIL when there are no users yet.
"""

import uuid
from datetime import datetime, timezone

from alembic import context, op
import sqlalchemy as sa

from core.logger import logger
from core.security import UNUSABLE_PASSWORD, hash_password

# Alembic revision identifiers
revision = "0002_analyses_ownership"
down_revision = "0001_users"
branch_labels = None
depends_on = None

# Table shapes as of this revision; later revisions must not reuse them.
_meta = sa.MetaData()

_users = sa.Table(
    "users",
    _meta,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("email", sa.String(255), nullable=False),
    sa.Column("password", sa.String(255), nullable=False),
    sa.Column("first_name", sa.String(255), nullable=False),
    sa.Column("last_name", sa.String(255), nullable=False),
    sa.Column("role", sa.String(16), nullable=False),
    sa.Column("is_active", sa.Boolean(), nullable=False),
    sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

_analyses = sa.Table(
    "analyses",
    _meta,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column(
        "user_id",
        sa.String(36),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    ),
    sa.Column("url", sa.String(2048), nullable=False),
    sa.Column("page_title", sa.Text(), nullable=True),
    sa.Column("analysis", sa.Text(), nullable=True),
    sa.Column("pdf_path", sa.Text(), nullable=True),
    sa.Column("metadata", sa.Text(), nullable=False),
    sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
    sa.Column("error_message", sa.Text(), nullable=True),
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
    sa.Index("idx_analyses_user_id", "user_id"),
    sa.Index("idx_analyses_status", "status"),
    sa.Index("idx_analyses_created_at", "created_at"),
    sa.Index("idx_analyses_url", "url", mysql_length=255),
)


def _default_owner(bind) -> str:
    row = bind.execute(
        sa.select(_users.c.id).order_by(_users.c.created_at.asc()).limit(1)
    ).first()
    if row is not None:
        return row[0]

    app_settings = context.config.attributes["settings"]
    if app_settings.first_admin_password:
        password = hash_password(app_settings.first_admin_password, app_settings.password_hash_rounds)
    else:
        logger.warning(
            "FIRST_ADMIN_PASSWORD is not set; admin %s cannot log in until "
            "bin/seed_admin.py gives it a password",
            app_settings.first_admin_email,
        )
        password = UNUSABLE_PASSWORD

    owner_id = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    bind.execute(
        _users.insert().values(
            id=owner_id,
            email=app_settings.first_admin_email.strip().lower(),
            password=password,
            first_name="Admin",
            last_name="User",
            role="admin",
            is_active=True,
            last_login_at=None,
            created_at=now,
            updated_at=now,
        )
    )
    logger.info("Created admin %s to own existing analyses", app_settings.first_admin_email)
    return owner_id


def upgrade() -> None:
    bind = op.get_bind()

    if not sa.inspect(bind).has_table("analyses"):
        _analyses.create(bind)
        return

    columns = {col["name"] for col in sa.inspect(bind).get_columns("analyses")}
    if "user_id" in columns:
        return

    storage = context.config.attributes["storage"]
    count = bind.execute(sa.select(sa.func.count()).select_from(sa.table("analyses"))).scalar()
    owner_id = _default_owner(bind) if count else None
    logger.info("Assigning %d existing analyses to owner %s", count, owner_id)

    storage.add_ownership_column(op, _analyses, "user_id", owner_id)

    # Older tables may predate some of the indexes
    existing = {ix["name"] for ix in sa.inspect(bind).get_indexes("analyses")}
    for index in _analyses.indexes:
        if index.name not in existing:
            index.create(bind)


def downgrade() -> None:
    op.drop_table("analyses")
