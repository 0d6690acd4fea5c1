# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Alembic environment – wires the migration engine to the same SQLAlchemy
engine used by the application.

``Database.migrate()`` passes its engine, storage backend and settings in
through ``config.attributes``.  When Alembic is run by hand
(``alembic upgrade head``) they are built from the application's Settings
class, so there is a single source of truth for the connection.
"""

import sys
import os

# ---------------------------------------------------------------------------
# Path setup – make sure ``backend/`` is importable so that
# ``from core.config import settings`` and model imports work.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from alembic import context  # noqa: E402

from core.config import get_database_config, settings  # noqa: E402
from database import create_storage, metadata  # noqa: E402

# Import every table so that metadata knows about all of them.
import models.user      # noqa: F401, E402
import models.analysis  # noqa: F401, E402

config = context.config

app_settings = config.attributes.get("settings", settings)
storage = config.attributes.get("storage") or create_storage(get_database_config(app_settings))
config.attributes.setdefault("settings", app_settings)
config.attributes.setdefault("storage", storage)


# ---------------------------------------------------------------------------
# Online mode (the default – uses a live DB connection)
# ---------------------------------------------------------------------------
def run_migrations_online():
    connectable = config.attributes.get("engine")
    owns_engine = connectable is None
    if owns_engine:
        connectable = storage.create_engine()

    try:
        with connectable.connect() as conn:
            context.configure(
                connection=conn,
                target_metadata=metadata,
                # each revision commits (or rolls back) on its own
                transaction_per_migration=True,
                transactional_ddl=storage.transactional_ddl,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        if owns_engine:
            connectable.dispose()


# ---------------------------------------------------------------------------
# Offline mode (generates SQL without a live connection)
# ---------------------------------------------------------------------------
def run_migrations_offline():
    context.configure(
        url=storage.url(),
        target_metadata=metadata,
        literal_binds=True,
        transaction_per_migration=True,
    )
    with context.begin_transaction():
        context.run_migrations()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
