# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – creates the first admin user.

Run once after deployment:
    python bin/seed_admin.py

The script reads FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD from the
etc/app.conf file, brings the schema up to date, and inserts the admin.

If the admin already exists without a usable password (the schema upgrade
creates one that way when it has to adopt analyses from an older deployment
and no password was configured), the password is set instead.
"""

import sys
import os

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/seed_admin.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from core.config import Settings, settings           # noqa: E402
from core.security import password_is_usable         # noqa: E402
from database import Database                        # noqa: E402
from models.user import UserCreate                   # noqa: E402
from repositories.user import UserRepository         # noqa: E402


def seed(app_settings: Settings = settings) -> str:
    """Returns what happened: "missing-config", "exists", "password-set" or "created"."""
    if not app_settings.first_admin_email or not app_settings.first_admin_password:
        print("[seed_admin] FIRST_ADMIN_EMAIL or FIRST_ADMIN_PASSWORD not set in etc/app.conf – nothing to do.")
        return "missing-config"

    db = Database(app_settings)
    db.connect()
    try:
        users = UserRepository(db, password_rounds=app_settings.password_hash_rounds)
        email = app_settings.first_admin_email

        existing = users.find_by_email(email)
        if existing:
            if password_is_usable(existing.password_hash):
                print(f"[seed_admin] Admin '{email}' already exists – skipping.")
                return "exists"
            users.change_password(existing.id, app_settings.first_admin_password)
            print(f"[seed_admin] Password set for existing admin '{email}'.")
            return "password-set"

        users.create(
            UserCreate(
                email=email,
                password=app_settings.first_admin_password,
                first_name="Admin",
                last_name="User",
                role="admin",
            )
        )
        print(f"[seed_admin] Admin '{email}' created successfully.")
        return "created"
    finally:
        db.close()


if __name__ == "__main__":
    seed()
