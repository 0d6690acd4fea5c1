# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Application configuration.
All secrets and connection strings are loaded exclusively from environment
variables (via etc/app.conf).  Nothing sensitive is hard-coded here.

The database section is resolved into one immutable config object by
:func:`get_database_config`; the rest of the code never reads ``DB_*``
settings directly.
"""

from pathlib import Path
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings

# Project root is two levels up from this file  (backend/core/config.py → project/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

_DEFAULT_PORTS = {"postgresql": 5432, "mysql": 3306}


class Settings(BaseSettings):
    # Database – "sqlite" (default), "postgresql" or "mysql"
    db_type: str = "sqlite"
    db_path: str = "./cro_analyzer.db"
    db_host: str = "localhost"
    db_port: Optional[int] = None
    db_name: str = "cro_analyzer"
    db_user: str = "postgres"
    db_password: str = ""
    db_ssl: bool = False
    db_pool_min: int = 2
    db_pool_max: int = 10

    # JWT signing secret – must be a long, random string in production
    jwt_secret: str = "your-super-secret-jwt-key-change-in-production"
    access_token_expire_minutes: int = 1440

    # pbkdf2_sha256 rounds; fixed for every hash this deployment produces
    password_hash_rounds: int = 600_000

    # LLM
    openai_api_key: str = ""
    openai_model: str = "gpt-4-turbo"
    openai_temperature: float = 0.7

    # Scrape / report pipeline
    scrape_settle_ms: int = 7000
    sample_char_budget: int = 8000
    reports_dir: str = "reports"

    # Used by seed_admin.py and by the migration that assigns legacy
    # analyses to a default owner when no user exists yet.
    first_admin_email: str = "admin@cro-analyzer.com"
    first_admin_password: str = ""

    cors_origins: List[str] = ["http://localhost:3000"]

    # app.conf lives in etc/ – resolved relative to the project root so that
    # the file is found regardless of the working directory.
    model_config = {
        "env_file": str(_PROJECT_ROOT / "etc" / "app.conf"),
        "extra": "ignore",
    }


# -- Database config -------------------------------------------------------


class SqliteConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    engine: Literal["sqlite"] = "sqlite"
    path: str


class ServerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    engine: Literal["postgresql", "mysql"]
    host: str
    port: int
    database: str
    username: str
    password: str
    ssl: bool = False
    pool_min: int = 2
    pool_max: int = 10


DatabaseConfig = Union[SqliteConfig, ServerConfig]


def get_database_config(source: Settings) -> DatabaseConfig:
    """
    Resolve the ``DB_*`` settings into a concrete, frozen config object.

    Unknown engine names fall back to the embedded SQLite file.
    """
    engine = source.db_type.strip().lower()
    if engine in ("postgres", "postgresql"):
        engine = "postgresql"

    if engine not in _DEFAULT_PORTS:
        return SqliteConfig(path=source.db_path)

    return ServerConfig(
        engine=engine,
        host=source.db_host,
        port=source.db_port or _DEFAULT_PORTS[engine],
        database=source.db_name,
        username=source.db_user,
        password=source.db_password,
        ssl=source.db_ssl,
        pool_min=source.db_pool_min,
        pool_max=max(source.db_pool_max, source.db_pool_min),
    )


# Module-level singleton – import this everywhere: from core.config import settings
settings = Settings()
