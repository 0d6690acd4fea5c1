# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Centralised logging configuration.

Handlers, levels and formats live in etc/logging.conf.  This module resolves
the log-file path, patches it into the config text and applies it via the
standard-library fileConfig loader.  Without the conf file (e.g. an installed
wheel) a plain console configuration is used instead.

Import the ready-made logger anywhere:
    from core.logger import logger
"""

import configparser
import logging
import logging.config
from pathlib import Path

# project root: backend/core/logger.py  →  ../../  →  project/
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_LOG_DIR = _PROJECT_ROOT / "log"
_LOG_FILE = _LOG_DIR / "app.log"
_LOGGING_CONF = _PROJECT_ROOT / "etc" / "logging.conf"


def _configure() -> None:
    if not _LOGGING_CONF.is_file():
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        return

    # The rotating handler opens the file immediately
    _LOG_DIR.mkdir(exist_ok=True)

    # logging.conf uses %(log_file)s as a placeholder for the absolute path
    raw = _LOGGING_CONF.read_text(encoding="utf-8")
    raw = raw.replace("%(log_file)s", str(_LOG_FILE).replace("\\", "/"))

    # RawConfigParser: the format strings contain %(asctime)s etc.
    parser = configparser.RawConfigParser()
    parser.read_string(raw)
    logging.config.fileConfig(parser, disable_existing_loggers=False)


_configure()

logger = logging.getLogger("cro_analyzer")
