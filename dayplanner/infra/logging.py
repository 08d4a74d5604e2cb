from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from dayplanner.config import SETTINGS, PROJECT_ROOT

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "sqlalchemy.engine")


def _log_dir() -> Path:
    path = Path(SETTINGS.log_dir).expanduser()
    return path if path.is_absolute() else PROJECT_ROOT / path


def setup_logging(level: str | None = None) -> Path:
    """Log to ``dayplanner.log`` (rotated) and the console. Returns the log file path."""
    log_dir = _log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "dayplanner.log"

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=(level or SETTINGS.log_level).upper(),
        handlers=[file_handler, console_handler],
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_file
