"""
core/logging_config.py -- Process-wide logging setup.

Console output always; when Settings.log_dir is set, two size-rotated files
are added:
  combined.log -- every record at or above Settings.log_level
  error.log    -- ERROR and above only, so failures are greppable without noise

All application loggers live under the "monitorium" namespace
(monitorium.api, monitorium.auth, monitorium.cache, ...), so a single
level change on the root logger reaches all of them.

Layer rule: core/ is the kernel. No imports from api/, auth/, or cache/.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from core.config import Settings

_FORMAT = "%(asctime)s %(levelname)-5s %(name)s %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 5


def configure_logging(settings: Settings) -> None:
    """Configure the root logger from settings. Safe to call more than once.

    basicConfig(force=True) replaces handlers from an earlier call instead of
    stacking duplicates, which matters under uvicorn --reload.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        combined = RotatingFileHandler(
            log_dir / "combined.log", maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8"
        )
        errors = RotatingFileHandler(
            log_dir / "error.log", maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8"
        )
        errors.setLevel(logging.ERROR)
        handlers.extend([combined, errors])

    logging.basicConfig(
        level=settings.log_level.upper(),
        format=_FORMAT,
        datefmt=_DATEFMT,
        handlers=handlers,
        force=True,
    )
