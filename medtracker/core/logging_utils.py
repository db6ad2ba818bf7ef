# medtracker/core/logging_utils.py
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s — %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO during polling and job runs
NOISY_LOGGERS = ("aiogram", "apscheduler")


def _level(name: Any, default: int) -> int:
    value = logging.getLevelName(str(name).upper()) if name is not None else default
    return value if isinstance(value, int) else default


def setup_logging(cfg: Any) -> logging.Logger:
    """
    Wire the ``medtracker`` logger from config:
    AUDIT_LOG_FILE (+ AUDIT_LOG_MAX_BYTES, AUDIT_LOG_BACKUPS) receives every decision at DEBUG,
    the console gets CONSOLE_LOG_LEVEL, and THIRD_PARTY_LOG_LEVEL caps aiogram/apscheduler.
    Safe to call twice: handlers are replaced, not stacked.
    """
    path = cfg.AUDIT_LOG_FILE
    if os.path.dirname(path):
        os.makedirs(os.path.dirname(path), exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    audit = RotatingFileHandler(
        path,
        maxBytes=int(getattr(cfg, "AUDIT_LOG_MAX_BYTES", 1_000_000)),
        backupCount=int(getattr(cfg, "AUDIT_LOG_BACKUPS", 10)),
        encoding="utf-8",
    )
    audit.setLevel(logging.DEBUG)
    audit.setFormatter(formatter)

    console = logging.StreamHandler()
    console.setLevel(_level(getattr(cfg, "CONSOLE_LOG_LEVEL", None), logging.INFO))
    console.setFormatter(formatter)

    logger = logging.getLogger("medtracker")
    logger.setLevel(logging.DEBUG)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.addHandler(audit)
    logger.addHandler(console)

    third_party = _level(getattr(cfg, "THIRD_PARTY_LOG_LEVEL", None), logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party)

    return logger


def kv(**kwargs: Any) -> str:
    """Key=value compact formatting (values repr()'d for clarity)."""
    return " ".join(f"{k}={v!r}" for k, v in kwargs.items())
