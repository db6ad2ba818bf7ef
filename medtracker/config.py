"""
Runtime configuration for medtracker.
All reminder times are naive local wall-clock times of the host.
"""

from __future__ import annotations

import os
from typing import Any

# --------------------------------------------------------------------------------------
# Telegram delivery (optional; without a token notifications go to the log sink)
# --------------------------------------------------------------------------------------
# IMPORTANT: no hardcoded token in repo; provide via env or explicit override
BOT_TOKEN: str | None = None
CHAT_ID: int | None = None
SNOOZE_MINUTES = 10

# --------------------------------------------------------------------------------------
# Scheduler
# --------------------------------------------------------------------------------------
POLL_INTERVAL_S = 60
REGENERATE_CHECK_INTERVAL_S = 3600
RETENTION_DAYS = 7

# --------------------------------------------------------------------------------------
# Notification settings (camelCase keys accepted as well)
# --------------------------------------------------------------------------------------
NOTIFICATION_SETTINGS: dict[str, Any] = {
    "sound": True,
    "vibration": True,
    "require_interaction": True,
    "auto_generate": True,
    "days_ahead": 7,
    "quiet_hours_enabled": False,
    "quiet_hours_start": "22:00",
    "quiet_hours_end": "07:00",
}

# --------------------------------------------------------------------------------------
# Files
# --------------------------------------------------------------------------------------
MEDICATIONS_FILE = "medtracker/medications.yaml"
REMINDERS_FILE = "medtracker/data/reminders.yaml"
AUDIT_LOG_FILE = "medtracker/logs/audit.log"
AUDIT_LOG_MAX_BYTES = 1_000_000
AUDIT_LOG_BACKUPS = 10
CONSOLE_LOG_LEVEL = "INFO"
THIRD_PARTY_LOG_LEVEL = "WARNING"

# Filled from MEDICATIONS_FILE at start-up; may be set directly in tests.
MEDICATIONS: list[Any] = []


def get_bot_token() -> str | None:
    """Token from config or env; None means run without Telegram."""
    return BOT_TOKEN or os.getenv("BOT_TOKEN") or None


def get_chat_id() -> int:
    raw = CHAT_ID if CHAT_ID is not None else os.getenv("CHAT_ID")
    if raw is None or str(raw).strip() == "":
        raise RuntimeError(
            "Chat id is not set. Set env var CHAT_ID or override CHAT_ID in config.py."
        )
    return int(raw)
