# medtracker/core/dedup.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from medtracker.core.models import Reminder

DEDUP_TOLERANCE = timedelta(seconds=60)


def _same_instant(a: datetime, b: datetime, tolerance: timedelta = DEDUP_TOLERANCE) -> bool:
    return abs(a - b) < tolerance


def reminder_exists(
    medication_id: str,
    scheduled_time: datetime,
    reminders: Iterable[Reminder],
    tolerance: timedelta = DEDUP_TOLERANCE,
) -> bool:
    """
    True if a reminder for the same medication already covers ``scheduled_time``.
    Status is ignored: a taken or missed slot is never regenerated.
    """
    return any(
        r.medication_id == medication_id
        and _same_instant(r.scheduled_time, scheduled_time, tolerance)
        for r in reminders
    )


__all__ = ["reminder_exists", "DEDUP_TOLERANCE"]
