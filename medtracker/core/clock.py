# medtracker/core/clock.py
from __future__ import annotations

from datetime import datetime


class Clock:
    """
    Injectable, testable clock.
    Returns naive local datetimes: all reminder arithmetic happens in local wall time.
    """

    def now(self) -> datetime:
        return datetime.now()


__all__ = ["Clock"]
