# medtracker/core/settings.py
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime, time
from typing import Any, Optional

DAYS_AHEAD_MIN = 1
DAYS_AHEAD_MAX = 30

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")

# camelCase keys as stored by the browser settings panel
_ALIASES = {
    "requireInteraction": "require_interaction",
    "autoGenerate": "auto_generate",
    "daysAhead": "days_ahead",
    "quietHoursEnabled": "quiet_hours_enabled",
    "quietHoursStart": "quiet_hours_start",
    "quietHoursEnd": "quiet_hours_end",
}


def parse_hhmm(value: str) -> Optional[time]:
    """Strict HH:MM parser; None when the value is not a valid time of day."""
    if not isinstance(value, str):
        return None
    m = _TIME_RE.match(value)
    if not m:
        return None
    hh, mm = int(m.group(1)), int(m.group(2))
    if not (0 <= hh <= 23 and 0 <= mm <= 59):
        return None
    return time(hh, mm)


def clamp_days_ahead(days: int) -> int:
    return max(DAYS_AHEAD_MIN, min(DAYS_AHEAD_MAX, int(days)))


def in_quiet_hours(now: datetime, start: str, end: str) -> bool:
    """
    True when ``now`` falls in [start, end). The window may wrap midnight
    (22:00 → 07:00). An unparsable bound or an empty window disables it.
    """
    t_start, t_end = parse_hhmm(start), parse_hhmm(end)
    if t_start is None or t_end is None or t_start == t_end:
        return False
    current = now.time().replace(second=0, microsecond=0)
    if t_start < t_end:
        return t_start <= current < t_end
    return current >= t_start or current < t_end


@dataclass
class NotificationSettings:
    """Mutable settings consulted at fire/generation time (never baked into timers)."""

    sound: bool = True
    vibration: bool = True
    require_interaction: bool = True
    auto_generate: bool = True
    days_ahead: int = 7
    quiet_hours_enabled: bool = False
    quiet_hours_start: str = "22:00"
    quiet_hours_end: str = "07:00"

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "NotificationSettings":
        return cls().updated(**(data or {}))

    def updated(self, **changes: Any) -> "NotificationSettings":
        return replace(self, **self._normalize(changes))

    def update(self, **changes: Any) -> None:
        for name, value in self._normalize(changes).items():
            setattr(self, name, value)

    def quiet_now(self, now: datetime) -> bool:
        return self.quiet_hours_enabled and in_quiet_hours(
            now, self.quiet_hours_start, self.quiet_hours_end
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def _normalize(changes: dict[str, Any]) -> dict[str, Any]:
        known = {f.name for f in fields(NotificationSettings)}
        out: dict[str, Any] = {}
        for key, value in changes.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"unknown notification setting: {key}")
            out[name] = value
        return out


__all__ = [
    "NotificationSettings",
    "parse_hhmm",
    "in_quiet_hours",
    "clamp_days_ahead",
    "DAYS_AHEAD_MIN",
    "DAYS_AHEAD_MAX",
]
