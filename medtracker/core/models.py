# medtracker/core/models.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


class ReminderStatus(str, Enum):
    PENDING = "pending"
    TAKEN = "taken"
    MISSED = "missed"


class MedicationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


def new_id() -> str:
    return str(uuid.uuid4())


def format_local_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Naive local wall time, no offset: YYYY-MM-DDTHH:MM:SS."""
    if dt is None:
        return None
    return dt.strftime(TIMESTAMP_FORMAT)


def parse_local_timestamp(value: Any) -> Optional[datetime]:
    """
    Read a stored timestamp back as naive local time.
    Strings without an offset are local wall time already; values carrying an
    offset (``Z`` or ``+hh:mm``) are converted to the local zone first.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


@dataclass
class Schedule:
    """Structured schedule as produced by the schedule editor."""

    frequency: str = "daily"
    times_per_day: int = 1
    times: list[Any] = field(default_factory=list)
    days_of_week: list[str] = field(default_factory=list)  # "monday" … "sunday"
    interval_days: Optional[int] = None
    start_date: Optional[date] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Schedule":
        start = data.get("startDate")
        if isinstance(start, str) and start:
            start = date.fromisoformat(start[:10])
        elif isinstance(start, datetime):
            start = start.date()
        times = data.get("times")
        days = data.get("daysOfWeek")
        interval = data.get("intervalDays")
        return cls(
            frequency=data.get("frequency") or "daily",
            times_per_day=int(data.get("timesPerDay") or 1),
            times=list(times) if isinstance(times, (list, tuple)) else [],
            days_of_week=list(days) if isinstance(days, (list, tuple)) else [],
            interval_days=int(interval) if interval else None,
            start_date=start or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "frequency": self.frequency,
            "timesPerDay": self.times_per_day,
            "times": list(self.times),
            "daysOfWeek": list(self.days_of_week),
            "intervalDays": self.interval_days,
            "startDate": self.start_date.isoformat() if self.start_date else None,
        }


ScheduleSpec = Union[list, Schedule, None]


@dataclass
class Medication:
    id: str
    name: str
    dosage: str
    frequency: str = "Once daily"
    schedule: ScheduleSpec = field(default_factory=list)
    status: str = MedicationStatus.ACTIVE.value
    weekly_day: int = 0  # 0 = Sunday … 6 = Saturday

    @property
    def is_active(self) -> bool:
        return self.status == MedicationStatus.ACTIVE

    @classmethod
    def create(cls, name: str, dosage: str, **kwargs: Any) -> "Medication":
        return cls(id=new_id(), name=name, dosage=dosage, **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Medication":
        raw = data.get("schedule")
        if isinstance(raw, dict):
            schedule: ScheduleSpec = Schedule.from_dict(raw)
        elif isinstance(raw, (list, tuple)):
            schedule = list(raw)
        else:
            schedule = [] if raw is None else [raw]
        return cls(
            id=str(data.get("id") or new_id()),
            name=str(data.get("name", "")),
            dosage=str(data.get("dosage", "")),
            frequency=data.get("frequency") or "",
            schedule=schedule,
            status=data.get("status") or MedicationStatus.ACTIVE.value,
            weekly_day=int(data.get("weeklyDay") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.schedule, Schedule):
            schedule: Any = self.schedule.to_dict()
        else:
            schedule = list(self.schedule or [])
        return {
            "id": self.id,
            "name": self.name,
            "dosage": self.dosage,
            "frequency": self.frequency,
            "schedule": schedule,
            "status": self.status,
            "weeklyDay": self.weekly_day,
        }


@dataclass
class Reminder:
    """
    A concrete dose reminder.

    ``medication_name`` and ``dosage`` are a snapshot taken at generation time
    and are deliberately left stale when the medication is edited later: a
    reminder shows the dosage that was active when it was scheduled.
    """

    id: str
    medication_id: str
    medication_name: str
    dosage: str
    scheduled_time: datetime
    status: str = ReminderStatus.PENDING.value
    taken_at: Optional[datetime] = None
    missed_at: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None
    snoozed_count: int = 0
    recurring: bool = False
    frequency: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == ReminderStatus.PENDING

    def with_changes(self, changes: dict[str, Any]) -> "Reminder":
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"unknown reminder fields: {sorted(unknown)}")
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Reminder":
        return cls(
            id=str(data.get("id") or new_id()),
            medication_id=str(data.get("medicationId", "")),
            medication_name=str(data.get("medicationName", "")),
            dosage=str(data.get("dosage", "")),
            scheduled_time=parse_local_timestamp(data["scheduledTime"]),
            status=data.get("status") or ReminderStatus.PENDING.value,
            taken_at=parse_local_timestamp(data.get("takenAt")),
            missed_at=parse_local_timestamp(data.get("missedAt")),
            snoozed_until=parse_local_timestamp(data.get("snoozedUntil")),
            snoozed_count=int(data.get("snoozedCount") or 0),
            recurring=bool(data.get("recurring", False)),
            frequency=data.get("frequency"),
            created_at=parse_local_timestamp(data.get("createdAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "medicationId": self.medication_id,
            "medicationName": self.medication_name,
            "dosage": self.dosage,
            "scheduledTime": format_local_timestamp(self.scheduled_time),
            "status": self.status,
            "takenAt": format_local_timestamp(self.taken_at),
            "missedAt": format_local_timestamp(self.missed_at),
            "snoozedUntil": format_local_timestamp(self.snoozed_until),
            "snoozedCount": self.snoozed_count,
            "recurring": self.recurring,
            "frequency": self.frequency,
            "createdAt": format_local_timestamp(self.created_at),
        }


@dataclass
class GeneratorRunState:
    last_generated: Optional[datetime] = None


__all__ = [
    "ReminderStatus",
    "MedicationStatus",
    "Schedule",
    "Medication",
    "Reminder",
    "GeneratorRunState",
    "new_id",
    "format_local_timestamp",
    "parse_local_timestamp",
]
