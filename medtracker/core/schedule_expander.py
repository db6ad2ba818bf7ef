# medtracker/core/schedule_expander.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Callable, Iterator, Optional

from medtracker.core.logging_utils import kv
from medtracker.core.models import Medication, Schedule

DEFAULT_TIME = (9, 0)
TWICE_DAILY_DEFAULTS = ("08:00", "20:00")
THREE_TIMES_DAILY_DEFAULTS = ("08:00", "14:00", "20:00")

# Index 0 is Sunday, matching Medication.weekly_day
WEEKDAY_NAMES = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)


class FrequencyKind(str, Enum):
    DAILY = "daily"
    TWICE_DAILY = "twice-daily"
    THREE_TIMES_DAILY = "three-times-daily"
    WEEKLY = "weekly"
    AS_NEEDED = "as-needed"
    CUSTOM = "custom"


@dataclass(frozen=True)
class FrequencyRule:
    kind: FrequencyKind
    matches: Callable[[str], bool]


# Order matters: labels overlap ("Three times weekly" must resolve to THREE_TIMES_DAILY).
FREQUENCY_RULES: tuple[FrequencyRule, ...] = (
    FrequencyRule(
        FrequencyKind.DAILY,
        lambda f: "daily" in f and "twice" not in f and "three" not in f,
    ),
    FrequencyRule(FrequencyKind.TWICE_DAILY, lambda f: "twice" in f),
    FrequencyRule(FrequencyKind.THREE_TIMES_DAILY, lambda f: "three" in f),
    FrequencyRule(FrequencyKind.WEEKLY, lambda f: "weekly" in f or "week" in f),
    FrequencyRule(
        FrequencyKind.AS_NEEDED,
        lambda f: "as needed" in f or "asneeded" in f or "prn" in f,
    ),
)


def normalize_frequency(label: Optional[str]) -> str:
    return (label or "daily").lower().replace("-", " ").replace("_", " ")


def classify_frequency(label: Optional[str]) -> FrequencyKind:
    """First matching rule wins; unknown labels are CUSTOM (expanded as daily)."""
    normalized = normalize_frequency(label)
    for rule in FREQUENCY_RULES:
        if rule.matches(normalized):
            return rule.kind
    return FrequencyKind.CUSTOM


@dataclass(frozen=True)
class Candidate:
    scheduled_time: datetime
    rule: str  # frequency tag stamped on the generated reminder


def js_weekday(d: date) -> int:
    """Day of week with Sunday = 0."""
    return (d.weekday() + 1) % 7


def iter_window_days(window_start: datetime, window_end: datetime) -> Iterator[date]:
    """Every calendar day whose midnight lies within [window_start's day, window_end]."""
    day = window_start.date()
    while datetime.combine(day, time.min) <= window_end:
        yield day
        day += timedelta(days=1)


class ScheduleExpander:
    """
    Turns one medication's schedule + frequency into candidate instants.
    Pure apart from logging: never raises on malformed schedule entries.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("medtracker.expander")

    # ---- public ------------------------------------------------------------------------
    def expand(
        self, medication: Medication, window_start: datetime, window_end: datetime
    ) -> list[Candidate]:
        if not medication.is_active:
            return []

        times = self.configured_times(medication)
        if not times:
            return []

        structured = (
            medication.schedule if isinstance(medication.schedule, Schedule) else None
        )
        label = medication.frequency or (structured.frequency if structured else None)
        kind = classify_frequency(label)

        if kind is FrequencyKind.AS_NEEDED:
            return []
        if kind is FrequencyKind.TWICE_DAILY:
            times = times[:2] if len(times) >= 2 else list(TWICE_DAILY_DEFAULTS)
        elif kind is FrequencyKind.THREE_TIMES_DAILY:
            times = times[:3] if len(times) >= 3 else list(THREE_TIMES_DAILY_DEFAULTS)

        day_ok = self._day_filter(kind, medication, structured, window_start.date())
        rule = FrequencyKind.DAILY.value if kind is FrequencyKind.CUSTOM else kind.value

        out: list[Candidate] = []
        for day in iter_window_days(window_start, window_end):
            if not day_ok(day):
                continue
            for raw in times:
                out.append(Candidate(self.combine(day, raw, medication), rule))
        return out

    @staticmethod
    def configured_times(medication: Medication) -> list[Any]:
        schedule = medication.schedule
        if isinstance(schedule, Schedule):
            raw = list(schedule.times)
        elif schedule is None:
            raw = []
        elif isinstance(schedule, (list, tuple)):
            raw = list(schedule)
        else:
            raw = [schedule]
        return [t for t in raw if t is not None and t != ""]

    def combine(self, day: date, raw: Any, medication: Optional[Medication] = None) -> datetime:
        hh, mm = self.parse_time_of_day(raw, medication)
        return datetime(day.year, day.month, day.day, hh, mm)

    def parse_time_of_day(
        self, raw: Any, medication: Optional[Medication] = None
    ) -> tuple[int, int]:
        """'HH:MM' → (hh, mm). Anything unusable degrades to 09:00 with a warning."""
        value = raw
        if isinstance(raw, dict):
            value = raw.get("time") or raw.get("value") or str(raw)

        med_name = medication.name if medication else None
        if not isinstance(value, str):
            self.log.warning(
                "schedule.time.invalid "
                + kv(medication=med_name, value=raw, reason="not a string", default="09:00")
            )
            return DEFAULT_TIME
        if ":" not in value:
            self.log.warning(
                "schedule.time.invalid "
                + kv(medication=med_name, value=value, reason="missing colon", default="09:00")
            )
            return DEFAULT_TIME

        parts = value.split(":")
        try:
            hh, mm = int(parts[0]), int(parts[1])
        except ValueError:
            self.log.warning(
                "schedule.time.invalid "
                + kv(medication=med_name, value=value, reason="not numeric", default="09:00")
            )
            return DEFAULT_TIME
        if not (0 <= hh <= 23 and 0 <= mm <= 59):
            self.log.warning(
                "schedule.time.invalid "
                + kv(medication=med_name, value=value, reason="out of range", default="09:00")
            )
            return DEFAULT_TIME
        return hh, mm

    # ---- day selection -----------------------------------------------------------------
    def _day_filter(
        self,
        kind: FrequencyKind,
        medication: Medication,
        structured: Optional[Schedule],
        first_day: date,
    ) -> Callable[[date], bool]:
        start = structured.start_date if structured else None

        if kind is FrequencyKind.WEEKLY:
            weekdays = self._weekly_days(medication, structured)
            return lambda d: (start is None or d >= start) and js_weekday(d) in weekdays

        interval = structured.interval_days if structured else None
        if kind in (FrequencyKind.DAILY, FrequencyKind.CUSTOM) and interval and interval > 1:
            anchor = start or first_day
            return lambda d: d >= anchor and (d - anchor).days % interval == 0

        return lambda d: start is None or d >= start

    def _weekly_days(
        self, medication: Medication, structured: Optional[Schedule]
    ) -> set[int]:
        days: set[int] = set()
        for entry in structured.days_of_week if structured else []:
            if isinstance(entry, int) and 0 <= entry <= 6:
                days.add(entry)
            elif isinstance(entry, str) and entry.strip().lower() in WEEKDAY_NAMES:
                days.add(WEEKDAY_NAMES.index(entry.strip().lower()))
            else:
                self.log.debug(
                    "schedule.weekday.ignored " + kv(medication=medication.name, value=entry)
                )
        if not days:
            days.add(medication.weekly_day or 0)
        return days


__all__ = [
    "ScheduleExpander",
    "Candidate",
    "FrequencyKind",
    "FrequencyRule",
    "FREQUENCY_RULES",
    "classify_frequency",
    "iter_window_days",
    "js_weekday",
]
