# medtracker/core/adherence.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from medtracker.core.clock import Clock
from medtracker.core.models import Medication, Reminder, ReminderStatus


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves rounded up; 0 for an empty whole."""
    if whole <= 0:
        return 0
    return int(math.floor(100 * part / whole + 0.5))


def time_of_day(t: datetime) -> str:
    h = t.hour
    if 6 <= h < 12:
        return "morning"
    if 12 <= h < 17:
        return "afternoon"
    if 17 <= h < 21:
        return "evening"
    return "night"


@dataclass
class AdherenceStats:
    total_doses: int = 0
    taken_doses: int = 0
    missed_doses: int = 0
    pending_doses: int = 0
    adherence_rate: int = 0


@dataclass
class AdherencePatterns:
    total_reminders: int = 0
    taken_count: int = 0
    missed_count: int = 0
    snoozed_count: int = 0
    adherence_rate: int = 0
    missed_by_time_of_day: dict[str, int] = field(
        default_factory=lambda: {"morning": 0, "afternoon": 0, "evening": 0, "night": 0}
    )
    missed_by_medication: dict[str, int] = field(default_factory=dict)
    consecutive_missed: int = 0
    improvement_trend: float = 0.0

    def most_missed_medication(self) -> Optional[str]:
        if not self.missed_by_medication:
            return None
        return max(self.missed_by_medication.items(), key=lambda kv: kv[1])[0]

    def most_missed_time(self) -> Optional[str]:
        slot, count = max(self.missed_by_time_of_day.items(), key=lambda kv: kv[1])
        return slot if count else None


class AdherenceAnalyzer:
    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock = clock or Clock()

    def _resolved(
        self, reminders: Iterable[Reminder], medications: Iterable[Medication]
    ) -> list[Reminder]:
        med_ids = {m.id for m in medications}
        return [r for r in reminders if r.medication_id in med_ids]

    def compute_stats(
        self, reminders: Iterable[Reminder], medications: Iterable[Medication]
    ) -> AdherenceStats:
        """
        Only past (scheduled <= now) taken/missed reminders of existing medications
        count toward the rate; pending ones are reported separately.
        """
        now = self.clock.now()
        stats = AdherenceStats()
        for r in self._resolved(reminders, medications):
            if r.status == ReminderStatus.PENDING:
                stats.pending_doses += 1
                continue
            if r.scheduled_time > now:
                continue
            if r.status == ReminderStatus.TAKEN:
                stats.taken_doses += 1
            elif r.status == ReminderStatus.MISSED:
                stats.missed_doses += 1

        stats.total_doses = stats.taken_doses + stats.missed_doses
        stats.adherence_rate = percent(stats.taken_doses, stats.total_doses)
        return stats

    def analyze_patterns(
        self, reminders: Iterable[Reminder], medications: Iterable[Medication]
    ) -> AdherencePatterns:
        now = self.clock.now()
        past = [r for r in self._resolved(reminders, medications) if r.scheduled_time <= now]
        patterns = AdherencePatterns(total_reminders=len(past))
        if not past:
            return patterns

        for r in past:
            if r.status == ReminderStatus.TAKEN:
                patterns.taken_count += 1
            elif r.status == ReminderStatus.MISSED:
                patterns.missed_count += 1
                patterns.missed_by_time_of_day[time_of_day(r.scheduled_time)] += 1
                name = r.medication_name
                patterns.missed_by_medication[name] = patterns.missed_by_medication.get(name, 0) + 1
            if r.snoozed_count > 0:
                patterns.snoozed_count += 1

        patterns.adherence_rate = percent(patterns.taken_count, patterns.total_reminders)

        # Newest first; count the leading run of misses.
        for r in sorted(past, key=lambda r: r.scheduled_time, reverse=True):
            if r.status != ReminderStatus.MISSED:
                break
            patterns.consecutive_missed += 1

        week_ago = now - timedelta(days=7)
        two_weeks_ago = now - timedelta(days=14)
        recent = [r for r in past if r.scheduled_time >= week_ago]
        previous = [r for r in past if two_weeks_ago <= r.scheduled_time < week_ago]
        patterns.improvement_trend = _taken_share(recent) - _taken_share(previous)
        return patterns


def _taken_share(reminders: list[Reminder]) -> float:
    if not reminders:
        return 0.0
    taken = sum(1 for r in reminders if r.status == ReminderStatus.TAKEN)
    return taken / len(reminders) * 100


__all__ = [
    "AdherenceAnalyzer",
    "AdherenceStats",
    "AdherencePatterns",
    "percent",
    "time_of_day",
]
