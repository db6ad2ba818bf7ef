# medtracker/core/reminder_generator.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from medtracker.core.clock import Clock
from medtracker.core.dedup import reminder_exists
from medtracker.core.logging_utils import kv
from medtracker.core.models import (
    GeneratorRunState,
    Medication,
    Reminder,
    ReminderStatus,
    new_id,
)
from medtracker.core.schedule_expander import ScheduleExpander
from medtracker.core.settings import clamp_days_ahead

PAST_GRACE = timedelta(minutes=5)
REGENERATE_AFTER = timedelta(hours=24)
DEFAULT_DAYS_AHEAD = 7
DEFAULT_RETENTION_DAYS = 7


class ReminderGenerator:
    """
    Expands active medications into concrete pending reminders for a look-ahead window.
    Owns its GeneratorRunState; construct one per tracker instead of sharing a global.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        expander: Optional[ScheduleExpander] = None,
        days_ahead: int = DEFAULT_DAYS_AHEAD,
    ) -> None:
        self.clock = clock or Clock()
        self.expander = expander or ScheduleExpander()
        self.days_ahead = clamp_days_ahead(days_ahead)
        self.state = GeneratorRunState()
        self.log = logging.getLogger("medtracker.generator")

    @property
    def last_generated(self) -> Optional[datetime]:
        return self.state.last_generated

    # ---- generation --------------------------------------------------------------------
    def generate(
        self,
        medications: Iterable[Medication],
        existing_reminders: Iterable[Reminder],
        days_ahead: Optional[int] = None,
    ) -> list[Reminder]:
        now = self.clock.now()
        requested = self.days_ahead if days_ahead is None else days_ahead
        days = clamp_days_ahead(requested)
        if days != requested:
            self.log.warning("generate.days_ahead.clamped " + kv(requested=requested, used=days))
        window_end = now + timedelta(days=days)
        existing = list(existing_reminders)

        self.log.info(
            "generate.start "
            + kv(window_start=now.isoformat(), window_end=window_end.isoformat(), days=days)
        )

        created: list[Reminder] = []
        for med in medications:
            if not med.is_active:
                continue
            if not self.expander.configured_times(med):
                continue

            # Same-pass suppression is per medication: ids differ across medications.
            seen = [r for r in existing if r.medication_id == med.id]
            for cand in self.expander.expand(med, now, window_end):
                t = cand.scheduled_time
                if t < now and now - t > PAST_GRACE:
                    self.log.debug(
                        "generate.skip.past " + kv(medication=med.name, at=t.isoformat())
                    )
                    continue
                if reminder_exists(med.id, t, seen):
                    self.log.debug(
                        "generate.skip.exists " + kv(medication=med.name, at=t.isoformat())
                    )
                    continue
                reminder = self._build(med, t, cand.rule, now)
                seen.append(reminder)
                created.append(reminder)
                self.log.debug(
                    "generate.create "
                    + kv(medication=med.name, at=t.isoformat(), rule=cand.rule)
                )

        self.state.last_generated = now
        self.log.info("generate.done " + kv(created=len(created)))
        return created

    def _build(
        self, med: Medication, scheduled_time: datetime, rule: str, now: datetime
    ) -> Reminder:
        return Reminder(
            id=new_id(),
            medication_id=med.id,
            medication_name=med.name,
            dosage=med.dosage,
            scheduled_time=scheduled_time,
            status=ReminderStatus.PENDING.value,
            recurring=True,
            frequency=rule,
            created_at=now,
        )

    # ---- gating & housekeeping ---------------------------------------------------------
    def should_regenerate(self) -> bool:
        last = self.state.last_generated
        if last is None:
            return True
        return self.clock.now() - last >= REGENERATE_AFTER

    def reset(self) -> None:
        """Forget the last run so the next gate check regenerates."""
        self.state.last_generated = None

    def cleanup_old(
        self, reminders: Iterable[Reminder], retention_days: int = DEFAULT_RETENTION_DAYS
    ) -> list[Reminder]:
        """Keep recent reminders and every pending one, whatever its age."""
        cutoff = self.clock.now() - timedelta(days=retention_days)
        return [
            r for r in reminders if r.scheduled_time >= cutoff or r.is_pending
        ]

    def get_stats(self, reminders: Iterable[Reminder]) -> dict[str, int]:
        now = self.clock.now()
        today = datetime.combine(now.date(), datetime.min.time())
        tomorrow = today + timedelta(days=1)
        day_after = tomorrow + timedelta(days=1)

        stats = {
            "total": 0,
            "pending": 0,
            "taken": 0,
            "missed": 0,
            "today": 0,
            "tomorrow": 0,
            "upcoming": 0,
        }
        for r in reminders:
            stats["total"] += 1
            if r.status in (ReminderStatus.PENDING, ReminderStatus.TAKEN, ReminderStatus.MISSED):
                stats[ReminderStatus(r.status).value] += 1

            t = r.scheduled_time
            if today <= t < tomorrow:
                stats["today"] += 1
            elif tomorrow <= t < day_after:
                stats["tomorrow"] += 1
            elif t > now:
                stats["upcoming"] += 1
        return stats


__all__ = ["ReminderGenerator", "PAST_GRACE", "REGENERATE_AFTER"]
