# medtracker/core/tracker.py
from __future__ import annotations

import logging
from typing import Any, Optional

from medtracker.core.adherence import AdherenceAnalyzer, AdherencePatterns, AdherenceStats
from medtracker.core.clock import Clock
from medtracker.core.logging_utils import kv
from medtracker.core.models import Medication, MedicationStatus, Reminder, Schedule
from medtracker.core.notification_scheduler import (
    POLL_INTERVAL_S,
    NotificationScheduler,
    OnDue,
    maybe_await,
    terminal_bell,
)
from medtracker.core.reminder_actions import ReminderActions
from medtracker.core.reminder_generator import DEFAULT_RETENTION_DAYS, ReminderGenerator
from medtracker.core.settings import NotificationSettings


class MedicationTracker:
    """
    Wires stores, generator, scheduler, transitions and settings together.
    Every mutation that can change what is due ends with a reschedule pass.
    """

    def __init__(
        self,
        reminders: Any,
        medications: Any,
        sink: Any = None,
        clock: Optional[Clock] = None,
        settings: Optional[NotificationSettings] = None,
        *,
        poll_interval_s: float = POLL_INTERVAL_S,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        chime: Any = terminal_bell,
        vibrator: Any = None,
    ) -> None:
        self.reminders = reminders
        self.medications = medications
        self.clock = clock or Clock()
        self.settings = settings or NotificationSettings()
        self.retention_days = retention_days
        self.log = logging.getLogger("medtracker.tracker")

        self.generator = ReminderGenerator(self.clock, days_ahead=self.settings.days_ahead)
        self.scheduler = NotificationScheduler(
            sink,
            self.clock,
            self.settings,
            chime=chime,
            vibrator=vibrator,
            poll_interval_s=poll_interval_s,
        )
        self.actions = ReminderActions(reminders, self.clock)
        self.analyzer = AdherenceAnalyzer(self.clock)

        self._on_due: Optional[OnDue] = None

    # ---- lifecycle ---------------------------------------------------------------------
    @property
    def started(self) -> bool:
        return self._on_due is not None

    async def start(self, on_due: OnDue) -> None:
        self._on_due = on_due
        self.refresh_reminders()
        await self.scheduler.start(self.reminders, self.medications, self._dispatch_due)
        self.log.info(
            "tracker.start "
            + kv(medications=len(self.medications), reminders=len(self.reminders))
        )

    async def stop(self) -> None:
        await self.scheduler.stop()
        self._on_due = None
        self.log.info("tracker.stop")

    async def _dispatch_due(self, reminder: Reminder) -> None:
        if self._on_due is not None:
            await maybe_await(self._on_due(reminder))

    async def _reschedule(self) -> None:
        if not self.started:
            return
        await self.scheduler.reschedule(self.reminders, self.medications, self._dispatch_due)

    # ---- generation --------------------------------------------------------------------
    def refresh_reminders(self, force: bool = False) -> list[Reminder]:
        """Generate the look-ahead window if the daily gate allows it, then prune."""
        if not self.settings.auto_generate:
            self.log.debug("tracker.refresh.skip " + kv(reason="auto_generate off"))
            return []
        if not force and not self.generator.should_regenerate():
            return []

        created = self.generator.generate(
            self.medications.list(), self.reminders.list(), self.settings.days_ahead
        )
        self.reminders.extend(created)

        current = self.reminders.list()
        kept = self.generator.cleanup_old(current, self.retention_days)
        if len(kept) != len(current):
            self.reminders.replace_all(kept)
            self.log.info("tracker.cleanup " + kv(removed=len(current) - len(kept)))
        return created

    async def maintenance_tick(self) -> int:
        """Hourly gate check; reschedules only when something was generated."""
        created = self.refresh_reminders()
        if created:
            await self._reschedule()
        return len(created)

    async def _schedule_changed(self) -> None:
        self.refresh_reminders(force=True)
        await self._reschedule()

    # ---- reminder transitions ----------------------------------------------------------
    async def _after_transition(self, reminder_id: str) -> None:
        await self.scheduler.close(reminder_id)
        await self._reschedule()

    async def mark_taken(self, reminder_id: str) -> Optional[Reminder]:
        updated = self.actions.mark_taken(reminder_id)
        if updated is not None:
            await self._after_transition(reminder_id)
        return updated

    async def mark_missed(self, reminder_id: str) -> Optional[Reminder]:
        updated = self.actions.mark_missed(reminder_id)
        if updated is not None:
            await self._after_transition(reminder_id)
        return updated

    async def snooze(self, reminder_id: str, minutes: int) -> Optional[Reminder]:
        updated = self.actions.snooze(reminder_id, minutes)
        if updated is not None:
            await self._after_transition(reminder_id)
        return updated

    async def reset_to_pending(self, reminder_id: str) -> Optional[Reminder]:
        updated = self.actions.reset_to_pending(reminder_id)
        if updated is not None:
            await self._after_transition(reminder_id)
        return updated

    async def add_test_reminder(
        self, medication_id: Optional[str] = None, seconds_from_now: int = 10
    ) -> Reminder:
        meds = self.medications.list()
        if not meds:
            raise RuntimeError("no medications configured; add one first")
        med = self.medications.get(medication_id) if medication_id else meds[0]
        if med is None:
            raise ValueError(f"unknown medication: {medication_id}")
        reminder = self.actions.add_test_reminder(med, seconds_from_now)
        await self._reschedule()
        return reminder

    async def clear_recurring(self) -> int:
        removed = self.actions.clear_recurring()
        self.generator.reset()
        await self._reschedule()
        return removed

    # ---- medications -------------------------------------------------------------------
    async def add_medication(self, medication: Medication) -> Medication:
        self.medications.append(medication)
        self.log.info("med.add " + kv(medication_id=medication.id, name=medication.name))
        await self._schedule_changed()
        return medication

    async def set_medication_status(self, medication_id: str, status: str) -> Optional[Medication]:
        value = MedicationStatus(status).value
        updated = self.medications.update(medication_id, {"status": value})
        if updated is None:
            self.log.debug("med.unknown " + kv(medication_id=medication_id))
            return None
        self.log.info("med.status " + kv(medication_id=medication_id, status=value))
        await self._schedule_changed()
        return updated

    async def update_medication_schedule(
        self, medication_id: str, schedule: Any
    ) -> Optional[Medication]:
        """
        Replace the schedule. Future pending generated reminders of this medication
        are dropped first so the new schedule is not mixed with the old one.
        """
        if isinstance(schedule, dict):
            schedule = Schedule.from_dict(schedule)
        updated = self.medications.update(medication_id, {"schedule": schedule})
        if updated is None:
            self.log.debug("med.unknown " + kv(medication_id=medication_id))
            return None

        now = self.clock.now()
        stale = [
            r.id
            for r in self.reminders.list()
            if r.medication_id == medication_id
            and r.recurring
            and r.is_pending
            and r.scheduled_time > now
        ]
        for rid in stale:
            self.reminders.remove(rid)
            await self.scheduler.close(rid)
        self.log.info(
            "med.schedule " + kv(medication_id=medication_id, dropped=len(stale))
        )
        await self._schedule_changed()
        return updated

    async def delete_medication(self, medication_id: str) -> bool:
        if not self.medications.remove(medication_id):
            self.log.debug("med.unknown " + kv(medication_id=medication_id))
            return False
        doomed = [r.id for r in self.reminders.list() if r.medication_id == medication_id]
        self.actions.remove_for_medication(medication_id)
        for rid in doomed:
            await self.scheduler.close(rid)
        self.log.info("med.delete " + kv(medication_id=medication_id, reminders=len(doomed)))
        await self._reschedule()
        return True

    # ---- settings & stats --------------------------------------------------------------
    async def update_settings(self, **changes: Any) -> NotificationSettings:
        before = self.settings.days_ahead
        self.scheduler.update_settings(**changes)
        self.generator.days_ahead = self.settings.days_ahead
        if self.settings.days_ahead != before:
            await self._schedule_changed()
        return self.settings

    def stats(self) -> AdherenceStats:
        return self.analyzer.compute_stats(self.reminders.list(), self.medications.list())

    def patterns(self) -> AdherencePatterns:
        return self.analyzer.analyze_patterns(self.reminders.list(), self.medications.list())

    def reminder_stats(self) -> dict[str, int]:
        return self.generator.get_stats(self.reminders.list())


__all__ = ["MedicationTracker"]
