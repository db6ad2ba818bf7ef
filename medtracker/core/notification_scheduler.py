# medtracker/core/notification_scheduler.py
from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional, Union

from medtracker.core.clock import Clock
from medtracker.core.i18n import fmt
from medtracker.core.logging_utils import kv
from medtracker.core.models import Medication, Reminder
from medtracker.core.settings import NotificationSettings

POLL_INTERVAL_S = 60
FIRE_EARLY = timedelta(seconds=5)
FIRE_LATE = timedelta(minutes=5)
ARM_HORIZON = timedelta(hours=24)
VIBRATION_PATTERN = (200, 100, 200, 100, 200)

OnDue = Callable[[Reminder], Union[None, Awaitable[None]]]
# A store exposing list(), or a plain iterable snapshot
ReminderSource = Any
MedicationSource = Any


def snapshot(source: Any) -> list:
    """Re-read a store (``list()``) or copy a plain iterable."""
    if source is None:
        return []
    reader = getattr(source, "list", None)
    if callable(reader):
        return list(reader())
    return list(source)


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def terminal_bell() -> None:
    sys.stderr.write("\a")
    sys.stderr.flush()


@dataclass
class ArmedTimer:
    reminder_id: str
    due_at: datetime
    delay_s: float
    task: asyncio.Task


class NotificationScheduler:
    """
    Poll loop + per-reminder one-shot timers on the running event loop.

    Per reminder: unscheduled → timer-armed → fired → cleared.
    - Due within (-5 min, +5 s] of now: fire on this check.
    - Due in (5 s, 24 h): arm exactly one timer for the remaining delay.
    - Otherwise: skip; a later poll picks it up.
    A reminder fires at most once per scheduled time; snoozing moves the time
    and so makes it eligible again.
    """

    def __init__(
        self,
        sink: Any,
        clock: Optional[Clock] = None,
        settings: Optional[NotificationSettings] = None,
        *,
        chime: Optional[Callable[[], None]] = terminal_bell,
        vibrator: Optional[Callable[[list[int]], None]] = None,
        poll_interval_s: float = POLL_INTERVAL_S,
    ) -> None:
        self.sink = sink
        self.clock = clock or Clock()
        self.settings = settings or NotificationSettings()
        self.chime = chime
        self.vibrator = vibrator
        self.poll_interval_s = poll_interval_s
        self.log = logging.getLogger("medtracker.scheduler")

        self._timers: dict[str, ArmedTimer] = {}
        self._active: dict[str, Any] = {}
        self._fired: set[tuple[str, datetime]] = set()
        self._poll_task: Optional[asyncio.Task] = None
        self._sources: Optional[tuple[ReminderSource, MedicationSource, OnDue]] = None

    # ---- introspection -----------------------------------------------------------------
    @property
    def timers(self) -> dict[str, ArmedTimer]:
        return dict(self._timers)

    @property
    def active_notifications(self) -> dict[str, Any]:
        return dict(self._active)

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def update_settings(self, **changes: Any) -> None:
        self.settings.update(**changes)
        self.log.info("scheduler.settings " + kv(**self.settings.to_dict()))

    # ---- lifecycle ---------------------------------------------------------------------
    async def start(
        self, reminders: ReminderSource, medications: MedicationSource, on_due: OnDue
    ) -> None:
        if self._poll_task is not None:
            await self._stop_poll()
        self._sources = (reminders, medications, on_due)
        self._poll_task = asyncio.create_task(self._poll_loop())
        self.log.info("scheduler.start " + kv(poll_interval_s=self.poll_interval_s))
        await self.check_due(reminders, medications, on_due)

    async def stop(self) -> None:
        await self._stop_poll()
        await self._clear_timers()
        self._sources = None
        self.log.info("scheduler.stop")

    async def reschedule(
        self, reminders: ReminderSource, medications: MedicationSource, on_due: OnDue
    ) -> None:
        """Drop every armed timer, then re-evaluate against the current state."""
        await self._clear_timers()
        if self._sources is not None:
            self._sources = (reminders, medications, on_due)
        await self.check_due(reminders, medications, on_due)

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_s)
            if self._sources is None:
                continue
            try:
                await self.check_due(*self._sources)
            except Exception as e:
                self.log.error("scheduler.tick.error " + kv(err=str(e)))

    async def _stop_poll(self) -> None:
        t = self._poll_task
        self._poll_task = None
        if t is None or t.done():
            return
        t.cancel()
        if t is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await t

    # ---- evaluation --------------------------------------------------------------------
    async def check_due(
        self, reminders: ReminderSource, medications: MedicationSource, on_due: OnDue
    ) -> None:
        now = self.clock.now()
        meds = {m.id: m for m in snapshot(medications)}
        self._forget_stale_fires(now)

        for reminder in snapshot(reminders):
            if not reminder.is_pending:
                continue

            med = meds.get(reminder.medication_id)
            if med is None:
                self.log.debug(
                    "notify.skip " + kv(reminder_id=reminder.id, reason="medication missing")
                )
                continue
            if not med.is_active:
                self.log.debug(
                    "notify.skip " + kv(reminder_id=reminder.id, reason="medication inactive")
                )
                continue

            delta = reminder.scheduled_time - now
            if -FIRE_LATE < delta <= FIRE_EARLY:
                if self._already_fired(reminder):
                    continue
                await self._cancel_timer(reminder.id)
                await self.fire(reminder, med, on_due)
            elif FIRE_EARLY < delta < ARM_HORIZON:
                self._arm(
                    reminder, med, delta.total_seconds(), on_due, reminders, medications
                )

    def _already_fired(self, reminder: Reminder) -> bool:
        return (reminder.id, reminder.scheduled_time) in self._fired

    def _forget_stale_fires(self, now: datetime) -> None:
        cutoff = now - FIRE_LATE
        self._fired = {key for key in self._fired if key[1] >= cutoff}

    # ---- timers ------------------------------------------------------------------------
    def _arm(
        self,
        reminder: Reminder,
        medication: Medication,
        delay_s: float,
        on_due: OnDue,
        reminders: ReminderSource = None,
        medications: MedicationSource = None,
    ) -> bool:
        if reminder.id in self._timers:
            return False
        task = asyncio.create_task(
            self._run_timer(reminder, medication, delay_s, on_due, reminders, medications)
        )
        self._timers[reminder.id] = ArmedTimer(
            reminder_id=reminder.id,
            due_at=reminder.scheduled_time,
            delay_s=delay_s,
            task=task,
        )
        self.log.debug(
            "notify.arm "
            + kv(
                reminder_id=reminder.id,
                medication=medication.name,
                delay_min=round(delay_s / 60),
            )
        )
        return True

    async def _run_timer(
        self,
        reminder: Reminder,
        medication: Medication,
        delay_s: float,
        on_due: OnDue,
        reminders: ReminderSource,
        medications: MedicationSource,
    ) -> None:
        try:
            await asyncio.sleep(delay_s)
            self._timers.pop(reminder.id, None)

            current = self._refresh(reminder, medication, reminders, medications)
            if current is None or self._already_fired(current[0]):
                return
            await self.fire(current[0], current[1], on_due)
        except asyncio.CancelledError:  # cleared by stop/reschedule
            raise
        except Exception as e:
            self.log.error(
                "notify.timer.error " + kv(reminder_id=reminder.id, err=str(e))
            )

    def _refresh(
        self,
        reminder: Reminder,
        medication: Medication,
        reminders: ReminderSource,
        medications: MedicationSource,
    ) -> Optional[tuple[Reminder, Medication]]:
        """Re-read the reminder at fire time; None if it no longer qualifies."""
        if reminders is None:
            return reminder, medication

        fresh = next((r for r in snapshot(reminders) if r.id == reminder.id), None)
        if fresh is None or not fresh.is_pending:
            self.log.debug(
                "notify.timer.skip " + kv(reminder_id=reminder.id, reason="no longer pending")
            )
            return None
        if fresh.scheduled_time != reminder.scheduled_time:
            self.log.debug(
                "notify.timer.skip " + kv(reminder_id=reminder.id, reason="time changed")
            )
            return None

        if medications is not None:
            medication = next(
                (m for m in snapshot(medications) if m.id == fresh.medication_id), None
            )
            if medication is None:
                self.log.debug(
                    "notify.timer.skip "
                    + kv(reminder_id=reminder.id, reason="medication missing")
                )
                return None
        return fresh, medication

    async def _cancel_timer(self, reminder_id: str) -> None:
        armed = self._timers.pop(reminder_id, None)
        if armed is None:
            return
        armed.task.cancel()
        if armed.task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await armed.task

    async def _clear_timers(self) -> None:
        armed = list(self._timers.values())
        self._timers.clear()
        for a in armed:
            a.task.cancel()
        for a in armed:
            if a.task is asyncio.current_task():
                continue
            with contextlib.suppress(asyncio.CancelledError):
                await a.task

    # ---- dispatch ----------------------------------------------------------------------
    async def fire(self, reminder: Reminder, medication: Medication, on_due: OnDue) -> None:
        """
        Dispatch one notification. Sound, vibration and sink failures degrade the
        notification but never stop ``on_due`` from being invoked.
        """
        now = self.clock.now()
        self._fired.add((reminder.id, reminder.scheduled_time))
        quiet = self.settings.quiet_now(now)

        if self.settings.sound and not quiet:
            self._play_sound(reminder)

        options: dict[str, Any] = {
            "body": fmt(
                "notify_body",
                dosage=medication.dosage,
                time=reminder.scheduled_time.strftime("%H:%M"),
            ),
            "tag": f"reminder-{reminder.id}",
            "requireInteraction": self.settings.require_interaction,
            "data": {
                "reminderId": reminder.id,
                "medicationId": medication.id,
                "action": "show-modal",
            },
        }
        if self.settings.vibration and not quiet:
            options["vibrate"] = list(VIBRATION_PATTERN)
            self._vibrate(reminder, options["vibrate"])
        if quiet:
            options["silent"] = True

        title = fmt("notify_title", name=medication.name)
        handle = await self._show(reminder, title, options)
        if handle is not None:
            self._active[reminder.id] = handle

        self.log.info(
            "notify.fire "
            + kv(
                reminder_id=reminder.id,
                medication=medication.name,
                scheduled=reminder.scheduled_time.isoformat(),
                delivered=handle is not None,
                quiet=quiet,
            )
        )
        try:
            await maybe_await(on_due(reminder))
        except Exception as e:
            self.log.error("notify.on_due.error " + kv(reminder_id=reminder.id, err=str(e)))

    async def close(self, reminder_id: str) -> None:
        handle = self._active.pop(reminder_id, None)
        if handle is None:
            return
        try:
            await maybe_await(self.sink.close(handle))
        except Exception as e:
            self.log.warning("notify.close.error " + kv(reminder_id=reminder_id, err=str(e)))

    async def _show(self, reminder: Reminder, title: str, options: dict[str, Any]) -> Any:
        if self.sink is None:
            return None
        try:
            return await maybe_await(self.sink.show(title, options))
        except Exception as e:
            self.log.warning("notify.sink.error " + kv(reminder_id=reminder.id, err=str(e)))
            return None

    def _play_sound(self, reminder: Reminder) -> None:
        if self.chime is None:
            return
        try:
            self.chime()
        except Exception as e:
            self.log.warning("notify.sound.error " + kv(reminder_id=reminder.id, err=str(e)))

    def _vibrate(self, reminder: Reminder, pattern: list[int]) -> None:
        if self.vibrator is None:
            return
        try:
            self.vibrator(pattern)
        except Exception as e:
            self.log.warning(
                "notify.vibrate.error " + kv(reminder_id=reminder.id, err=str(e))
            )


__all__ = [
    "NotificationScheduler",
    "ArmedTimer",
    "snapshot",
    "maybe_await",
    "terminal_bell",
    "POLL_INTERVAL_S",
    "FIRE_EARLY",
    "FIRE_LATE",
    "ARM_HORIZON",
    "VIBRATION_PATTERN",
]
