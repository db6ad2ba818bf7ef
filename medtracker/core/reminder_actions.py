# medtracker/core/reminder_actions.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Optional

from medtracker.core.clock import Clock
from medtracker.core.logging_utils import kv
from medtracker.core.models import Medication, Reminder, ReminderStatus, new_id

TEST_FREQUENCY = "test"


class ReminderActions:
    """
    User-driven reminder transitions applied through the reminder store.
    Each call is a single store update; unknown ids return None.
    """

    def __init__(self, store: Any, clock: Optional[Clock] = None) -> None:
        self.store = store
        self.clock = clock or Clock()
        self.log = logging.getLogger("medtracker.actions")

    def _apply(self, action: str, reminder_id: str, changes: dict[str, Any]) -> Optional[Reminder]:
        updated = self.store.update(reminder_id, changes)
        if updated is None:
            self.log.debug("action.unknown " + kv(action=action, reminder_id=reminder_id))
            return None
        self.log.info(
            "action." + action + " "
            + kv(reminder_id=reminder_id, medication=updated.medication_name)
        )
        return updated

    def mark_taken(self, reminder_id: str) -> Optional[Reminder]:
        return self._apply(
            "taken",
            reminder_id,
            {"status": ReminderStatus.TAKEN.value, "taken_at": self.clock.now()},
        )

    def mark_missed(self, reminder_id: str) -> Optional[Reminder]:
        return self._apply(
            "missed",
            reminder_id,
            {"status": ReminderStatus.MISSED.value, "missed_at": self.clock.now()},
        )

    def snooze(self, reminder_id: str, minutes: int) -> Optional[Reminder]:
        """Move the reminder to now + minutes; never creates a second reminder."""
        if minutes <= 0:
            raise ValueError(f"snooze minutes must be positive, got {minutes}")
        current = self.store.get(reminder_id)
        if current is None:
            self.log.debug("action.unknown " + kv(action="snooze", reminder_id=reminder_id))
            return None
        until = self.clock.now() + timedelta(minutes=minutes)
        return self._apply(
            "snooze",
            reminder_id,
            {
                "status": ReminderStatus.PENDING.value,
                "scheduled_time": until,
                "snoozed_until": until,
                "snoozed_count": (current.snoozed_count or 0) + 1,
            },
        )

    def reset_to_pending(self, reminder_id: str) -> Optional[Reminder]:
        return self._apply(
            "reset",
            reminder_id,
            {
                "status": ReminderStatus.PENDING.value,
                "taken_at": None,
                "missed_at": None,
                "snoozed_until": None,
            },
        )

    # ---- collection-level helpers --------------------------------------------------------
    def add_test_reminder(self, medication: Medication, seconds_from_now: int = 10) -> Reminder:
        """Ad-hoc reminder a few seconds out, for checking the notification path."""
        now = self.clock.now()
        reminder = Reminder(
            id=f"test-{new_id()}",
            medication_id=medication.id,
            medication_name=medication.name,
            dosage=medication.dosage,
            scheduled_time=now + timedelta(seconds=seconds_from_now),
            recurring=False,
            frequency=TEST_FREQUENCY,
            created_at=now,
        )
        self.store.append(reminder)
        self.log.info(
            "action.test_reminder "
            + kv(reminder_id=reminder.id, medication=medication.name, in_s=seconds_from_now)
        )
        return reminder

    def clear_recurring(self) -> int:
        """Remove every generator-created reminder; ad-hoc ones stay."""
        doomed = [r.id for r in self.store.list() if r.recurring]
        for rid in doomed:
            self.store.remove(rid)
        self.log.info("action.clear_recurring " + kv(removed=len(doomed)))
        return len(doomed)

    def remove_for_medication(self, medication_id: str) -> int:
        doomed = [r.id for r in self.store.list() if r.medication_id == medication_id]
        for rid in doomed:
            self.store.remove(rid)
        if doomed:
            self.log.info(
                "action.cascade " + kv(medication_id=medication_id, removed=len(doomed))
            )
        return len(doomed)


__all__ = ["ReminderActions", "TEST_FREQUENCY"]
