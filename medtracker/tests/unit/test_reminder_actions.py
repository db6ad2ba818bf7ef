# medtracker/tests/unit/test_reminder_actions.py
from datetime import datetime, timedelta

import pytest

from medtracker.core.models import Medication, Reminder
from medtracker.core.reminder_actions import ReminderActions
from medtracker.core.stores import InMemoryReminderStore


class FakeClock:
    def __init__(self, now):
        self.t = now

    def now(self):
        return self.t


NOW = datetime(2024, 1, 3, 9, 0)


def make(status="pending", recurring=True, rid="r1", med_id="m1"):
    return Reminder(
        id=rid, medication_id=med_id, medication_name="Aspirin", dosage="100 mg",
        scheduled_time=NOW, status=status, recurring=recurring,
    )


def test_snooze_moves_time_without_duplicating():
    store = InMemoryReminderStore([make()])
    actions = ReminderActions(store, FakeClock(NOW))

    updated = actions.snooze("r1", 10)

    assert len(store) == 1
    assert updated.status == "pending"
    assert updated.scheduled_time == NOW + timedelta(minutes=10)
    assert updated.snoozed_until == NOW + timedelta(minutes=10)
    assert updated.snoozed_count == 1
    assert actions.snooze("r1", 5).snoozed_count == 2


def test_snooze_rejects_non_positive_minutes():
    actions = ReminderActions(InMemoryReminderStore([make()]), FakeClock(NOW))
    with pytest.raises(ValueError):
        actions.snooze("r1", 0)


def test_taken_missed_and_reset():
    store = InMemoryReminderStore([make()])
    actions = ReminderActions(store, FakeClock(NOW))

    taken = actions.mark_taken("r1")
    assert taken.status == "taken" and taken.taken_at == NOW

    missed = actions.mark_missed("r1")
    assert missed.status == "missed" and missed.missed_at == NOW

    reset = actions.reset_to_pending("r1")
    assert reset.status == "pending"
    assert reset.taken_at is None and reset.missed_at is None and reset.snoozed_until is None


def test_unknown_id_returns_none():
    actions = ReminderActions(InMemoryReminderStore(), FakeClock(NOW))
    assert actions.mark_taken("nope") is None
    assert actions.snooze("nope", 10) is None
    assert actions.reset_to_pending("nope") is None


def test_add_test_reminder_is_adhoc():
    store = InMemoryReminderStore()
    actions = ReminderActions(store, FakeClock(NOW))
    med = Medication(id="m1", name="Aspirin", dosage="100 mg")

    r = actions.add_test_reminder(med, seconds_from_now=30)

    assert store.get(r.id) is r
    assert r.recurring is False
    assert r.frequency == "test"
    assert r.scheduled_time == NOW + timedelta(seconds=30)


def test_clear_recurring_keeps_adhoc():
    store = InMemoryReminderStore(
        [make(rid="a"), make(rid="b"), make(rid="c", recurring=False)]
    )
    actions = ReminderActions(store, FakeClock(NOW))
    assert actions.clear_recurring() == 2
    assert [r.id for r in store.list()] == ["c"]


def test_remove_for_medication_cascades():
    store = InMemoryReminderStore([make(rid="a"), make(rid="b", med_id="m2")])
    actions = ReminderActions(store, FakeClock(NOW))
    assert actions.remove_for_medication("m1") == 1
    assert [r.id for r in store.list()] == ["b"]
