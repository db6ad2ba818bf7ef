# medtracker/tests/integration/test_tracker_flow.py
from datetime import datetime, timedelta

import pytest

from medtracker.core.models import Medication
from medtracker.core.settings import NotificationSettings
from medtracker.core.stores import InMemoryMedicationStore, InMemoryReminderStore
from medtracker.core.tracker import MedicationTracker


class FakeClock:
    def __init__(self, now):
        self.t = now

    def now(self):
        return self.t

    def advance(self, **kw):
        self.t += timedelta(**kw)


class RecordingSink:
    def __init__(self):
        self.shown = []
        self.closed = []

    async def show(self, title, options):
        self.shown.append((title, options))
        return 1000 + len(self.shown)

    async def close(self, handle):
        self.closed.append(handle)


# Two seconds before the first dose
START = datetime(2024, 1, 3, 8, 59, 58)


def make_tracker(**settings):
    clock = FakeClock(START)
    sink = RecordingSink()
    med = Medication(id="m1", name="Aspirin", dosage="100 mg", frequency="Once daily", schedule=["09:00"])
    tracker = MedicationTracker(
        InMemoryReminderStore(),
        InMemoryMedicationStore([med]),
        sink,
        clock,
        NotificationSettings(**settings),
        chime=None,
    )
    return tracker, sink, clock


@pytest.mark.asyncio
async def test_start_generates_and_fires_due_dose():
    tracker, sink, _ = make_tracker()
    due = []

    await tracker.start(due.append)
    try:
        # Jan 3 … Jan 10
        assert len(tracker.reminders) == 8
        assert [r.scheduled_time for r in due] == [datetime(2024, 1, 3, 9, 0)]
        assert sink.shown[0][0] == "Time to take Aspirin"
    finally:
        await tracker.stop()


@pytest.mark.asyncio
async def test_snooze_closes_notification_and_rearms_without_duplicate():
    tracker, sink, _ = make_tracker()
    due = []
    await tracker.start(due.append)
    try:
        rid = due[0].id
        updated = await tracker.snooze(rid, 10)

        assert len(tracker.reminders) == 8
        assert updated.scheduled_time == START + timedelta(minutes=10)
        assert sink.closed == [1001]
        assert set(tracker.scheduler.timers) == {rid}
    finally:
        await tracker.stop()
    assert tracker.scheduler.timers == {}


@pytest.mark.asyncio
async def test_mark_taken_updates_stats():
    tracker, _, clock = make_tracker()
    due = []
    await tracker.start(due.append)
    try:
        await tracker.mark_taken(due[0].id)
        clock.advance(minutes=5)
        stats = tracker.stats()
        assert stats.total_doses == 1
        assert stats.taken_doses == 1
        assert stats.adherence_rate == 100
        assert stats.pending_doses == 7
    finally:
        await tracker.stop()


@pytest.mark.asyncio
async def test_unknown_reminder_is_noop():
    tracker, sink, _ = make_tracker()
    await tracker.start(lambda r: None)
    try:
        assert await tracker.mark_missed("nope") is None
        assert sink.closed == []
    finally:
        await tracker.stop()


@pytest.mark.asyncio
async def test_delete_medication_cascades():
    tracker, _, _ = make_tracker()
    await tracker.start(lambda r: None)
    try:
        assert await tracker.delete_medication("m1") is True
        assert len(tracker.reminders) == 0
        assert tracker.scheduler.timers == {}
        assert await tracker.delete_medication("m1") is False
    finally:
        await tracker.stop()


@pytest.mark.asyncio
async def test_add_medication_generates_eagerly():
    tracker, _, _ = make_tracker()
    await tracker.start(lambda r: None)
    try:
        extra = Medication(id="m2", name="Vitamin D", dosage="1000 IU", frequency="Twice daily", schedule=["08:00", "20:00"])
        await tracker.add_medication(extra)
        mine = [r for r in tracker.reminders.list() if r.medication_id == "m2"]
        # Jan 3 20:00 plus two per day Jan 4 … Jan 10
        assert len(mine) == 15
    finally:
        await tracker.stop()


@pytest.mark.asyncio
async def test_deactivation_stops_firing():
    tracker, _, clock = make_tracker()
    due = []
    await tracker.start(due.append)
    try:
        await tracker.set_medication_status("m1", "inactive")
        clock.advance(days=1)
        await tracker.scheduler.check_due(tracker.reminders, tracker.medications, due.append)
        assert len(due) == 1
        with pytest.raises(ValueError):
            await tracker.set_medication_status("m1", "paused")
    finally:
        await tracker.stop()


@pytest.mark.asyncio
async def test_schedule_change_replaces_future_slots():
    tracker, _, _ = make_tracker()
    await tracker.start(lambda r: None)
    try:
        await tracker.update_medication_schedule("m1", ["21:00"])
        times = sorted({r.scheduled_time.strftime("%H:%M") for r in tracker.reminders.list() if r.is_pending})
        assert times == ["21:00"]
    finally:
        await tracker.stop()


@pytest.mark.asyncio
async def test_days_ahead_change_forces_regeneration():
    tracker, _, _ = make_tracker()
    await tracker.start(lambda r: None)
    try:
        assert len(tracker.reminders) == 8
        await tracker.update_settings(daysAhead=14)
        assert len(tracker.reminders) == 15
    finally:
        await tracker.stop()


@pytest.mark.asyncio
async def test_auto_generate_off_generates_nothing():
    tracker, _, _ = make_tracker(auto_generate=False)
    await tracker.start(lambda r: None)
    try:
        assert len(tracker.reminders) == 0
    finally:
        await tracker.stop()


@pytest.mark.asyncio
async def test_maintenance_tick_respects_daily_gate():
    tracker, _, clock = make_tracker()
    await tracker.start(lambda r: None)
    try:
        assert await tracker.maintenance_tick() == 0
        clock.advance(hours=24)
        assert await tracker.maintenance_tick() == 1
    finally:
        await tracker.stop()


@pytest.mark.asyncio
async def test_clear_recurring_and_test_reminder():
    tracker, _, _ = make_tracker()
    await tracker.start(lambda r: None)
    try:
        test_rem = await tracker.add_test_reminder(seconds_from_now=30)
        assert await tracker.clear_recurring() == 8
        assert [r.id for r in tracker.reminders.list()] == [test_rem.id]
        assert set(tracker.scheduler.timers) == {test_rem.id}
    finally:
        await tracker.stop()
