# medtracker/tests/unit/test_app_wiring.py
from datetime import timedelta

import pytest

from medtracker import app
from medtracker.adapters.log_sink import LogNotificationSink
from medtracker.core.stores import InMemoryMedicationStore, InMemoryReminderStore
from medtracker.core.tracker import MedicationTracker


class Cfg:
    MEDICATIONS = []
    MEDICATIONS_FILE = None

    @staticmethod
    def get_bot_token():
        return None


def test_maintenance_job_registered_but_not_started():
    tracker = MedicationTracker(InMemoryReminderStore(), InMemoryMedicationStore())
    sched = app.build_maintenance_scheduler(tracker, 3600)

    assert not sched.running
    job = sched.get_job(app.REGENERATE_JOB_ID)
    assert job is not None
    assert job.func == tracker.maintenance_tick
    assert job.trigger.interval == timedelta(hours=1)
    assert job.coalesce is True
    assert job.max_instances == 1
    assert job.misfire_grace_time == 300


def test_log_sink_without_token():
    assert isinstance(app.build_sink(Cfg), LogNotificationSink)


def test_roster_prefers_inline_then_file(tmp_path):
    path = tmp_path / "meds.yaml"
    path.write_text("medications:\n  - id: a\n    name: A\n    dosage: '1'\n", encoding="utf-8")

    class FromFile(Cfg):
        MEDICATIONS_FILE = str(path)

    class Inline(FromFile):
        MEDICATIONS = [{"id": "z", "name": "Z", "dosage": "2"}]

    assert [m["id"] for m in app.load_roster(FromFile)] == ["a"]
    assert [m["id"] for m in app.load_roster(Inline)] == ["z"]
    assert app.load_roster(Cfg) == []
    assert [m.name for m in app.as_medications(app.load_roster(FromFile))] == ["A"]


def test_log_sink_hands_out_handles(caplog):
    sink = LogNotificationSink()
    with caplog.at_level("INFO", logger="medtracker.sink"):
        h1 = sink.show("Time to take A", {"body": "Dosage: 1\nScheduled: 09:00", "tag": "reminder-r1"})
        h2 = sink.show("Time to take B", {"body": "x", "tag": "reminder-r2", "silent": True})
    sink.close(h1)
    assert (h1, h2) == (1, 2)
    assert "Time to take A | Dosage: 1 Scheduled: 09:00" in caplog.text


@pytest.mark.asyncio
async def test_startup_greeting_goes_through_sync_sink(caplog):
    with caplog.at_level("INFO", logger="medtracker.sink"):
        await app.send_startup_greeting(LogNotificationSink())
    assert "sink.log.text text='Medication reminders are running.'" in caplog.text


@pytest.mark.asyncio
async def test_startup_greeting_awaits_async_sink():
    class AsyncTextSink:
        def __init__(self):
            self.texts = []

        async def send_text(self, text):
            self.texts.append(text)

    sink = AsyncTextSink()
    await app.send_startup_greeting(sink)
    assert sink.texts == ["Medication reminders are running."]
