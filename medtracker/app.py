# medtracker/app.py
from __future__ import annotations

import sys
from pathlib import Path
import asyncio
import logging
import os
from typing import Any, List

# --------------------------------------------------------------------------------------
# Ensure project root is in sys.path so "import medtracker.*" always works
# --------------------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # noqa: E402

from medtracker import config as cfg  # noqa: E402
from medtracker.adapters.log_sink import LogNotificationSink  # noqa: E402
from medtracker.adapters.telegram_sink import TelegramNotificationSink  # noqa: E402
from medtracker.core.config_validation import validate_config  # noqa: E402
from medtracker.core.i18n import fmt  # noqa: E402
from medtracker.core.logging_utils import kv, setup_logging  # noqa: E402
from medtracker.core.models import Medication, Reminder  # noqa: E402
from medtracker.core.notification_scheduler import maybe_await  # noqa: E402
from medtracker.core.settings import NotificationSettings  # noqa: E402
from medtracker.core.stores import (  # noqa: E402
    InMemoryMedicationStore,
    YamlReminderStore,
    read_roster,
)
from medtracker.core.tracker import MedicationTracker  # noqa: E402

REGENERATE_JOB_ID = "reminders:regenerate"


def load_roster(config: Any) -> List[Any]:
    """Roster entries from config.MEDICATIONS, else from the YAML roster file."""
    inline = list(getattr(config, "MEDICATIONS", None) or [])
    if inline:
        return inline
    path = getattr(config, "MEDICATIONS_FILE", None)
    if path and os.path.exists(path):
        return read_roster(path)
    return []


def as_medications(entries: List[Any]) -> List[Medication]:
    return [e if isinstance(e, Medication) else Medication.from_dict(e) for e in entries]


def build_sink(config: Any) -> Any:
    token = config.get_bot_token()
    if not token:
        return LogNotificationSink()
    return TelegramNotificationSink.from_token(
        token,
        config.get_chat_id(),
        snooze_minutes=int(getattr(config, "SNOOZE_MINUTES", 10)),
    )


def build_tracker(config: Any, sink: Any) -> MedicationTracker:
    return MedicationTracker(
        reminders=YamlReminderStore(config.REMINDERS_FILE),
        medications=InMemoryMedicationStore(as_medications(config.MEDICATIONS)),
        sink=sink,
        settings=NotificationSettings.from_dict(config.NOTIFICATION_SETTINGS),
        poll_interval_s=config.POLL_INTERVAL_S,
        retention_days=config.RETENTION_DAYS,
    )


def build_maintenance_scheduler(
    tracker: MedicationTracker, interval_s: float
) -> AsyncIOScheduler:
    """
    Periodic regeneration-gate check (generation itself stays gated to once per 24 h).

    Note: The scheduler is created and configured here, but NOT started.
    """
    sched = AsyncIOScheduler()
    sched.add_job(
        tracker.maintenance_tick,  # async function
        trigger="interval",
        seconds=interval_s,
        id=REGENERATE_JOB_ID,
        replace_existing=True,
        coalesce=True,
        misfire_grace_time=300,
        max_instances=1,
    )
    return sched


async def send_startup_greeting(sink: Any) -> None:
    await maybe_await(sink.send_text(fmt("startup_greeting")))


async def on_reminder_due(reminder: Reminder) -> None:
    logging.getLogger("medtracker.app").info(
        "reminder.due "
        + kv(
            reminder_id=reminder.id,
            medication=reminder.medication_name,
            dosage=reminder.dosage,
            scheduled=reminder.scheduled_time.isoformat(),
        )
    )


async def main() -> None:
    setup_logging(cfg)
    log = logging.getLogger("medtracker.app")

    cfg.MEDICATIONS = load_roster(cfg)
    validate_config(cfg)

    sink = build_sink(cfg)
    tracker = build_tracker(cfg, sink)
    if isinstance(sink, TelegramNotificationSink):
        sink.attach_tracker(tracker)

    sched = build_maintenance_scheduler(tracker, cfg.REGENERATE_CHECK_INTERVAL_S)

    # --- IMPORTANT ORDER ---
    # 1) Startup greeting BEFORE any reminder can be delivered
    await send_startup_greeting(sink)
    # 2) Initial generation + first due check
    await tracker.start(on_reminder_due)
    # 3) Only now start the periodic gate check
    sched.start()

    log.info(
        "startup.ready "
        + kv(
            medications=len(tracker.medications),
            reminders=len(tracker.reminders),
            sink=type(sink).__name__,
        )
    )

    try:
        if isinstance(sink, TelegramNotificationSink):
            await sink.run_polling()
        else:
            await asyncio.Event().wait()
    finally:
        sched.shutdown(wait=False)
        await tracker.stop()
        log.info("shutdown.done")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
