# medtracker/core/config_validation.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from medtracker.core.logging_utils import kv
from medtracker.core.models import Medication, MedicationStatus
from medtracker.core.schedule_expander import ScheduleExpander
from medtracker.core.settings import (
    DAYS_AHEAD_MAX,
    DAYS_AHEAD_MIN,
    NotificationSettings,
    parse_hhmm,
)

log = logging.getLogger("medtracker.config")

_STATUSES = {s.value for s in MedicationStatus}


def _as_medication(item: Any) -> Medication:
    if isinstance(item, Medication):
        return item
    if isinstance(item, dict):
        for key in ("id", "name", "dosage"):
            if not item.get(key):
                raise ValueError(f"medication missing required field: {key}")
        return Medication.from_dict(item)
    raise ValueError(f"medication entry must be a mapping, got {type(item).__name__}")


def _check_positive(cfg: Any, name: str) -> None:
    value = getattr(cfg, name, None)
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"{name} must be a positive number")


def validate_config(cfg: Any) -> None:
    """Validate runtime configuration before starting the tracker.

    Hard errors raise ValueError. Malformed dose times are only warned about:
    the expander falls back to 09:00 for them at generation time.
    """
    meds_raw: List[Any] = getattr(cfg, "MEDICATIONS", None)
    if not isinstance(meds_raw, list):
        raise ValueError("MEDICATIONS must be a list")

    seen: set[str] = set()
    for item in meds_raw:
        med = _as_medication(item)
        if med.id in seen:
            raise ValueError(f"duplicate medication id '{med.id}'")
        seen.add(med.id)
        if med.status not in _STATUSES:
            raise ValueError(
                f"medication {med.id}: unknown status '{med.status}' "
                f"(expected one of {sorted(_STATUSES)})"
            )
        if not str(med.name).strip():
            raise ValueError(f"medication {med.id}: name must be non-empty")
        if not 0 <= int(med.weekly_day) <= 6:
            raise ValueError(f"medication {med.id}: weekly_day must be 0..6")

        for raw in ScheduleExpander.configured_times(med):
            if isinstance(raw, str) and parse_hhmm(raw) is None:
                log.warning(
                    "config.time.invalid "
                    + kv(medication_id=med.id, value=raw, fallback="09:00")
                )

    settings_raw: Dict[str, Any] = getattr(cfg, "NOTIFICATION_SETTINGS", None) or {}
    if not isinstance(settings_raw, dict):
        raise ValueError("NOTIFICATION_SETTINGS must be a dict")
    settings = NotificationSettings.from_dict(settings_raw)

    days = settings.days_ahead
    if not isinstance(days, int) or isinstance(days, bool) or not (
        DAYS_AHEAD_MIN <= days <= DAYS_AHEAD_MAX
    ):
        raise ValueError(
            f"days_ahead must be an integer in {DAYS_AHEAD_MIN}..{DAYS_AHEAD_MAX}, got {days!r}"
        )
    for name in ("quiet_hours_start", "quiet_hours_end"):
        value = getattr(settings, name)
        if parse_hhmm(value) is None:
            raise ValueError(f"{name} must be HH:MM, got {value!r}")

    _check_positive(cfg, "POLL_INTERVAL_S")
    _check_positive(cfg, "REGENERATE_CHECK_INTERVAL_S")
    _check_positive(cfg, "SNOOZE_MINUTES")
    retention = getattr(cfg, "RETENTION_DAYS", None)
    if not isinstance(retention, int) or retention < 0:
        raise ValueError("RETENTION_DAYS must be a non-negative integer")
