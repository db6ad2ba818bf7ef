# medtracker/core/stores.py
from __future__ import annotations

import logging
import os
from typing import Any, Iterable, Optional

import yaml

from medtracker.core.logging_utils import kv
from medtracker.core.models import Medication, Reminder


class InMemoryReminderStore:
    """
    Reminder collection with atomic per-call updates.
    Callers never rely on ordering; ``list()`` returns a fresh copy each time.
    """

    def __init__(self, reminders: Optional[Iterable[Reminder]] = None) -> None:
        self._items: dict[str, Reminder] = {}
        for r in reminders or []:
            self._items[r.id] = r
        self.log = logging.getLogger("medtracker.store")

    def list(self) -> list[Reminder]:
        return list(self._items.values())

    def get(self, reminder_id: str) -> Optional[Reminder]:
        return self._items.get(reminder_id)

    def append(self, reminder: Reminder) -> None:
        self._items[reminder.id] = reminder
        self._changed()

    def extend(self, reminders: Iterable[Reminder]) -> int:
        count = 0
        for r in reminders:
            self._items[r.id] = r
            count += 1
        if count:
            self._changed()
        return count

    def update(self, reminder_id: str, changes: dict[str, Any]) -> Optional[Reminder]:
        current = self._items.get(reminder_id)
        if current is None:
            return None
        updated = current.with_changes(changes)
        self._items[reminder_id] = updated
        self._changed()
        return updated

    def remove(self, reminder_id: str) -> bool:
        removed = self._items.pop(reminder_id, None) is not None
        if removed:
            self._changed()
        return removed

    def replace_all(self, reminders: Iterable[Reminder]) -> None:
        self._items = {r.id: r for r in reminders}
        self._changed()

    def __len__(self) -> int:
        return len(self._items)

    def _changed(self) -> None:
        """Hook for persistent subclasses."""


class YamlReminderStore(InMemoryReminderStore):
    """Reminder store persisted to a YAML file, rewritten after every mutation."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(self._load(path))

    @staticmethod
    def _load(path: str) -> list[Reminder]:
        if not os.path.exists(path):
            return []
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return [Reminder.from_dict(item) for item in data.get("reminders", [])]

    def _changed(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                {"reminders": [r.to_dict() for r in self._items.values()]},
                f,
                allow_unicode=True,
                sort_keys=False,
            )
        os.replace(tmp, self.path)
        self.log.debug("store.saved " + kv(path=self.path, count=len(self._items)))


class InMemoryMedicationStore:
    def __init__(self, medications: Optional[Iterable[Medication]] = None) -> None:
        self._items: dict[str, Medication] = {}
        for m in medications or []:
            self._items[m.id] = m

    def list(self) -> list[Medication]:
        return list(self._items.values())

    def get(self, medication_id: str) -> Optional[Medication]:
        return self._items.get(medication_id)

    def append(self, medication: Medication) -> None:
        self._items[medication.id] = medication

    def update(self, medication_id: str, changes: dict[str, Any]) -> Optional[Medication]:
        current = self._items.get(medication_id)
        if current is None:
            return None
        for key, value in changes.items():
            if not hasattr(current, key) or key == "id":
                raise ValueError(f"cannot update medication field: {key}")
            setattr(current, key, value)
        return current

    def remove(self, medication_id: str) -> bool:
        return self._items.pop(medication_id, None) is not None

    def __len__(self) -> int:
        return len(self._items)


def read_roster(path: str) -> list[dict[str, Any]]:
    """Raw YAML roster: the top-level ``medications`` list of camelCase mappings."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    items = data.get("medications") or []
    if not isinstance(items, list):
        raise ValueError(f"{path}: 'medications' must be a list")
    return items


def load_medications(path: str) -> list[Medication]:
    return [Medication.from_dict(item) for item in read_roster(path)]


__all__ = [
    "InMemoryReminderStore",
    "YamlReminderStore",
    "InMemoryMedicationStore",
    "load_medications",
    "read_roster",
]
