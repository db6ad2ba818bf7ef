# medtracker/tests/unit/test_settings.py
from datetime import datetime, time

import pytest

from medtracker.core.settings import (
    NotificationSettings,
    clamp_days_ahead,
    in_quiet_hours,
    parse_hhmm,
)


def at(hh, mm):
    return datetime(2024, 1, 3, hh, mm)


def test_parse_hhmm_strict():
    assert parse_hhmm("07:05") == time(7, 5)
    assert parse_hhmm("7:05") == time(7, 5)
    assert parse_hhmm("24:00") is None
    assert parse_hhmm("0700") is None
    assert parse_hhmm(None) is None


def test_quiet_hours_wrap_midnight():
    assert in_quiet_hours(at(23, 30), "22:00", "07:00")
    assert in_quiet_hours(at(6, 59), "22:00", "07:00")
    assert not in_quiet_hours(at(7, 0), "22:00", "07:00")
    assert not in_quiet_hours(at(12, 0), "22:00", "07:00")


def test_quiet_hours_same_day_and_empty_window():
    assert in_quiet_hours(at(13, 0), "12:00", "14:00")
    assert not in_quiet_hours(at(14, 0), "12:00", "14:00")
    assert not in_quiet_hours(at(12, 0), "12:00", "12:00")
    assert not in_quiet_hours(at(12, 0), "bad", "14:00")


def test_quiet_now_requires_enabled():
    s = NotificationSettings(quiet_hours_start="22:00", quiet_hours_end="07:00")
    assert not s.quiet_now(at(23, 0))
    s.update(quietHoursEnabled=True)
    assert s.quiet_now(at(23, 0))


def test_from_dict_accepts_camel_case_and_rejects_unknown():
    s = NotificationSettings.from_dict({"daysAhead": 14, "requireInteraction": False})
    assert s.days_ahead == 14 and s.require_interaction is False
    with pytest.raises(ValueError):
        NotificationSettings.from_dict({"volume": 11})


def test_updated_returns_copy():
    s = NotificationSettings()
    t = s.updated(sound=False)
    assert s.sound is True and t.sound is False


def test_clamp_days_ahead():
    assert clamp_days_ahead(0) == 1
    assert clamp_days_ahead(45) == 30
    assert clamp_days_ahead(10) == 10
