# medtracker/tests/unit/test_adherence.py
from datetime import datetime, timedelta

from medtracker.core.adherence import AdherenceAnalyzer, percent, time_of_day
from medtracker.core.models import Medication, Reminder


class FakeClock:
    def __init__(self, now):
        self.t = now

    def now(self):
        return self.t


NOW = datetime(2024, 1, 10, 12, 0)
MEDS = [Medication(id="m1", name="Aspirin", dosage="100 mg")]


def rem(rid, when, status, med_id="m1", name="Aspirin", snoozed=0):
    return Reminder(
        id=rid, medication_id=med_id, medication_name=name, dosage="1",
        scheduled_time=when, status=status, snoozed_count=snoozed,
    )


def sample():
    out = [rem(f"t{i}", NOW - timedelta(hours=i + 1), "taken") for i in range(7)]
    out += [rem(f"x{i}", NOW - timedelta(days=1, hours=i), "missed") for i in range(2)]
    out.append(rem("future", NOW + timedelta(hours=3), "pending"))
    return out


def test_percent_rounds_half_up():
    assert percent(7, 9) == 78
    assert percent(1, 8) == 13  # 12.5
    assert percent(0, 0) == 0


def test_compute_stats_counts_past_resolved_only():
    stats = AdherenceAnalyzer(FakeClock(NOW)).compute_stats(sample(), MEDS)
    assert stats.total_doses == 9
    assert stats.taken_doses == 7
    assert stats.missed_doses == 2
    assert stats.pending_doses == 1
    assert stats.adherence_rate == 78


def test_dangling_reminders_are_excluded():
    reminders = sample() + [rem("ghost", NOW - timedelta(hours=1), "taken", med_id="gone")]
    stats = AdherenceAnalyzer(FakeClock(NOW)).compute_stats(reminders, MEDS)
    assert stats.total_doses == 9


def test_no_history_gives_zero_rate():
    stats = AdherenceAnalyzer(FakeClock(NOW)).compute_stats([], MEDS)
    assert stats.total_doses == 0 and stats.adherence_rate == 0


def test_time_of_day_buckets():
    assert time_of_day(datetime(2024, 1, 1, 6, 0)) == "morning"
    assert time_of_day(datetime(2024, 1, 1, 12, 0)) == "afternoon"
    assert time_of_day(datetime(2024, 1, 1, 20, 59)) == "evening"
    assert time_of_day(datetime(2024, 1, 1, 21, 0)) == "night"
    assert time_of_day(datetime(2024, 1, 1, 5, 59)) == "night"


def test_analyze_patterns():
    reminders = [
        rem("a", datetime(2024, 1, 10, 8, 0), "missed"),
        rem("b", datetime(2024, 1, 10, 11, 0), "missed"),
        rem("c", datetime(2024, 1, 9, 20, 0), "taken", snoozed=2),
        rem("d", datetime(2024, 1, 1, 8, 0), "missed"),
        rem("e", datetime(2024, 1, 1, 9, 0), "missed"),
        rem("ghost", datetime(2024, 1, 10, 10, 0), "missed", med_id="gone", name="Gone"),
        rem("later", datetime(2024, 1, 10, 18, 0), "pending"),
    ]
    p = AdherenceAnalyzer(FakeClock(NOW)).analyze_patterns(reminders, MEDS)

    assert p.total_reminders == 5
    assert p.taken_count == 1
    assert p.missed_count == 4
    assert p.snoozed_count == 1
    assert p.adherence_rate == 20
    assert p.missed_by_time_of_day["morning"] == 4
    assert p.missed_by_medication == {"Aspirin": 4}
    assert p.consecutive_missed == 2
    # last 7 days: 1 of 3 taken; previous 7 days: 0 of 2
    assert round(p.improvement_trend, 2) == 33.33
    assert p.most_missed_medication() == "Aspirin"
    assert p.most_missed_time() == "morning"
