import random
from datetime import date, datetime, timedelta, timezone

from uposatha.models import ObservanceRecord
from uposatha.stats import compute_stats

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


def rec(day, status, phase="quarter"):
    return ObservanceRecord(date=date.fromisoformat(day), moon_phase=phase,
                            status=status, recorded_at=NOW)


def test_empty_history_rate_is_zero():
    s = compute_stats([])
    assert s.rate == 0
    assert s.total_tracked == 0
    assert s.current_streak == 0 and s.longest_streak == 0
    assert s.monthly == ()
    assert set(s.by_moon_phase) == {"full", "new", "quarter", "chaturdashi"}


def test_reference_history():
    history = [
        rec("2024-01-10", "observed"),
        rec("2024-01-25", "observed"),
        rec("2024-02-09", "skipped"),
    ]
    s = compute_stats(history)
    assert s.current_streak == 0
    assert s.longest_streak == 2
    assert s.rate == 66.67
    assert (s.observed, s.skipped, s.total_tracked) == (2, 1, 3)


def test_monthly_breakdown_newest_first():
    s = compute_stats([
        rec("2024-01-10", "observed"),
        rec("2024-01-25", "observed"),
        rec("2024-02-09", "skipped"),
    ])
    assert [tuple(m) for m in s.monthly] == [("2024-02", 0, 1), ("2024-01", 2, 2)]


def test_phase_breakdown():
    s = compute_stats([
        rec("2024-01-10", "observed", "full"),
        rec("2024-01-11", "skipped", "full"),
        rec("2024-01-25", "observed", "new"),
        rec("2024-02-02", "observed", "chaturdashi"),
    ])
    assert tuple(s.by_moon_phase["full"]) == (1, 2)
    assert tuple(s.by_moon_phase["new"]) == (1, 1)
    assert tuple(s.by_moon_phase["chaturdashi"]) == (1, 1)
    assert tuple(s.by_moon_phase["quarter"]) == (0, 0)


def test_streak_grows_by_one_per_observed_day():
    history = [rec("2024-01-10", "skipped")]
    day = date(2024, 1, 10)
    for expected in range(1, 6):
        day += timedelta(days=15)
        history.append(rec(day.isoformat(), "observed"))
        assert compute_stats(history).current_streak == expected


def test_skip_resets_current_streak():
    history = [rec("2024-01-10", "observed"), rec("2024-01-25", "observed")]
    assert compute_stats(history).current_streak == 2
    history.append(rec("2024-02-09", "skipped"))
    assert compute_stats(history).current_streak == 0
    history.append(rec("2024-02-24", "observed"))
    assert compute_stats(history).current_streak == 1


def test_untracked_gap_does_not_break_streak():
    history = [rec("2023-01-10", "observed"), rec("2024-06-01", "observed")]
    assert compute_stats(history).current_streak == 2


def test_longest_streak_counts_final_run():
    history = [
        rec("2024-01-01", "observed"),
        rec("2024-01-08", "observed"),
        rec("2024-01-14", "observed"),
        rec("2024-01-15", "skipped"),
        rec("2024-01-23", "observed"),
    ]
    s = compute_stats(history)
    assert s.longest_streak == 3
    assert s.current_streak == 1


def test_input_order_does_not_matter():
    history = [rec(f"2024-{m:02d}-{d:02d}", random.Random(m * 31 + d).choice(["observed", "skipped"]))
               for m in range(1, 7) for d in (8, 14, 15, 23, 29)]
    shuffled = list(history)
    random.Random(7).shuffle(shuffled)
    assert compute_stats(shuffled) == compute_stats(history)
