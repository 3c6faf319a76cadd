from __future__ import annotations
from typing import Dict, Iterable, List

from .models import MOON_PHASES, MonthTally, ObservanceRecord, PhaseTally, Stats

def _streaks(newest_first: List[ObservanceRecord]):
    # Only tracked days count; an untracked gap neither breaks nor extends a streak.
    current = 0
    for r in newest_first:
        if r.status != "observed":
            break
        current += 1

    longest = run = 0
    for r in newest_first:
        if r.status == "observed":
            run += 1
        else:
            longest = max(longest, run)
            run = 0
    return current, max(longest, run)

def compute_stats(records: Iterable[ObservanceRecord]) -> Stats:
    history = sorted(records, key=lambda r: (r.date, r.recorded_at, r.id), reverse=True)
    total = len(history)
    observed = sum(1 for r in history if r.status == "observed")
    rate = round(observed / total * 100, 2) if total else 0.0

    phase: Dict[str, List[int]] = {p: [0, 0] for p in MOON_PHASES}
    months: Dict[str, List[int]] = {}
    for r in history:
        hit = 1 if r.status == "observed" else 0
        phase[r.moon_phase][0] += hit
        phase[r.moon_phase][1] += 1
        m = months.setdefault(r.day_key[:7], [0, 0])
        m[0] += hit
        m[1] += 1

    current, longest = _streaks(history)
    return Stats(
        total_tracked=total,
        observed=observed,
        skipped=total - observed,
        rate=rate,
        current_streak=current,
        longest_streak=longest,
        by_moon_phase={p: PhaseTally(o, t) for p, (o, t) in phase.items()},
        monthly=tuple(MonthTally(k, o, t) for k, (o, t) in sorted(months.items(), reverse=True)),
    )
