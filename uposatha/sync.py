from __future__ import annotations
import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from .astronomy import panchangam
from .calculator import classify
from .models import ObservanceRecord, Observer, Oracle, moon_phase_for
from .store import ObservanceStore

log = logging.getLogger(__name__)

BACKFILL_WINDOW_DAYS = 45

def sync(store: ObservanceStore, observer: Observer, today: date, oracle: Oracle = panchangam,
         now: Optional[datetime] = None, window: int = BACKFILL_WINDOW_DAYS) -> List[ObservanceRecord]:
    """Record every untracked Uposatha day of the trailing window as skipped/forgot.

    Scans ``today - 1`` back to ``today - window``. Existing records are left
    alone; new ones are written in a single store mutation. Returns the
    inserted records, newest first.
    """
    now = now or datetime.now(timezone.utc)
    tracked = {r.date for r in store.get_all()}
    inserted: List[ObservanceRecord] = []

    for back in range(1, window + 1):
        d = today - timedelta(days=back)
        if d in tracked:
            continue
        status = classify(d, observer, oracle)
        if not status.is_uposatha:
            continue
        inserted.append(ObservanceRecord(
            date=d,
            moon_phase=moon_phase_for(status),
            status="skipped",
            skip_reason="forgot",
            recorded_at=now,
        ))

    if inserted:
        store.put_many(inserted)
        log.info("Backfilled %d missed Uposatha day(s) before %s", len(inserted), today)
    return inserted
