from __future__ import annotations
import calendar
from datetime import date, timedelta
from typing import Iterator, List, Optional

from .astronomy import panchangam
from .calculator import classify
from .models import Observer, Oracle, UposathaDay

# Six observances recur roughly every fifteen days; thirty days is a safety bound.
NEXT_OCCURRENCE_LIMIT = 30

def next_occurrence(start: date, observer: Observer, oracle: Oracle = panchangam,
                    limit: int = NEXT_OCCURRENCE_LIMIT) -> Optional[UposathaDay]:
    """First Uposatha day on or after ``start``, or ``None`` within ``limit`` days."""
    d = start
    for _ in range(limit):
        status = classify(d, observer, oracle)
        if status.is_uposatha:
            return UposathaDay(d, status)
        d += timedelta(days=1)
    return None

class OccurrenceRange:
    """Uposatha days in ``[start, end]``; computed lazily, iterable more than once."""

    def __init__(self, start: date, end: date, observer: Observer, oracle: Oracle = panchangam):
        self.start = start
        self.end = end
        self.observer = observer
        self.oracle = oracle

    def __iter__(self) -> Iterator[UposathaDay]:
        d = self.start
        while d <= self.end:
            status = classify(d, self.observer, self.oracle)
            if status.is_uposatha:
                yield UposathaDay(d, status)
            d += timedelta(days=1)

    def __repr__(self):
        return f"OccurrenceRange({self.start.isoformat()}..{self.end.isoformat()})"

def occurrences_in_range(start: date, end: date, observer: Observer,
                         oracle: Oracle = panchangam) -> OccurrenceRange:
    return OccurrenceRange(start, end, observer, oracle)

def month_days(year: int, month: int, observer: Observer, oracle: Oracle = panchangam) -> List[UposathaDay]:
    last = calendar.monthrange(year, month)[1]
    return list(occurrences_in_range(date(year, month, 1), date(year, month, last), observer, oracle))

def year_days(year: int, observer: Observer, oracle: Oracle = panchangam) -> List[UposathaDay]:
    """All Uposatha days of a Gregorian year (about 72, plus optional days)."""
    return list(occurrences_in_range(date(year, 1, 1), date(year, 12, 31), observer, oracle))
