"""Uposatha classification of a single observer-local day.

Uposatha days fall on the tithi prevailing at sunrise (udaya tithi):
Shukla/Krishna Ashtami, Shukla/Krishna Chaturdashi, Purnima and Amavasya.
Two calendrical anomalies are detected by looking one sunrise either way:

  * vridhi: the same canonical tithi holds at two consecutive sunrises;
    the second day is an optional extension, the first stays primary.
  * kshaya: a canonical tithi begins and ends between two sunrises and is
    never "seen"; the sunrise before the gap carries an optional
    restoration for it.
"""
from __future__ import annotations
import logging
from datetime import date, timedelta
from typing import Dict, Optional

from .astronomy import panchangam
from .errors import AstronomicalIndeterminate
from .models import ObservanceKind, ObservanceStatus, Observer, Oracle, TithiSample

log = logging.getLogger(__name__)

# 0-indexed: Shukla Ashtami, Shukla Chaturdashi, Purnima,
# Krishna Ashtami, Krishna Chaturdashi, Amavasya
CANONICAL_INDICES = (7, 13, 14, 22, 28, 29)

# Only tithis adjacent to a canonical one can precede a skipped canonical tithi.
KSHAYA_NEAR_INDICES = frozenset({6, 7, 12, 13, 14, 21, 22, 27, 28, 29})

TITHI_NAMES = [
    "Pratipada", "Dwitiya", "Tritiya", "Chaturthi", "Panchami",
    "Shashthi", "Saptami", "Ashtami", "Navami", "Dashami",
    "Ekadashi", "Dwadashi", "Trayodashi", "Chaturdashi", "Purnima",
    "Pratipada", "Dwitiya", "Tritiya", "Chaturthi", "Panchami",
    "Shashthi", "Saptami", "Ashtami", "Navami", "Dashami",
    "Ekadashi", "Dwadashi", "Trayodashi", "Chaturdashi", "Amavasya",
]

PALI_LABELS = {
    7: "Sukka Aṭṭhamī",
    13: "Sukka Cātuddasī",
    14: "Puṇṇamī (Pūrṇimā)",
    22: "Kanhā Aṭṭhamī",
    28: "Kanhā Cātuddasī",
    29: "Amāvāsī (Amāvasyā)",
}

UPOSATHA_TYPES = {
    7: "8th Day Uposatha",
    13: "14th Day Uposatha",
    14: "Full Moon Uposatha",
    22: "8th Day Uposatha",
    28: "14th Day Uposatha",
    29: "New Moon Uposatha",
}

def _forward(a: int, b: int) -> int:
    return (b - a) % 30

def _sample(day: date, observer: Observer, oracle: Oracle) -> Optional[TithiSample]:
    try:
        return oracle(day, observer)
    except AstronomicalIndeterminate as e:
        log.warning("Indeterminate sunrise on %s: %s", day, e)
        return None

def detect_vridhi(day: date, observer: Observer, oracle: Oracle = panchangam,
                  sample: Optional[TithiSample] = None) -> bool:
    """True when ``day`` is the second consecutive sunrise of the same canonical tithi."""
    today = sample or oracle(day, observer)
    if today.tithi_index not in CANONICAL_INDICES:
        return False
    prev = _sample(day - timedelta(days=1), observer, oracle)
    return prev is not None and prev.tithi_index == today.tithi_index

def detect_kshaya(day: date, observer: Observer, oracle: Oracle = panchangam,
                  sample: Optional[TithiSample] = None) -> Optional[int]:
    """Canonical tithi skipped between the sunrises of ``day`` and ``day + 1``.

    When more than one canonical tithi lies in the gap the one nearest to
    today's tithi (first in forward order) is returned.
    """
    today = sample or oracle(day, observer)
    t = today.tithi_index
    if t not in KSHAYA_NEAR_INDICES:
        return None
    nxt = _sample(day + timedelta(days=1), observer, oracle)
    if nxt is None:
        return None
    span = _forward(t, nxt.tithi_index)
    skipped = [c for c in CANONICAL_INDICES if 0 < _forward(t, c) < span]
    if not skipped:
        return None
    return min(skipped, key=lambda c: _forward(t, c))

def classify(day: date, observer: Observer, oracle: Oracle = panchangam) -> ObservanceStatus:
    today = _sample(day, observer, oracle)
    if today is None:
        return ObservanceStatus(date=day)

    skipped = detect_kshaya(day, observer, oracle, sample=today)
    if skipped is not None:
        log.debug("%s: kshaya, tithi %d skipped after sunrise tithi %d", day, skipped, today.tithi_index)
        return ObservanceStatus(day, ObservanceKind.KSHAYA_RESTORATION, skipped, today)

    t = today.tithi_index
    if t in CANONICAL_INDICES:
        if detect_vridhi(day, observer, oracle, sample=today):
            log.debug("%s: vridhi, tithi %d repeats at sunrise", day, t)
            return ObservanceStatus(day, ObservanceKind.VRIDHI_EXTENSION, t, today)
        return ObservanceStatus(day, ObservanceKind.CANONICAL, t, today)

    return ObservanceStatus(day, ObservanceKind.NONE, None, today)

# ---------------- Presentation -----------------
def label_for(status: ObservanceStatus) -> str:
    s = status.sample
    if status.index is None:
        if s is None:
            return "No sunrise — tithi indeterminate"
        return f"{TITHI_NAMES[s.tithi_index]} — {s.paksha} Paksha"
    base = f"{UPOSATHA_TYPES[status.index]} ({PALI_LABELS[status.index]})"
    if status.is_kshaya:
        return f"{base} — Kshaya restoration (optional)"
    if status.is_vridhi:
        return f"{base} — Vridhi extension (optional)"
    return f"{base} — Pakkha Uposatha"

def describe(status: ObservanceStatus) -> Dict:
    """Flat, JSON-friendly view of a classification for display layers."""
    s = status.sample
    return {
        "date": status.date.isoformat(),
        "kind": status.kind.value,
        "isUposatha": status.is_uposatha,
        "isCanonical": status.is_canonical,
        "isOptional": status.is_optional,
        "isKshaya": status.is_kshaya,
        "isVridhi": status.is_vridhi,
        "isAshtami": status.is_ashtami,
        "isChaturdashi": status.is_chaturdashi,
        "isFullMoon": status.is_full_moon,
        "isNewMoon": status.is_new_moon,
        "tithiIndex": s.tithi_index if s else None,
        "tithiNumber": s.tithi_index + 1 if s else None,
        "tithiName": TITHI_NAMES[s.tithi_index] if s else None,
        "paksha": s.paksha if s else None,
        "paliLabel": PALI_LABELS.get(status.index, ""),
        "label": label_for(status),
        "sunrise": s.sunrise.isoformat() if s else None,
        "sunset": s.sunset.isoformat() if s else None,
    }
