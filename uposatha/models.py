from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Dict, FrozenSet, NamedTuple, Optional, Tuple
from uuid import uuid4

from .errors import InvalidRecord

# ---------------- Oracle side ------------------
class Observer(NamedTuple):
    latitude: float
    longitude: float
    altitude: float = 0.0

@dataclass(frozen=True)
class TithiSample:
    tithi_index: int          # 0..29, prevailing at sunrise
    paksha: str               # "Shukla" | "Krishna"
    sunrise: datetime
    sunset: datetime
    masa: Optional[str] = None  # amanta month name, filled on demand

Oracle = Callable[[date, Observer], TithiSample]

# ---------------- Classification ---------------
class ObservanceKind(str, Enum):
    CANONICAL = "canonical"
    KSHAYA_RESTORATION = "kshaya_restoration"
    VRIDHI_EXTENSION = "vridhi_extension"
    NONE = "none"

@dataclass(frozen=True)
class ObservanceStatus:
    """Classification of one observer-local day.

    ``index`` is the tithi the observance stands for: the literal sunrise
    tithi for canonical and vridhi days, the skipped tithi for a kshaya
    restoration, ``None`` when there is no observance.
    """
    date: date
    kind: ObservanceKind = ObservanceKind.NONE
    index: Optional[int] = None
    sample: Optional[TithiSample] = None

    @property
    def is_canonical(self) -> bool:
        return self.kind is ObservanceKind.CANONICAL

    @property
    def is_optional(self) -> bool:
        return self.kind in (ObservanceKind.KSHAYA_RESTORATION, ObservanceKind.VRIDHI_EXTENSION)

    @property
    def is_uposatha(self) -> bool:
        return self.is_canonical or self.is_optional

    @property
    def is_kshaya(self) -> bool:
        return self.kind is ObservanceKind.KSHAYA_RESTORATION

    @property
    def is_vridhi(self) -> bool:
        return self.kind is ObservanceKind.VRIDHI_EXTENSION

    @property
    def is_ashtami(self) -> bool:
        return self.index in (7, 22)

    @property
    def is_chaturdashi(self) -> bool:
        return self.index in (13, 28)

    @property
    def is_full_moon(self) -> bool:
        return self.index == 14

    @property
    def is_new_moon(self) -> bool:
        return self.index == 29

class UposathaDay(NamedTuple):
    date: date
    status: ObservanceStatus

# ---------------- Records ----------------------
MOON_PHASES = ("full", "new", "quarter", "chaturdashi")
STATUSES = ("observed", "skipped")
LEVELS = ("full", "partial", "minimal")
SKIP_REASONS = ("work", "travel", "health", "forgot", "other")

class PracticeMinutes(NamedTuple):
    meditation: int = 0
    chanting: int = 0
    study: int = 0

def moon_phase_for(status: ObservanceStatus) -> str:
    if status.is_full_moon:
        return "full"
    if status.is_new_moon:
        return "new"
    if status.is_chaturdashi:
        return "chaturdashi"
    return "quarter"

def _parse_day(value) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise InvalidRecord(f"Bad observance date {value!r}; expected YYYY-MM-DD.") from None

def _parse_instant(value) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise InvalidRecord(f"Bad timestamp {value!r}.") from None

@dataclass(frozen=True)
class ObservanceRecord:
    date: date
    moon_phase: str
    status: str
    recorded_at: datetime
    id: str = field(default_factory=lambda: str(uuid4()))
    level: Optional[str] = None
    precepts: Optional[FrozenSet[str]] = None
    practice_minutes: Optional[PracticeMinutes] = None
    quality: Optional[int] = None
    reflection: Optional[str] = None
    skip_reason: Optional[str] = None
    skip_note: Optional[str] = None

    def __post_init__(self):
        if self.recorded_at.tzinfo is None:
            object.__setattr__(self, "recorded_at", self.recorded_at.replace(tzinfo=timezone.utc))
        if self.moon_phase not in MOON_PHASES:
            raise InvalidRecord(f"Unknown moon phase {self.moon_phase!r}; choose from {MOON_PHASES}.")
        if self.status not in STATUSES:
            raise InvalidRecord(f"Unknown status {self.status!r}; choose from {STATUSES}.")
        if self.level is not None and self.level not in LEVELS:
            raise InvalidRecord(f"Unknown level {self.level!r}; choose from {LEVELS}.")
        if self.skip_reason is not None and self.skip_reason not in SKIP_REASONS:
            raise InvalidRecord(f"Unknown skip reason {self.skip_reason!r}; choose from {SKIP_REASONS}.")
        if self.quality is not None and not 1 <= self.quality <= 5:
            raise InvalidRecord(f"Quality must be within 1..5, got {self.quality}.")

    @property
    def day_key(self) -> str:
        return self.date.isoformat()

    def to_dict(self) -> Dict:
        out: Dict = {
            "id": self.id,
            "date": self.day_key,
            "moonPhase": self.moon_phase,
            "status": self.status,
            "timestamp": self.recorded_at.isoformat(),
        }
        if self.level is not None:
            out["level"] = self.level
        if self.precepts is not None:
            out["precepts"] = sorted(self.precepts)
        if self.practice_minutes is not None:
            out["practiceMinutes"] = self.practice_minutes._asdict()
        if self.quality is not None:
            out["quality"] = self.quality
        if self.reflection is not None:
            out["reflection"] = self.reflection
        if self.skip_reason is not None:
            out["skipReason"] = self.skip_reason
        if self.skip_note is not None:
            out["skipNote"] = self.skip_note
        return out

    @classmethod
    def from_dict(cls, data: Dict) -> "ObservanceRecord":
        if not isinstance(data, dict):
            raise InvalidRecord(f"Observance record must be an object, got {data!r}.")
        try:
            pm = data.get("practiceMinutes")
            precepts = data.get("precepts")
            return cls(
                id=str(data["id"]),
                date=_parse_day(data["date"]),
                moon_phase=data["moonPhase"],
                status=data["status"],
                recorded_at=_parse_instant(data["timestamp"]),
                level=data.get("level"),
                precepts=frozenset(precepts) if precepts is not None else None,
                practice_minutes=PracticeMinutes(**pm) if pm is not None else None,
                quality=data.get("quality"),
                reflection=data.get("reflection"),
                skip_reason=data.get("skipReason"),
                skip_note=data.get("skipNote"),
            )
        except (KeyError, TypeError) as e:
            raise InvalidRecord(f"Malformed observance record {data!r}: {e}") from e

# ---------------- Statistics -------------------
class PhaseTally(NamedTuple):
    observed: int
    total: int

class MonthTally(NamedTuple):
    month: str  # YYYY-MM
    observed: int
    total: int

@dataclass(frozen=True)
class Stats:
    total_tracked: int
    observed: int
    skipped: int
    rate: float
    current_streak: int
    longest_streak: int
    by_moon_phase: Dict[str, PhaseTally]
    monthly: Tuple[MonthTally, ...]

    def to_dict(self) -> Dict:
        return {
            "totalTracked": self.total_tracked,
            "observed": self.observed,
            "skipped": self.skipped,
            "rate": self.rate,
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "byMoonPhase": {k: v._asdict() for k, v in self.by_moon_phase.items()},
            "monthlyStats": [m._asdict() for m in self.monthly],
        }
