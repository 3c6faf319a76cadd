"""Buddhist festivals that fall on the Purnima of a named lunar month."""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, NamedTuple, Optional, Tuple

from .astronomy import masa_at, panchangam
from .errors import AstronomicalIndeterminate
from .models import Observer, Oracle, TithiSample

PURNIMA = 14

@dataclass(frozen=True)
class BuddhistFestival:
    key: str
    name: str
    masa: str
    description: str
    traditions: Tuple[str, ...]
    tithi_index: int = PURNIMA

class FestivalMatch(NamedTuple):
    festival: BuddhistFestival
    date: date
    days_remaining: int

FESTIVALS = (
    BuddhistFestival(
        key="vesak",
        name="Vesak (Buddha Pūrṇimā)",
        masa="Vaisakha",
        description="Birth, Enlightenment and Parinibbāna of the Buddha.",
        traditions=("Theravada", "Mahayana", "Thai"),
    ),
    BuddhistFestival(
        key="magha_puja",
        name="Māgha Pūjā",
        masa="Magha",
        description="The gathering of 1,250 Arahants before the Buddha.",
        traditions=("Theravada", "Thai"),
    ),
    BuddhistFestival(
        key="asalha_puja",
        name="Āsāḷha Pūjā",
        masa="Ashadha",
        description="The first sermon and the start of the Vassa rains retreat.",
        traditions=("Theravada", "Thai"),
    ),
)

def all_festivals() -> List[BuddhistFestival]:
    return list(FESTIVALS)

def check_festival(day: date, observer: Observer, oracle: Oracle = panchangam,
                   sample: Optional[TithiSample] = None,
                   tradition: Optional[str] = None) -> Optional[BuddhistFestival]:
    p = sample or oracle(day, observer)
    if p.tithi_index != PURNIMA:
        return None
    masa = p.masa or masa_at(p.sunrise)
    match = next((f for f in FESTIVALS if f.masa == masa), None)
    if match and tradition and tradition not in match.traditions:
        return None
    return match

def upcoming_festivals(start: date, observer: Observer, oracle: Oracle = panchangam,
                       days: int = 365, tradition: Optional[str] = None) -> List[FestivalMatch]:
    out: List[FestivalMatch] = []
    end = start + timedelta(days=days)
    d = start
    while d < end:
        try:
            p = oracle(d, observer)
        except AstronomicalIndeterminate:
            d += timedelta(days=1)
            continue
        if p.tithi_index == PURNIMA:
            fest = check_festival(d, observer, oracle, sample=p, tradition=tradition)
            if fest:
                out.append(FestivalMatch(fest, d, (d - start).days))
            # next Purnima is at least ~29 days away
            d += timedelta(days=25)
        else:
            d += timedelta(days=1)
    return out
