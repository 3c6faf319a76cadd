from __future__ import annotations
from datetime import date, timedelta
from hashlib import md5
from typing import Iterable, Optional

from icalendar import Calendar, Event

from .calculator import describe
from .models import UposathaDay

PRODID = "-//Uposatha Calendar (Location-aware)//uposatha//EN"

def stable_uid(day: date, kind: str) -> str:
    key = f"uposatha|{kind}|{day.isoformat()}|ALLDAY"
    return f"{md5(key.encode()).hexdigest()}@uposatha"

def build_ics(days: Iterable[UposathaDay], calname: str = "Uposatha Days",
              tzid: Optional[str] = None, prodid: str = PRODID) -> bytes:
    cal = Calendar()
    cal.add("prodid", prodid)
    cal.add("version", "2.0")
    cal.add("X-WR-CALNAME", calname)
    if tzid:
        cal.add("X-WR-TIMEZONE", tzid)
    for d, status in days:
        info = describe(status)
        ev = Event()
        ev.add("uid", stable_uid(d, status.kind.value))
        ev.add("summary", info["label"])
        desc = f"{info['tithiName']} — {info['paksha']} Paksha at sunrise."
        if status.is_optional:
            desc += " Optional observance."
        ev.add("description", desc)
        ev.add("dtstart", d)
        ev.add("dtend", d + timedelta(days=1))
        cal.add_component(ev)
    return cal.to_ical()
