from datetime import timedelta

from icalendar import Calendar

from uposatha.finder import occurrences_in_range
from uposatha.ics import build_ics, stable_uid

from conftest import EPOCH


def test_calendar_has_one_all_day_event_per_uposatha(observer, regular_oracle):
    days = occurrences_in_range(EPOCH, EPOCH + timedelta(days=29), observer, regular_oracle)
    cal = Calendar.from_ical(build_ics(days, tzid="Asia/Kolkata"))
    events = cal.walk("VEVENT")
    assert len(events) == 6
    assert cal["X-WR-TIMEZONE"] == "Asia/Kolkata"
    full = [e for e in events if "Full Moon" in str(e["SUMMARY"])]
    assert len(full) == 1
    assert full[0].decoded("DTSTART") == EPOCH + timedelta(days=14)
    assert full[0].decoded("DTEND") == EPOCH + timedelta(days=15)


def test_uids_are_stable():
    assert stable_uid(EPOCH, "canonical") == stable_uid(EPOCH, "canonical")
    assert stable_uid(EPOCH, "canonical") != stable_uid(EPOCH, "vridhi_extension")
    assert stable_uid(EPOCH, "canonical").endswith("@uposatha")
