from datetime import date, datetime, timedelta, timezone

import pytest

from uposatha.errors import AstronomicalIndeterminate
from uposatha.models import Observer, TithiSample
from uposatha.store import MemoryKeyValueStore, ObservanceStore

OBSERVER = Observer(24.7914, 85.0002, 111.0)
EPOCH = date(2024, 1, 1)  # tithi 0 under the regular oracle


class FakeOracle:
    """Deterministic stand-in for the ephemeris.

    ``tithis`` pins specific days; every other day gets ``default``, which
    may be a constant or a ``date -> int`` callable.
    """

    def __init__(self, tithis=None, default=3, dark_days=(), masas=None):
        self.tithis = dict(tithis or {})
        self.default = default
        self.dark_days = set(dark_days)
        self.masas = dict(masas or {})
        self.calls = []

    def __call__(self, day, observer):
        self.calls.append(day)
        if day in self.dark_days:
            raise AstronomicalIndeterminate(f"polar night on {day}")
        if day in self.tithis:
            idx = self.tithis[day]
        elif callable(self.default):
            idx = self.default(day)
        else:
            idx = self.default
        sunrise = datetime(day.year, day.month, day.day, 6, 0, tzinfo=timezone.utc)
        return TithiSample(
            tithi_index=idx,
            paksha="Shukla" if idx < 15 else "Krishna",
            sunrise=sunrise,
            sunset=sunrise + timedelta(hours=12),
            masa=self.masas.get(day),
        )


def regular_tithi(day):
    return (day - EPOCH).days % 30


def around(day, *tithis):
    """Pin consecutive days starting at ``day``."""
    return {day + timedelta(days=i): t for i, t in enumerate(tithis)}


@pytest.fixture
def observer():
    return OBSERVER


@pytest.fixture
def regular_oracle():
    return FakeOracle(default=regular_tithi)


@pytest.fixture
def store():
    return ObservanceStore(MemoryKeyValueStore())
