from __future__ import annotations
import logging
from datetime import date, datetime, timedelta, timezone
from math import floor
from typing import Optional, Tuple

import pytz
from timezonefinder import TimezoneFinder
from astral import Observer as AstralObserver
from astral.sun import sun
from skyfield.api import load

from .errors import AstronomicalIndeterminate, OracleUnavailable
from .models import Observer, TithiSample

log = logging.getLogger(__name__)

EPHEMERIS_FILE = "de421.bsp"

# ---------------- Ephemerides ----------------
_eph = None
_ts = None
def _load_ephem():
    global _eph, _ts
    if _eph is None or _ts is None:
        try:
            _eph = load(EPHEMERIS_FILE)
            _ts = load.timescale()
        except (OSError, ValueError) as e:
            _eph = _ts = None
            raise OracleUnavailable(f"Could not load ephemeris {EPHEMERIS_FILE!r}: {e}") from e
        log.debug("Loaded ephemeris %s", EPHEMERIS_FILE)
    return _eph, _ts

def use_ephemeris(path: str) -> None:
    global EPHEMERIS_FILE, _eph, _ts
    if path != EPHEMERIS_FILE:
        EPHEMERIS_FILE = path
        _eph = _ts = None

# --------------- Timezone & Rise/Set ----------
_tzf = None
def iana_timezone_for(lat: float, lon: float):
    global _tzf
    if _tzf is None:
        _tzf = TimezoneFinder()
    tzname = _tzf.timezone_at(lng=lon, lat=lat) or "UTC"
    return pytz.timezone(tzname)

def local_sun_times(observer: Observer, day: date, tz) -> Tuple[datetime, datetime]:
    obs = AstralObserver(latitude=observer.latitude, longitude=observer.longitude,
                         elevation=observer.altitude)
    try:
        sdict = sun(obs, date=day, tzinfo=tz)
    except ValueError as e:
        # astral raises when the sun never crosses the horizon that day
        raise AstronomicalIndeterminate(
            f"No sunrise/sunset on {day} at lat={observer.latitude}, lon={observer.longitude}: {e}"
        ) from e
    return sdict["sunrise"], sdict["sunset"]

# ---------------- Tithi math -------------------
def _ts_from_dt(dt_aware: datetime):
    eph, ts = _load_ephem()
    dt_utc = dt_aware.astimezone(pytz.utc)
    sec = dt_utc.second + dt_utc.microsecond / 1e6
    t = ts.utc(dt_utc.year, dt_utc.month, dt_utc.day,
               dt_utc.hour, dt_utc.minute, sec)
    return eph, ts, t

def _ecliptic_longitudes(dt_aware: datetime) -> Tuple[float, float]:
    eph, ts, t = _ts_from_dt(dt_aware)
    earth = eph["earth"]
    sun_app  = earth.at(t).observe(eph["sun"]).apparent()
    moon_app = earth.at(t).observe(eph["moon"]).apparent()
    _, lon_sun, _  = sun_app.ecliptic_latlon()
    _, lon_moon, _ = moon_app.ecliptic_latlon()
    return lon_sun.degrees % 360.0, lon_moon.degrees % 360.0

def tithi_index_at(dt_aware: datetime) -> int:
    """0-indexed tithi (0 = Shukla Pratipada .. 29 = Amavasya) at an instant."""
    lam_sun, lam_moon = _ecliptic_longitudes(dt_aware)
    diff = (lam_moon - lam_sun) % 360.0
    return int(floor(diff / 12.0)) % 30

def paksha_for_index(idx: int) -> str:
    return "Shukla" if idx < 15 else "Krishna"

# ------------- Sidereal Sun (Lahiri) ----------
def _julian_centuries_tt(dt_aware: datetime) -> float:
    dt_utc = dt_aware.astimezone(timezone.utc)
    y, m = dt_utc.year, dt_utc.month
    d = dt_utc.day + (dt_utc.hour + (dt_utc.minute + dt_utc.second/60)/60)/24
    if m <= 2:
        y -= 1; m += 12
    A = floor(y/100); B = 2 - A + floor(A/4)
    JD = floor(365.25*(y+4716)) + floor(30.6001*(m+1)) + d + B - 1524.5
    return (JD - 2451545.0) / 36525.0

def lahiri_ayanamsha_deg(dt_aware: datetime) -> float:
    T = _julian_centuries_tt(dt_aware)
    lahiri_2000_sec = 23*3600 + 51*60
    precession_sec = 5028.796195 * T
    return (lahiri_2000_sec - precession_sec) / 3600.0

def sun_sidereal_longitude(dt_aware: datetime) -> float:
    lon_sun, _ = _ecliptic_longitudes(dt_aware)
    ay = lahiri_ayanamsha_deg(dt_aware)
    return (lon_sun - ay) % 360.0

# ------------- New moon / lunar month ----------
AMANTA_MONTHS = ["Chaitra","Vaisakha","Jyeshtha","Ashadha","Shravana","Bhadrapada",
                 "Ashwin","Kartika","Margashirsha","Pausha","Magha","Phalguna"]

_MEAN_TITHI_DAYS = 29.530588 / 30.0

def _find_amavasya_utc(dt_guess_utc: datetime) -> Optional[datetime]:
    def wrap180(x): return (x + 180.0) % 360.0 - 180.0
    def f(dt):
        ls, lm = _ecliptic_longitudes(dt)
        return wrap180(lm - ls)

    left  = dt_guess_utc - timedelta(hours=36)
    right = dt_guess_utc + timedelta(hours=36)
    fl, fr = f(left), f(right)
    tries = 0
    while fl * fr > 0 and tries < 6:
        left  -= timedelta(hours=24)
        right += timedelta(hours=24)
        fl, fr = f(left), f(right)
        tries += 1
    if fl * fr > 0:
        return None

    for _ in range(50):
        mid = left + (right - left) / 2
        fm = f(mid)
        if abs(fm) < 1e-4:
            return mid
        if fl * fm <= 0:
            right, fr = mid, fm
        else:
            left,  fl = mid, fm
    return left + (right - left) / 2

def masa_at(dt_aware: datetime) -> Optional[str]:
    """Amanta month prevailing at an instant.

    Months are labelled by the Sun's sidereal sign at the new moon that
    opened them (Aries -> Chaitra after a +30 degree shift).
    """
    utc = dt_aware.astimezone(timezone.utc)
    idx = tithi_index_at(utc)
    guess = utc - timedelta(days=(idx + 0.5) * _MEAN_TITHI_DAYS)
    av = _find_amavasya_utc(guess)
    if av is None:
        log.warning("No new moon bracketed near %s", guess.isoformat())
        return None
    lam_sid = sun_sidereal_longitude(av)
    return AMANTA_MONTHS[int(floor(((lam_sid + 30.0) % 360.0) / 30.0))]

# ---------------- Oracle -----------------------
def panchangam(day: date, observer: Observer) -> TithiSample:
    """Sunrise-anchored tithi for an observer-local calendar day.

    Raises ``AstronomicalIndeterminate`` when the sun does not rise or set
    and ``OracleUnavailable`` when the ephemeris cannot be loaded.
    """
    tz = iana_timezone_for(observer.latitude, observer.longitude)
    sr, ss = local_sun_times(observer, day, tz)
    idx = tithi_index_at(sr)
    return TithiSample(tithi_index=idx, paksha=paksha_for_index(idx), sunrise=sr, sunset=ss)
