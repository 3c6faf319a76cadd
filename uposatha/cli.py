import argparse
import json
import logging
import sys
from datetime import date, datetime, timezone
from pathlib import Path

from . import astronomy
from .backup import backup_filename, export_backup, restore_backup
from .calculator import classify, describe
from .errors import LocationError, UposathaError
from .festivals import upcoming_festivals
from .finder import month_days, next_occurrence, occurrences_in_range, year_days
from .ics import build_ics
from .location import autolocate
from .models import ObservanceRecord, Observer, PracticeMinutes, moon_phase_for
from .settings import Settings
from .stats import compute_stats
from .store import JsonFileKeyValueStore, ObservanceStore
from .sync import sync

log = logging.getLogger("uposatha")

def _day(s: str) -> date:
    try:
        return date.fromisoformat(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {s!r}")

def resolve_observer(args, settings: Settings) -> Observer:
    lat, lon = args.lat, args.lon
    if args.auto_location:
        if lat is not None or lon is not None:
            print("Note: --auto-location overrides --lat/--lon")
        try:
            lat, lon = autolocate()
        except LocationError as e:
            raise SystemExit(f"Auto-location failed ({e}). Pass --lat and --lon.")
    base = settings.observer
    return Observer(
        base.latitude if lat is None else lat,
        base.longitude if lon is None else lon,
        base.altitude if args.alt is None else args.alt,
    )

def _print_day(d, status):
    info = describe(status)
    mark = "*" if status.is_optional else " "
    print(f"{d.isoformat()} {mark} {info['label']}")

# ---------------- commands ---------------------
def cmd_status(args, observer, store):
    status = classify(args.date or date.today(), observer)
    print(json.dumps(describe(status), ensure_ascii=False, indent=2))

def cmd_next(args, observer, store):
    start = args.date or date.today()
    hit = next_occurrence(start, observer)
    if hit is None:
        print(f"No Uposatha found within the search window from {start}.")
        return
    _print_day(*hit)
    print(f"  in {(hit.date - start).days} day(s)")

def cmd_month(args, observer, store):
    for d, status in month_days(args.year, args.month, observer):
        _print_day(d, status)

def cmd_year(args, observer, store):
    for d, status in year_days(args.year, observer):
        _print_day(d, status)

def cmd_festivals(args, observer, store):
    for m in upcoming_festivals(args.date or date.today(), observer, days=args.days,
                                tradition=args.tradition):
        print(f"{m.date.isoformat()}  {m.festival.name}  (in {m.days_remaining} days)")

def cmd_ics(args, observer, store):
    year_to = args.year_to or args.year
    days = occurrences_in_range(date(args.year, 1, 1), date(year_to, 12, 31), observer)
    tzid = astronomy.iana_timezone_for(observer.latitude, observer.longitude).zone
    out = Path(args.outfile) if args.outfile else Path(
        f"site/{args.year}-{year_to}-uposatha.ics" if year_to != args.year
        else f"site/{args.year}-uposatha.ics"
    )
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(build_ics(days, tzid=tzid))
    print(f"Wrote {out}  (lat={observer.latitude}, lon={observer.longitude}, years={args.year}..{year_to})")

def _phase_for(day, observer, override):
    if override:
        return override
    return moon_phase_for(classify(day, observer))

def cmd_log(args, observer, store):
    minutes = None
    if any(v is not None for v in (args.meditation, args.chanting, args.study)):
        minutes = PracticeMinutes(args.meditation or 0, args.chanting or 0, args.study or 0)
    rec = ObservanceRecord(
        date=args.date,
        moon_phase=_phase_for(args.date, observer, args.moon_phase),
        status="observed",
        recorded_at=datetime.now(timezone.utc),
        level=args.level,
        precepts=frozenset(args.precept) if args.precept else None,
        practice_minutes=minutes,
        quality=args.quality,
        reflection=args.reflection,
    )
    store.put(rec)
    print(f"Logged {rec.day_key} as observed ({rec.id})")

def cmd_skip(args, observer, store):
    rec = ObservanceRecord(
        date=args.date,
        moon_phase=_phase_for(args.date, observer, args.moon_phase),
        status="skipped",
        recorded_at=datetime.now(timezone.utc),
        skip_reason=args.reason,
        skip_note=args.note,
    )
    store.put(rec)
    print(f"Logged {rec.day_key} as skipped ({rec.id})")

def cmd_delete(args, observer, store):
    if not store.delete(args.id):
        raise SystemExit(f"No observance record with id {args.id}")
    print(f"Deleted {args.id}")

def cmd_history(args, observer, store):
    for r in store.get_all()[: args.limit]:
        extra = f"  reason={r.skip_reason}" if r.skip_reason else ""
        print(f"{r.day_key}  {r.status:<8} {r.moon_phase:<11} {r.id}{extra}")

def cmd_stats(args, observer, store):
    print(json.dumps(compute_stats(store.get_all()).to_dict(), indent=2))

def cmd_sync(args, observer, store):
    inserted = sync(store, observer, args.date or date.today())
    print(f"Backfilled {len(inserted)} missed Uposatha day(s)")
    for r in inserted:
        print(f"  {r.day_key}  {r.moon_phase}")

def cmd_backup(args, observer, store):
    out = Path(args.outfile) if args.outfile else Path(backup_filename())
    out.write_text(export_backup(store), encoding="utf-8")
    print(f"Wrote {out}")

def cmd_restore(args, observer, store):
    result = restore_backup(store, Path(args.infile).read_text(encoding="utf-8"))
    print(f"Restored {result.uposatha_observances} observance record(s)")

# ---------------- parser -----------------------
def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="uposatha",
        description="Uposatha days (sunrise tithi, kshaya/vridhi aware) and observance tracking — location-aware."
    )
    ap.add_argument("--lat", type=float, help="Latitude (decimal)")
    ap.add_argument("--lon", type=float, help="Longitude (decimal)")
    ap.add_argument("--alt", type=float, help="Altitude in metres")
    ap.add_argument("--auto-location", action="store_true", help="Detect lat/lon from IP")
    ap.add_argument("--store", type=str, help="Observance store file (default $UPOSATHA_STORE)")
    ap.add_argument("-v", "--verbose", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("status", help="Classify one day")
    p.add_argument("--date", type=_day)
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("next", help="Next Uposatha on or after a day")
    p.add_argument("--date", type=_day)
    p.set_defaults(func=cmd_next)

    p = sub.add_parser("month", help="Uposatha days of a month")
    p.add_argument("--year", type=int, required=True)
    p.add_argument("--month", type=int, required=True, choices=range(1, 13))
    p.set_defaults(func=cmd_month)

    p = sub.add_parser("year", help="Uposatha days of a year")
    p.add_argument("--year", type=int, required=True)
    p.set_defaults(func=cmd_year)

    p = sub.add_parser("festivals", help="Upcoming Vesak / Māgha / Āsāḷha Pūjā")
    p.add_argument("--date", type=_day)
    p.add_argument("--days", type=int, default=365)
    p.add_argument("--tradition", type=str)
    p.set_defaults(func=cmd_festivals)

    p = sub.add_parser("ics", help="Write an .ics calendar of Uposatha days")
    p.add_argument("--year", type=int, required=True, help="Start year, e.g., 2025")
    p.add_argument("--year-to", type=int, help="End year (inclusive). If omitted, equals --year.")
    p.add_argument("--outfile", type=str, default=None, help="Output .ics file path")
    p.set_defaults(func=cmd_ics)

    p = sub.add_parser("log", help="Record a day as observed")
    p.add_argument("--date", type=_day, required=True)
    p.add_argument("--moon-phase", choices=["full", "new", "quarter", "chaturdashi"])
    p.add_argument("--level", choices=["full", "partial", "minimal"])
    p.add_argument("--precept", action="append", help="Repeatable, e.g. 8_precepts")
    p.add_argument("--meditation", type=int)
    p.add_argument("--chanting", type=int)
    p.add_argument("--study", type=int)
    p.add_argument("--quality", type=int, choices=range(1, 6))
    p.add_argument("--reflection", type=str)
    p.set_defaults(func=cmd_log)

    p = sub.add_parser("skip", help="Record a day as skipped")
    p.add_argument("--date", type=_day, required=True)
    p.add_argument("--moon-phase", choices=["full", "new", "quarter", "chaturdashi"])
    p.add_argument("--reason", choices=["work", "travel", "health", "forgot", "other"], default="other")
    p.add_argument("--note", type=str)
    p.set_defaults(func=cmd_skip)

    p = sub.add_parser("delete", help="Delete a record by id")
    p.add_argument("id")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("history", help="List records, newest first")
    p.add_argument("--limit", type=int, default=50)
    p.set_defaults(func=cmd_history)

    p = sub.add_parser("stats", help="Observance rate, streaks and breakdowns")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("sync", help="Backfill missed Uposatha days of the last 45 days")
    p.add_argument("--date", type=_day, help="Treat this day as today")
    p.set_defaults(func=cmd_sync)

    p = sub.add_parser("backup", help="Export the history as JSON")
    p.add_argument("--outfile", type=str)
    p.set_defaults(func=cmd_backup)

    p = sub.add_parser("restore", help="Replace the history from a JSON backup")
    p.add_argument("infile")
    p.set_defaults(func=cmd_restore)
    return ap

def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    settings = Settings.from_env()
    astronomy.use_ephemeris(settings.ephemeris)
    observer = resolve_observer(args, settings)
    store = ObservanceStore(JsonFileKeyValueStore(args.store or settings.store_path))
    try:
        args.func(args, observer, store)
    except UposathaError as e:
        log.debug("command failed", exc_info=True)
        raise SystemExit(f"{type(e).__name__}: {e}")

if __name__ == "__main__":
    main(sys.argv[1:])
