# server/app.py
import json
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import BaseModel, Field

from uposatha import astronomy
from uposatha.backup import backup_filename, create_backup, restore_backup
from uposatha.calculator import classify, describe
from uposatha.errors import (BackupError, InvalidRecord, OracleUnavailable,
                             StoreIOError, UposathaError)
from uposatha.festivals import upcoming_festivals
from uposatha.finder import month_days, next_occurrence, occurrences_in_range, year_days
from uposatha.ics import build_ics
from uposatha.models import ObservanceRecord, Observer, PracticeMinutes, moon_phase_for
from uposatha.settings import Settings
from uposatha.stats import compute_stats
from uposatha.store import JsonFileKeyValueStore, ObservanceStore
from uposatha.sync import sync

# --------------------- schemas ---------------------
class PracticeMinutesIn(BaseModel):
    meditation: int = Field(0, ge=0)
    chanting: int = Field(0, ge=0)
    study: int = Field(0, ge=0)

class RecordIn(BaseModel):
    date: date
    status: str = Field(..., pattern="^(observed|skipped)$")
    moonPhase: Optional[str] = Field(None, pattern="^(full|new|quarter|chaturdashi)$")
    level: Optional[str] = None
    precepts: Optional[List[str]] = None
    practiceMinutes: Optional[PracticeMinutesIn] = None
    quality: Optional[int] = Field(None, ge=1, le=5)
    reflection: Optional[str] = None
    skipReason: Optional[str] = None
    skipNote: Optional[str] = None

_STATUS_CODES = (
    (InvalidRecord, 422),
    (BackupError, 400),
    (OracleUnavailable, 503),
    (StoreIOError, 500),
)

def _day_list(days):
    return [describe(status) for _, status in days]

def create_app(oracle=None, store: Optional[ObservanceStore] = None,
               settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    if oracle is None:
        astronomy.use_ephemeris(settings.ephemeris)
        oracle = astronomy.panchangam
    if store is None:
        store = ObservanceStore(JsonFileKeyValueStore(settings.store_path))

    app = FastAPI(title="Uposatha API")
    app.state.oracle = oracle
    app.state.store = store

    def observer_for(lat, lon, alt) -> Observer:
        base = settings.observer
        return Observer(
            base.latitude if lat is None else lat,
            base.longitude if lon is None else lon,
            base.altitude if alt is None else alt,
        )

    @app.exception_handler(UposathaError)
    def uposatha_error(request: Request, exc: UposathaError):
        code = next((c for cls, c in _STATUS_CODES if isinstance(exc, cls)), 500)
        return JSONResponse(status_code=code, content={"detail": str(exc), "error": type(exc).__name__})

    # --------------------- routes ---------------------
    @app.get("/", response_class=PlainTextResponse)
    def root():
        return "Uposatha API is running. Try /docs for the interactive UI."

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/status")
    def status(
        day: date = Query(..., alias="date", description="Observer-local day, YYYY-MM-DD"),
        lat: Optional[float] = None, lon: Optional[float] = None, alt: Optional[float] = None,
    ):
        return describe(classify(day, observer_for(lat, lon, alt), app.state.oracle))

    @app.get("/next")
    def next_uposatha(
        start: Optional[date] = Query(None, description="Defaults to today"),
        lat: Optional[float] = None, lon: Optional[float] = None, alt: Optional[float] = None,
    ):
        start = start or date.today()
        hit = next_occurrence(start, observer_for(lat, lon, alt), app.state.oracle)
        if hit is None:
            return {"found": False}
        return {"found": True, "daysUntil": (hit.date - start).days, "status": describe(hit.status)}

    @app.get("/month")
    def month(
        year: int = Query(...), month: int = Query(..., ge=1, le=12),
        lat: Optional[float] = None, lon: Optional[float] = None, alt: Optional[float] = None,
    ):
        return _day_list(month_days(year, month, observer_for(lat, lon, alt), app.state.oracle))

    @app.get("/year")
    def year(
        year: int = Query(...),
        lat: Optional[float] = None, lon: Optional[float] = None, alt: Optional[float] = None,
    ):
        return _day_list(year_days(year, observer_for(lat, lon, alt), app.state.oracle))

    @app.get("/festivals")
    def festivals(
        start: Optional[date] = None, days: int = Query(365, ge=1, le=3660),
        tradition: Optional[str] = None,
        lat: Optional[float] = None, lon: Optional[float] = None, alt: Optional[float] = None,
    ):
        matches = upcoming_festivals(start or date.today(), observer_for(lat, lon, alt),
                                     app.state.oracle, days=days, tradition=tradition)
        return [{"key": m.festival.key, "name": m.festival.name, "date": m.date.isoformat(),
                 "daysRemaining": m.days_remaining, "description": m.festival.description}
                for m in matches]

    @app.get("/ics")
    def ics(
        year: int = Query(..., description="Start year, e.g. 2025"),
        year_to: Optional[int] = Query(None, description="End year (inclusive). If omitted, equals 'year'."),
        tzid: Optional[str] = Query(None, description="e.g. 'Asia/Colombo'"),
        lat: Optional[float] = None, lon: Optional[float] = None, alt: Optional[float] = None,
    ):
        yt = year_to or year
        if yt < year:
            raise HTTPException(status_code=400, detail="year_to must not precede year")
        days = occurrences_in_range(date(year, 1, 1), date(yt, 12, 31),
                                    observer_for(lat, lon, alt), app.state.oracle)
        payload = build_ics(days, tzid=tzid)
        name = f"uposatha-{year}.ics" if yt == year else f"uposatha-{year}-{yt}.ics"
        headers = {"Content-Disposition": f'attachment; filename="{name}"'}
        return StreamingResponse(iter([payload]), media_type="text/calendar", headers=headers)

    @app.get("/records")
    def records():
        return [r.to_dict() for r in app.state.store.get_all()]

    @app.post("/records", status_code=201)
    def save_record(
        body: RecordIn,
        lat: Optional[float] = None, lon: Optional[float] = None, alt: Optional[float] = None,
    ):
        phase = body.moonPhase or moon_phase_for(
            classify(body.date, observer_for(lat, lon, alt), app.state.oracle))
        pm = body.practiceMinutes
        rec = ObservanceRecord(
            date=body.date,
            moon_phase=phase,
            status=body.status,
            recorded_at=datetime.now(timezone.utc),
            level=body.level,
            precepts=frozenset(body.precepts) if body.precepts is not None else None,
            practice_minutes=PracticeMinutes(pm.meditation, pm.chanting, pm.study) if pm else None,
            quality=body.quality,
            reflection=body.reflection,
            skip_reason=body.skipReason,
            skip_note=body.skipNote,
        )
        app.state.store.put(rec)
        return rec.to_dict()

    @app.delete("/records/{record_id}")
    def delete_record(record_id: str):
        if not app.state.store.delete(record_id):
            raise HTTPException(status_code=404, detail=f"No observance record with id {record_id}")
        return {"deleted": record_id}

    @app.get("/stats")
    def stats():
        return compute_stats(app.state.store.get_all()).to_dict()

    @app.post("/sync")
    def backfill(
        today: Optional[date] = None,
        lat: Optional[float] = None, lon: Optional[float] = None, alt: Optional[float] = None,
    ):
        inserted = sync(app.state.store, observer_for(lat, lon, alt), today or date.today(),
                        app.state.oracle)
        return {"inserted": [r.to_dict() for r in inserted]}

    @app.get("/backup")
    def backup():
        headers = {"Content-Disposition": f'attachment; filename="{backup_filename()}"'}
        return JSONResponse(create_backup(app.state.store), headers=headers)

    @app.post("/restore")
    def restore(payload: dict = Body(...)):
        result = restore_backup(app.state.store, json.dumps(payload))
        return {"uposathaObservances": result.uposatha_observances}

    return app

app = create_app()
