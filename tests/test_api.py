from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from server.app import create_app
from uposatha.settings import Settings
from uposatha.store import MemoryKeyValueStore, ObservanceStore

from conftest import EPOCH, FakeOracle, regular_tithi


@pytest.fixture
def client():
    app = create_app(oracle=FakeOracle(default=regular_tithi),
                     store=ObservanceStore(MemoryKeyValueStore()),
                     settings=Settings.from_env({}))
    return TestClient(app)


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_status_of_full_moon(client):
    body = client.get("/status", params={"date": (EPOCH + timedelta(days=14)).isoformat()}).json()
    assert body["isUposatha"] and body["isFullMoon"]
    assert body["kind"] == "canonical"


def test_next_uposatha(client):
    body = client.get("/next", params={"start": EPOCH.isoformat()}).json()
    assert body["found"] is True
    assert body["daysUntil"] == 7
    assert body["status"]["isAshtami"]


def test_month_listing(client):
    days = client.get("/month", params={"year": 2024, "month": 1}).json()
    assert [d["tithiIndex"] for d in days][:6] == [7, 13, 14, 22, 28, 29]


def test_record_lifecycle_and_stats(client):
    r = client.post("/records", json={"date": "2024-01-15", "status": "observed", "quality": 5,
                                      "practiceMinutes": {"meditation": 45}})
    assert r.status_code == 201
    saved = r.json()
    assert saved["moonPhase"] == "full"
    assert saved["practiceMinutes"] == {"meditation": 45, "chanting": 0, "study": 0}

    client.post("/records", json={"date": "2024-01-30", "status": "skipped", "skipReason": "travel"})
    listed = client.get("/records").json()
    assert [x["date"] for x in listed] == ["2024-01-30", "2024-01-15"]

    stats = client.get("/stats").json()
    assert stats["rate"] == 50.0
    assert stats["currentStreak"] == 0
    assert stats["longestStreak"] == 1

    assert client.delete(f"/records/{saved['id']}").status_code == 200
    assert client.delete(f"/records/{saved['id']}").status_code == 404
    assert len(client.get("/records").json()) == 1


def test_bad_record_is_rejected(client):
    assert client.post("/records", json={"date": "2024-01-15", "status": "meh"}).status_code == 422
    r = client.post("/records", json={"date": "2024-01-15", "status": "skipped", "skipReason": "bored"})
    assert r.status_code == 422
    assert r.json()["error"] == "InvalidRecord"


def test_sync_backfills(client):
    today = EPOCH + timedelta(days=30)
    inserted = client.post("/sync", params={"today": today.isoformat()}).json()["inserted"]
    assert len(inserted) == 9  # a full lunation plus the waning half of the one before
    assert all(r["skipReason"] == "forgot" for r in inserted)


def test_backup_and_restore_round_trip(client):
    client.post("/records", json={"date": "2024-01-15", "status": "observed"})
    payload = client.get("/backup").json()
    client.post("/records", json={"date": "2024-01-30", "status": "observed"})
    assert client.post("/restore", json=payload).json() == {"uposathaObservances": 1}
    assert [x["date"] for x in client.get("/records").json()] == ["2024-01-15"]
    assert client.post("/restore", json={"version": 9, "data": {}}).status_code == 400
    bad_rows = client.post("/restore", json={"version": 1, "data": {"uposathaObservances": [1]}})
    assert bad_rows.status_code == 400
    assert [x["date"] for x in client.get("/records").json()] == ["2024-01-15"]


def test_ics_download(client):
    r = client.get("/ics", params={"year": 2024})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/calendar")
    assert b"BEGIN:VEVENT" in r.content
