"""Versioned JSON backups of the observance history."""
from __future__ import annotations
import json
from datetime import datetime, timezone
from typing import Dict, NamedTuple, Optional

from .errors import BackupError, InvalidRecord
from .models import ObservanceRecord
from .store import ObservanceStore

BACKUP_VERSION = 1

class RestoreResult(NamedTuple):
    uposatha_observances: int

def backup_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"uposatha_backup_{now.strftime('%Y-%m-%dT%H-%M-%S')}.json"

def create_backup(store: ObservanceStore, now: Optional[datetime] = None) -> Dict:
    now = now or datetime.now(timezone.utc)
    return {
        "version": BACKUP_VERSION,
        "createdAt": now.isoformat(),
        "data": {"uposathaObservances": [r.to_dict() for r in store.get_all()]},
    }

def export_backup(store: ObservanceStore, now: Optional[datetime] = None) -> str:
    return json.dumps(create_backup(store, now), ensure_ascii=False, indent=2)

def restore_backup(store: ObservanceStore, text: str) -> RestoreResult:
    """Replace the stored history with the one in ``text``.

    The payload is fully validated before the store is touched.
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise BackupError(f"Backup is not valid JSON: {e}") from e
    if not isinstance(parsed, dict) or not isinstance(parsed.get("data"), dict):
        raise BackupError("Backup payload has no data section.")
    if parsed.get("version") != BACKUP_VERSION:
        raise BackupError(
            f'Unsupported backup version "{parsed.get("version")}". '
            f"This app supports version {BACKUP_VERSION}."
        )
    rows = parsed["data"].get("uposathaObservances") or []
    if not isinstance(rows, list):
        raise BackupError("uposathaObservances must be a list.")
    try:
        records = [ObservanceRecord.from_dict(r) for r in rows]
    except InvalidRecord as e:
        raise BackupError(str(e)) from e

    store.replace_all(records)
    return RestoreResult(uposatha_observances=len({r.date for r in records}))
