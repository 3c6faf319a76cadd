"""Observance record persistence.

Records live as one JSON array under a single key of a string key-value
store, the way a mobile preferences store holds them. Every logical
operation is a read-modify-write of that array; the last writer wins.
"""
from __future__ import annotations
import json
import logging
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .errors import InvalidRecord, StoreIOError
from .models import ObservanceRecord

log = logging.getLogger(__name__)

STORE_KEY_OBSERVANCE = "uposatha_observance_entries"

# ---------------- Key-value backends ----------
class KeyValueStore:
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value):
        self._data[key] = value

    def remove(self, key):
        self._data.pop(key, None)

class JsonFileKeyValueStore(KeyValueStore):
    """All keys in one JSON document; writes replace the file atomically."""

    def __init__(self, path):
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StoreIOError(f"Cannot read {self.path}: {e}") from e
        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            raise StoreIOError(f"Corrupt store file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreIOError(f"Corrupt store file {self.path}: expected a JSON object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, ensure_ascii=False)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreIOError(f"Cannot write {self.path}: {e}") from e

    def get(self, key):
        return self._read().get(key)

    def set(self, key, value):
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key):
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

# ---------------- Observance records ----------
class ObservanceStore:
    def __init__(self, kv: KeyValueStore, key: str = STORE_KEY_OBSERVANCE):
        self.kv = kv
        self.key = key

    def _load(self) -> List[ObservanceRecord]:
        value = self.kv.get(self.key)
        if not value:
            return []
        try:
            rows = json.loads(value)
            if not isinstance(rows, list):
                raise TypeError(f"expected a JSON list, got {type(rows).__name__}")
            return [ObservanceRecord.from_dict(r) for r in rows]
        except (json.JSONDecodeError, TypeError, InvalidRecord) as e:
            log.error("Error parsing uposatha observance history: %s", e)
            raise StoreIOError(f"Observance history under {self.key!r} is corrupt: {e}") from e

    def _save(self, records: Iterable[ObservanceRecord]) -> None:
        rows = [r.to_dict() for r in _newest_first(records)]
        self.kv.set(self.key, json.dumps(rows, ensure_ascii=False))

    def get_all(self) -> List[ObservanceRecord]:
        """Every record, newest date first."""
        return _newest_first(self._load())

    def get_for_date(self, day: date) -> Optional[ObservanceRecord]:
        return next((r for r in self._load() if r.date == day), None)

    def put(self, record: ObservanceRecord) -> None:
        """Insert or replace the record for ``record.date``."""
        self.put_many([record])

    def put_many(self, records: Iterable[ObservanceRecord]) -> None:
        incoming = {r.date: r for r in records}
        if not incoming:
            return
        history = [r for r in self._load() if r.date not in incoming]
        history.extend(incoming.values())
        self._save(history)
        log.info("Saved %d observance record(s)", len(incoming))

    def delete(self, record_id: str) -> bool:
        history = self._load()
        keep = [r for r in history if r.id != record_id]
        if len(keep) == len(history):
            return False
        self._save(keep)
        log.info("Deleted observance record %s", record_id)
        return True

    def replace_all(self, records: Iterable[ObservanceRecord]) -> None:
        """Swap the whole history for ``records`` in a single write."""
        incoming = {r.date: r for r in records}
        self._save(incoming.values())
        log.info("Replaced history with %d observance record(s)", len(incoming))

    def clear(self) -> None:
        self.kv.remove(self.key)

def _newest_first(records: Iterable[ObservanceRecord]) -> List[ObservanceRecord]:
    return sorted(records, key=lambda r: (r.date, r.recorded_at, r.id), reverse=True)
