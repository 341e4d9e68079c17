"""Durable snapshot storage, one handle per logical table."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol

from jsonschema import Draft7Validator
from jsonschema import ValidationError as SchemaValidationError

from .errors import StorageError, SyncInProgressError

LOGGER = logging.getLogger(__name__)

PRICE_ITEMS = "price-items"
ARTIFACTS = "artifacts"
BID_RECORDS = "bid-records"

_PRICE_ITEM_SCHEMA = {
    "type": "object",
    "required": ["id", "name", "price"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "name": {"type": "string"},
        "price": {"type": "number", "minimum": 0},
        "category": {"type": ["string", "null"]},
    },
}

_ARTIFACT_SCHEMA = {
    "type": "object",
    "required": ["id", "file_name", "file_size", "upload_date", "category"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "file_name": {"type": "string"},
        "file_size": {"type": "integer", "minimum": 0},
        "file_type": {"type": "string"},
        "upload_date": {"type": "string"},
        "category": {"enum": ["pricing", "floorplan", "bid"]},
        "project_key": {"type": ["string", "null"]},
        "project_location": {"type": ["string", "null"]},
    },
}

_BID_RECORD_SCHEMA = {
    "type": "object",
    "required": ["id", "project_id", "bid_estimate", "line_items", "created_at"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "project_id": {"type": "string"},
        "bid_estimate": {"type": "number"},
        "line_items": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["description", "unit_price", "total"],
            },
        },
        "confidence": {"type": "integer"},
        "notes": {"type": "array", "items": {"type": "string"}},
        "created_at": {"type": "string"},
    },
}

TABLES: Dict[str, dict] = {
    PRICE_ITEMS: {"type": "array", "items": _PRICE_ITEM_SCHEMA},
    ARTIFACTS: {"type": "array", "items": _ARTIFACT_SCHEMA},
    BID_RECORDS: {"type": "array", "items": _BID_RECORD_SCHEMA},
}


class SnapshotStore(Protocol):
    """String-keyed blob store holding one JSON document per key."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryStore:
    """In-process store; contents vanish with the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def keys(self) -> List[str]:
        return sorted(self._data)


class JsonFileStore:
    """Stores each key as ``<root>/<key>.json``.

    Writes go to a temporary file in the same directory which then replaces
    the target, so readers never observe a half-written snapshot.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class LocalCache:
    """Snapshot handle for one logical table.

    ``read`` never raises: a malformed snapshot is logged and treated as
    empty. ``write`` replaces the whole snapshot in a single store call.
    """

    def __init__(self, store: SnapshotStore, table: str, schema: Optional[dict] = None) -> None:
        if schema is None:
            if table not in TABLES:
                raise KeyError(f"Unknown table {table!r}; pass an explicit schema")
            schema = TABLES[table]
        self.store = store
        self.table = table
        self._validator = Draft7Validator(schema)
        self._sync_held = False

    def read(self) -> List[dict]:
        try:
            return self._load()
        except StorageError as exc:
            LOGGER.error("Ignoring unreadable %s snapshot: %s", self.table, exc)
            return []

    def write(self, records: List[dict]) -> None:
        payload = list(records)
        try:
            self._validator.validate(payload)
            text = json.dumps(payload, indent=2, sort_keys=True)
        except (SchemaValidationError, TypeError, ValueError) as exc:
            raise StorageError(f"Refusing to write invalid {self.table} snapshot: {exc}") from exc
        try:
            self.store.set(self.table, text)
        except OSError as exc:
            raise StorageError(f"Unable to persist {self.table} snapshot: {exc}") from exc
        LOGGER.debug("Wrote %d %s record(s)", len(payload), self.table)

    def _load(self) -> List[dict]:
        try:
            raw = self.store.get(self.table)
        except OSError as exc:
            raise StorageError(f"Unable to read {self.table} snapshot: {exc}") from exc
        if raw is None or not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Malformed JSON in {self.table} snapshot: {exc}") from exc
        try:
            self._validator.validate(data)
        except SchemaValidationError as exc:
            raise StorageError(f"Schema validation failed for {self.table}: {exc.message}") from exc
        return data

    @property
    def syncing(self) -> bool:
        return self._sync_held

    @contextmanager
    def sync_guard(self) -> Iterator[None]:
        """Hold the cache for one reconciliation pass; a second holder is rejected."""
        if self._sync_held:
            raise SyncInProgressError(f"A sync pass already holds the {self.table} cache")
        self._sync_held = True
        try:
            yield
        finally:
            self._sync_held = False

    def ensure_idle(self, action: str) -> None:
        if self._sync_held:
            raise SyncInProgressError(f"Cannot {action} while {self.table} is syncing")


__all__ = [
    "PRICE_ITEMS",
    "ARTIFACTS",
    "BID_RECORDS",
    "TABLES",
    "SnapshotStore",
    "MemoryStore",
    "JsonFileStore",
    "LocalCache",
]
