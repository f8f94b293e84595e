"""
Collaborator contracts consumed by the import engine and exporter, plus
in-process reference implementations used by the HTTP app and the tests.
"""

from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .errors import PersistenceError
from .schema import Entity, normalize_key


class RecordStore(Protocol):
    def find_by_key(self, owner_id: str, key_field: str, key: str) -> Optional[Entity]: ...

    def insert(self, record: Mapping[str, Any]) -> Entity: ...

    def update(self, record_id: str, changes: Mapping[str, Any]) -> Entity: ...

    def count_by_owner(self, owner_id: str) -> int: ...

    def list_by_owner(self, owner_id: str) -> List[Entity]: ...


class CapacityProvider(Protocol):
    def limit(self, owner_id: str) -> int: ...


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedCapacity:
    def __init__(self, default: int, overrides: Optional[Mapping[str, int]] = None):
        self.default = default
        self.overrides = dict(overrides or {})

    def limit(self, owner_id: str) -> int:
        return self.overrides.get(owner_id, self.default)


class InMemoryRecordStore:
    """Dict-backed store; records are copied in and out so callers cannot alias them."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._records: Dict[str, Entity] = {}
        self._lock = threading.Lock()

    def find_by_key(self, owner_id: str, key_field: str, key: str) -> Optional[Entity]:
        with self._lock:
            for record in self._records.values():
                if record.get("owner") != owner_id:
                    continue
                if record.get("isDuplicate") or record.get("deleted"):
                    continue
                if normalize_key(record.get(key_field)) == key:
                    return copy.deepcopy(record)
        return None

    def insert(self, record: Mapping[str, Any]) -> Entity:
        now = self.clock.now()
        stored = copy.deepcopy(dict(record))
        stored["id"] = uuid.uuid4().hex
        stored.setdefault("createdAt", now)
        stored["updatedAt"] = now
        with self._lock:
            self._records[stored["id"]] = stored
        return copy.deepcopy(stored)

    def update(self, record_id: str, changes: Mapping[str, Any]) -> Entity:
        with self._lock:
            existing = self._records.get(record_id)
            if existing is None:
                raise PersistenceError(f"Record {record_id} not found")
            existing.update(copy.deepcopy(dict(changes)))
            existing["id"] = record_id
            existing["updatedAt"] = self.clock.now()
            return copy.deepcopy(existing)

    def count_by_owner(self, owner_id: str) -> int:
        with self._lock:
            return sum(
                1
                for record in self._records.values()
                if record.get("owner") == owner_id and not record.get("deleted")
            )

    def list_by_owner(self, owner_id: str) -> List[Entity]:
        with self._lock:
            return [
                copy.deepcopy(record)
                for record in self._records.values()
                if record.get("owner") == owner_id
            ]

    def get(self, record_id: str) -> Optional[Entity]:
        with self._lock:
            record = self._records.get(record_id)
            return copy.deepcopy(record) if record is not None else None
