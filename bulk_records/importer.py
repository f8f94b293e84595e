"""
Import strategy engine.

Takes rows that already passed bulk validation and resolves each one
against the record store: insert, update, skip, or insert flagged as a
duplicate. The capacity check is all-or-nothing and runs before any row is
touched; persistence failures are isolated to their row.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional, Protocol, Sequence

from .errors import CapacityExceededError, PersistenceError
from .models import CleanupResult, ImportOptions, ImportOutcome, ImportResults, ImportStats, RowResult, SourceStats
from .rules import IMPORT_SOURCE_TAG
from .schema import Entity, Schema
from .store import CapacityProvider, Clock, RecordStore, SystemClock
from .transform import parse_date

logger = logging.getLogger(__name__)

GENERIC_PERSISTENCE_ERROR = "Failed to save record"


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


class OwnerLocks:
    """One advisory lock per owner so two imports for the same owner never interleave."""

    def __init__(self) -> None:
        self._locks: Dict[str, threading.Lock] = {}
        self._waiters: Dict[str, int] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, owner_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(owner_id, threading.Lock())
            self._waiters[owner_id] = self._waiters.get(owner_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            # the last holder or waiter drops the entry
            with self._guard:
                self._waiters[owner_id] -= 1
                if not self._waiters[owner_id]:
                    del self._waiters[owner_id]
                    del self._locks[owner_id]


def merge_changes(existing: Mapping[str, Any], incoming: Mapping[str, Any]) -> Entity:
    """Incoming fields win; nested groups are merged one level deep."""
    changes: Entity = {}
    for name, value in incoming.items():
        current = existing.get(name)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            changes[name] = {**current, **value}
        else:
            changes[name] = value
    return changes


class ImportEngine:
    def __init__(
        self,
        schema: Schema,
        store: RecordStore,
        capacity: CapacityProvider,
        clock: Optional[Clock] = None,
        import_source: str = IMPORT_SOURCE_TAG,
        locks: Optional[OwnerLocks] = None,
    ):
        self.schema = schema
        self.store = store
        self.capacity = capacity
        self.clock = clock or SystemClock()
        self.import_source = import_source
        self.locks = locks if locks is not None else OwnerLocks()

    def check_capacity(self, owner_id: str, incoming: int) -> None:
        current = self.store.count_by_owner(owner_id)
        limit = self.capacity.limit(owner_id)
        if current + incoming > limit:
            logger.warning(
                "Import rejected by capacity owner=%s current=%s incoming=%s limit=%s",
                owner_id, current, incoming, limit,
            )
            raise CapacityExceededError(
                f"Import would exceed {self.schema.kind} limit. "
                f"Current: {current}, Importing: {incoming}, Limit: {limit}",
                {"current": current, "importing": incoming, "limit": limit},
            )

    def import_validated(
        self,
        owner_id: str,
        valid_entities: Sequence[RowResult],
        options: Optional[ImportOptions] = None,
        cancel: Optional[CancelToken] = None,
    ) -> ImportResults:
        options = options or ImportOptions()
        batch_size = options.batch_size
        results = ImportResults()

        with self.locks.hold(owner_id):
            self.check_capacity(owner_id, len(valid_entities))

            for start in range(0, len(valid_entities), batch_size):
                if cancel is not None and cancel.is_set():
                    pending = valid_entities[start:]
                    for row in pending:
                        results.add(ImportOutcome(row_number=row.row_number, action="skipped", reason="cancelled"))
                    results.cancelled = True
                    logger.warning(
                        "Import cancelled owner=%s kind=%s pending=%s", owner_id, self.schema.kind, len(pending)
                    )
                    break

                for row in valid_entities[start:start + batch_size]:
                    results.add(self._resolve(owner_id, row, options))

        return results

    def import_stats(self, owner_id: str) -> ImportStats:
        """Count live records carrying import provenance, grouped by source."""
        by_source: Dict[str, SourceStats] = {}
        for record in self.store.list_by_owner(owner_id):
            source = record.get("importSource")
            if not source or record.get("deleted"):
                continue
            stats = by_source.setdefault(source, SourceStats(source=source))
            stats.count += 1
            imported_at = parse_date(record.get("importDate"))
            if imported_at is not None and (stats.latest_import is None or imported_at > stats.latest_import):
                stats.latest_import = imported_at

        sources = sorted(by_source.values(), key=lambda stats: stats.source)
        dates = [stats.latest_import for stats in sources if stats.latest_import is not None]
        return ImportStats(
            kind=self.schema.kind,
            total_imported=sum(stats.count for stats in sources),
            by_source=sources,
            last_import_date=max(dates) if dates else None,
        )

    def cleanup_duplicates(self, owner_id: str) -> CleanupResult:
        """Soft-delete every live record flagged as an import duplicate."""
        result = CleanupResult(kind=self.schema.kind)
        with self.locks.hold(owner_id):
            duplicates = [
                record
                for record in self.store.list_by_owner(owner_id)
                if record.get("isDuplicate") and not record.get("deleted")
            ]
            result.duplicates_found = len(duplicates)
            for record in duplicates:
                try:
                    self.store.update(record["id"], {"deleted": True})
                except PersistenceError as exc:
                    logger.error("Duplicate %s could not be removed: %s", record["id"], exc.message)
                    result.failed_ids.append(record["id"])
                    continue
                result.duplicates_removed += 1

        logger.info(
            "Duplicate cleanup owner=%s kind=%s found=%s removed=%s",
            owner_id, self.schema.kind, result.duplicates_found, result.duplicates_removed,
        )
        return result

    def _provenance(self) -> Entity:
        return {"importDate": self.clock.now(), "importSource": self.import_source}

    def _resolve(self, owner_id: str, row: RowResult, options: ImportOptions) -> ImportOutcome:
        data = self.schema.allow_list(row.sanitized_data or {}, "import")
        try:
            key = self.schema.natural_key_of(data)
            existing = self.store.find_by_key(owner_id, self.schema.natural_key, key) if key else None

            if existing is None:
                record = self.store.insert(
                    {**data, "owner": owner_id, "isDuplicate": False, **self._provenance()}
                )
                return ImportOutcome(
                    row_number=row.row_number, action="inserted", record_id=record["id"], record=record
                )

            existing_id = existing["id"]
            if options.update_existing:
                record = self.store.update(existing_id, {**merge_changes(existing, data), **self._provenance()})
                return ImportOutcome(
                    row_number=row.row_number,
                    action="updated",
                    record_id=existing_id,
                    existing_id=existing_id,
                    record=record,
                )

            if options.skip_duplicates:
                return ImportOutcome(
                    row_number=row.row_number,
                    action="skipped",
                    reason=f"duplicate_{self.schema.natural_key}",
                    existing_id=existing_id,
                    record=data,
                )

            # only the first live match is linked, even if older duplicates exist
            record = self.store.insert(
                {
                    **data,
                    "owner": owner_id,
                    "isDuplicate": True,
                    "duplicateOf": existing_id,
                    **self._provenance(),
                }
            )
            return ImportOutcome(
                row_number=row.row_number,
                action="inserted_as_duplicate",
                record_id=record["id"],
                existing_id=existing_id,
                record=record,
            )

        except PersistenceError as exc:
            logger.error("Row %s failed to persist: %s", row.row_number, exc.message)
            return ImportOutcome(row_number=row.row_number, action="failed", error=exc.message, record=data)
        except Exception:
            logger.exception("Row %s failed with an unexpected store error", row.row_number)
            return ImportOutcome(
                row_number=row.row_number, action="failed", error=GENERIC_PERSISTENCE_ERROR, record=data
            )
