from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import BulkValidation, RowResult, ValidationSummary
from .sanitize import sanitize
from .schema import Schema
from .validation import validate

logger = logging.getLogger(__name__)


class DuplicateKeyRegistry:
    """Natural keys seen during one bulk validation run, with the row that claimed each."""

    def __init__(self) -> None:
        self._first_rows: Dict[str, int] = {}
        self.conflicts: List[str] = []

    def claim(self, key: str, row_number: int) -> Optional[int]:
        """Register `key` for `row_number`; return the earlier row if already claimed."""
        first = self._first_rows.get(key)
        if first is None:
            self._first_rows[key] = row_number
            return None
        if key not in self.conflicts:
            self.conflicts.append(key)
        return first


def has_any_data(entity: Mapping[str, Any]) -> bool:
    for value in entity.values():
        if isinstance(value, Mapping):
            if has_any_data(value):
                return True
        elif isinstance(value, (list, tuple)):
            if value:
                return True
        elif value is not None and value != "":
            return True
    return False


def validate_bulk(entities: Iterable[Mapping[str, Any]], schema: Schema) -> BulkValidation:
    """
    Validate every transformed row for import.

    Rows keep their 1-based position as `row_number`. A repeated natural key
    marks the later row invalid; the first occurrence is never revisited.
    Touches no store and is safe to call repeatedly.
    """
    registry = DuplicateKeyRegistry()
    result = BulkValidation()

    for index, entity in enumerate(entities):
        row_number = index + 1

        if not has_any_data(entity):
            result.invalid_entities.append(
                RowResult(
                    row_number=row_number,
                    is_valid=False,
                    errors=[f"Row {row_number}: Empty row detected"],
                    raw_data=dict(entity),
                )
            )
            continue

        errors = list(validate(entity, schema, mode="import").errors)

        key = schema.natural_key_of(entity)
        if key is not None:
            first_row = registry.claim(key, row_number)
            if first_row is not None:
                errors.append(
                    f"Row {row_number}: Duplicate {schema.key_label} '{key}' within import "
                    f"(first seen at row {first_row})"
                )

        if errors:
            result.invalid_entities.append(
                RowResult(row_number=row_number, is_valid=False, errors=errors, raw_data=dict(entity))
            )
        else:
            result.valid_entities.append(
                RowResult(row_number=row_number, is_valid=True, sanitized_data=sanitize(entity, schema))
            )

    result.duplicate_keys = list(registry.conflicts)
    result.summary = ValidationSummary(
        total=len(result.valid_entities) + len(result.invalid_entities),
        valid=len(result.valid_entities),
        invalid=len(result.invalid_entities),
        duplicates=len(registry.conflicts),
    )
    logger.debug(
        "Bulk validation finished kind=%s total=%s valid=%s invalid=%s",
        schema.kind,
        result.summary.total,
        result.summary.valid,
        result.summary.invalid,
    )
    return result
