from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from .schema import DATE, NUMBER, TAGS, Entity, Schema

_DATE_FORMATS = ("%m/%d/%Y", "%Y/%m/%d", "%m/%d/%Y %H:%M", "%Y-%m-%d %H:%M:%S")


def row_to_map(headers: List[str], cells: List[str]) -> Dict[str, str]:
    """Pair header names with cells; short rows are padded, extra cells dropped."""
    row: Dict[str, str] = {}
    for index, header in enumerate(headers):
        if header in row:
            continue
        row[header] = cells[index] if index < len(cells) else ""
    return row


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a date or datetime; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if not text:
            return None
        parsed = None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            for fmt in _DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce_number(value: str) -> Union[int, float, str]:
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return value
    if math.isnan(number) or math.isinf(number):
        return value
    return number


def split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _convert(kind: str, value: str) -> Any:
    if kind == NUMBER:
        return coerce_number(value)
    if kind == DATE:
        parsed = parse_date(value)
        return parsed if parsed is not None else value
    return value


def transform_row(row: Dict[str, str], valid_headers: Iterable[str], schema: Schema) -> Entity:
    """
    Map a flat header->value row onto a structured entity.

    Nested groups only appear when one of their sub-fields has a value.
    Tags keep order and duplicates; deduplication belongs to the sanitizer.
    """
    headers = set(valid_headers)
    entity: Entity = {}

    for name in schema.importable_fields:
        if name not in headers or row.get(name) is None:
            continue
        spec = schema.field(name)
        if spec.group:
            continue
        value = row[name]
        if spec.kind == TAGS:
            if value.strip():
                entity[name] = split_list(value)
        elif spec.kind in (NUMBER, DATE):
            if value.strip():
                entity[name] = _convert(spec.kind, value)
        else:
            entity[name] = value

    for group, specs in schema.groups.items():
        present = [spec for spec in specs if spec.name in headers and row.get(spec.name) is not None]
        if not any(str(row[spec.name]).strip() for spec in present):
            continue
        entity[group] = {spec.name: _convert(spec.kind, row[spec.name]) for spec in present}

    return entity
