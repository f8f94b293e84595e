from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from typing import Any, List, Mapping, Optional

from .errors import ExportOptionsError
from .models import ExportFilters, ExportOptions, ExportResult
from .rules import EXPORT_LIST_SEPARATOR
from .schema import BOOL, DATE, LINE_ITEMS, Entity, FieldSpec, Schema
from .store import Clock, RecordStore, SystemClock
from .tokenizer import format_row
from .transform import parse_date

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_DATE_TOKENS = (
    ("YYYY", "%Y"),
    ("MM", "%m"),
    ("DD", "%d"),
    ("HH", "%H"),
    ("mm", "%M"),
    ("ss", "%S"),
)


def to_strftime(date_format: str) -> Optional[str]:
    """Translate YYYY-MM-DD style tokens; None means ISO 8601."""
    if date_format.strip().upper() == "ISO":
        return None
    pattern = "|".join(token for token, _ in _DATE_TOKENS)
    mapping = dict(_DATE_TOKENS)
    return re.sub(pattern, lambda match: mapping[match.group(0)], date_format)


def format_date(value: Any, date_format: str) -> str:
    parsed = value if isinstance(value, datetime) else None
    if parsed is None and isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    if parsed is None:
        parsed = parse_date(value)
    if parsed is None:
        return str(value)
    fmt = to_strftime(date_format)
    return parsed.isoformat() if fmt is None else parsed.strftime(fmt)


def resolve_value(record: Mapping[str, Any], spec: FieldSpec) -> Any:
    if spec.group:
        group = record.get(spec.group)
        return group.get(spec.name) if isinstance(group, Mapping) else None
    return record.get(spec.name)


def format_value(value: Any, spec: FieldSpec, date_format: str) -> str:
    if spec.kind == BOOL:
        return "Yes" if value else "No"
    if value is None or value == "":
        return ""
    if spec.kind == DATE:
        return format_date(value, date_format)
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if spec.kind == LINE_ITEMS and isinstance(value, list):
        return EXPORT_LIST_SEPARATOR.join(str(item.get("name", "")) for item in value if isinstance(item, Mapping))
    if isinstance(value, (list, tuple)):
        return EXPORT_LIST_SEPARATOR.join(str(item) for item in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return " ".join(str(item) for item in value)
    return "" if value is None else str(value)


def matches_filters(record: Mapping[str, Any], filters: ExportFilters, schema: Schema) -> bool:
    if filters.status and schema.status_field:
        if record.get(schema.status_field) != filters.status:
            return False
    if filters.company:
        if filters.company.lower() not in _text(record.get("company")).lower():
            return False
    if filters.tags:
        tags = record.get("tags") or []
        if not any(tag in tags for tag in filters.tags):
            return False
    if filters.search:
        needle = filters.search.lower()
        if not any(needle in _text(record.get(name)).lower() for name in schema.search_fields):
            return False
    if filters.created_from or filters.created_to:
        created = parse_date(record.get("createdAt"))
        if created is None:
            return False
        if filters.created_from and created < parse_date(filters.created_from):
            return False
        if filters.created_to and created > parse_date(filters.created_to):
            return False
    return True


class Exporter:
    def __init__(self, schema: Schema, store: RecordStore, clock: Optional[Clock] = None):
        self.schema = schema
        self.store = store
        self.clock = clock or SystemClock()

    def check_options(self, options: ExportOptions) -> List[str]:
        fields = list(options.fields or self.schema.export_fields)
        invalid = [name for name in fields if name not in self.schema.export_fields]
        if invalid:
            raise ExportOptionsError(f"Invalid fields: {', '.join(invalid)}", {"invalid_fields": invalid})
        if options.delimiter in ('"', "\n", "\r"):
            raise ExportOptionsError("Delimiter cannot be a quote or line break")
        return fields

    def render(self, records: List[Entity], fields: List[str], options: ExportOptions) -> str:
        specs = [self.schema.field(name) for name in fields]
        lines: List[str] = []
        if options.include_headers:
            if options.header_style == "canonical":
                header = [spec.name for spec in specs]
            else:
                header = [spec.header for spec in specs]
            lines.append(format_row(header, options.delimiter))
        for record in records:
            values = [format_value(resolve_value(record, spec), spec, options.date_format) for spec in specs]
            lines.append(format_row(values, options.delimiter))
        return "".join(line + "\n" for line in lines)

    def export(self, owner_id: str, options: Optional[ExportOptions] = None) -> ExportResult:
        options = options or ExportOptions()
        fields = self.check_options(options)

        records = [
            record
            for record in self.store.list_by_owner(owner_id)
            if not record.get("isDuplicate")
            and not record.get("deleted")
            and matches_filters(record, options.filters, self.schema)
        ]
        if not records:
            return ExportResult(found=False, error=f"No {self.schema.plural} found for export")

        records.sort(key=lambda record: parse_date(record.get("createdAt")) or _EPOCH, reverse=True)

        content = self.render(records, fields, options)
        filename = f"{self.schema.plural}_export_{self.clock.now():%Y-%m-%d}.csv"
        logger.info(
            "Export completed owner=%s kind=%s count=%s", owner_id, self.schema.kind, len(records)
        )
        return ExportResult(found=True, content=content, filename=filename, count=len(records), fields=fields)
