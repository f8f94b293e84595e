from __future__ import annotations

from collections import Counter
from typing import List

from .models import HeaderReport
from .schema import Schema


def validate_headers(headers: List[str], schema: Schema) -> HeaderReport:
    """
    Check detected column headers against the schema's importable fields.

    Missing required or duplicate headers make the report invalid; unknown
    headers are warnings and their columns are ignored downstream.
    """
    known = set(schema.importable_fields)
    present = set(headers)

    missing = [name for name in schema.required_fields if name not in present]
    unknown = [header for header in dict.fromkeys(headers) if header not in known]
    counts = Counter(headers)
    duplicates = [header for header in dict.fromkeys(headers) if counts[header] > 1]

    errors = [f"Required header '{name}' is missing" for name in missing]
    if duplicates:
        errors.append(f"Duplicate headers found: {', '.join(duplicates)}")
    warnings = [f"Unknown header '{header}' will be ignored" for header in unknown]

    return HeaderReport(
        is_valid=not errors,
        missing_required=missing,
        unknown_headers=unknown,
        duplicate_headers=duplicates,
        valid_headers=[header for header in dict.fromkeys(headers) if header in known],
        errors=errors,
        warnings=warnings,
    )
