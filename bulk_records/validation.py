"""
Field-level and cross-field validation driven by a Schema.

Modes:
- create: schema-required fields plus owner/reference fields, date windows
  and closed-state rules are enforced.
- import: schema-required fields only; owner is attached later by the
  import engine, date windows and closed-state reasons are tolerated.
- update: nothing is required (partial updates).
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional
from urllib.parse import urlsplit
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import ValidationResult
from .schema import (
    BOOL,
    DATE,
    EMAIL,
    ENUM,
    LINE_ITEMS,
    NUMBER,
    PHONE,
    TAGS,
    TIMEZONE,
    URL,
    MODES,
    FieldSpec,
    Schema,
)
from .transform import parse_date

EMAIL_PATTERN = re.compile(
    r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@([A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,}$"
)
HOSTNAME_PATTERN = re.compile(r"^([A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,}$")
SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
BARE_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")
HOST_PORT_PATTERN = re.compile(r"^[^:/]+:\d")

MAX_TAG_LENGTH = 50
PRICE_TOLERANCE = 0.01


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _sentence(text: str) -> str:
    return text[:1].upper() + text[1:]


def is_valid_email(value: str) -> bool:
    if len(value) > 254 or "@" not in value:
        return False
    local, _, _ = value.rpartition("@")
    return len(local) <= 64 and EMAIL_PATTERN.match(value) is not None


def is_valid_url(value: str, hosts: tuple = ()) -> bool:
    text = value.strip()
    if not text or any(char.isspace() for char in text):
        return False
    if not SCHEME_PATTERN.match(text):
        # mailto:, javascript: and the like; host:port is still a bare host
        if BARE_SCHEME_PATTERN.match(text) and not HOST_PORT_PATTERN.match(text):
            return False
        text = "http://" + text
    try:
        parts = urlsplit(text)
        host = (parts.hostname or "").lower()
    except ValueError:
        return False
    if parts.scheme.lower() not in ("http", "https"):
        return False
    if not HOSTNAME_PATTERN.match(host):
        return False
    if hosts:
        bare = host[4:] if host.startswith("www.") else host
        return any(bare == allowed or bare.endswith("." + allowed) for allowed in hosts)
    return True


def _check_field(spec: FieldSpec, value: Any, mode: str, now: datetime, errors: List[str]) -> None:
    if _blank(value):
        return

    if spec.max_length is not None and isinstance(value, str) and len(value) > spec.max_length:
        errors.append(f"{spec.title} cannot exceed {spec.max_length} characters")

    if spec.kind == EMAIL:
        if not is_valid_email(str(value).strip()):
            errors.append(spec.invalid_message())

    elif spec.kind == PHONE:
        compact = re.sub(r"\s", "", str(value))
        if not re.match(spec.pattern, compact):
            errors.append(spec.invalid_message())

    elif spec.kind == URL:
        if not is_valid_url(str(value), spec.hosts):
            errors.append(spec.invalid_message())

    elif spec.kind == ENUM:
        candidate = str(value)
        if spec.case == "upper":
            candidate = candidate.upper()
        elif spec.case == "lower":
            candidate = candidate.lower()
        if candidate not in spec.choices:
            errors.append(f"Invalid {spec.title.lower()}. Must be one of: {', '.join(spec.choices)}")

    elif spec.kind == NUMBER:
        if not _is_number(value):
            errors.append(spec.message or f"{spec.title} must be a valid number")
        elif spec.minimum is not None and value < spec.minimum:
            if spec.minimum == 0:
                errors.append(f"{spec.title} cannot be negative")
            else:
                errors.append(f"{spec.title} must be at least {spec.minimum:g}")
        elif spec.maximum is not None and value > spec.maximum:
            errors.append(f"{spec.title} cannot exceed {spec.maximum:,}")

    elif spec.kind == DATE:
        parsed = parse_date(value)
        if parsed is None:
            errors.append(f"Invalid {spec.title.lower()} format")
        elif mode == "create" and spec.window == "past" and parsed > now:
            errors.append(f"{spec.title} cannot be in the future")
        elif mode == "create" and spec.window == "future" and parsed < now:
            errors.append(f"{spec.title} cannot be in the past")

    elif spec.kind == TIMEZONE:
        try:
            ZoneInfo(str(value))
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(spec.invalid_message())

    elif spec.kind == BOOL:
        if not isinstance(value, bool):
            errors.append(f"{spec.title} must be true or false")

    elif spec.kind == TAGS:
        _check_tags(value, mode, errors)

    elif spec.kind == LINE_ITEMS:
        _check_line_items(value, errors)

    elif spec.pattern and not re.match(spec.pattern, str(value)):
        errors.append(spec.invalid_message())


def _check_tags(tags: Any, mode: str, errors: List[str]) -> None:
    if not isinstance(tags, list):
        errors.append("Tags must be a comma-separated string or list")
        return
    for index, tag in enumerate(tags, start=1):
        if not isinstance(tag, str):
            errors.append(f"Tag {index} must be a string")
        elif not tag.strip():
            errors.append(f"Tag {index} cannot be empty")
        elif len(tag) > MAX_TAG_LENGTH:
            errors.append(f"Tag {index} is invalid or exceeds {MAX_TAG_LENGTH} characters")
    # imports tolerate repeats; the sanitizer dedupes them
    if mode != "import" and len(set(map(str, tags))) != len(tags):
        errors.append("Duplicate tags are not allowed")


def _check_line_items(items: Any, errors: List[str]) -> None:
    if not isinstance(items, list):
        errors.append("Products must be a list")
        return
    for index, item in enumerate(items, start=1):
        prefix = f"Product {index}"
        if not isinstance(item, Mapping):
            errors.append(f"{prefix}: Invalid product entry")
            continue
        name = item.get("name")
        if _blank(name):
            errors.append(f"{prefix}: Name is required")
        elif len(str(name)) > 100:
            errors.append(f"{prefix}: Name cannot exceed 100 characters")

        quantity = item.get("quantity")
        unit_price = item.get("unitPrice")
        total_price = item.get("totalPrice")
        if quantity is None:
            errors.append(f"{prefix}: Quantity is required")
        elif not _is_number(quantity) or quantity < 1:
            errors.append(f"{prefix}: Quantity must be at least 1")
        if unit_price is None:
            errors.append(f"{prefix}: Unit price is required")
        elif not _is_number(unit_price) or unit_price < 0:
            errors.append(f"{prefix}: Unit price cannot be negative")
        if total_price is None:
            errors.append(f"{prefix}: Total price is required")
        elif not _is_number(total_price) or total_price < 0:
            errors.append(f"{prefix}: Total price cannot be negative")

        if all(_is_number(v) for v in (quantity, unit_price, total_price)):
            if abs(total_price - quantity * unit_price) > PRICE_TOLERANCE:
                errors.append(f"{prefix}: Total price should equal quantity × unit price")

        description = item.get("description")
        if description and len(str(description)) > 200:
            errors.append(f"{prefix}: Description cannot exceed 200 characters")


def _check_postal_code(entity: Mapping[str, Any], schema: Schema, errors: List[str]) -> None:
    rule = schema.postal_codes
    if rule is None:
        return
    group = entity.get(rule.group)
    if not isinstance(group, Mapping):
        return
    code = str(group.get(rule.code_field) or "").strip()
    country = str(group.get(rule.country_field) or "").strip()
    if not code or not country:
        return
    pattern = rule.pattern_for(country)
    valid = re.match(pattern, code) is not None if pattern else 3 <= len(code) <= 10
    if not valid:
        errors.append("Invalid postal code format for the specified country")


def validate(
    entity: Mapping[str, Any],
    schema: Schema,
    mode: str = "create",
    now: Optional[datetime] = None,
) -> ValidationResult:
    if mode not in MODES:
        raise ValueError(f"Unknown validation mode {mode!r}")
    now = now or datetime.now(timezone.utc)
    errors: List[str] = []

    if mode in ("create", "import"):
        for name in schema.required_fields:
            spec = schema.field(name)
            if _blank(entity.get(name)):
                errors.append(f"{_sentence(spec.title)} is required")
    if mode == "create":
        for ref, message in schema.references:
            if _blank(entity.get(ref)):
                errors.append(message)

    for spec in schema.fields:
        if spec.group:
            group = entity.get(spec.group)
            value = group.get(spec.name) if isinstance(group, Mapping) else None
        else:
            value = entity.get(spec.name)
        _check_field(spec, value, mode, now, errors)

    _check_postal_code(entity, schema, errors)

    if mode != "import":
        for rule in schema.closure_rules:
            if entity.get(rule.field) in rule.states and _blank(entity.get(rule.requires)):
                errors.append(rule.message)

    return ValidationResult(is_valid=not errors, errors=errors)
