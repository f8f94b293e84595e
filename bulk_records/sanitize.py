from __future__ import annotations

import copy
import html
import re
from typing import Any, List, Mapping
from urllib.parse import urlsplit, urlunsplit

import bleach

from .schema import EMAIL, ENUM, LINE_ITEMS, PHONE, STRING, TAGS, TEXT, URL, Entity, FieldSpec, Schema

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_PHONE_DISALLOWED = re.compile(r"[^\d\+\(\)\-\s\.]")

_ALLOWED_TAGS: List[str] = ["b", "i", "em", "strong", "u", "br", "p", "ul", "ol", "li"]


def sanitize_string(value: Any) -> str:
    if not isinstance(value, str) or not value:
        return ""
    cleaned = _CONTROL_CHARS.sub("", value.strip())
    return html.escape(cleaned, quote=True)


def sanitize_html(value: Any) -> str:
    if not isinstance(value, str) or not value:
        return ""
    cleaned = _CONTROL_CHARS.sub("", value.strip())
    return bleach.clean(cleaned, tags=_ALLOWED_TAGS, attributes={}, strip=True)


def sanitize_url(value: Any) -> str:
    if not isinstance(value, str) or not value:
        return ""
    url = _CONTROL_CHARS.sub("", value.strip())
    if not url:
        return ""
    if not re.match(r"^[A-Za-z][A-Za-z0-9+.-]*://", url):
        if re.match(r"^[A-Za-z][A-Za-z0-9+.-]*:", url) and not re.match(r"^[^:/]+:\d", url):
            # a scheme without "//" (javascript:, mailto:, data:) is never a web link
            return ""
        url = "https://" + url
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return ""
    if parts.scheme.lower() not in ("http", "https") or not host:
        return ""
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, parts.fragment))


def sanitize_phone(value: Any) -> str:
    if not isinstance(value, str) or not value:
        return ""
    return _PHONE_DISALLOWED.sub("", value).strip()


def sanitize_email(value: Any) -> str:
    if not isinstance(value, str) or not value:
        return ""
    return _CONTROL_CHARS.sub("", value.strip()).lower()


def sanitize_tags(tags: Any) -> List[str]:
    if not isinstance(tags, list):
        return []
    cleaned = [sanitize_string(tag) for tag in tags]
    return list(dict.fromkeys(tag for tag in cleaned if tag))


def _sanitize_value(spec: FieldSpec, value: Any) -> Any:
    if value is None:
        return value
    if spec.kind in (STRING, ENUM):
        if not isinstance(value, str):
            return value
        cleaned = sanitize_string(value)
        if spec.case == "upper":
            return cleaned.upper()
        if spec.case == "lower":
            return cleaned.lower()
        return cleaned
    if spec.kind == TEXT:
        return sanitize_html(value)
    if spec.kind == URL:
        return sanitize_url(value)
    if spec.kind == PHONE:
        return sanitize_phone(value)
    if spec.kind == EMAIL:
        return sanitize_email(value)
    if spec.kind == TAGS:
        return sanitize_tags(value)
    if spec.kind == LINE_ITEMS and isinstance(value, list):
        return [_sanitize_line_item(item) for item in value]
    return value


def _sanitize_line_item(item: Any) -> Any:
    if not isinstance(item, Mapping):
        return item
    cleaned = dict(item)
    cleaned["name"] = sanitize_string(item.get("name") or "")
    if item.get("description"):
        cleaned["description"] = sanitize_string(item["description"])
    else:
        cleaned.pop("description", None)
    return cleaned


def sanitize(entity: Mapping[str, Any], schema: Schema) -> Entity:
    """Return a sanitized deep copy; the input is left untouched."""
    sanitized: Entity = copy.deepcopy(dict(entity))

    for spec in schema.fields:
        if spec.group:
            group = sanitized.get(spec.group)
            if isinstance(group, dict) and spec.name in group:
                group[spec.name] = _sanitize_value(spec, group[spec.name])
        elif spec.name in sanitized:
            sanitized[spec.name] = _sanitize_value(spec, sanitized[spec.name])

    if isinstance(sanitized.get("importSource"), str):
        sanitized["importSource"] = sanitize_string(sanitized["importSource"])

    return sanitized
