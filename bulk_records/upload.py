"""
Upload decoding and pre-flight checks.

Responsibilities:
- size cap before anything is decoded
- encoding detection (UTF-8 first, charset-normalizer best guess otherwise)
- data row cap
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from charset_normalizer import from_bytes
from pydantic import BaseModel, Field

from .errors import FileTooLargeError, InsufficientRowsError, ParseError, TooManyRowsError
from .rules import MAX_DATA_ROWS, MAX_FILE_BYTES, TARGET_ENCODING
from .tokenizer import split_records

logger = logging.getLogger(__name__)


class UploadCheck(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    size_bytes: int
    size_mb: str


def _decode(raw: bytes) -> Tuple[str, str]:
    try:
        return raw.decode("utf-8-sig"), TARGET_ENCODING
    except UnicodeDecodeError:
        pass

    match = from_bytes(raw).best()
    if match is None:
        raise ParseError("File is not valid UTF-8 text")
    try:
        text = raw.decode(match.encoding)
    except (LookupError, UnicodeDecodeError):
        raise ParseError("File is not valid UTF-8 text")
    logger.info("Upload decoded with detected encoding %s", match.encoding)
    return text, match.encoding


def _count_data_rows(text: str) -> Tuple[int, int]:
    non_blank = [record for record in split_records(text) if record.strip()]
    return len(non_blank), max(len(non_blank) - 1, 0)


def decode_upload(
    raw: bytes,
    max_bytes: int = MAX_FILE_BYTES,
    max_rows: int = MAX_DATA_ROWS,
) -> Tuple[str, str]:
    """Return (text, encoding) or raise the first structural problem."""
    if len(raw) > max_bytes:
        raise FileTooLargeError(
            f"File size exceeds limit of {max_bytes / 1024 / 1024:g}MB",
            {"size_bytes": len(raw), "max_bytes": max_bytes},
        )

    text, encoding = _decode(raw)

    lines, data_rows = _count_data_rows(text)
    if lines < 2:
        raise InsufficientRowsError("File must contain at least a header row and one data row")
    if data_rows > max_rows:
        raise TooManyRowsError(
            f"File contains too many rows. Maximum allowed: {max_rows}",
            {"rows": data_rows, "max_rows": max_rows},
        )
    return text, encoding


def check_upload(
    raw: bytes,
    max_bytes: int = MAX_FILE_BYTES,
    max_rows: int = MAX_DATA_ROWS,
) -> UploadCheck:
    """Report every pre-flight problem at once instead of stopping at the first."""
    errors: List[str] = []

    if len(raw) > max_bytes:
        errors.append(f"File size exceeds limit of {max_bytes / 1024 / 1024:g}MB")

    try:
        text, _ = _decode(raw)
    except ParseError as exc:
        errors.append(exc.message)
    else:
        lines, data_rows = _count_data_rows(text)
        if data_rows > max_rows:
            errors.append(f"File contains too many rows. Maximum allowed: {max_rows}")
        if lines < 2:
            errors.append("File must contain at least a header row and one data row")

    return UploadCheck(
        is_valid=not errors,
        errors=errors,
        size_bytes=len(raw),
        size_mb=f"{len(raw) / 1024 / 1024:.2f}",
    )
