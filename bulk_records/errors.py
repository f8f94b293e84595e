from __future__ import annotations

from typing import Any, Dict, Optional


class BulkRecordsError(Exception):
    """Base class for structural failures that abort a whole call."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ParseError(BulkRecordsError):
    code = "PARSE_ERROR"


class InsufficientRowsError(ParseError):
    code = "INSUFFICIENT_ROWS"


class FileTooLargeError(ParseError):
    status_code = 413
    code = "FILE_TOO_LARGE"


class TooManyRowsError(ParseError):
    code = "TOO_MANY_ROWS"


class HeaderError(BulkRecordsError):
    code = "INVALID_HEADERS"

    def __init__(self, message: str, report: Any = None):
        details = report.model_dump() if report is not None else None
        super().__init__(message, details)
        self.report = report


class CapacityExceededError(BulkRecordsError):
    status_code = 409
    code = "CAPACITY_EXCEEDED"


class PersistenceError(BulkRecordsError):
    """Raised by record stores. Caught per row by the import engine."""

    status_code = 500
    code = "PERSISTENCE_ERROR"


class ExportOptionsError(BulkRecordsError):
    code = "INVALID_EXPORT_OPTIONS"


class UnknownKindError(BulkRecordsError):
    status_code = 404
    code = "UNKNOWN_KIND"


class InternalError(BulkRecordsError):
    status_code = 500
    code = "INTERNAL_ERROR"
