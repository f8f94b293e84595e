from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .rules import DEFAULT_BATCH_SIZE, DEFAULT_DELIMITER, EXPORT_DATE_FORMAT

ValidationMode = Literal["create", "update", "import"]
ImportAction = Literal["inserted", "updated", "skipped", "inserted_as_duplicate", "failed"]


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class HeaderReport(BaseModel):
    is_valid: bool
    missing_required: List[str] = Field(default_factory=list)
    unknown_headers: List[str] = Field(default_factory=list)
    duplicate_headers: List[str] = Field(default_factory=list)
    valid_headers: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class RowResult(BaseModel):
    row_number: int
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    sanitized_data: Optional[Dict[str, Any]] = None
    raw_data: Optional[Dict[str, Any]] = None


class ValidationSummary(BaseModel):
    total: int = 0
    valid: int = 0
    invalid: int = 0
    duplicates: int = 0


class BulkValidation(BaseModel):
    valid_entities: List[RowResult] = Field(default_factory=list)
    invalid_entities: List[RowResult] = Field(default_factory=list)
    duplicate_keys: List[str] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)


class ImportOptions(BaseModel):
    skip_duplicates: bool = True
    update_existing: bool = False
    validate_only: bool = False
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1)
    delimiter: str = Field(default=DEFAULT_DELIMITER, min_length=1, max_length=1)
    skip_empty_rows: bool = True


class ImportOutcome(BaseModel):
    row_number: int
    action: ImportAction
    record_id: Optional[str] = None
    existing_id: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    record: Optional[Dict[str, Any]] = None


class ImportResults(BaseModel):
    imported: List[ImportOutcome] = Field(default_factory=list)
    updated: List[ImportOutcome] = Field(default_factory=list)
    skipped: List[ImportOutcome] = Field(default_factory=list)
    inserted_as_duplicate: List[ImportOutcome] = Field(default_factory=list)
    failed: List[ImportOutcome] = Field(default_factory=list)
    cancelled: bool = False

    def add(self, outcome: ImportOutcome) -> None:
        bucket = {
            "inserted": self.imported,
            "updated": self.updated,
            "skipped": self.skipped,
            "inserted_as_duplicate": self.inserted_as_duplicate,
            "failed": self.failed,
        }[outcome.action]
        bucket.append(outcome)


class ImportSummary(BaseModel):
    total: int = 0
    valid: int = 0
    invalid: int = 0
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    inserted_as_duplicate: int = 0
    failed: int = 0


class ImportReport(BaseModel):
    mode: Literal["preview", "validate_only", "import"]
    kind: str
    encoding: str = "utf-8"
    headers: HeaderReport
    summary: ImportSummary
    validation: BulkValidation
    results: Optional[ImportResults] = None


class SourceStats(BaseModel):
    source: str
    count: int = 0
    latest_import: Optional[datetime] = None


class ImportStats(BaseModel):
    kind: str
    total_imported: int = 0
    by_source: List[SourceStats] = Field(default_factory=list)
    last_import_date: Optional[datetime] = None


class CleanupResult(BaseModel):
    kind: str
    duplicates_found: int = 0
    duplicates_removed: int = 0
    failed_ids: List[str] = Field(default_factory=list)


class ExportFilters(BaseModel):
    status: Optional[str] = None
    company: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    search: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None


class ExportOptions(BaseModel):
    filters: ExportFilters = Field(default_factory=ExportFilters)
    fields: Optional[List[str]] = None
    include_headers: bool = True
    header_style: Literal["display", "canonical"] = "display"
    date_format: str = EXPORT_DATE_FORMAT
    delimiter: str = Field(default=DEFAULT_DELIMITER, min_length=1, max_length=1)


class ExportResult(BaseModel):
    found: bool
    content: str = ""
    filename: Optional[str] = None
    count: int = 0
    fields: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class HealthResponse(BaseModel):
    ok: bool = True
