"""
Service facade wiring the pipeline together.

decode -> tokenize -> headers -> transform -> bulk validation -> import engine

Preview and validate-only runs stop after bulk validation and never touch
the store; exports and templates share the tokenizer's quoting rules.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .bulk import validate_bulk
from .config import Settings, load_settings
from .errors import BulkRecordsError, HeaderError, InternalError, UnknownKindError
from .exporter import Exporter
from .headers import validate_headers
from .importer import CancelToken, ImportEngine, OwnerLocks
from .models import (
    BulkValidation,
    CleanupResult,
    ExportOptions,
    ExportResult,
    HeaderReport,
    ImportOptions,
    ImportReport,
    ImportResults,
    ImportStats,
    ImportSummary,
)
from .schema import SCHEMAS, Entity, Schema
from .store import CapacityProvider, Clock, FixedCapacity, InMemoryRecordStore, RecordStore, SystemClock
from .templates import generate_template, template_filename
from .tokenizer import parse_content
from .transform import row_to_map, transform_row
from .upload import UploadCheck, check_upload, decode_upload

logger = logging.getLogger(__name__)

RawInput = Union[bytes, str]


def build_summary(validation: BulkValidation, results: Optional[ImportResults]) -> ImportSummary:
    summary = ImportSummary(
        total=validation.summary.total,
        valid=validation.summary.valid,
        invalid=validation.summary.invalid,
    )
    if results is not None:
        summary.imported = len(results.imported)
        summary.updated = len(results.updated)
        summary.skipped = len(results.skipped)
        summary.inserted_as_duplicate = len(results.inserted_as_duplicate)
        summary.failed = len(results.failed)
    return summary


class BulkRecordService:
    def __init__(
        self,
        stores: Mapping[str, RecordStore],
        settings: Optional[Settings] = None,
        capacity: Optional[Mapping[str, CapacityProvider]] = None,
        clock: Optional[Clock] = None,
        schemas: Optional[Mapping[str, Schema]] = None,
    ):
        self.settings = settings or load_settings()
        self.clock = clock or SystemClock()
        self.schemas: Dict[str, Schema] = dict(schemas or SCHEMAS)
        self.stores = dict(stores)
        capacity = dict(capacity or {})
        locks = OwnerLocks()

        self.engines: Dict[str, ImportEngine] = {}
        self.exporters: Dict[str, Exporter] = {}
        for kind, schema in self.schemas.items():
            store = self.stores[kind]
            provider = capacity.get(kind) or FixedCapacity(self.settings.capacity_for(kind))
            self.engines[kind] = ImportEngine(
                schema,
                store,
                provider,
                clock=self.clock,
                import_source=self.settings.import_source,
                locks=locks,
            )
            self.exporters[kind] = Exporter(schema, store, clock=self.clock)

    def schema_for(self, kind: str) -> Schema:
        schema = self.schemas.get(kind)
        if schema is None:
            raise UnknownKindError(
                f"Unknown record kind '{kind}'", {"supported": sorted(self.schemas)}
            )
        return schema

    def check_file(self, raw: RawInput) -> UploadCheck:
        data = raw.encode("utf-8") if isinstance(raw, str) else raw
        return check_upload(data, self.settings.max_file_bytes, self.settings.max_rows)

    def parse(
        self, kind: str, raw: RawInput, options: ImportOptions
    ) -> Tuple[Schema, HeaderReport, List[Entity], str]:
        """Decode, tokenize, check headers and transform every data row."""
        schema = self.schema_for(kind)
        data = raw.encode("utf-8") if isinstance(raw, str) else raw
        text, encoding = decode_upload(data, self.settings.max_file_bytes, self.settings.max_rows)

        parsed = parse_content(text, delimiter=options.delimiter, skip_empty_rows=options.skip_empty_rows)
        report = validate_headers(parsed.headers, schema)
        if not report.is_valid:
            raise HeaderError("Invalid CSV headers", report)

        entities = [
            transform_row(row_to_map(parsed.headers, cells), report.valid_headers, schema)
            for cells in parsed.rows
        ]
        return schema, report, entities, encoding

    def preview(self, owner_id: str, kind: str, raw: RawInput, options: Optional[ImportOptions] = None) -> ImportReport:
        options = options or ImportOptions()
        try:
            schema, headers, entities, encoding = self.parse(kind, raw, options)
            validation = validate_bulk(entities, schema)
        except BulkRecordsError:
            raise
        except Exception as exc:
            logger.exception("Import preview failed owner=%s kind=%s", owner_id, kind)
            raise InternalError(f"Failed to preview {kind} import") from exc

        logger.info(
            "Import preview owner=%s kind=%s total=%s valid=%s invalid=%s",
            owner_id, kind, validation.summary.total, validation.summary.valid, validation.summary.invalid,
        )
        return ImportReport(
            mode="preview",
            kind=kind,
            encoding=encoding,
            headers=headers,
            summary=build_summary(validation, None),
            validation=validation,
        )

    def import_file(
        self,
        owner_id: str,
        kind: str,
        raw: RawInput,
        options: Optional[ImportOptions] = None,
        cancel: Optional[CancelToken] = None,
    ) -> ImportReport:
        options = options or ImportOptions(batch_size=self.settings.default_batch_size)
        try:
            schema, headers, entities, encoding = self.parse(kind, raw, options)
            validation = validate_bulk(entities, schema)

            if options.validate_only:
                return ImportReport(
                    mode="validate_only",
                    kind=kind,
                    encoding=encoding,
                    headers=headers,
                    summary=build_summary(validation, None),
                    validation=validation,
                )

            results = self.engines[kind].import_validated(
                owner_id, validation.valid_entities, options, cancel=cancel
            )
        except BulkRecordsError:
            raise
        except Exception as exc:
            logger.exception("Import failed owner=%s kind=%s", owner_id, kind)
            raise InternalError(f"Failed to import {kind} from CSV") from exc

        summary = build_summary(validation, results)
        logger.info(
            "Import completed owner=%s kind=%s summary=%s", owner_id, kind, summary.model_dump()
        )
        return ImportReport(
            mode="import",
            kind=kind,
            encoding=encoding,
            headers=headers,
            summary=summary,
            validation=validation,
            results=results,
        )

    def export(self, owner_id: str, kind: str, options: Optional[ExportOptions] = None) -> ExportResult:
        self.schema_for(kind)
        return self.exporters[kind].export(owner_id, options)

    def import_stats(self, owner_id: str, kind: str) -> ImportStats:
        self.schema_for(kind)
        stats = self.engines[kind].import_stats(owner_id)
        logger.info("Import stats retrieved owner=%s kind=%s total=%s", owner_id, kind, stats.total_imported)
        return stats

    def cleanup_duplicates(self, owner_id: str, kind: str) -> CleanupResult:
        self.schema_for(kind)
        return self.engines[kind].cleanup_duplicates(owner_id)

    def template(self, kind: str, include_examples: bool = True) -> Tuple[str, str]:
        schema = self.schema_for(kind)
        return generate_template(schema, include_examples), template_filename(schema)


def build_in_memory_service(settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> BulkRecordService:
    clock = clock or SystemClock()
    stores = {kind: InMemoryRecordStore(clock) for kind in SCHEMAS}
    return BulkRecordService(stores, settings=settings, clock=clock)
