from typing import List, Optional

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from .config import load_settings
from .errors import BulkRecordsError
from .logging_setup import setup_logging
from .models import (
    CleanupResult,
    ExportFilters,
    ExportOptions,
    HealthResponse,
    ImportOptions,
    ImportReport,
    ImportStats,
)
from .service import build_in_memory_service
from .upload import UploadCheck

settings = load_settings()
setup_logging(settings)

app = FastAPI(
    title="bulk-records",
    description="CSV import and export for contact and deal records",
    version="0.1.0",
)

service = build_in_memory_service(settings)


@app.exception_handler(BulkRecordsError)
async def bulk_records_error_handler(request: Request, exc: BulkRecordsError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": {"code": exc.code, "message": exc.message, "details": exc.details}},
    )


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def _read_csv(file: UploadFile) -> bytes:
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=422, detail="Only CSV files are supported")
    return await file.read()


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@app.post("/imports/check", response_model=UploadCheck)
async def check_import_file(file: UploadFile = File(...)):
    raw = await _read_csv(file)
    return service.check_file(raw)


@app.post("/imports/{kind}/preview", response_model=ImportReport)
async def preview_import(
    kind: str,
    owner_id: str = Query(...),
    delimiter: str = Query(",", min_length=1, max_length=1),
    skip_empty_rows: bool = True,
    file: UploadFile = File(...),
):
    raw = await _read_csv(file)
    options = ImportOptions(delimiter=delimiter, skip_empty_rows=skip_empty_rows)
    return service.preview(owner_id, kind, raw, options)


@app.post("/imports/{kind}", response_model=ImportReport)
async def import_records(
    kind: str,
    owner_id: str = Query(...),
    skip_duplicates: bool = True,
    update_existing: bool = False,
    validate_only: bool = False,
    batch_size: Optional[int] = Query(None, ge=1),
    delimiter: str = Query(",", min_length=1, max_length=1),
    skip_empty_rows: bool = True,
    file: UploadFile = File(...),
):
    raw = await _read_csv(file)
    options = ImportOptions(
        skip_duplicates=skip_duplicates,
        update_existing=update_existing,
        validate_only=validate_only,
        batch_size=batch_size or service.settings.default_batch_size,
        delimiter=delimiter,
        skip_empty_rows=skip_empty_rows,
    )
    return service.import_file(owner_id, kind, raw, options)


@app.get("/imports/{kind}/stats", response_model=ImportStats)
def import_stats(kind: str, owner_id: str = Query(...)):
    return service.import_stats(owner_id, kind)


@app.delete("/imports/{kind}/duplicates", response_model=CleanupResult)
def cleanup_duplicates(kind: str, owner_id: str = Query(...)):
    return service.cleanup_duplicates(owner_id, kind)


@app.get("/exports/{kind}")
def export_records(
    kind: str,
    owner_id: str = Query(...),
    fields: Optional[List[str]] = Query(None),
    status: Optional[str] = None,
    company: Optional[str] = None,
    tags: Optional[List[str]] = Query(None),
    search: Optional[str] = None,
    include_headers: bool = True,
    header_style: str = Query("display", pattern="^(display|canonical)$"),
    date_format: str = "YYYY-MM-DD",
    delimiter: str = Query(",", min_length=1, max_length=1),
):
    options = ExportOptions(
        filters=ExportFilters(status=status, company=company, tags=tags or [], search=search),
        fields=fields,
        include_headers=include_headers,
        header_style=header_style,
        date_format=date_format,
        delimiter=delimiter,
    )
    result = service.export(owner_id, kind, options)
    if not result.found:
        raise HTTPException(status_code=404, detail=result.error)
    return _csv_response(result.content, result.filename)


@app.get("/templates/{kind}")
def download_template(kind: str, include_examples: bool = True):
    content, filename = service.template(kind, include_examples)
    return _csv_response(content, filename)
