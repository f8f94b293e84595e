from __future__ import annotations

import os
from dataclasses import dataclass

from . import rules


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _as_int(value: str | None, default: int) -> int:
    cleaned = str(value or "").strip()
    if not cleaned:
        return default
    try:
        parsed = int(cleaned)
    except ValueError:
        raise RuntimeError(f"Expected an integer setting, got {value!r}.")
    if parsed < 1:
        raise RuntimeError(f"Integer settings must be positive, got {parsed}.")
    return parsed


@dataclass(frozen=True)
class Settings:
    max_file_bytes: int = rules.MAX_FILE_BYTES
    max_rows: int = rules.MAX_DATA_ROWS
    contact_limit: int = rules.CONTACTS_PER_OWNER
    deal_limit: int = rules.DEALS_PER_OWNER
    default_batch_size: int = rules.DEFAULT_BATCH_SIZE
    import_source: str = rules.IMPORT_SOURCE_TAG
    log_level: str = "INFO"
    log_json: bool = False

    def capacity_for(self, kind: str) -> int:
        if kind == "deals":
            return self.deal_limit
        return self.contact_limit


def load_settings() -> Settings:
    return Settings(
        max_file_bytes=_as_int(os.getenv("BULK_RECORDS_MAX_FILE_BYTES"), rules.MAX_FILE_BYTES),
        max_rows=_as_int(os.getenv("BULK_RECORDS_MAX_ROWS"), rules.MAX_DATA_ROWS),
        contact_limit=_as_int(os.getenv("BULK_RECORDS_CONTACT_LIMIT"), rules.CONTACTS_PER_OWNER),
        deal_limit=_as_int(os.getenv("BULK_RECORDS_DEAL_LIMIT"), rules.DEALS_PER_OWNER),
        default_batch_size=_as_int(
            os.getenv("BULK_RECORDS_DEFAULT_BATCH_SIZE"), rules.DEFAULT_BATCH_SIZE
        ),
        import_source=os.getenv("BULK_RECORDS_IMPORT_SOURCE", "").strip() or rules.IMPORT_SOURCE_TAG,
        log_level=os.getenv("BULK_RECORDS_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        log_json=_as_bool(os.getenv("BULK_RECORDS_LOG_JSON"), default=False),
    )
