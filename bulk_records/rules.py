"""
Deterministic import/export rules.

This file exists to make limits and defaults explicit and enforceable.
"""

TARGET_ENCODING = "utf-8"
DEFAULT_DELIMITER = ","

MAX_FILE_BYTES = 5 * 1024 * 1024  # 5MB
MAX_DATA_ROWS = 1000

CONTACTS_PER_OWNER = 2000
DEALS_PER_OWNER = 5000

DEFAULT_BATCH_SIZE = 100
IMPORT_SOURCE_TAG = "csv_import"

EXPORT_LIST_SEPARATOR = "; "
EXPORT_DATE_FORMAT = "YYYY-MM-DD"
