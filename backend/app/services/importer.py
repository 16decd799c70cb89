"""
Import orchestration shared by the spreadsheet upload and the JSON batch
endpoints: normalize, validate, then hand rows to the data-access layer in
the requested mode.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from app.services.cache import QueryCache
from app.services.normalization import RecordRow, prepare_import
from app.services.records import batch_upsert_records, update_existing_records

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 10


class ImportMode(str, enum.Enum):
    APPEND = "append"
    REPLACE = "replace"
    UPDATE = "update"


class ImportValidationError(ValueError):
    """Strict validation found row errors; nothing was written."""

    def __init__(self, errors: List[str], valid_count: int):
        super().__init__(f"{len(errors)} rows failed validation")
        self.errors = errors
        self.valid_count = valid_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "Data validation failed",
            "details": self.errors[:MAX_REPORTED_ERRORS],
            "totalErrors": len(self.errors),
            "validRecords": self.valid_count,
        }


class NoValidRowsError(ValueError):
    pass


@dataclass
class ImportSummary:
    imported: int
    total: int
    valid: int
    errors: int
    mode: ImportMode
    error_details: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imported": self.imported,
            "total": self.total,
            "valid": self.valid,
            "errors": self.errors,
            "errorDetails": self.error_details[:MAX_REPORTED_ERRORS],
            "mode": self.mode.value,
        }


def _chunks(rows: List[RecordRow], size: int) -> List[List[RecordRow]]:
    return [rows[i:i + size] for i in range(0, len(rows), size)]


def import_rows(db: Session, rows: Sequence[Mapping[str, Any]], mode: ImportMode = ImportMode.APPEND,
                validate: bool = False, batch_size: Optional[int] = None,
                first_row_number: int = 2, cache: Optional[QueryCache] = None) -> ImportSummary:
    """
    Import raw rows.

    With `validate`, any row error aborts before the database is touched.
    With `batch_size`, rows are written in chunks, each in its own
    transaction; in replace mode only the first chunk empties the table.
    """
    prepared = prepare_import(rows, validate=validate, first_row_number=first_row_number)

    if validate and prepared.errors:
        raise ImportValidationError(prepared.errors, len(prepared.valid_rows))
    if not prepared.valid_rows:
        raise NoValidRowsError("No valid records to import")

    valid_rows = prepared.valid_rows
    if batch_size and len(valid_rows) > batch_size:
        chunks = _chunks(valid_rows, batch_size)
    else:
        chunks = [valid_rows]

    imported = 0
    for index, chunk in enumerate(chunks):
        if mode == ImportMode.UPDATE:
            imported += update_existing_records(db, chunk, cache=cache)
        else:
            replace = mode == ImportMode.REPLACE and index == 0
            imported += batch_upsert_records(db, chunk, replace=replace, cache=cache)

    logger.info(
        f"Import finished: mode={mode.value} rows={len(rows)} valid={len(valid_rows)} "
        f"imported={imported} errors={len(prepared.errors)}"
    )
    return ImportSummary(
        imported=imported,
        total=len(rows),
        valid=len(valid_rows),
        errors=len(prepared.errors),
        mode=mode,
        error_details=prepared.errors,
    )
