"""
Record Import Endpoints

- POST /import        multipart spreadsheet upload
- POST /import/batch  pre-parsed rows as JSON (used by the browser uploader
                      to send large sheets in slices)
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.api.deps import get_query_cache
from app.api.endpoints.auth import get_current_user
from app.core.config import settings
from app.db.session import get_db
from app.models.user import User
from app.services.cache import QueryCache
from app.services.importer import ImportMode, import_rows
from app.services.spreadsheet import is_supported_filename, read_rows

logger = logging.getLogger(__name__)

router = APIRouter()


class BatchImportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: List[Dict[str, Any]]
    mode: ImportMode = ImportMode.APPEND
    strict: bool = Field(False, alias="validate")


@router.post("")
def import_spreadsheet(
    file: UploadFile = File(...),
    mode: ImportMode = Form(ImportMode.APPEND),
    strict: bool = Form(False, alias="validate"),
    batch: bool = Form(False),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
) -> Any:
    """
    Import the first sheet of an Excel workbook.
    `validate` rejects the whole file on any row error; `batch` commits in
    chunks of IMPORT_BATCH_SIZE rows.
    """
    if not is_supported_filename(file.filename or ""):
        raise HTTPException(status_code=400, detail="Only Excel files (.xlsx, .xlsm) are supported")

    content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds the {settings.MAX_UPLOAD_BYTES} byte upload limit",
        )

    rows = read_rows(content)
    if not rows:
        raise HTTPException(status_code=400, detail="The Excel file contains no data")

    summary = import_rows(
        db, rows,
        mode=mode,
        validate=strict,
        batch_size=settings.IMPORT_BATCH_SIZE if batch else None,
        first_row_number=2,
        cache=cache,
    )
    logger.info(f"{user.username} imported {summary.imported} records from {file.filename}")

    return {
        **summary.to_dict(),
        "file": {"name": file.filename, "size": len(content)},
    }


@router.post("/batch")
def import_batch(
    req: BatchImportRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
) -> Any:
    """Import rows already parsed by the client. Row numbers in errors start at 1."""
    if not req.data:
        raise HTTPException(status_code=400, detail="data must be a non-empty array")

    summary = import_rows(
        db, req.data,
        mode=req.mode,
        validate=req.strict,
        first_row_number=1,
        cache=cache,
    )
    logger.info(f"{user.username} imported a batch of {summary.imported} records")
    return summary.to_dict()
