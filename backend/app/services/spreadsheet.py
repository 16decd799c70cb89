"""
Spreadsheet reading and writing (openpyxl).

Uploads are read from the first worksheet: the first non-empty row is the
header, every following non-empty row becomes a dict keyed by header text,
with blank cells as "". Exports are written as a single styled sheet.
"""

import io
import logging
from typing import Any, Dict, Iterable, List, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xlsx", ".xlsm")
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class SpreadsheetError(ValueError):
    pass


def is_supported_filename(filename: str) -> bool:
    return bool(filename) and filename.lower().endswith(SUPPORTED_EXTENSIONS)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _sheet_rows(sheet) -> List[Dict[str, Any]]:
    headers: List[str] = []
    rows: List[Dict[str, Any]] = []
    for values in sheet.iter_rows(values_only=True):
        if all(_is_blank(v) for v in values):
            continue
        if not headers:
            headers = [str(v).strip() if v is not None else "" for v in values]
            continue
        row = {}
        for header, value in zip(headers, values):
            if not header:
                continue
            row[header] = "" if value is None else value
        rows.append(row)
    return rows


def read_rows(content: bytes) -> List[Dict[str, Any]]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise SpreadsheetError(f"Could not read the Excel file: {e}") from e

    # Read-only workbooks parse sheet XML lazily, so a damaged sheet fails here
    try:
        sheet = workbook.worksheets[0]
        rows = _sheet_rows(sheet)
    except Exception as e:
        raise SpreadsheetError(f"Could not read the Excel sheet: {e}") from e
    finally:
        workbook.close()

    logger.info(f"Read {len(rows)} rows from sheet '{sheet.title}'")
    return rows


def write_rows(rows: Iterable[Dict[str, Any]], columns: Sequence[str], sheet_title: str,
               widths: Sequence[int] = ()) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title
    sheet.append(list(columns))
    for row in rows:
        sheet.append([row.get(column, "") for column in columns])

    for index, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
