"""
Import Row Normalization

Turns loosely-shaped spreadsheet / JSON rows into canonical record rows.

Column headers arrive in several spellings (Chinese labels from the
operations spreadsheets, snake_case, English titles, camelCase). Each
logical field has a closed alias list; anything else is only kept in the
raw payload.

Times are treated as Beijing wall-clock values and are never shifted
between time zones:
- spreadsheet serial day counts: (value - 25569) days after 1970-01-01
- strings: parsed literally, any UTC offset suffix is discarded
- date/datetime objects: taken as-is with tzinfo dropped
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Day 25569 of the spreadsheet calendar is 1970-01-01
SERIAL_EPOCH_OFFSET = 25569
MS_PER_DAY = 86400000
UNIX_EPOCH = datetime(1970, 1, 1)

FIELD_ALIASES: Dict[str, tuple] = {
    "plan_id": ("计划ID", "plan_id", "Plan ID", "planId"),
    "start_time": ("开始时间", "start_time", "Start Time", "startTime"),
    "task_result": ("任务结果状态", "task_result", "Task Result", "taskResult"),
    "customer": ("所属客户", "customer", "Customer"),
    "satellite_name": ("卫星名称", "satellite_name", "Satellite Name", "satelliteName"),
    "station_name": ("测站名称", "station_name", "Station Name", "stationName"),
    "station_id": ("测站ID", "station_id", "Station ID", "stationId"),
    "task_type": ("任务类型", "task_type", "Task Type", "taskType"),
}

FIELD_DEFAULTS: Dict[str, str] = {
    "customer": "未知客户",
    "satellite_name": "未知卫星",
    "station_name": "未知测站",
    "station_id": "未知ID",
    "task_type": "未知类型",
    "task_result": "未知状态",
}

_TIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)
_OFFSET_SUFFIX = re.compile(r"^(.*\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?)\s*(?:Z|[+-]\d{2}:?\d{2})$")


class RecordRow(BaseModel):
    plan_id: str
    start_time: Optional[datetime] = None
    task_result: str = FIELD_DEFAULTS["task_result"]
    customer: str = FIELD_DEFAULTS["customer"]
    satellite_name: str = FIELD_DEFAULTS["satellite_name"]
    station_name: str = FIELD_DEFAULTS["station_name"]
    station_id: str = FIELD_DEFAULTS["station_id"]
    task_type: str = FIELD_DEFAULTS["task_type"]
    raw_data: Dict[str, Any] = {}


class RowValidationError(ValueError):
    def __init__(self, row_number: int, message: str):
        super().__init__(f"Row {row_number}: {message}")
        self.row_number = row_number


@dataclass
class ImportPreparation:
    valid_rows: List[RecordRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


# ── Time Parsing ──

def serial_to_datetime(value: float) -> datetime:
    """Convert a spreadsheet serial day count to a naive wall-clock datetime."""
    ms = round((value - SERIAL_EPOCH_OFFSET) * MS_PER_DAY)
    return UNIX_EPOCH + timedelta(milliseconds=ms)


def _parse_time_string(text: str) -> Optional[datetime]:
    text = text.strip()
    if not text:
        return None

    text = text.replace("年", "-").replace("月", "-").replace("日", " ")
    text = text.replace("/", "-").replace("T", " ")
    match = _OFFSET_SUFFIX.match(text)
    if match:
        text = match.group(1)
    text = " ".join(text.split())

    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_file_time(value: Any) -> Optional[datetime]:
    """
    Parse a start time cell. Returns None for empty or unparsable values;
    callers decide whether that is an error.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value.replace(tzinfo=None)

    if isinstance(value, date):
        return datetime.combine(value, time())

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        try:
            return serial_to_datetime(value)
        except OverflowError:
            return None

    if isinstance(value, str):
        return _parse_time_string(value)

    return None


# ── Row Normalization ──

def _pick(raw: Mapping[str, Any], name: str) -> Any:
    for alias in FIELD_ALIASES[name]:
        value = raw.get(alias)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _json_safe(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return json.loads(json.dumps(dict(raw), default=str, ensure_ascii=False))


def normalize_row(raw: Mapping[str, Any], validate: bool = False, row_number: int = 1) -> RecordRow:
    """
    Build a canonical row from a raw one.

    With `validate`, a missing plan id, start time or task result, or an
    unparsable start time raises RowValidationError. Without it, missing
    descriptive fields fall back to the 未知 defaults and a bad start time
    becomes None.
    """
    plan_id = _as_text(_pick(raw, "plan_id"))
    raw_time = _pick(raw, "start_time")
    task_result = _as_text(_pick(raw, "task_result"))

    if validate:
        if not plan_id:
            raise RowValidationError(row_number, "plan ID is required")
        if raw_time is None:
            raise RowValidationError(row_number, "start time is required")
        if not task_result:
            raise RowValidationError(row_number, "task result is required")

    start_time = parse_file_time(raw_time) if raw_time is not None else None
    if start_time is None and raw_time is not None:
        if validate:
            raise RowValidationError(row_number, f"invalid time format {raw_time!r}")
        logger.debug(f"Row {row_number}: unparsable start time {raw_time!r}, leaving empty")

    values = {
        name: _as_text(_pick(raw, name)) or default
        for name, default in FIELD_DEFAULTS.items()
    }
    values["task_result"] = task_result or FIELD_DEFAULTS["task_result"]

    return RecordRow(
        plan_id=plan_id,
        start_time=start_time,
        raw_data=_json_safe(raw),
        **values,
    )


def prepare_import(rows: Iterable[Mapping[str, Any]], validate: bool = False,
                   first_row_number: int = 2) -> ImportPreparation:
    """
    Normalize a batch. Spreadsheet rows start at 2 (row 1 is the header);
    JSON batches pass first_row_number=1.

    Rows without a plan id cannot be keyed and are never kept, even when
    validation is off; they are reported in `errors` either way.
    """
    result = ImportPreparation()
    for offset, raw in enumerate(rows):
        row_number = first_row_number + offset
        try:
            row = normalize_row(raw, validate=validate, row_number=row_number)
        except RowValidationError as e:
            result.errors.append(str(e))
            continue

        if not row.plan_id:
            logger.warning(f"Skipping row {row_number}: empty plan id")
            result.errors.append(f"Row {row_number}: empty plan ID, skipped")
            continue

        result.valid_rows.append(row)
    return result
