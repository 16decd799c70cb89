"""
Satellite Record Data Access

Filtered/paginated listing, aggregate statistics, batch upsert and
clear/delete operations on the satellite_records table.

Listing results go through an injected QueryCache; every write clears it
so readers observe the write on their next call. Pages are copied in and
out of the cache, so callers may modify what they get back.
"""

import copy
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy import case, delete, distinct, func, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from app.models.satellite_record import SatelliteRecord
from app.services.cache import QueryCache, make_cache_key
from app.services.normalization import RecordRow

logger = logging.getLogger(__name__)

SUCCESS_RESULT = "正常"
FAILURE_RESULTS = (
    "因设备故障失败",
    "因操作失误失败",
    "未跟踪",
    "因卫星方原因失败",
    "任务成功数据处理失误",
)

MUTABLE_FIELDS = (
    "customer",
    "satellite_name",
    "station_name",
    "station_id",
    "start_time",
    "task_type",
    "task_result",
    "raw_data",
)

CHART_FIELDS = {
    "minimal": ("plan_id", "start_time", "task_result"),
    "chart": ("plan_id", "start_time", "task_result", "task_type", "customer",
              "satellite_name", "station_name"),
    "basic": ("plan_id", "start_time", "task_result", "task_type", "customer",
              "satellite_name", "station_name", "station_id"),
}


class RecordNotFoundError(LookupError):
    pass


class EmptyTableError(RuntimeError):
    pass


class QueryOptions(BaseModel):
    page: int = Field(1, ge=1)
    limit: Optional[int] = Field(None, ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    task_result: Optional[str] = None
    plan_id: Optional[str] = None
    customer: Optional[str] = None
    satellite_name: Optional[str] = None
    station_name: Optional[str] = None
    station_id: Optional[str] = None
    task_type: Optional[str] = None


@dataclass
class RecordPage:
    records: List[Dict[str, Any]]
    total: int
    page: int
    limit: Optional[int]
    total_pages: int

    def pagination(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }


@dataclass
class ClearResult:
    deleted_count: int
    remaining_count: int


@dataclass
class ChartData:
    records: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0
    earliest_time: Optional[datetime] = None
    latest_time: Optional[datetime] = None


# ── Result Categories ──

def categorize_result(task_result: Optional[str]) -> str:
    if task_result in FAILURE_RESULTS:
        return "failure"
    if task_result == SUCCESS_RESULT:
        return "success"
    return "unknown"


def success_rate(total: int, failures: int) -> float:
    """Percentage of non-failed rows, 0 when there are no rows at all."""
    if not total:
        return 0
    return round((total - failures) / total * 100, 2)


def record_to_dict(record: SatelliteRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "plan_id": record.plan_id,
        "customer": record.customer,
        "satellite_name": record.satellite_name,
        "station_name": record.station_name,
        "station_id": record.station_id,
        "start_time": record.start_time,
        "task_type": record.task_type,
        "task_result": record.task_result,
        "result_category": categorize_result(record.task_result),
        "raw_data": record.raw_data,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


# ── Query Builder ──

def build_record_filters(options: QueryOptions) -> list:
    """
    One predicate per present option, always in the same order:
    time range first, then the equality filters.
    """
    conditions = []
    if options.start_date is not None:
        conditions.append(SatelliteRecord.start_time >= options.start_date)
    if options.end_date is not None:
        conditions.append(SatelliteRecord.start_time <= options.end_date)

    equality_filters = (
        (SatelliteRecord.task_result, options.task_result),
        (SatelliteRecord.plan_id, options.plan_id),
        (SatelliteRecord.customer, options.customer),
        (SatelliteRecord.satellite_name, options.satellite_name),
        (SatelliteRecord.station_name, options.station_name),
        (SatelliteRecord.station_id, options.station_id),
        (SatelliteRecord.task_type, options.task_type),
    )
    for column, value in equality_filters:
        if value:
            conditions.append(column == value)
    return conditions


def get_records(db: Session, options: QueryOptions, cache: Optional[QueryCache] = None) -> RecordPage:
    cache_key = make_cache_key(options.model_dump())
    if cache is not None:
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug("Serving record page from cache")
            return copy.deepcopy(cached)

    conditions = build_record_filters(options)

    total = db.query(func.count(SatelliteRecord.plan_id)).filter(*conditions).scalar() or 0

    query = (
        db.query(SatelliteRecord)
        .filter(*conditions)
        .order_by(SatelliteRecord.start_time.desc(), SatelliteRecord.plan_id)
    )
    if options.limit is not None:
        query = query.offset((options.page - 1) * options.limit).limit(options.limit)
        total_pages = math.ceil(total / options.limit)
    else:
        total_pages = 1 if total else 0

    if options.limit is None and options.page > 1:
        records = []
    else:
        records = [record_to_dict(r) for r in query.all()]

    result = RecordPage(
        records=records,
        total=total,
        page=options.page,
        limit=options.limit,
        total_pages=total_pages,
    )

    if cache is not None:
        cache.set(cache_key, copy.deepcopy(result))
    return result


def get_stats(db: Session, start_date: Optional[datetime] = None,
              end_date: Optional[datetime] = None) -> Dict[str, Any]:
    conditions = build_record_filters(QueryOptions(start_date=start_date, end_date=end_date))

    row = db.query(
        func.count(distinct(SatelliteRecord.plan_id)).label("total_plans"),
        func.count(SatelliteRecord.plan_id).label("total_records"),
        func.count(case((SatelliteRecord.task_result.in_(FAILURE_RESULTS), 1))).label("total_failures"),
        func.min(SatelliteRecord.start_time).label("earliest_time"),
        func.max(SatelliteRecord.start_time).label("latest_time"),
    ).filter(*conditions).one()

    return {
        "total_plans": int(row.total_plans or 0),
        "total_records": int(row.total_records or 0),
        "total_failures": int(row.total_failures or 0),
        "earliest_time": row.earliest_time,
        "latest_time": row.latest_time,
    }


def get_chart_data(db: Session, start_date: Optional[datetime], end_date: Optional[datetime],
                   limit: int, fields: str = "basic", now: Optional[datetime] = None,
                   default_days: int = 30) -> ChartData:
    """
    Lightweight rows for the dashboard charts. Without a complete time range
    only the last `default_days` days are read.
    """
    columns = CHART_FIELDS.get(fields, CHART_FIELDS["basic"])

    if start_date is None or end_date is None:
        since = (now or datetime.now()) - timedelta(days=default_days)
        options = QueryOptions(start_date=since)
    else:
        options = QueryOptions(start_date=start_date, end_date=end_date)
    conditions = build_record_filters(options)

    rows = (
        db.query(*[getattr(SatelliteRecord, name) for name in columns])
        .filter(*conditions)
        .order_by(SatelliteRecord.start_time.desc())
        .limit(limit)
        .all()
    )

    summary = db.query(
        func.min(SatelliteRecord.start_time),
        func.max(SatelliteRecord.start_time),
        func.count(SatelliteRecord.plan_id),
    ).filter(*conditions).one()

    records = []
    for row in rows:
        item = {name: getattr(row, name) for name in columns}
        start = item.get("start_time")
        item["timestamp"] = int((start - datetime(1970, 1, 1)).total_seconds() * 1000) if start else None
        records.append(item)

    return ChartData(
        records=records,
        total=int(summary[2] or 0),
        earliest_time=summary[0],
        latest_time=summary[1],
    )


# ── Single Records ──

def _get_or_raise(db: Session, plan_id: str) -> SatelliteRecord:
    record = db.get(SatelliteRecord, plan_id)
    if record is None:
        raise RecordNotFoundError(f"Record {plan_id!r} not found")
    return record


def get_record(db: Session, plan_id: str) -> Dict[str, Any]:
    return record_to_dict(_get_or_raise(db, plan_id))


def update_record(db: Session, plan_id: str, changes: Dict[str, Any],
                  cache: Optional[QueryCache] = None) -> Dict[str, Any]:
    record = _get_or_raise(db, plan_id)
    for name, value in changes.items():
        if name not in MUTABLE_FIELDS:
            raise ValueError(f"Field {name!r} cannot be updated")
        setattr(record, name, value)
    record.updated_at = datetime.now()
    db.commit()
    db.refresh(record)
    if cache is not None:
        cache.clear()
    return record_to_dict(record)


def delete_record(db: Session, plan_id: str, cache: Optional[QueryCache] = None) -> Dict[str, Any]:
    record = _get_or_raise(db, plan_id)
    deleted = {"id": record.id, "plan_id": record.plan_id}
    db.delete(record)
    db.commit()
    if cache is not None:
        cache.clear()
    logger.info(f"Deleted record {plan_id}")
    return deleted


# ── Batch Writes ──

def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"Upsert is not supported on {dialect}")


def _truncate(db: Session) -> None:
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text("TRUNCATE TABLE satellite_records RESTART IDENTITY"))
    else:
        db.execute(delete(SatelliteRecord))


def count_records(db: Session) -> int:
    return db.query(func.count(SatelliteRecord.plan_id)).scalar() or 0


def _write_rows(db: Session, rows: Iterable[RecordRow], build_statement: Callable,
                require_match: bool, replace: bool = False) -> int:
    """
    Run one statement per row inside a single transaction.

    Each row gets its own SAVEPOINT; a data or constraint failure rolls back
    only that row. Anything else aborts and rolls back the whole batch.
    """
    written = 0
    try:
        if replace:
            _truncate(db)
        for row in rows:
            savepoint = db.begin_nested()
            try:
                result = db.execute(build_statement(row))
            except (IntegrityError, DataError) as e:
                savepoint.rollback()
                logger.warning(f"Skipping row {row.plan_id!r}: {getattr(e, 'orig', e)}")
                continue
            savepoint.commit()
            if require_match and not result.rowcount:
                continue
            written += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    return written


def batch_upsert_records(db: Session, rows: Iterable[RecordRow], replace: bool = False,
                         cache: Optional[QueryCache] = None) -> int:
    """
    Insert or update every row by plan_id; returns how many succeeded.
    With `replace`, the table is emptied first in the same transaction.
    """
    insert = _dialect_insert(db)
    table = SatelliteRecord.__table__

    def build_statement(row: RecordRow):
        now = datetime.now()
        values = {name: getattr(row, name) for name in MUTABLE_FIELDS}
        stmt = insert(table).values(plan_id=row.plan_id, created_at=now, updated_at=now, **values)
        assignments = {name: stmt.excluded[name] for name in MUTABLE_FIELDS}
        assignments["updated_at"] = now
        return stmt.on_conflict_do_update(index_elements=["plan_id"], set_=assignments)

    try:
        count = _write_rows(db, rows, build_statement, require_match=False, replace=replace)
    finally:
        if cache is not None:
            cache.clear()
    logger.info(f"Upserted {count} satellite records")
    return count


def update_existing_records(db: Session, rows: Iterable[RecordRow],
                            cache: Optional[QueryCache] = None) -> int:
    """Update rows whose plan_id already exists; unknown plan ids are skipped."""
    table = SatelliteRecord.__table__

    def build_statement(row: RecordRow):
        values = {name: getattr(row, name) for name in MUTABLE_FIELDS}
        return (
            update(table)
            .where(table.c.plan_id == row.plan_id)
            .values(updated_at=datetime.now(), **values)
        )

    try:
        count = _write_rows(db, rows, build_statement, require_match=True)
    finally:
        if cache is not None:
            cache.clear()
    logger.info(f"Updated {count} existing satellite records")
    return count


def clear_records(db: Session, cache: Optional[QueryCache] = None) -> ClearResult:
    total_before = count_records(db)
    if total_before == 0:
        raise EmptyTableError("No records to clear")

    try:
        _truncate(db)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        if cache is not None:
            cache.clear()

    remaining = count_records(db)
    if remaining != 0:
        raise RuntimeError("Records remained after clearing the table")
    return ClearResult(deleted_count=total_before, remaining_count=remaining)
