from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_query_cache, parse_query_time, record_query_options
from app.api.endpoints.auth import get_current_user
from app.core.config import settings
from app.db.session import get_db
from app.models.user import User
from app.services.cache import QueryCache
from app.services.normalization import parse_file_time
from app.services.records import (
    CHART_FIELDS,
    QueryOptions,
    delete_record,
    get_chart_data,
    get_record,
    get_records,
    update_record,
)

router = APIRouter()


class RecordUpdate(BaseModel):
    start_time: str = ""
    task_result: str = ""
    customer: Optional[str] = None
    satellite_name: Optional[str] = None
    station_name: Optional[str] = None
    station_id: Optional[str] = None
    task_type: Optional[str] = None


@router.get("")
def read_records(
    options: QueryOptions = Depends(record_query_options),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Records ordered by start time, newest first. Without `limit` every
    matching row is returned on page 1.
    """
    result = get_records(db, options, cache=cache)
    return {
        "records": result.records,
        "pagination": result.pagination(),
    }


@router.get("/chart-data")
def read_chart_data(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    limit: int = Query(settings.CHART_DEFAULT_LIMIT, ge=1),
    fields: str = Query("basic"),
    db: Session = Depends(get_db),
):
    """
    Trimmed rows for dashboard charts. Without both dates only the last
    CHART_DEFAULT_DAYS days are read; a date-only end includes that whole day.
    """
    if fields not in CHART_FIELDS:
        raise HTTPException(status_code=400, detail=f"fields must be one of {sorted(CHART_FIELDS)}")

    actual_limit = min(limit, settings.CHART_MAX_LIMIT)
    start = parse_query_time(start_date)
    end = parse_query_time(end_date)
    if end is not None and ":" not in end_date:
        end = end.replace(hour=23, minute=59, second=59)

    data = get_chart_data(
        db, start, end,
        limit=actual_limit,
        fields=fields,
        default_days=settings.CHART_DEFAULT_DAYS,
    )
    return {
        "records": data.records,
        "meta": {
            "total": data.total,
            "returned": len(data.records),
            "limit": actual_limit,
            "earliest_time": data.earliest_time,
            "latest_time": data.latest_time,
            "fields": fields,
            "hasTimeRange": bool(start and end),
        },
    }


@router.get("/{plan_id}")
def read_record(plan_id: str, db: Session = Depends(get_db)):
    return get_record(db, plan_id)


@router.put("/{plan_id}")
def edit_record(
    plan_id: str,
    body: RecordUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    if not body.start_time.strip() or not body.task_result.strip():
        raise HTTPException(status_code=400, detail="start_time and task_result are required")

    start_time: Optional[datetime] = parse_file_time(body.start_time)
    if start_time is None:
        raise HTTPException(status_code=400, detail=f"Invalid time format: {body.start_time!r}")

    changes = {"start_time": start_time, "task_result": body.task_result.strip()}
    for name in ("customer", "satellite_name", "station_name", "station_id", "task_type"):
        value = getattr(body, name)
        if value is not None and value.strip():
            changes[name] = value.strip()

    return update_record(db, plan_id, changes, cache=cache)


@router.delete("/{plan_id}")
def remove_record(
    plan_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    deleted = delete_record(db, plan_id, cache=cache)
    return {**deleted, "operator": user.username}
