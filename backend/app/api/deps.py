from datetime import datetime
from typing import Optional

from fastapi import Query, Request

from app.services.cache import QueryCache
from app.services.normalization import parse_file_time
from app.services.records import QueryOptions


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def parse_query_time(value: Optional[str]) -> Optional[datetime]:
    """Query-string times use the same wall-clock parsing as imports; junk is ignored."""
    if not value:
        return None
    return parse_file_time(value)


def record_query_options(
    page: int = Query(1),
    limit: Optional[int] = Query(None, description="Page size; omit for all rows"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    task_result: Optional[str] = Query(None, alias="taskResult"),
    plan_id: Optional[str] = Query(None, alias="planId"),
    customer: Optional[str] = Query(None),
    satellite_name: Optional[str] = Query(None, alias="satelliteName"),
    station_name: Optional[str] = Query(None, alias="stationName"),
    station_id: Optional[str] = Query(None, alias="stationId"),
    task_type: Optional[str] = Query(None, alias="taskType"),
) -> QueryOptions:
    return QueryOptions(
        page=max(1, page),
        limit=limit if limit and limit > 0 else None,
        start_date=parse_query_time(start_date),
        end_date=parse_query_time(end_date),
        task_result=task_result,
        plan_id=plan_id,
        customer=customer,
        satellite_name=satellite_name,
        station_name=station_name,
        station_id=station_id,
        task_type=task_type,
    )
