from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import parse_query_time
from app.db.session import get_db
from app.services.records import get_stats, success_rate

router = APIRouter()


@router.get("")
def get_overview_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    """
    Totals for the records whose start time falls in the optional range.
    success_rate is a percentage of rows not in a failure category.
    """
    stats = get_stats(db, parse_query_time(start_date), parse_query_time(end_date))
    return {
        **stats,
        "success_rate": success_rate(stats["total_records"], stats["total_failures"]),
    }
