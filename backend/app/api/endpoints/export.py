import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from app.api.deps import record_query_options
from app.api.endpoints.auth import get_current_user
from app.core.config import settings
from app.db.session import get_db
from app.models.user import User
from app.services.records import QueryOptions, get_records
from app.services.spreadsheet import XLSX_MEDIA_TYPE, write_rows

logger = logging.getLogger(__name__)

router = APIRouter()

DISPLAY_TIME_FORMAT = "%Y/%m/%d %H:%M:%S"
EXPORT_COLUMNS = ("计划ID", "开始时间", "任务结果状态", "创建时间")
EXPORT_COLUMN_WIDTHS = (20, 20, 25, 20)
EXPORT_SHEET_TITLE = "卫星任务数据"


def format_display_time(value: Optional[datetime]) -> str:
    return value.strftime(DISPLAY_TIME_FORMAT) if value else ""


def _attachment(extension: str) -> dict:
    filename = f"satellite-data-{date.today().isoformat()}.{extension}"
    return {"Content-Disposition": f"attachment; filename={filename}"}


@router.get("")
def export_records(
    export_format: str = Query("xlsx", alias="format", pattern="^(xlsx|json)$"),
    options: QueryOptions = Depends(record_query_options),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Download matching records (at most EXPORT_LIMIT) as an Excel sheet or JSON."""
    options = options.model_copy(update={"page": 1, "limit": settings.EXPORT_LIMIT})
    result = get_records(db, options)

    if not result.records:
        raise HTTPException(status_code=404, detail="No records to export")

    rows = [
        {
            "计划ID": record["plan_id"],
            "开始时间": format_display_time(record["start_time"]),
            "任务结果状态": record["task_result"],
            "创建时间": format_display_time(record["created_at"]),
        }
        for record in result.records
    ]
    logger.info(f"{user.username} exported {len(rows)} records as {export_format}")

    if export_format == "json":
        return JSONResponse(
            content={
                "data": rows,
                "total": result.total,
                "exportTime": datetime.utcnow().isoformat() + "Z",
            },
            headers=_attachment("json"),
        )

    content = write_rows(rows, EXPORT_COLUMNS, EXPORT_SHEET_TITLE, widths=EXPORT_COLUMN_WIDTHS)
    return Response(content=content, media_type=XLSX_MEDIA_TYPE, headers=_attachment("xlsx"))
