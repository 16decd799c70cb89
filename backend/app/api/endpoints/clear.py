import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_query_cache
from app.api.endpoints.auth import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.services.cache import QueryCache
from app.services.records import clear_records

logger = logging.getLogger(__name__)

router = APIRouter()


@router.delete("")
def clear_all_records(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """Empty the records table and restart its id sequence. Refused when already empty."""
    result = clear_records(db, cache=cache)
    logger.warning(f"User {user.username} cleared all records ({result.deleted_count} deleted)")
    return {
        "deletedCount": result.deleted_count,
        "remainingCount": result.remaining_count,
        "operator": user.username,
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }
