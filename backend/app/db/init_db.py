"""
Database bootstrap.

Creates the tables, the summary view and the default admin account. Safe to
call any number of times; the first successful run per engine does the work.
"""

import logging
import threading

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import hash_password
from app.db.base import Base
from app.models.user import User
from app.services.records import FAILURE_RESULTS, SUCCESS_RESULT

logger = logging.getLogger(__name__)

SUMMARY_VIEW = "v_satellite_records_summary"


def _summary_view_sql(dialect: str) -> str:
    failures = ", ".join(f"'{value}'" for value in FAILURE_RESULTS)
    create = "CREATE OR REPLACE VIEW" if dialect == "postgresql" else "CREATE VIEW IF NOT EXISTS"
    return f"""
        {create} {SUMMARY_VIEW} AS
        SELECT
            plan_id, customer, satellite_name, station_name, station_id,
            start_time, task_type, task_result,
            CASE
                WHEN task_result IN ({failures}) THEN 'failure'
                WHEN task_result = '{SUCCESS_RESULT}' THEN 'success'
                ELSE 'unknown'
            END AS result_category,
            created_at, updated_at
        FROM satellite_records
    """


def create_default_user(db: Session) -> bool:
    """Seed the admin account when the users table is empty."""
    if db.query(User.id).first() is not None:
        return False

    db.add(User(
        username=settings.DEFAULT_ADMIN_USERNAME,
        password_hash=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
        role="admin",
    ))
    db.commit()
    logger.info(f"Created default admin user '{settings.DEFAULT_ADMIN_USERNAME}'")
    return True


class Initializer:
    """Runs init_db once per process, even if several callers race."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._lock = threading.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def run(self) -> None:
        if self._done:
            return
        with self._lock:
            if self._done:
                return
            init_db(self.engine)
            self._done = True


def init_db(engine: Engine) -> None:
    logger.info("Creating database tables (if they don't exist)...")
    Base.metadata.create_all(bind=engine)

    with engine.begin() as conn:
        conn.execute(text(_summary_view_sql(engine.dialect.name)))

    with Session(engine) as db:
        create_default_user(db)
    logger.info("Database initialized")
