from sqlalchemy import Column, Integer, String, DateTime, JSON, Index, DDL, event
from sqlalchemy.dialects.postgresql import JSONB
from app.db.base_class import Base
from datetime import datetime

class SatelliteRecord(Base):
    __tablename__ = "satellite_records"

    # Display sequence, filled by PostgreSQL (see the after_create hook below)
    id = Column(Integer, nullable=True)
    plan_id = Column(String(100), primary_key=True)
    customer = Column(String(100), nullable=False, index=True)
    satellite_name = Column(String(100), nullable=False, index=True)
    station_name = Column(String(100), nullable=False, index=True)
    station_id = Column(String(50), nullable=False, index=True)
    # Wall-clock time exactly as imported, never converted between time zones
    start_time = Column(DateTime, nullable=False, index=True)
    task_type = Column(String(100), nullable=False, index=True)
    task_result = Column(String(100), index=True)
    raw_data = Column(JSON().with_variant(JSONB(), "postgresql"))
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        Index("idx_satellite_records_time_result", "start_time", "task_result"),
        Index("idx_satellite_records_customer_time", "customer", "start_time"),
        Index("idx_satellite_records_station_time", "station_name", "start_time"),
        Index("idx_satellite_records_satellite_time", "satellite_name", "start_time"),
    )


# An identity column that is not the primary key; TRUNCATE ... RESTART IDENTITY resets it.
# SQLite has no equivalent, so the id stays empty there.
event.listen(
    SatelliteRecord.__table__,
    "after_create",
    DDL(
        "ALTER TABLE satellite_records "
        "ALTER COLUMN id SET NOT NULL, "
        "ALTER COLUMN id ADD GENERATED BY DEFAULT AS IDENTITY"
    ).execute_if(dialect="postgresql"),
)
