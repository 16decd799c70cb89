"""
User Model

Administrative login identities. The table is seeded with a single admin
account on first start and is not written to through the API otherwise.
"""

from sqlalchemy import Column, Integer, String, DateTime
from app.db.base_class import Base
from datetime import datetime


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default="admin")
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
