from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from .db import Base


class StoredRecord(Base):
    __tablename__ = "stored_records"
    # Key carries the collection name and schema version, e.g. "sq_students_v23"
    key = Column(String(128), primary_key=True, index=True)
    payload = Column(Text, nullable=False)  # JSON document for the whole collection
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
    __tablename__ = "auth_sessions"
    # Primary key is the token's jti claim
    session_id = Column(String(64), primary_key=True, index=True)
    subject_id = Column(String(128), nullable=False, index=True)
    role = Column(String(16), nullable=False, default="STUDENT")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=True)
