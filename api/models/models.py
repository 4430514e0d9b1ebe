from api.config import Base
from sqlalchemy import Column, Integer, String, JSON, DateTime, Float, Index
from datetime import datetime


class CachedGame(Base):
    """Durable content cache entry: one generated pack per module id."""
    __tablename__ = "cached_games"
    module_id = Column(String, primary_key=True, index=True)
    payload = Column(JSON, nullable=False)  # GamePayload.model_dump(mode="json") or a list of them
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class SessionLogRecord(Base):
    """Persisted SessionPerformanceLog, one row per completed module."""
    __tablename__ = "session_logs"
    id = Column(String, primary_key=True, index=True)
    module_id = Column(String, index=True, nullable=False)
    module_title = Column(String, nullable=False)
    timestamp = Column(String, nullable=False)  # ISO-8601 with Z suffix
    duration_seconds = Column(Float, nullable=False)
    correct_count = Column(Integer, default=0, nullable=False)
    mistake_count = Column(Integer, default=0, nullable=False)
    stress_level = Column(String, nullable=False)  # LOW|MEDIUM|HIGH
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CompletedModule(Base):
    __tablename__ = "completed_modules"
    module_id = Column(String, primary_key=True)
    completed_at = Column(DateTime, default=datetime.utcnow, nullable=False)


Index("ix_session_logs_module_timestamp", SessionLogRecord.module_id, SessionLogRecord.timestamp)
