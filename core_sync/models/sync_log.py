from sqlalchemy import Column, Integer, String, Text, DateTime

from .base import Base


class SyncLog(Base):
    """Append-only audit row, one per orchestrator run."""

    __tablename__ = "sync_logs"

    id = Column(String(36), primary_key=True)
    sync_type = Column(String(20), nullable=False)
    entity_type = Column(String(30), nullable=False, index=True)
    source_layer = Column(String(20), nullable=False)
    target_layer = Column(String(20), nullable=False)

    total_records = Column(Integer, nullable=False, default=0)
    synced_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)
    skipped_count = Column(Integer, nullable=False, default=0)

    start_time = Column(DateTime, index=True)
    end_time = Column(DateTime)
    duration_ms = Column(Integer)
    sync_status = Column(String(30), nullable=False)
    error_message = Column(Text)
