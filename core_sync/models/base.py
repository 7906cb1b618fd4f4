# Re-export the main Base class from db.py for cleaned/core models
# This ensures all models share the same metadata for create_all / migrations
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime

from db import Base


class SyncMetadataMixin:
    """Versioning columns shared by every core table."""

    data_version = Column(Integer, nullable=False, default=1)
    last_synced_at = Column(DateTime)
    sync_source = Column(String(20))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


__all__ = ["Base", "SyncMetadataMixin"]
