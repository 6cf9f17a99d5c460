"""Persistent cache for Toggl API responses."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base, JSONType


class ApiCache(Base):
    """Cached API payload keyed by '<account_id>:<endpoint>[?<params>]'."""

    __tablename__ = "api_cache"

    id = Column(Integer, primary_key=True, index=True)
    cache_key = Column(String(500), nullable=False, unique=True, index=True)
    account_id = Column(Integer, ForeignKey("toggl_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint = Column(String(255), nullable=False)
    data = Column(JSONType, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    account = relationship("TogglAccount", back_populates="cache_entries")

    def __repr__(self):
        return f"<ApiCache(key='{self.cache_key}', expires_at={self.expires_at})>"
