"""Toggl account model holding encrypted API credentials."""

from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class TogglAccount(Base):
    """A registered Toggl Track account."""

    __tablename__ = "toggl_accounts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    api_token = Column(Text, nullable=False)  # Encrypted
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    report_configs = relationship("ReportAccountConfig", back_populates="account", cascade="all, delete-orphan")
    cache_entries = relationship("ApiCache", back_populates="account", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<TogglAccount(id={self.id}, name='{self.name}')>"
