"""Report model: the configuration behind one public report URL."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Float, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.config import settings
from app.database import Base


class Report(Base):
    """Report configuration and refresh bookkeeping."""

    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)

    # Contract
    contracted_hours = Column(Float, nullable=True)
    contract_start_date = Column(Date, nullable=True)

    # Advisory date range, passed to source adapters
    date_range_start = Column(Date, nullable=True)
    date_range_end = Column(Date, nullable=True)

    # Refresh
    auto_refresh_enabled = Column(Boolean, default=True, nullable=False)
    refresh_interval_hours = Column(Integer, default=lambda: settings.default_refresh_interval_hours, nullable=False)
    last_refreshed_at = Column(DateTime(timezone=True), nullable=True)
    next_refresh_at = Column(DateTime(timezone=True), nullable=True, index=True)
    refresh_status = Column(String(20), default='no-snapshot', nullable=False)  # 'no-snapshot', 'generating', 'ready', 'ready-stale'
    last_refresh_error = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships (owned exclusively by the report)
    account_configs = relationship(
        "ReportAccountConfig",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportAccountConfig.priority",
    )
    archives = relationship("HistoricalArchive", back_populates="report", cascade="all, delete-orphan")
    result = relationship("ReportResult", back_populates="report", cascade="all, delete-orphan", uselist=False)

    def __repr__(self):
        return f"<Report(id={self.id}, slug='{self.slug}', status='{self.refresh_status}')>"
