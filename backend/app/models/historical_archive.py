"""Historical archive model: pre-parsed entries attached to a report."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base, JSONType


class HistoricalArchive(Base):
    """A batch of historical entries outside the live API window."""

    __tablename__ = "historical_archives"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False)
    filename = Column(String(255), nullable=False)

    processing_status = Column(String(20), default='pending', nullable=False)  # 'pending', 'processing', 'completed', 'error'
    entries = Column(JSONType, nullable=True)
    error_message = Column(Text, nullable=True)

    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    report = relationship("Report", back_populates="archives")

    __table_args__ = (
        Index('idx_historical_archives_report_status', 'report_id', 'processing_status'),
    )

    def __repr__(self):
        return f"<HistoricalArchive(id={self.id}, report={self.report_id}, status='{self.processing_status}')>"
