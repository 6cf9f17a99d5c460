"""Cached report result: the latest snapshot of one report."""

from sqlalchemy import Column, Integer, BigInteger, DateTime, Date, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base, JSONType


class ReportResult(Base):
    """Aggregated report snapshot, one row per report (upsert by report_id)."""

    __tablename__ = "report_results"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, unique=True)

    entries = Column(JSONType, nullable=False)
    total_duration = Column(BigInteger, nullable=False, default=0)
    total_entries = Column(Integer, nullable=False, default=0)
    date_range_start = Column(Date, nullable=True)
    date_range_end = Column(Date, nullable=True)

    hours_summary = Column(JSONType, nullable=True)
    projections = Column(JSONType, nullable=True)
    distribution_by_description = Column(JSONType, nullable=False)
    distribution_by_team_member = Column(JSONType, nullable=False)
    consumption_by_month = Column(JSONType, nullable=False)
    grouped_entries = Column(JSONType, nullable=False)
    latest_entries = Column(JSONType, nullable=False)
    data_sources = Column(JSONType, nullable=False)

    generated_at = Column(DateTime(timezone=True), nullable=False)

    # Relationships
    report = relationship("Report", back_populates="result")

    def __repr__(self):
        return f"<ReportResult(report={self.report_id}, entries={self.total_entries}, generated_at={self.generated_at})>"
