"""Per-report account filter configuration."""

from sqlalchemy import Column, Integer, BigInteger, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class ReportAccountConfig(Base):
    """Links a report to one Toggl account plus an optional filter tuple."""

    __tablename__ = "report_account_configs"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("toggl_accounts.id", ondelete="CASCADE"), nullable=False)

    # Toggl filter dimensions
    workspace_id = Column(BigInteger, nullable=True)
    client_id = Column(BigInteger, nullable=True)
    project_id = Column(BigInteger, nullable=True)
    tag_id = Column(BigInteger, nullable=True)

    # Display order only, not merge precedence
    priority = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    report = relationship("Report", back_populates="account_configs")
    account = relationship("TogglAccount", back_populates="report_configs")

    __table_args__ = (
        UniqueConstraint('report_id', 'account_id', name='uq_report_account'),
    )

    def __repr__(self):
        return f"<ReportAccountConfig(id={self.id}, report={self.report_id}, account={self.account_id})>"
