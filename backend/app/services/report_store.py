"""SQLAlchemy-backed persistence for report state and snapshots."""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import PersistenceError, ReportNotFoundError
from app.models.account import TogglAccount
from app.models.historical_archive import HistoricalArchive
from app.models.report import Report
from app.models.report_account_config import ReportAccountConfig
from app.models.report_result import ReportResult
from app.schemas.report import ReportConfig
from app.schemas.report_result import ReportSnapshot
from app.schemas.time_entry import TimeEntry
from app.services.normalizer import NormalizerService
from app.utils.dates import ensure_utc

log = logging.getLogger(__name__)


class ReportStore:
    """
    Persistence contract used by the report orchestrator.

    Every SQLAlchemy failure is rolled back and re-raised as PersistenceError.
    Snapshots are replaced whole inside a single commit, so readers see
    either the previous snapshot or the new one.
    """

    def __init__(self, db: Session, normalizer: Optional[NormalizerService] = None):
        self.db = db
        self.normalizer = normalizer or NormalizerService()

    def _get_report_row(self, report_id: int) -> Report:
        report = self.db.query(Report).filter(Report.id == report_id).first()
        if report is None:
            raise ReportNotFoundError(f"Report {report_id} not found")
        return report

    async def get_report(self, report_id: int) -> ReportConfig:
        try:
            return ReportConfig.model_validate(self._get_report_row(report_id))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read report {report_id}: {e}") from e

    async def get_report_by_slug(self, slug: str) -> ReportConfig:
        try:
            report = self.db.query(Report).filter(Report.slug == slug).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read report '{slug}': {e}") from e
        if report is None:
            raise ReportNotFoundError(f"Report '{slug}' not found")
        return ReportConfig.model_validate(report)

    async def list_account_configs(self, report_id: int) -> List[Tuple[ReportAccountConfig, TogglAccount]]:
        """Account filter configs of a report with their accounts, in priority order."""
        try:
            rows = (
                self.db.query(ReportAccountConfig, TogglAccount)
                .join(TogglAccount, ReportAccountConfig.account_id == TogglAccount.id)
                .filter(ReportAccountConfig.report_id == report_id)
                .order_by(ReportAccountConfig.priority.asc(), ReportAccountConfig.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read account configs of report {report_id}: {e}") from e
        return [(config, account) for config, account in rows]

    async def list_completed_archives(self, report_id: int) -> List[List[TimeEntry]]:
        """Entries of every archive marked completed. Pending and errored archives contribute nothing."""
        try:
            archives = (
                self.db.query(HistoricalArchive)
                .filter(
                    HistoricalArchive.report_id == report_id,
                    HistoricalArchive.processing_status == 'completed',
                )
                .order_by(HistoricalArchive.uploaded_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read archives of report {report_id}: {e}") from e
        return [self._archive_entries(archive) for archive in archives]

    def _archive_entries(self, archive: HistoricalArchive) -> List[TimeEntry]:
        """Entries of one archive. Malformed items are logged and skipped."""
        entries: List[TimeEntry] = []
        for index, item in enumerate(archive.entries or []):
            try:
                entries.append(self.normalizer.normalize_archive_entry(item))
            except ValidationError as e:
                log.warning(f"Skipping malformed entry {index} of archive '{archive.filename}' (ID: {archive.id}): {e}")
        return entries

    async def read_snapshot(self, report_id: int) -> Optional[ReportSnapshot]:
        try:
            row = self.db.query(ReportResult).filter(ReportResult.report_id == report_id).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read snapshot of report {report_id}: {e}") from e
        if row is None:
            return None

        date_range = None
        if row.date_range_start and row.date_range_end:
            date_range = {"start": row.date_range_start, "end": row.date_range_end}

        return ReportSnapshot.model_validate({
            "report_id": row.report_id,
            "entries": row.entries or [],
            "total_duration": row.total_duration,
            "total_entries": row.total_entries,
            "date_range": date_range,
            "hours_summary": row.hours_summary,
            "projections": row.projections,
            "distribution_by_description": row.distribution_by_description or [],
            "distribution_by_team_member": row.distribution_by_team_member or [],
            "consumption_by_month": row.consumption_by_month or [],
            "grouped_entries": row.grouped_entries or [],
            "latest_entries": row.latest_entries or [],
            "generated_at": ensure_utc(row.generated_at),
            "data_sources": row.data_sources or {},
        })

    def _stage_snapshot(self, report_id: int, snapshot: ReportSnapshot) -> None:
        data = snapshot.model_dump(mode="json")
        row = self.db.query(ReportResult).filter(ReportResult.report_id == report_id).first()
        if row is None:
            row = ReportResult(report_id=report_id)
            self.db.add(row)

        row.entries = data["entries"]
        row.total_duration = snapshot.total_duration
        row.total_entries = snapshot.total_entries
        row.date_range_start = snapshot.date_range.start if snapshot.date_range else None
        row.date_range_end = snapshot.date_range.end if snapshot.date_range else None
        row.hours_summary = data["hours_summary"]
        row.projections = data["projections"]
        row.distribution_by_description = data["distribution_by_description"]
        row.distribution_by_team_member = data["distribution_by_team_member"]
        row.consumption_by_month = data["consumption_by_month"]
        row.grouped_entries = data["grouped_entries"]
        row.latest_entries = data["latest_entries"]
        row.data_sources = data["data_sources"]
        row.generated_at = snapshot.generated_at

    def _stage_timestamps(self, report_id: int, last_refreshed_at: datetime, next_refresh_at: datetime) -> None:
        report = self._get_report_row(report_id)
        report.last_refreshed_at = last_refreshed_at
        report.next_refresh_at = next_refresh_at
        report.refresh_status = 'ready'
        report.last_refresh_error = None

    async def upsert_snapshot(self, report_id: int, snapshot: ReportSnapshot) -> None:
        """Replace the report's snapshot, keyed by report id."""
        try:
            self._stage_snapshot(report_id, snapshot)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to store snapshot of report {report_id}: {e}") from e

    async def update_report_timestamps(self, report_id: int, last_refreshed_at: datetime, next_refresh_at: datetime) -> None:
        """Record a successful refresh: timestamps set, status ready, error cleared."""
        try:
            self._stage_timestamps(report_id, last_refreshed_at, next_refresh_at)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to update timestamps of report {report_id}: {e}") from e

    async def save_refresh(
        self,
        report_id: int,
        snapshot: ReportSnapshot,
        last_refreshed_at: datetime,
        next_refresh_at: datetime,
    ) -> None:
        """
        Store a successful refresh in one commit: the new snapshot together
        with the report timestamps. On failure neither write is kept.
        """
        try:
            self._stage_snapshot(report_id, snapshot)
            self._stage_timestamps(report_id, last_refreshed_at, next_refresh_at)
            self.db.commit()
            log.debug(f"Stored snapshot for report {report_id} ({snapshot.total_entries} entries)")
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to store refresh of report {report_id}: {e}") from e

    async def set_refresh_state(self, report_id: int, status: str, error: Optional[str] = None) -> None:
        try:
            report = self._get_report_row(report_id)
            report.refresh_status = status
            report.last_refresh_error = error
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to update refresh state of report {report_id}: {e}") from e

    async def list_due_reports(self, now: datetime) -> List[int]:
        """Ids of auto-refresh reports whose next refresh time has passed or was never set."""
        try:
            rows = (
                self.db.query(Report.id)
                .filter(
                    Report.auto_refresh_enabled == True,
                    (Report.next_refresh_at == None) | (Report.next_refresh_at <= now),
                )
                .order_by(Report.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list due reports: {e}") from e
        return [row[0] for row in rows]
