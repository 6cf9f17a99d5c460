import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Set

from app.config import settings
from app.connectors.base import BaseTimeTrackingConnector, EntryFilter
from app.exceptions import (
    ConnectorError,
    PerAccountFetchError,
    PersistenceError,
    ReportDashboardError,
    ReportGenerationError,
)
from app.models.account import TogglAccount
from app.models.report_account_config import ReportAccountConfig
from app.schemas.report import ReportConfig
from app.schemas.report_result import DataSources, DateRange, RefreshOutcome, ReportSnapshot, ReportView
from app.schemas.time_entry import TimeEntry
from app.services import report_calculations as calc
from app.services.projections import calculate_projections
from app.services.report_store import ReportStore
from app.utils.dates import ensure_utc, utcnow

log = logging.getLogger(__name__)

ConnectorFactory = Callable[[TogglAccount], BaseTimeTrackingConnector]

# Reports with a generation in flight in this process
_refreshing_reports: Set[int] = set()


class ReportService:
    """
    Orchestrates report generation: fetches every configured account, merges
    the live entries with completed archives, runs the aggregation engine and
    the projection estimator, and persists the resulting snapshot.

    State per report: no-snapshot -> generating -> ready, and on refresh
    ready -> generating -> ready | ready-stale. A failed refresh keeps the
    last good snapshot.
    """

    def __init__(
        self,
        store: ReportStore,
        connector_factory: ConnectorFactory,
        clock: Optional[Callable[[], datetime]] = None,
        debounce_seconds: Optional[int] = None,
    ):
        self.store = store
        self.connector_factory = connector_factory
        self.clock = clock or utcnow
        self.debounce_seconds = settings.refresh_debounce_seconds if debounce_seconds is None else debounce_seconds

    def _now(self) -> datetime:
        return ensure_utc(self.clock())

    async def _fetch_account(
        self,
        config: ReportAccountConfig,
        account: TogglAccount,
        report: ReportConfig,
    ) -> List[TimeEntry]:
        """Entries of one account. Any failure is raised as PerAccountFetchError."""
        connector = None
        try:
            connector = self.connector_factory(account)
            filters = EntryFilter(
                workspace_id=config.workspace_id,
                client_id=config.client_id,
                project_id=config.project_id,
                tag_id=config.tag_id,
                start_date=report.date_range_start,
                end_date=report.date_range_end,
            )

            try:
                identity = await connector.resolve_identity()
                fallback_responsible = identity.display_name
            except ConnectorError as e:
                log.warning(f"Could not resolve identity of account {account.name!r}, using account name: {e}")
                fallback_responsible = account.name

            entries = await connector.list_entries(filters)
            log.debug(f"Account {account.name!r} delivered {len(entries)} entries for report {report.id}")

            return [
                entry.model_copy(update={
                    "account_id": account.id,
                    "account_name": account.name,
                    "responsible": entry.responsible or fallback_responsible,
                    "source": "api",
                })
                for entry in entries
            ]
        except Exception as e:
            raise PerAccountFetchError(account.id, account.name, e) from e
        finally:
            if connector is not None:
                await connector.close()

    async def _collect_api_entries(self, report: ReportConfig) -> List[TimeEntry]:
        configs = await self.store.list_account_configs(report.id)
        # Fetch concurrently, merge only once every account has settled
        results = await asyncio.gather(
            *(self._fetch_account(config, account, report) for config, account in configs),
            return_exceptions=True,
        )

        entries: List[TimeEntry] = []
        for result in results:
            if isinstance(result, PerAccountFetchError):
                log.error(f"Report {report.id}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            entries.extend(result)
        return entries

    async def _build_snapshot(self, report: ReportConfig, now: datetime) -> ReportSnapshot:
        api_entries = await self._collect_api_entries(report)
        archive_entries = [
            entry
            for batch in await self.store.list_completed_archives(report.id)
            for entry in batch
        ]

        entries = sorted(api_entries + archive_entries, key=lambda e: e.start, reverse=True)

        hours_summary = calc.calculate_hours_summary(entries, report.contracted_hours, report.contract_start_date)
        date_range = None
        if report.date_range_start and report.date_range_end:
            date_range = DateRange(start=report.date_range_start, end=report.date_range_end)

        return ReportSnapshot(
            report_id=report.id,
            entries=entries,
            total_duration=calc.total_duration(entries),
            total_entries=len(entries),
            date_range=date_range,
            hours_summary=hours_summary,
            projections=calculate_projections(entries, hours_summary, now=now),
            distribution_by_description=calc.calculate_distribution_by_description(entries),
            distribution_by_team_member=calc.calculate_distribution_by_team_member(entries),
            consumption_by_month=calc.calculate_monthly_consumption(entries),
            grouped_entries=calc.group_entries_by_description(entries),
            latest_entries=calc.get_latest_entries(entries, 10),
            generated_at=now,
            data_sources=DataSources(api=len(api_entries), archives=len(archive_entries)),
        )

    async def _mark_failed(self, report_id: int, error: str) -> None:
        try:
            previous = await self.store.read_snapshot(report_id)
            status = 'ready-stale' if previous is not None else 'no-snapshot'
            await self.store.set_refresh_state(report_id, status, error)
        except PersistenceError as e:
            log.error(f"Could not record failed refresh of report {report_id}: {e}")

    async def generate_report_result(self, report_id: int) -> ReportSnapshot:
        """
        Generate and persist a fresh snapshot, unconditionally.

        Raises PersistenceError when the snapshot and report timestamps
        cannot be written, and ReportGenerationError for any other failure.
        Either way the previous snapshot stays in place.
        """
        report = await self.store.get_report(report_id)
        await self.store.set_refresh_state(report_id, 'generating', report.last_refresh_error)

        now = self._now()
        log.info(f"Generating report {report_id} ('{report.slug}')")
        try:
            snapshot = await self._build_snapshot(report, now)
            await self.store.save_refresh(
                report_id,
                snapshot,
                last_refreshed_at=now,
                next_refresh_at=now + timedelta(hours=report.refresh_interval_hours),
            )
        except Exception as e:
            log.error(f"Generation of report {report_id} failed: {e}", exc_info=not isinstance(e, ReportDashboardError))
            await self._mark_failed(report_id, str(e))
            if isinstance(e, ReportDashboardError):
                raise
            raise ReportGenerationError(f"Generation of report {report_id} failed: {e}") from e

        log.info(
            f"Report {report_id} generated: {snapshot.total_entries} entries "
            f"(api={snapshot.data_sources.api}, archives={snapshot.data_sources.archives})"
        )
        return snapshot

    async def refresh_report(self, report_id: int) -> RefreshOutcome:
        """
        Refresh a report unless a refresh is in flight or the last successful
        one is younger than the debounce window. A report without a snapshot
        is always generated.
        """
        if report_id in _refreshing_reports:
            log.info(f"Refresh of report {report_id} ignored: generation already in progress")
            report = await self.store.get_report(report_id)
            return self._outcome('in_progress', report, await self.store.read_snapshot(report_id))

        _refreshing_reports.add(report_id)
        try:
            report = await self.store.get_report(report_id)
            snapshot = await self.store.read_snapshot(report_id)

            if snapshot is not None and report.last_refreshed_at is not None:
                elapsed = (self._now() - report.last_refreshed_at).total_seconds()
                if elapsed < self.debounce_seconds:
                    log.info(f"Refresh of report {report_id} debounced: last refresh {elapsed:.0f}s ago")
                    return self._outcome('debounced', report, snapshot)

            snapshot = await self.generate_report_result(report_id)
        finally:
            _refreshing_reports.discard(report_id)

        report = await self.store.get_report(report_id)
        return self._outcome('refreshed', report, snapshot)

    def _outcome(self, status: str, report: ReportConfig, snapshot: Optional[ReportSnapshot]) -> RefreshOutcome:
        return RefreshOutcome(
            status=status,
            refresh_status=report.refresh_status,
            last_refreshed_at=report.last_refreshed_at,
            next_refresh_at=report.next_refresh_at,
            snapshot=snapshot,
        )

    async def get_report_view(self, slug: str) -> ReportView:
        """
        Public view of a report. The first view generates the snapshot; an
        overdue auto-refresh report is refreshed. A failed refresh still
        returns the last good snapshot.
        """
        report = await self.store.get_report_by_slug(slug)
        snapshot = await self.store.read_snapshot(report.id)

        due = (
            report.auto_refresh_enabled
            and report.next_refresh_at is not None
            and report.next_refresh_at <= self._now()
        )
        if snapshot is None or due:
            try:
                outcome = await self.refresh_report(report.id)
                snapshot = outcome.snapshot or snapshot
            except ReportDashboardError as e:
                log.warning(f"Serving stale view of report '{slug}': {e}")

        report = await self.store.get_report(report.id)
        return ReportView(report=report, result=snapshot)

    async def refresh_due_reports(self) -> Dict[str, int]:
        """Refresh every auto-refresh report that is due. Failures stay per report."""
        stats = {"refreshed": 0, "skipped": 0, "failed": 0}
        for report_id in await self.store.list_due_reports(self._now()):
            try:
                outcome = await self.refresh_report(report_id)
            except ReportDashboardError as e:
                log.error(f"Scheduled refresh of report {report_id} failed: {e}")
                stats["failed"] += 1
                continue
            if outcome.status == 'refreshed':
                stats["refreshed"] += 1
            else:
                stats["skipped"] += 1
        return stats


def build_report_service(db) -> ReportService:
    """ReportService over the given session with live, cached Toggl connectors."""
    from app.connectors.factory import get_connector_instance

    return ReportService(
        store=ReportStore(db),
        connector_factory=lambda account: get_connector_instance(account, db),
    )
