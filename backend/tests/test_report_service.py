from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.exceptions import (
    PersistenceError,
    RateLimitError,
    ReportGenerationError,
    ReportNotFoundError,
    UpstreamError,
)
from app.services import report_service as report_service_module
from app.services.report_service import ReportService
from app.services.report_store import ReportStore
from app.models.historical_archive import HistoricalArchive
from app.models.report_account_config import ReportAccountConfig


class FlakyStore(ReportStore):
    """ReportStore with switchable write and read faults."""

    broken = False
    timestamps_broken = False
    archives_error = None

    async def save_refresh(self, report_id, snapshot, last_refreshed_at, next_refresh_at):
        if self.broken:
            raise PersistenceError("disk full")
        await super().save_refresh(report_id, snapshot, last_refreshed_at, next_refresh_at)

    def _stage_timestamps(self, report_id, last_refreshed_at, next_refresh_at):
        if self.timestamps_broken:
            raise OperationalError("UPDATE reports", {}, Exception("database is locked"))
        super()._stage_timestamps(report_id, last_refreshed_at, next_refresh_at)

    async def list_completed_archives(self, report_id):
        if self.archives_error:
            raise self.archives_error
        return await super().list_completed_archives(report_id)


@pytest.fixture
def connectors():
    """Connector per account id, handed out by the service's factory."""
    return {}


@pytest.fixture
def store(db):
    return FlakyStore(db)


@pytest.fixture
def service(store, connectors, clock):
    return ReportService(store, lambda account: connectors[account.id], clock=clock, debounce_seconds=60)


@pytest.fixture
def two_accounts(create_account):
    return create_account("Agency"), create_account("Freelancer")


class TestGenerate:
    async def test_merges_accounts_and_archives(self, db, service, connectors, fake_connector, make_entry, create_report, two_accounts, clock):
        agency, freelancer = two_accounts
        connectors[agency.id] = fake_connector(agency.id, "Agency", entries=[
            make_entry(id=1, hours=2, start="2024-02-20T09:00:00+00:00", description="Build", responsible="Ana"),
        ])
        connectors[freelancer.id] = fake_connector(freelancer.id, "Freelancer", entries=[
            make_entry(id=2, hours=1, start="2024-02-22T09:00:00+00:00", description="Review"),
        ], identity="Fran Lancer")
        report = create_report(accounts=[agency, freelancer], contracted_hours=20, refresh_interval_hours=3)
        db.add(HistoricalArchive(report_id=report.id, filename="old.json", processing_status="completed", entries=[
            make_entry(id="a1", hours=4, start="2023-12-01T09:00:00+00:00", responsible="Old Timer").model_dump(mode="json"),
        ]))
        db.add(HistoricalArchive(report_id=report.id, filename="pending.json", processing_status="pending", entries=[
            make_entry(id="p1", hours=100, start="2023-11-01T09:00:00+00:00").model_dump(mode="json"),
        ]))
        db.commit()

        snapshot = await service.generate_report_result(report.id)

        assert [e.id for e in snapshot.entries] == [2, 1, "a1"]
        assert snapshot.total_entries == 3
        assert snapshot.total_duration == 7 * 3600
        assert snapshot.data_sources.api == 2
        assert snapshot.data_sources.archives == 1
        assert snapshot.hours_summary.consumed == 7.0
        assert snapshot.generated_at == clock.now

        by_id = {e.id: e for e in snapshot.entries}
        assert by_id[1].responsible == "Ana"
        assert by_id[2].responsible == "Fran Lancer"
        assert by_id[2].account_name == "Freelancer"
        assert by_id["a1"].source == "archive"

        stored = await service.store.get_report(report.id)
        assert stored.refresh_status == 'ready'
        assert stored.last_refreshed_at == clock.now
        assert stored.next_refresh_at == clock.now + timedelta(hours=3)
        assert await service.store.read_snapshot(report.id) == snapshot
        assert all(c.closed for c in connectors.values())

    async def test_filters_and_date_range_reach_the_connector(self, db, service, connectors, fake_connector, create_report, create_account):
        account = create_account()
        connectors[account.id] = fake_connector(account.id)
        report = create_report(date_range_start=date(2024, 1, 1), date_range_end=date(2024, 1, 31))
        db.add(ReportAccountConfig(report_id=report.id, account_id=account.id, workspace_id=10, project_id=30, tag_id=40))
        db.commit()

        snapshot = await service.generate_report_result(report.id)

        filters = connectors[account.id].last_filters
        assert (filters.workspace_id, filters.project_id, filters.tag_id, filters.client_id) == (10, 30, 40, None)
        assert (filters.start_date, filters.end_date) == (date(2024, 1, 1), date(2024, 1, 31))
        assert snapshot.date_range.start == date(2024, 1, 1)

    async def test_rate_limited_account_is_left_out(self, service, connectors, fake_connector, make_entry, create_report, two_accounts):
        agency, freelancer = two_accounts
        connectors[agency.id] = fake_connector(agency.id, "Agency", entries=[make_entry(id=1), make_entry(id=2)])
        connectors[freelancer.id] = fake_connector(freelancer.id, "Freelancer", error=RateLimitError("slow down", retry_after=30))
        report = create_report(accounts=[agency, freelancer])

        snapshot = await service.generate_report_result(report.id)

        assert [e.id for e in snapshot.entries] == [1, 2]
        assert snapshot.data_sources.api == 2
        assert (await service.store.get_report(report.id)).refresh_status == 'ready'

    async def test_every_account_failing_still_generates(self, service, connectors, fake_connector, create_report, two_accounts):
        agency, freelancer = two_accounts
        connectors[agency.id] = fake_connector(agency.id, error=UpstreamError("boom", status_code=500))
        connectors[freelancer.id] = fake_connector(freelancer.id, error=RateLimitError("slow down"))
        report = create_report(accounts=[agency, freelancer], contracted_hours=10)

        snapshot = await service.generate_report_result(report.id)

        assert snapshot.entries == []
        assert snapshot.hours_summary.available == 10
        assert snapshot.projections.consumption_rate_per_week == 0

    async def test_identity_failure_falls_back_to_account_name(self, service, connectors, fake_connector, make_entry, create_report, create_account):
        account = create_account("Side Gig")
        connectors[account.id] = fake_connector(account.id, entries=[make_entry()], identity_error=UpstreamError("no /me"))
        report = create_report(accounts=[account])

        snapshot = await service.generate_report_result(report.id)

        assert snapshot.entries[0].responsible == "Side Gig"

    async def test_persistence_failure_keeps_previous_snapshot(self, service, store, connectors, fake_connector, make_entry, create_report, create_account, clock):
        account = create_account()
        connectors[account.id] = fake_connector(account.id, entries=[make_entry(id=1)])
        report = create_report(accounts=[account])
        first = await service.generate_report_result(report.id)

        connectors[account.id].entries = [make_entry(id=1), make_entry(id=2)]
        store.broken = True
        clock.now = clock.now + timedelta(minutes=5)

        with pytest.raises(PersistenceError):
            await service.generate_report_result(report.id)

        assert await store.read_snapshot(report.id) == first
        stored = await store.get_report(report.id)
        assert stored.refresh_status == 'ready-stale'
        assert "disk full" in stored.last_refresh_error
        assert stored.last_refreshed_at == first.generated_at

    async def test_persistence_failure_without_snapshot(self, service, store, connectors, fake_connector, create_report, create_account):
        account = create_account()
        connectors[account.id] = fake_connector(account.id)
        report = create_report(accounts=[account])
        store.broken = True

        with pytest.raises(PersistenceError):
            await service.generate_report_result(report.id)

        assert await store.read_snapshot(report.id) is None
        assert (await store.get_report(report.id)).refresh_status == 'no-snapshot'

    async def test_timestamp_write_failure_discards_new_snapshot(self, service, store, connectors, fake_connector, make_entry, create_report, create_account, clock):
        account = create_account()
        connectors[account.id] = fake_connector(account.id, entries=[make_entry(id=1)])
        report = create_report(accounts=[account])
        first = await service.generate_report_result(report.id)

        connectors[account.id].entries = [make_entry(id=1), make_entry(id=2)]
        store.timestamps_broken = True
        clock.now = clock.now + timedelta(minutes=5)

        with pytest.raises(PersistenceError):
            await service.generate_report_result(report.id)

        assert await store.read_snapshot(report.id) == first
        stored = await store.get_report(report.id)
        assert stored.refresh_status == 'ready-stale'
        assert stored.last_refreshed_at == first.generated_at
        assert "database is locked" in stored.last_refresh_error

    async def test_malformed_archive_entry_is_skipped(self, db, service, connectors, fake_connector, make_entry, create_report, create_account):
        account = create_account()
        connectors[account.id] = fake_connector(account.id, entries=[make_entry(id=1)])
        report = create_report(accounts=[account])
        db.add(HistoricalArchive(report_id=report.id, filename="broken.json", processing_status="completed", entries=[
            make_entry(id="a1", start="2023-12-01T09:00:00+00:00").model_dump(mode="json"),
            {"id": "x", "description": "no start"},
        ]))
        db.commit()

        snapshot = await service.generate_report_result(report.id)

        assert [e.id for e in snapshot.entries] == [1, "a1"]
        assert snapshot.data_sources.archives == 1

    async def test_unexpected_failure_is_wrapped(self, service, store, connectors, fake_connector, create_report, create_account):
        account = create_account()
        connectors[account.id] = fake_connector(account.id)
        report = create_report(accounts=[account])
        store.archives_error = ValueError("unreadable archive")

        with pytest.raises(ReportGenerationError) as exc_info:
            await service.generate_report_result(report.id)

        assert isinstance(exc_info.value.__cause__, ValueError)
        stored = await store.get_report(report.id)
        assert stored.refresh_status == 'no-snapshot'
        assert "unreadable archive" in stored.last_refresh_error

    async def test_unknown_report(self, service):
        with pytest.raises(ReportNotFoundError):
            await service.generate_report_result(404)


class TestRefresh:
    async def test_second_trigger_inside_window_is_debounced(self, service, connectors, fake_connector, make_entry, create_report, create_account, clock):
        account = create_account()
        connectors[account.id] = fake_connector(account.id, entries=[make_entry(id=1)])
        report = create_report(accounts=[account])

        first = await service.refresh_report(report.id)
        connectors[account.id].entries = [make_entry(id=1), make_entry(id=2)]
        clock.now = clock.now + timedelta(seconds=10)
        second = await service.refresh_report(report.id)

        assert first.status == 'refreshed'
        assert second.status == 'debounced'
        assert second.snapshot == first.snapshot
        assert connectors[account.id].calls["list_entries"] == 1

    async def test_refresh_after_window(self, service, connectors, fake_connector, make_entry, create_report, create_account, clock):
        account = create_account()
        connectors[account.id] = fake_connector(account.id, entries=[make_entry(id=1)])
        report = create_report(accounts=[account])

        await service.refresh_report(report.id)
        connectors[account.id].entries = [make_entry(id=1), make_entry(id=2)]
        clock.now = clock.now + timedelta(seconds=61)
        outcome = await service.refresh_report(report.id)

        assert outcome.status == 'refreshed'
        assert outcome.snapshot.total_entries == 2
        assert outcome.last_refreshed_at == clock.now

    async def test_refresh_in_flight_is_ignored(self, service, connectors, fake_connector, create_report, create_account):
        account = create_account()
        connectors[account.id] = fake_connector(account.id)
        report = create_report(accounts=[account])

        report_service_module._refreshing_reports.add(report.id)
        try:
            outcome = await service.refresh_report(report.id)
        finally:
            report_service_module._refreshing_reports.discard(report.id)

        assert outcome.status == 'in_progress'
        assert outcome.snapshot is None
        assert connectors[account.id].calls["list_entries"] == 0

    async def test_failed_refresh_releases_the_report(self, service, store, connectors, fake_connector, create_report, create_account):
        account = create_account()
        connectors[account.id] = fake_connector(account.id)
        report = create_report(accounts=[account])
        store.broken = True

        with pytest.raises(PersistenceError):
            await service.refresh_report(report.id)

        assert report.id not in report_service_module._refreshing_reports


class TestView:
    async def test_first_view_generates(self, service, connectors, fake_connector, make_entry, create_report, create_account):
        account = create_account()
        connectors[account.id] = fake_connector(account.id, entries=[make_entry()])
        report = create_report(name="Acme Support", accounts=[account])

        view = await service.get_report_view("acme-support")

        assert view.report.id == report.id
        assert view.report.refresh_status == 'ready'
        assert view.result.total_entries == 1

    async def test_view_before_due_uses_stored_snapshot(self, service, connectors, fake_connector, make_entry, create_report, create_account, clock):
        account = create_account()
        connectors[account.id] = fake_connector(account.id, entries=[make_entry()])
        report = create_report(accounts=[account], refresh_interval_hours=2)

        await service.get_report_view(report.slug)
        clock.now = clock.now + timedelta(hours=1)
        await service.get_report_view(report.slug)

        assert connectors[account.id].calls["list_entries"] == 1

    async def test_overdue_view_refreshes(self, service, connectors, fake_connector, make_entry, create_report, create_account, clock):
        account = create_account()
        connectors[account.id] = fake_connector(account.id, entries=[make_entry(id=1)])
        report = create_report(accounts=[account], refresh_interval_hours=2)

        await service.get_report_view(report.slug)
        connectors[account.id].entries = [make_entry(id=1), make_entry(id=2)]
        clock.now = clock.now + timedelta(hours=2, minutes=1)
        view = await service.get_report_view(report.slug)

        assert view.result.total_entries == 2

    async def test_failed_refresh_serves_stale_snapshot(self, service, store, connectors, fake_connector, make_entry, create_report, create_account, clock):
        account = create_account()
        connectors[account.id] = fake_connector(account.id, entries=[make_entry(id=1)])
        report = create_report(accounts=[account], refresh_interval_hours=2)

        first = await service.get_report_view(report.slug)
        store.broken = True
        clock.now = clock.now + timedelta(hours=3)
        view = await service.get_report_view(report.slug)

        assert view.result == first.result
        assert view.report.refresh_status == 'ready-stale'
        assert view.report.last_refreshed_at == first.report.last_refreshed_at

    async def test_unexpected_refresh_failure_serves_stale_snapshot(self, service, store, connectors, fake_connector, make_entry, create_report, create_account, clock):
        account = create_account()
        connectors[account.id] = fake_connector(account.id, entries=[make_entry(id=1)])
        report = create_report(accounts=[account], refresh_interval_hours=2)

        first = await service.get_report_view(report.slug)
        store.archives_error = ValueError("unreadable archive")
        clock.now = clock.now + timedelta(hours=3)
        view = await service.get_report_view(report.slug)

        assert view.result == first.result
        assert view.report.refresh_status == 'ready-stale'
        assert "unreadable archive" in view.report.last_refresh_error

    async def test_unknown_slug(self, service):
        with pytest.raises(ReportNotFoundError):
            await service.get_report_view("nope")


async def test_refresh_due_reports(service, connectors, fake_connector, make_entry, create_report, create_account, clock):
    account = create_account()
    connectors[account.id] = fake_connector(account.id, entries=[make_entry()])
    due = create_report(name="Due", accounts=[account])
    create_report(name="Manual", accounts=[account], auto_refresh_enabled=False)
    create_report(name="Later", accounts=[account], next_refresh_at=clock.now + timedelta(hours=1))

    stats = await service.refresh_due_reports()

    assert stats == {"refreshed": 1, "skipped": 0, "failed": 0}
    assert (await service.store.get_report(due.id)).refresh_status == 'ready'
    assert await service.store.list_due_reports(clock.now) == []


async def test_refresh_due_reports_isolates_failures(service, store, connectors, fake_connector, create_report, create_account):
    account = create_account()
    connectors[account.id] = fake_connector(account.id)
    create_report(name="One", accounts=[account])
    create_report(name="Two", accounts=[account])
    store.broken = True

    stats = await service.refresh_due_reports()

    assert stats == {"refreshed": 0, "skipped": 0, "failed": 2}


async def test_refresh_due_reports_counts_unexpected_failures(service, store, connectors, fake_connector, create_report, create_account):
    account = create_account()
    connectors[account.id] = fake_connector(account.id)
    create_report(name="One", accounts=[account])
    create_report(name="Two", accounts=[account])
    store.archives_error = ValueError("unreadable archive")

    stats = await service.refresh_due_reports()

    assert stats == {"refreshed": 0, "skipped": 0, "failed": 2}
    assert not report_service_module._refreshing_reports
