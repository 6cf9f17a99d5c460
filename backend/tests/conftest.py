import os

from cryptography.fernet import Fernet

# Configure the app for tests before anything imports app.config
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"

from datetime import datetime, timezone
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.connectors.base import BaseTimeTrackingConnector, EntryFilter, Identity
from app.database import Base, SessionLocal, engine, get_db
from app.main import app
from app.models.account import TogglAccount
from app.models.report import Report
from app.models.report_account_config import ReportAccountConfig
from app.schemas.time_entry import TimeEntry
from app.schemas.toggl import Workspace, Client, Project, Tag
from app.utils.encrypt import encrypt_token


class FakeConnector(BaseTimeTrackingConnector):
    """In-memory connector recording how often each call was made."""

    def __init__(
        self,
        account_id: int = 1,
        account_name: str = "Fake",
        entries: Optional[List[TimeEntry]] = None,
        error: Optional[Exception] = None,
        identity: str = "Fake Owner",
        identity_error: Optional[Exception] = None,
    ):
        super().__init__({"account_id": account_id, "account_name": account_name})
        self.entries = entries or []
        self.error = error
        self.identity = identity
        self.identity_error = identity_error
        self.calls = {"list_entries": 0, "resolve_identity": 0, "fetch_workspaces": 0}
        self.last_filters = None
        self.closed = False

    async def list_entries(self, filters: EntryFilter) -> List[TimeEntry]:
        self.calls["list_entries"] += 1
        self.last_filters = filters
        if self.error:
            raise self.error
        return list(self.entries)

    async def resolve_identity(self) -> Identity:
        self.calls["resolve_identity"] += 1
        if self.identity_error:
            raise self.identity_error
        return Identity(display_name=self.identity)

    async def fetch_workspaces(self) -> List[Workspace]:
        self.calls["fetch_workspaces"] += 1
        return [Workspace(id=10, name="Main")]

    async def fetch_clients(self, workspace_id: int) -> List[Client]:
        return [Client(id=20, name="Acme", wid=workspace_id)]

    async def fetch_projects(self, workspace_id: int) -> List[Project]:
        return [Project(id=30, name="Support", wid=workspace_id, cid=20)]

    async def fetch_tags(self, workspace_id: int) -> List[Tag]:
        return [Tag(id=40, name="urgent", workspace_id=workspace_id)]

    async def validate_connection(self) -> bool:
        return self.error is None

    async def close(self) -> None:
        self.closed = True


def _entry(
    id=1,
    hours: float = 1.0,
    start="2024-01-01T09:00:00+00:00",
    description: str = "",
    responsible: Optional[str] = None,
    duration: Optional[int] = None,
    **kwargs,
) -> TimeEntry:
    return TimeEntry(
        id=id,
        description=description,
        start=start,
        duration=int(hours * 3600) if duration is None else duration,
        responsible=responsible,
        **kwargs,
    )


@pytest.fixture
def make_entry():
    return _entry


@pytest.fixture
def fake_connector():
    return FakeConnector


@pytest.fixture
def db() -> Session:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def create_account(db: Session):
    def _create(name: str = "Agency", token: str = "secret-token") -> TogglAccount:
        account = TogglAccount(name=name, api_token=encrypt_token(token))
        db.add(account)
        db.commit()
        db.refresh(account)
        return account
    return _create


@pytest.fixture
def create_report(db: Session):
    def _create(name: str = "Support", slug: Optional[str] = None, accounts=(), **kwargs) -> Report:
        report = Report(name=name, slug=slug or name.lower().replace(" ", "-"), **kwargs)
        db.add(report)
        db.flush()
        for priority, account in enumerate(accounts):
            db.add(ReportAccountConfig(report_id=report.id, account_id=account.id, priority=priority))
        db.commit()
        db.refresh(report)
        return report
    return _create


@pytest.fixture
def client(db: Session) -> TestClient:
    def override_get_db() -> Session:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def clock():
    """Controllable UTC clock: call it for the time, set `clock.now` to move it."""
    class Clock:
        now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

        def __call__(self):
            return self.now

    return Clock()
