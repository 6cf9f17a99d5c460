from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Any, List, Optional

from pydantic import BaseModel, Field

from app.schemas.time_entry import TimeEntry
from app.schemas.toggl import Workspace, Client, Project, Tag


class EntryFilter(BaseModel):
    """Workspace/client/project/tag filter tuple plus the advisory date range."""
    workspace_id: Optional[int] = Field(None, description="Only entries in this workspace")
    client_id: Optional[int] = Field(None, description="Only entries whose project belongs to this client")
    project_id: Optional[int] = Field(None, description="Only entries in this project")
    tag_id: Optional[int] = Field(None, description="Only entries carrying this tag")
    start_date: Optional[date] = Field(None, description="First day of the range (inclusive)")
    end_date: Optional[date] = Field(None, description="Last day of the range (inclusive)")

    def cache_params(self) -> str:
        """Stable query-string form, used in cache keys."""
        parts = []
        for name, value in self.model_dump(mode="json").items():
            if value is not None:
                parts.append(f"{name}={value}")
        return "&".join(parts)


class Identity(BaseModel):
    """Who owns the credential."""
    display_name: str
    email: Optional[str] = None


class BaseTimeTrackingConnector(ABC):
    """Abstract Base Class for time-tracking source adapters."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config

    @property
    def account_id(self) -> Optional[int]:
        return self.config.get("account_id")

    @property
    def account_name(self) -> Optional[str]:
        return self.config.get("account_name")

    @abstractmethod
    async def list_entries(self, filters: EntryFilter) -> List[TimeEntry]:
        """Fetches time entries matching the filter."""
        pass

    @abstractmethod
    async def resolve_identity(self) -> Identity:
        """Resolves the display name of the credential owner."""
        pass

    @abstractmethod
    async def fetch_workspaces(self) -> List[Workspace]:
        pass

    @abstractmethod
    async def fetch_clients(self, workspace_id: int) -> List[Client]:
        pass

    @abstractmethod
    async def fetch_projects(self, workspace_id: int) -> List[Project]:
        pass

    @abstractmethod
    async def fetch_tags(self, workspace_id: int) -> List[Tag]:
        pass

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Validates the connection to the external system."""
        pass

    async def close(self) -> None:
        """Releases network resources held by the connector."""
        pass
