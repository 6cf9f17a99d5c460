"""Time entry schema shared by source adapters, archives and snapshots."""

from datetime import datetime
from typing import List, Optional, Union, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.dates import ensure_utc


class TimeEntry(BaseModel):
    """One recorded span of tracked time. Immutable once produced by an adapter."""

    model_config = ConfigDict(frozen=True)

    id: Union[int, str] = Field(..., description="Identifier in the source system")
    description: str = Field("", description="Free text, may be empty")
    start: datetime = Field(..., description="Start timestamp (timezone-aware)")
    stop: Optional[datetime] = Field(None, description="Stop timestamp; absent while running")
    duration: int = Field(0, description="Duration in seconds; negative while running")
    billable: bool = False
    tags: List[str] = Field(default_factory=list, description="Tag labels")
    workspace_id: Optional[int] = None
    project_id: Optional[int] = None
    project: Optional[str] = Field(None, description="Project name")
    client: Optional[str] = Field(None, description="Client name")
    account_id: Optional[int] = Field(None, description="Owning account")
    account_name: Optional[str] = None
    responsible: Optional[str] = Field(None, description="Responsible person display name")
    source: Literal['api', 'archive'] = 'api'

    @field_validator('description', mode='before')
    @classmethod
    def _blank_description(cls, v):
        return v or ""

    @field_validator('tags', mode='before')
    @classmethod
    def _tags_as_labels(cls, v):
        if not v:
            return []
        return [str(tag) for tag in v]

    @field_validator('start', 'stop')
    @classmethod
    def _aware(cls, v):
        return ensure_utc(v)

    @property
    def effective_duration(self) -> int:
        """Duration used by every aggregate; running entries count as zero."""
        return max(0, self.duration)
