"""Report configuration schemas."""

from datetime import date, datetime
from typing import Optional, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from app.config import settings
from app.utils.dates import ensure_utc
from app.utils.slug import SLUG_PATTERN

RefreshStatus = Literal['no-snapshot', 'generating', 'ready', 'ready-stale']


def _validate_slug(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().lower()
    if not v:
        return None
    if not SLUG_PATTERN.match(v):
        raise ValueError('Slug may only contain lowercase letters, digits and single hyphens')
    return v


class ReportBase(BaseModel):
    """Base report schema."""

    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=200, description="Public URL slug, derived from name when blank")
    description: Optional[str] = None
    contracted_hours: Optional[float] = Field(None, gt=0, description="Contracted hours budget")
    contract_start_date: Optional[date] = None
    auto_refresh_enabled: bool = True
    refresh_interval_hours: int = Field(default_factory=lambda: settings.default_refresh_interval_hours, ge=1, le=24)
    date_range_start: Optional[date] = None
    date_range_end: Optional[date] = None

    @field_validator('slug')
    @classmethod
    def validate_slug(cls, v: Optional[str]) -> Optional[str]:
        return _validate_slug(v)

    @model_validator(mode='after')
    def validate_date_range(self):
        if self.date_range_start and self.date_range_end and self.date_range_start > self.date_range_end:
            raise ValueError('date_range_start must not be after date_range_end')
        return self


class ReportCreate(ReportBase):
    pass


class ReportUpdate(BaseModel):
    """Report update schema - all fields optional."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    contracted_hours: Optional[float] = Field(None, gt=0)
    contract_start_date: Optional[date] = None
    auto_refresh_enabled: Optional[bool] = None
    refresh_interval_hours: Optional[int] = Field(None, ge=1, le=24)
    date_range_start: Optional[date] = None
    date_range_end: Optional[date] = None

    @field_validator('slug')
    @classmethod
    def validate_slug(cls, v: Optional[str]) -> Optional[str]:
        return _validate_slug(v)


class ReportConfig(ReportBase):
    """Stored report, as read by the orchestrator and returned by the API."""

    id: int
    slug: str
    last_refreshed_at: Optional[datetime] = None
    next_refresh_at: Optional[datetime] = None
    refresh_status: RefreshStatus = 'no-snapshot'
    last_refresh_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator('last_refreshed_at', 'next_refresh_at', 'created_at', 'updated_at')
    @classmethod
    def _aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class ReportAccountConfigBase(BaseModel):
    account_id: int
    workspace_id: Optional[int] = None
    client_id: Optional[int] = None
    project_id: Optional[int] = None
    tag_id: Optional[int] = None
    priority: int = 0


class ReportAccountConfigCreate(ReportAccountConfigBase):
    pass


class ReportAccountConfigInDB(ReportAccountConfigBase):
    id: int
    report_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
