"""Report snapshot schemas: the output of one aggregation run."""

from datetime import date, datetime
from typing import List, Optional, Literal

from pydantic import BaseModel, Field

from app.schemas.report import ReportConfig, RefreshStatus
from app.schemas.time_entry import TimeEntry

Trend = Literal['increasing', 'decreasing', 'stable']


class HoursSummary(BaseModel):
    contracted: float
    consumed: float = Field(..., description="Consumed hours")
    consumed_percentage: float
    available: float
    start_date: Optional[date] = None


class PeakMonth(BaseModel):
    month: str
    label: str
    hours: float


class Projections(BaseModel):
    consumption_rate_per_week: float = Field(..., description="Average of the trailing 4 weeks")
    weeks_until_exhaustion: Optional[float] = None
    monthly_average: float
    peak_month: Optional[PeakMonth] = None
    trend: Trend = 'stable'


class DistributionItem(BaseModel):
    description: str
    hours: float
    percentage: float
    color: Optional[str] = None


class TeamMemberHours(BaseModel):
    name: str
    role: Optional[str] = None
    hours: float
    percentage: float


class MonthlyConsumption(BaseModel):
    month: str = Field(..., description="Calendar month, YYYY-MM")
    label: str = Field(..., description="Display label, e.g. 'Jan 2024'")
    hours: float
    cumulative: float


class ResponsibleHours(BaseModel):
    name: str
    hours: float


class EntryGroup(BaseModel):
    description: str
    entries: List[TimeEntry]
    total_hours: float
    total_entries: int
    percentage_of_total: float
    responsible: List[ResponsibleHours]


class DateRange(BaseModel):
    start: date
    end: date


class DataSources(BaseModel):
    api: int = 0
    archives: int = 0


class ReportSnapshot(BaseModel):
    report_id: int
    entries: List[TimeEntry]
    total_duration: int
    total_entries: int
    date_range: Optional[DateRange] = None
    hours_summary: Optional[HoursSummary] = None
    projections: Optional[Projections] = None
    distribution_by_description: List[DistributionItem] = Field(default_factory=list)
    distribution_by_team_member: List[TeamMemberHours] = Field(default_factory=list)
    consumption_by_month: List[MonthlyConsumption] = Field(default_factory=list)
    grouped_entries: List[EntryGroup] = Field(default_factory=list)
    latest_entries: List[TimeEntry] = Field(default_factory=list)
    generated_at: datetime
    data_sources: DataSources = Field(default_factory=DataSources)


class RefreshOutcome(BaseModel):
    status: Literal['refreshed', 'debounced', 'in_progress']
    refresh_status: RefreshStatus
    last_refreshed_at: Optional[datetime] = None
    next_refresh_at: Optional[datetime] = None
    snapshot: Optional[ReportSnapshot] = None


class ReportView(BaseModel):
    report: ReportConfig
    result: Optional[ReportSnapshot] = None
