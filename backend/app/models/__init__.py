"""Database models."""

from app.models.account import TogglAccount
from app.models.report import Report
from app.models.report_account_config import ReportAccountConfig
from app.models.report_result import ReportResult
from app.models.historical_archive import HistoricalArchive
from app.models.api_cache import ApiCache

__all__ = [
    "TogglAccount",
    "Report",
    "ReportAccountConfig",
    "ReportResult",
    "HistoricalArchive",
    "ApiCache",
]
