"""Exception hierarchy for the report dashboard."""

from typing import Optional


class ReportDashboardError(Exception):
    """Base class for all application errors."""


class ConnectorError(ReportDashboardError):
    """Raised by source adapters when the upstream call fails."""


class AuthError(ConnectorError):
    """The account credential was rejected by the upstream API."""


class RateLimitError(ConnectorError):
    """The upstream quota is exhausted. Transient, scoped to one account."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(ConnectorError):
    """Any other non-2xx response or transport failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PerAccountFetchError(ReportDashboardError):
    """A single account failed to deliver entries during report generation."""

    def __init__(self, account_id: int, account_name: str, cause: Exception):
        super().__init__(f"Account {account_name} (id={account_id}) fetch failed: {cause}")
        self.account_id = account_id
        self.account_name = account_name
        self.cause = cause


class PersistenceError(ReportDashboardError):
    """Reading or writing report state failed."""


class ConfigurationError(ReportDashboardError):
    """A report is missing configuration required by an operation."""


class ReportNotFoundError(ReportDashboardError):
    """The requested report does not exist."""


class ReportGenerationError(ReportDashboardError):
    """Generation failed for a reason other than a connector or the store."""
