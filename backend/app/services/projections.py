"""Projection estimator: consumption rate, exhaustion estimate and trend."""

from datetime import datetime, timedelta
from typing import Optional, Sequence

from app.schemas.report_result import HoursSummary, PeakMonth, Projections
from app.schemas.time_entry import TimeEntry
from app.services.report_calculations import calculate_monthly_consumption
from app.utils.dates import ensure_utc, utcnow

RATE_WINDOW_WEEKS = 4
TREND_WINDOW = timedelta(weeks=2)
TREND_THRESHOLD_HOURS = 0.5
DAYS_PER_MONTH = 30


def _hours(entries) -> float:
    return sum(entry.effective_duration for entry in entries) / 3600


def calculate_projections(
    entries: Sequence[TimeEntry],
    hours_summary: Optional[HoursSummary] = None,
    now: Optional[datetime] = None,
) -> Projections:
    """
    Derive projections from the merged entry list.

    Trailing windows end at ``now`` (current UTC time when omitted).
    """
    if not entries:
        return Projections(consumption_rate_per_week=0.0, monthly_average=0.0, trend='stable')

    now = ensure_utc(now) or utcnow()
    rate_window_start = now - timedelta(weeks=RATE_WINDOW_WEEKS)

    rate_per_week = _hours(e for e in entries if e.start >= rate_window_start) / RATE_WINDOW_WEEKS

    weeks_until_exhaustion = None
    if hours_summary is not None and rate_per_week > 0:
        weeks_until_exhaustion = round(hours_summary.available / rate_per_week, 1)

    total_hours = _hours(entries)
    first_day = min(e.start for e in entries).date()
    last_day = max(e.start for e in entries).date()
    months = (last_day - first_day).days / DAYS_PER_MONTH
    monthly_average = round(total_hours / months if months > 0 else total_hours, 1)

    peak_month = None
    for bucket in calculate_monthly_consumption(entries):
        # strictly greater keeps the earliest month on ties
        if peak_month is None or bucket.hours > peak_month.hours:
            peak_month = PeakMonth(month=bucket.month, label=bucket.label, hours=bucket.hours)

    split = now - TREND_WINDOW
    last_two_weeks = _hours(e for e in entries if e.start >= split)
    previous_two_weeks = _hours(e for e in entries if rate_window_start <= e.start < split)
    diff = last_two_weeks - previous_two_weeks
    trend = 'stable'
    if abs(diff) > TREND_THRESHOLD_HOURS:
        trend = 'increasing' if diff > 0 else 'decreasing'

    return Projections(
        consumption_rate_per_week=round(rate_per_week, 1),
        weeks_until_exhaustion=weeks_until_exhaustion,
        monthly_average=monthly_average,
        peak_month=peak_month,
        trend=trend,
    )
