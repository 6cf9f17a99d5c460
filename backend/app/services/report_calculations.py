"""
Aggregation engine for report snapshots.

Every function here is pure: it reads the merged entry list and returns a
derived structure, never mutating the entries. All of them accept an empty
list and return zero-valued or empty results.
"""

import re
from datetime import date
from typing import Dict, List, Optional, Sequence

from app.schemas.report_result import (
    DistributionItem,
    EntryGroup,
    HoursSummary,
    MonthlyConsumption,
    ResponsibleHours,
    TeamMemberHours,
)
from app.schemas.time_entry import TimeEntry

NO_DESCRIPTION = "No description"
UNASSIGNED = "Unassigned"

DISTRIBUTION_LIMIT = 10
DISTRIBUTION_COLORS = [
    '#10B981', '#3B82F6', '#8B5CF6', '#F59E0B', '#EF4444',
    '#06B6D4', '#EC4899', '#84CC16', '#6366F1', '#F97316',
]

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s]")


def total_duration(entries: Sequence[TimeEntry]) -> int:
    """Sum of effective durations in seconds."""
    return sum(entry.effective_duration for entry in entries)


def _hours(entry: TimeEntry) -> float:
    return entry.effective_duration / 3600


def _percentage(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 1)


def calculate_hours_summary(
    entries: Sequence[TimeEntry],
    contracted_hours: Optional[float],
    contract_start_date: Optional[date] = None,
) -> Optional[HoursSummary]:
    """Contracted vs consumed vs available hours. None when no budget is set."""
    if not contracted_hours or contracted_hours <= 0:
        return None

    consumed = total_duration(entries) / 3600
    available = max(0.0, contracted_hours - consumed)

    return HoursSummary(
        contracted=contracted_hours,
        consumed=round(consumed, 2),
        consumed_percentage=round(consumed / contracted_hours * 100, 1),
        available=round(available, 2),
        start_date=contract_start_date,
    )


def _sum_by(entries: Sequence[TimeEntry], key) -> Dict[str, float]:
    # dict preserves first-encountered order, which the stable sorts below rely on
    totals: Dict[str, float] = {}
    for entry in entries:
        label = key(entry)
        totals[label] = totals.get(label, 0.0) + _hours(entry)
    return totals


def calculate_distribution_by_description(entries: Sequence[TimeEntry]) -> List[DistributionItem]:
    """Hours per exact description, top 10 by hours."""
    grand_total = total_duration(entries) / 3600
    totals = _sum_by(entries, lambda e: e.description or NO_DESCRIPTION)

    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:DISTRIBUTION_LIMIT]
    return [
        DistributionItem(
            description=description,
            hours=round(hours, 1),
            percentage=_percentage(hours, grand_total),
            color=DISTRIBUTION_COLORS[index % len(DISTRIBUTION_COLORS)],
        )
        for index, (description, hours) in enumerate(ranked)
    ]


def calculate_distribution_by_team_member(entries: Sequence[TimeEntry]) -> List[TeamMemberHours]:
    """Hours per responsible person, all members."""
    grand_total = total_duration(entries) / 3600
    totals = _sum_by(entries, lambda e: e.responsible or UNASSIGNED)

    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [
        TeamMemberHours(name=name, hours=round(hours, 1), percentage=_percentage(hours, grand_total))
        for name, hours in ranked
    ]


def _month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def calculate_monthly_consumption(entries: Sequence[TimeEntry]) -> List[MonthlyConsumption]:
    """
    Hours per calendar month between the first and last entry, with a running total.

    Months without entries are included with zero hours.
    """
    if not entries:
        return []

    per_month: Dict[str, float] = {}
    for entry in entries:
        key = _month_key(entry.start.date())
        per_month[key] = per_month.get(key, 0.0) + _hours(entry)

    first = min(entry.start.date() for entry in entries)
    last = max(entry.start.date() for entry in entries)

    buckets: List[MonthlyConsumption] = []
    cumulative = 0.0
    year, month = first.year, first.month
    while (year, month) <= (last.year, last.month):
        key = f"{year:04d}-{month:02d}"
        hours = per_month.get(key, 0.0)
        cumulative += hours
        buckets.append(MonthlyConsumption(
            month=key,
            label=date(year, month, 1).strftime("%b %Y"),
            hours=round(hours, 1),
            cumulative=round(cumulative, 1),
        ))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return buckets


def normalize_description(description: str) -> str:
    """Grouping key: lowercase, trim, collapse whitespace, strip punctuation."""
    normalized = description.lower().strip()
    normalized = _WHITESPACE.sub(" ", normalized)
    return _PUNCTUATION.sub("", normalized)


def group_entries_by_description(entries: Sequence[TimeEntry]) -> List[EntryGroup]:
    """Group entries whose descriptions only differ in casing, spacing or punctuation."""
    if not entries:
        return []

    grand_total = total_duration(entries) / 3600
    groups: Dict[str, dict] = {}

    for entry in entries:
        key = normalize_description(entry.description or NO_DESCRIPTION)
        group = groups.get(key)
        if group is None:
            groups[key] = {"description": entry.description or NO_DESCRIPTION, "entries": [entry]}
            continue
        group["entries"].append(entry)
        # Longest original description labels the group, first seen wins ties
        if entry.description and (
            group["description"] == NO_DESCRIPTION or len(entry.description) > len(group["description"])
        ):
            group["description"] = entry.description

    result: List[tuple] = []
    for group in groups.values():
        members: List[TimeEntry] = group["entries"]
        group_hours = sum(_hours(entry) for entry in members)
        responsible = sorted(
            _sum_by(members, lambda e: e.responsible or UNASSIGNED).items(),
            key=lambda item: item[1],
            reverse=True,
        )
        result.append((group_hours, EntryGroup(
            description=group["description"],
            entries=sorted(members, key=lambda e: e.start, reverse=True),
            total_hours=round(group_hours, 1),
            total_entries=len(members),
            percentage_of_total=_percentage(group_hours, grand_total),
            responsible=[ResponsibleHours(name=name, hours=round(hours, 1)) for name, hours in responsible],
        )))

    result.sort(key=lambda item: item[0], reverse=True)
    return [group for _, group in result]


def get_latest_entries(entries: Sequence[TimeEntry], limit: int = 10) -> List[TimeEntry]:
    """The most recent entries by start time."""
    return sorted(entries, key=lambda e: e.start, reverse=True)[:limit]
