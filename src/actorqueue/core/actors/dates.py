"""
Date helpers for search windows.

X searches are split into fixed-size windows so each actor run stays
small, and the requested item budget is spread over those windows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone


DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class DateRange:
    """An inclusive date window with its share of the item budget."""

    start: date
    end: date
    target_items: int = 0

    @property
    def until(self) -> date:
        """Exclusive upper bound (day after ``end``)."""
        return self.end + timedelta(days=1)

    def label(self) -> str:
        return f"{format_date(self.start)} -> {format_date(self.end)}"


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def start_of_day(value: date) -> datetime:
    """Midnight UTC at the start of ``value``."""
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning None if it is unusable.

    Naive timestamps are treated as UTC.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def split_date_range(start: date, end: date, days_per_range: int) -> list[DateRange]:
    """Split ``start..end`` (inclusive) into consecutive windows.

    The last window is truncated at ``end``.

    Args:
        start: First day
        end: Last day (inclusive)
        days_per_range: Window length in days

    Returns:
        Windows in chronological order (empty if end < start)
    """
    if days_per_range < 1:
        raise ValueError("days_per_range must be >= 1")

    ranges: list[DateRange] = []
    current = start

    while current <= end:
        range_end = min(current + timedelta(days=days_per_range - 1), end)
        ranges.append(DateRange(start=current, end=range_end))
        current = range_end + timedelta(days=1)

    return ranges


def distribute_items(total: int, buckets: int) -> list[int]:
    """Spread ``total`` over ``buckets``; earlier buckets get the remainder."""
    if buckets <= 0:
        return []

    base, remainder = divmod(total, buckets)
    return [base + (1 if i < remainder else 0) for i in range(buckets)]


def plan_date_ranges(
    start: date,
    end: date,
    total_items: int,
    days_per_range: int = 3,
) -> list[DateRange]:
    """Split a period into windows and assign each its item target."""
    windows = split_date_range(start, end, days_per_range)
    targets = distribute_items(total_items, len(windows))

    return [
        DateRange(start=w.start, end=w.end, target_items=target)
        for w, target in zip(windows, targets)
    ]
