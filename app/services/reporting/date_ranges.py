# ============================================================================
# Reporting Date Ranges & Filters
# ============================================================================
"""
Helpers shared by the analytics and dashboard endpoints for turning query
string parameters into a concrete ``(start, end)`` window and a filter dict.

All datetimes are naive UTC, matching what the rest of the service stores.
"""
from typing import Dict, Optional, Tuple, Any
from datetime import datetime, timedelta, timezone, date
from enum import Enum
import json

from app.config import get_settings
from app.core.exceptions import InvalidDateRange, InvalidFilters

settings = get_settings()


class DateRangeType(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"
    LAST_90_DAYS = "last_90_days"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    THIS_QUARTER = "this_quarter"
    LAST_QUARTER = "last_quarter"
    THIS_YEAR = "this_year"
    LAST_YEAR = "last_year"
    CUSTOM = "custom"


def month_start(value: datetime) -> datetime:
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def shift_months(value: datetime, months: int) -> datetime:
    """Move a first-of-month datetime by a number of calendar months"""
    index = value.year * 12 + (value.month - 1) + months
    return value.replace(year=index // 12, month=index % 12 + 1)


def _quarter_start(value: datetime) -> datetime:
    first_month = ((value.month - 1) // 3) * 3 + 1
    return month_start(value).replace(month=first_month)


def _preset_range(range_type: DateRangeType, now: datetime) -> Tuple[datetime, datetime]:
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    this_month = month_start(now)
    this_quarter = _quarter_start(now)
    this_year = today.replace(month=1, day=1)

    ranges = {
        DateRangeType.TODAY: (today, now),
        DateRangeType.YESTERDAY: (today - timedelta(days=1), today),
        DateRangeType.LAST_7_DAYS: (today - timedelta(days=7), now),
        DateRangeType.LAST_30_DAYS: (today - timedelta(days=30), now),
        DateRangeType.LAST_90_DAYS: (today - timedelta(days=90), now),
        DateRangeType.THIS_MONTH: (this_month, now),
        DateRangeType.LAST_MONTH: (shift_months(this_month, -1), this_month),
        DateRangeType.THIS_QUARTER: (this_quarter, now),
        DateRangeType.LAST_QUARTER: (shift_months(this_quarter, -3), this_quarter),
        DateRangeType.THIS_YEAR: (this_year, now),
        DateRangeType.LAST_YEAR: (this_year.replace(year=this_year.year - 1), this_year),
    }
    return ranges[range_type]


def parse_datetime(value: str, end_of_day: bool = False) -> datetime:
    """
    Parse an ISO date or datetime query value.

    A bare date maps to midnight, or to the last microsecond of that day when
    ``end_of_day`` is set. Aware values are converted to naive UTC.
    """
    raw = value.strip()
    try:
        if len(raw) == 10:
            parsed_date = date.fromisoformat(raw)
            parsed = datetime.combine(
                parsed_date,
                datetime.max.time() if end_of_day else datetime.min.time()
            )
        else:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidDateRange(f"Invalid date: {value}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date_range(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    range_type: Optional[str] = None,
    now: Optional[datetime] = None
) -> Tuple[datetime, datetime]:
    """
    Resolve request parameters into a reporting window.

    Args:
        date_from: ISO start; defaults to DEFAULT_DATE_RANGE_DAYS before the end
        date_to: ISO end; defaults to now
        range_type: Optional preset name (case-insensitive); anything other
            than ``custom`` takes precedence over explicit dates
        now: Reference time, for tests

    Returns:
        Tuple of (start_datetime, end_datetime) with start <= end
    """
    now = now or datetime.utcnow()

    if range_type:
        try:
            preset = DateRangeType(range_type.lower())
        except ValueError:
            raise InvalidDateRange(f"Unknown date range type: {range_type}")
        if preset != DateRangeType.CUSTOM:
            return _preset_range(preset, now)

    end = parse_datetime(date_to, end_of_day=True) if date_to else now
    if date_from:
        start = parse_datetime(date_from)
    else:
        start = end - timedelta(days=settings.DEFAULT_DATE_RANGE_DAYS)

    if start > end:
        raise InvalidDateRange("dateFrom must not be after dateTo")

    return start, end


def parse_filters(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode the JSON ``filters`` query parameter"""
    if not raw:
        return None
    try:
        filters = json.loads(raw)
    except json.JSONDecodeError:
        raise InvalidFilters("filters is not valid JSON")
    if not isinstance(filters, dict):
        raise InvalidFilters()
    return filters
