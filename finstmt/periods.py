"""
Reporting period arithmetic for FINSTMT.

Calendar period bounds, previous-period lookup, statement-number tags and
date parsing shared by the assemblers and the statement store.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

from .errors import InputError

PERIOD_TYPES = ("monthly", "quarterly", "yearly", "custom")


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise InputError(
                f"Start date {self.start} cannot be after end date {self.end}"
            )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def parse_date(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD format.

    Args:
        date_str: Date string in YYYY-MM-DD format.

    Returns:
        date object.

    Raises:
        InputError: If date_str is not in correct format.
    """
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except (TypeError, ValueError) as e:
        raise InputError(
            f"Invalid date format: '{date_str}'. Expected YYYY-MM-DD."
        ) from e


def coerce_date(value: Union[date, str, None], field_name: str = "date") -> date:
    """
    Accept a date, datetime or YYYY-MM-DD string.

    Raises:
        InputError: If the value is missing or malformed.
    """
    if value is None:
        raise InputError(f"Missing required field: {field_name}")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date(value)


def validate_period_type(period_type: str) -> str:
    if period_type not in PERIOD_TYPES:
        raise InputError(
            f"Invalid period type: '{period_type}'. "
            f"Must be one of {', '.join(PERIOD_TYPES)}."
        )
    return period_type


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping to the month's last day."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def calendar_period(day: date, period_type: str) -> DateRange:
    """
    Return the calendar period containing a date.

    Args:
        day: Any date inside the period.
        period_type: monthly, quarterly or yearly.

    Raises:
        InputError: For custom periods, which have no calendar bounds.
    """
    validate_period_type(period_type)

    if period_type == "monthly":
        start = day.replace(day=1)
        end = day.replace(day=calendar.monthrange(day.year, day.month)[1])
    elif period_type == "quarterly":
        first_month = (quarter_of(day) - 1) * 3 + 1
        start = date(day.year, first_month, 1)
        end = add_months(start, 3) - timedelta(days=1)
    elif period_type == "yearly":
        start = date(day.year, 1, 1)
        end = date(day.year, 12, 31)
    else:
        raise InputError("Custom periods require an explicit date range")

    return DateRange(start, end)


def resolve_period(
    statement_date: date,
    period_type: str,
    date_range: Optional[DateRange] = None,
) -> DateRange:
    """
    Resolve the reporting period for a statement.

    An explicit date range wins; otherwise the calendar period containing
    the statement date is used.
    """
    validate_period_type(period_type)
    if date_range is not None:
        return date_range
    return calendar_period(statement_date, period_type)


def previous_period_start(period_start: date, period_type: str) -> date:
    """
    Start date of the period immediately preceding one.

    Monthly periods step back one month, quarterly three, yearly one year.
    The result is normalised to the first of the month (or year).
    """
    if period_type == "quarterly":
        return add_months(period_start, -3).replace(day=1)
    if period_type == "yearly":
        return date(period_start.year - 1, 1, 1)
    return add_months(period_start, -1).replace(day=1)


def year_ago_start(period_start: date) -> date:
    return add_months(period_start, -12)


def period_tag(period_type: str, period: DateRange) -> str:
    """
    Period tag used in statement numbers.

    Examples: M202401, Q1-2024, Y2024, C20240115.
    """
    start = period.start
    if period_type == "quarterly":
        return f"Q{quarter_of(start)}-{start.year}"
    if period_type == "yearly":
        return f"Y{start.year}"
    if period_type == "custom":
        return f"C{period.end.strftime('%Y%m%d')}"
    return f"M{start.year}{start.month:02d}"


def period_key(period_type: str, period: DateRange) -> str:
    """
    Key identifying one (period type, calendar period) slot.

    Monthly, quarterly and yearly statements are keyed by the calendar
    period containing their end date, so any two ranges ending in the same
    month (quarter, year) share a slot. Custom periods key on the exact range.
    """
    if period_type == "custom":
        return f"custom:{period.start.isoformat()}:{period.end.isoformat()}"
    slot = calendar_period(period.end, period_type)
    return f"{period_type}:{slot.start.isoformat()}"


def check_within_calendar_period(period: DateRange, period_type: str, anchor: date) -> None:
    """
    Ensure an explicit range lies inside the calendar period of anchor.

    Raises:
        InputError: If the range crosses the calendar period boundary.
    """
    slot = calendar_period(anchor, period_type)
    if not (slot.contains(period.start) and slot.contains(period.end)):
        raise InputError(
            f"Date range {period.start} to {period.end} is not within "
            f"{describe_period(period_type, slot)}"
        )


def check_whole_calendar_period(period: DateRange, period_type: str) -> None:
    """
    Ensure a range covers exactly one calendar period.

    Raises:
        InputError: If the range is not a whole month, quarter or year.
    """
    slot = calendar_period(period.start, period_type)
    if period != slot:
        raise InputError(
            f"A {period_type} period must run from {slot.start} to {slot.end}; "
            f"got {period.start} to {period.end}. Use a custom period for other ranges."
        )


def describe_period(period_type: str, period: DateRange) -> str:
    """Human-readable description, e.g. 'January 2024' or 'Q1 2024'."""
    if period_type == "monthly":
        return period.start.strftime("%B %Y")
    if period_type == "quarterly":
        return f"Q{quarter_of(period.start)} {period.start.year}"
    if period_type == "yearly":
        return f"Year {period.start.year}"
    return f"{period.start.isoformat()} to {period.end.isoformat()}"
