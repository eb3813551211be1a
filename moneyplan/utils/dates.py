"""
Calendar helpers for budget periods.

Period boundaries are persisted as text. Older rows may carry a time
component or a full ISO-8601 timestamp, so every read goes through
``parse_stored_date``, which never falls back to "today".
"""

import calendar
from datetime import date, datetime

from moneyplan.exceptions import DateParseError

STORED_DATE_FORMAT = "%Y-%m-%d"
STORED_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_stored_date(value) -> date:
    """
    Parse a persisted date.

    Tries, in order: calendar date (2026-01-31), full timestamp
    (2026-01-31 00:00:00), then ISO-8601 (2026-01-31T00:00:00Z).

    Raises:
        DateParseError: If none of the formats match
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise DateParseError(value)

    text = value.strip()
    for fmt in (STORED_DATE_FORMAT, STORED_TIMESTAMP_FORMAT):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    iso_text = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(iso_text).date()
    except ValueError:
        raise DateParseError(value)


def format_date(day: date) -> str:
    return day.strftime(STORED_DATE_FORMAT)


def last_day_of_month(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def month_bounds(day: date):
    """First and last day of the calendar month containing ``day``."""
    return day.replace(day=1), last_day_of_month(day)


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def quarter_bounds(day: date):
    """First and last day of the calendar quarter containing ``day``."""
    first_month = (quarter_of(day) - 1) * 3 + 1
    start = date(day.year, first_month, 1)
    end = last_day_of_month(date(day.year, first_month + 2, 1))
    return start, end


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def period_name(period_type: str, start: date) -> str:
    """Display name for a period: "Jan 2026", "Q1 2026" or "Custom Period"."""
    if period_type == "MONTHLY":
        return start.strftime("%b %Y")
    if period_type == "QUARTERLY":
        return f"Q{quarter_of(start)} {start.year}"
    return "Custom Period"
