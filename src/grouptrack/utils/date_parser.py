"""Date parsing utilities."""

from datetime import date, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Supports various formats including relative dates:
    - Absolute dates: "2024-01-15", "15/01/2024" (day first), "15 Jan 2024"
    - Relative dates: "today", "tomorrow", "in 30 days", "next month", etc.

    Args:
        date_str: Date string in various formats
        today: Reference date for relative expressions (defaults to date.today())

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = today or date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }

    if date_str in relative_dates:
        return relative_dates[date_str]

    # "in 30 days" / "in 2 weeks"
    if date_str.startswith("in "):
        parts = date_str[3:].split()
        if len(parts) == 2 and parts[0].isdigit():
            amount = int(parts[0])
            unit = parts[1].rstrip("s")
            if unit == "day":
                return today + timedelta(days=amount)
            if unit == "week":
                return today + timedelta(weeks=amount)
            if unit == "month":
                return today + relativedelta(months=amount)

    if date_str.startswith("last "):
        period = date_str[5:]
        if period == "month":
            return (today - relativedelta(months=1)).replace(day=1)
        elif period == "year":
            return today.replace(month=1, day=1) - relativedelta(years=1)
        elif period == "week":
            days_since_monday = today.weekday()
            return today - timedelta(days=days_since_monday + 7)

    elif date_str.startswith("this "):
        period = date_str[5:]
        if period == "month":
            return today.replace(day=1)
        elif period == "year":
            return today.replace(month=1, day=1)
        elif period == "week":
            return today - timedelta(days=today.weekday())

    elif date_str.startswith("next "):
        period = date_str[5:]
        if period == "month":
            return (today + relativedelta(months=1)).replace(day=1)
        elif period == "year":
            return (today.replace(month=1, day=1) + relativedelta(years=1))
        elif period == "week":
            return today + timedelta(days=(7 - today.weekday()))

    # ISO dates are unambiguous; anything with slashes is read day first
    try:
        if "/" in date_str:
            return date_parser.parse(date_str, dayfirst=True).date()
        return date_parser.parse(date_str).date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def get_date_range(period: str, today: Optional[date] = None) -> tuple[date, date]:
    """Get start and end dates for a specified period.

    Args:
        period: Period string (this-week, this-month, this-year, last-week,
            last-month, next-week, next-month)
        today: Reference date (defaults to date.today())

    Returns:
        Tuple of (start_date, end_date) for the specified period

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = today or date.today()

    if period == "this-month":
        return (today.replace(day=1), today)

    elif period == "this-year":
        return (today.replace(month=1, day=1), today)

    elif period == "this-week":
        return (today - timedelta(days=today.weekday()), today)

    elif period == "last-month":
        start_date = (today - relativedelta(months=1)).replace(day=1)
        end_date = today.replace(day=1) - timedelta(days=1)
        return (start_date, end_date)

    elif period == "last-week":
        start_date = today - timedelta(days=today.weekday() + 7)
        return (start_date, start_date + timedelta(days=6))

    elif period == "next-week":
        start_date = today + timedelta(days=(7 - today.weekday()))
        return (start_date, start_date + timedelta(days=6))

    elif period == "next-month":
        start_date = (today + relativedelta(months=1)).replace(day=1)
        end_date = start_date + relativedelta(months=1) - timedelta(days=1)
        return (start_date, end_date)

    else:
        raise ValueError(
            f"Unknown period: '{period}'. Supported periods: this-week, this-month, "
            "this-year, last-week, last-month, next-week, next-month"
        )
