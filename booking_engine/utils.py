"""Shared date and time helpers used across the booking engine."""

from datetime import date, datetime, time, timedelta
from typing import Union

DateLike = Union[date, str]
TimeLike = Union[time, str]


def parse_date(value: DateLike) -> date:
    """Parse a ``YYYY-MM-DD`` string (or pass a date through).

    Examples:
        >>> parse_date("2025-03-17")
        datetime.date(2025, 3, 17)
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def parse_time(value: TimeLike) -> time:
    """Parse an ``HH:MM`` string (or pass a time through).

    Examples:
        >>> parse_time("09:30")
        datetime.time(9, 30)
    """
    if isinstance(value, time):
        return value
    return datetime.strptime(value.strip(), "%H:%M").time()


def add_minutes(start: time, minutes: int) -> time:
    """Add minutes to a time of day. Raises ValueError when crossing midnight."""
    base = datetime.combine(date.min, start)
    result = base + timedelta(minutes=minutes)
    if result.date() != base.date():
        raise ValueError(f"{start.strftime('%H:%M')} + {minutes} min crosses midnight")
    return result.time()


def format_time(value: time) -> str:
    return value.strftime("%H:%M")
