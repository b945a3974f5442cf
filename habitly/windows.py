"""
Calendar-day time windows.

Dates are interpreted in the configured civil time zone (UTC+8 by default).
A window starts at 00:00 of its first day and runs through the last
microsecond of its last day, both ends inclusive.
"""

from datetime import date, datetime, time, tzinfo
from typing import NamedTuple, Optional

from django.utils import timezone

from .exceptions import ValidationFailure

DATE_FORMAT = '%Y-%m-%d'


class TimeWindow(NamedTuple):
    start: datetime
    end: datetime


def day_window(start_date: date, end_date: date, tz: tzinfo) -> TimeWindow:
    if start_date > end_date:
        raise ValidationFailure("Start date must not be after end date.")
    return TimeWindow(
        start=datetime.combine(start_date, time.min, tzinfo=tz),
        end=datetime.combine(end_date, time.max, tzinfo=tz),
    )


def parse_date(value: str, field_name: str) -> date:
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except (AttributeError, ValueError):
        raise ValidationFailure(f"Invalid {field_name} format, use YYYY-MM-DD.")


def parse_window(start: Optional[str], end: Optional[str], config,
                 today: Optional[date] = None) -> TimeWindow:
    """
    Build a window from ``YYYY-MM-DD`` strings.

    A missing start defaults to the first day of the current month and a
    missing end to today, both in the configured zone.
    """
    tz = config.tzinfo
    if today is None:
        today = timezone.localdate(timezone=tz)
    start_date = parse_date(start, 'start date') if start else today.replace(day=1)
    end_date = parse_date(end, 'end date') if end else today
    return day_window(start_date, end_date, tz)
