from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta

from .errors import InvalidDateFormat, InvalidTimeFormat

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"

_TIME_RE = re.compile(r"^([0-2][0-9]|[0-9]):?([0-5][0-9])$")
_DATE_RE = re.compile(r"^([0-9]{4})-?([0-9]{2})-?([0-9]{2})$")


def parse_hhmm(value: str) -> time:
    """Parse ``HHMM``, ``HH:MM`` or ``H:MM`` into a time of day."""
    m = _TIME_RE.match(value.strip())
    if not m:
        raise InvalidTimeFormat(value)
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23:
        raise InvalidTimeFormat(value)
    return time(hour, minute)


def parse_date(value: str) -> date:
    """Parse ``YYYYMMDD`` or ``YYYY-MM-DD``."""
    m = _DATE_RE.match(value.strip())
    if not m:
        raise InvalidDateFormat(value)
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        raise InvalidDateFormat(value) from None


def truncate_minute(dt: datetime) -> datetime:
    return dt.replace(second=0, microsecond=0)


def now() -> datetime:
    return truncate_minute(datetime.now())


def working_date(dt: datetime, day_start_hour: int = 0) -> date:
    """Date an instant is booked under; hours before ``day_start_hour`` count as the previous day."""
    if dt.hour < day_start_hour:
        return dt.date() - timedelta(days=1)
    return dt.date()


def at_time(value: str, work_date: date, day_start_hour: int = 0) -> datetime:
    """Place an ``HHMM`` string on the given working date."""
    t = parse_hhmm(value)
    day = work_date
    if t.hour < day_start_hour:
        day = work_date + timedelta(days=1)
    return datetime.combine(day, t)


def to_iso(dt: datetime) -> str:
    return truncate_minute(dt).strftime(ISO_FORMAT)


def from_iso(value: str) -> datetime:
    return truncate_minute(datetime.strptime(value, ISO_FORMAT))


def format_hhmm(dt: datetime) -> str:
    return dt.strftime("%H:%M")


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def format_duration(minutes: int) -> str:
    """Format whole minutes as ``HH:MM``; hours are not wrapped at 24."""
    sign = "-" if minutes < 0 else ""
    hours, minutes = divmod(abs(minutes), 60)
    return f"{sign}{hours:02}:{minutes:02}"
