"""Turn located date and time text into concrete timestamps."""

import re
from datetime import date, datetime, timedelta, tzinfo

from dateutil import parser as dtparse

from src.appointy_sync.errors import UnresolvedDate
from src.appointy_sync.models import RawMatch, TimeMatch

DEFAULT_DURATION = timedelta(minutes=60)

_NUMERIC_DATE = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})")


def resolve_date(text: str) -> date:
    """Resolve a matched date string to a calendar date.

    Tries dateutil first (commas stripped), then an explicit month/day/year
    split for ``M/D/Y`` and ``M-D-Y``, expanding two-digit years into the 2000s.

    Raises:
        UnresolvedDate: If neither approach yields a valid date.
    """
    cleaned = " ".join(text.replace(",", " ").split())
    if not cleaned:
        raise UnresolvedDate(f"Empty date text {text!r}")

    try:
        return dtparse.parse(cleaned).date()
    except (ValueError, OverflowError):
        pass

    match = _NUMERIC_DATE.search(cleaned)
    if match:
        month, day, year = match.groups()
        if len(year) == 2:
            year = "20" + year
        try:
            return date(int(year), int(month), int(day))
        except ValueError:
            pass

    raise UnresolvedDate(f"Could not resolve date {text!r}")


def to_24_hour(hour: int, meridiem: str | None) -> int:
    """Convert a 12-hour clock hour to 24-hour.

    PM adds 12 except at 12; 12 AM is midnight; no meridiem leaves the hour alone.
    """
    if meridiem is None:
        return hour
    marker = meridiem.upper()
    if marker == "PM" and hour != 12:
        return hour + 12
    if marker == "AM" and hour == 12:
        return 0
    return hour


def _at(day: date, hour: int, minute: int, tz: tzinfo | None) -> datetime:
    try:
        return datetime(day.year, day.month, day.day, hour, minute, tzinfo=tz)
    except ValueError as e:
        raise UnresolvedDate(f"Invalid time {hour}:{minute:02d} on {day}") from e


def resolve_times(
    day: date, time: TimeMatch, tz: tzinfo | None = None
) -> tuple[datetime, datetime]:
    """Place a TimeMatch on a date.

    The end is the second time of a range on the same date, or exactly one
    hour after the start. An end earlier than the start is kept as is; there
    is no rollover past midnight.
    """
    start = _at(day, to_24_hour(time.start_hour, time.start_meridiem), time.start_minute, tz)
    if time.has_end:
        end = _at(day, to_24_hour(time.end_hour, time.end_meridiem), time.end_minute, tz)
    else:
        end = start + DEFAULT_DURATION
    return start, end


def normalize(match: RawMatch, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    """Resolve a RawMatch to (start, end).

    Raises:
        UnresolvedDate: If the date or a clock value can't be resolved.
    """
    return resolve_times(resolve_date(match.date_text), match.time, tz)
