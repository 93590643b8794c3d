"""Serialize appointments into an iCalendar feed.

Each event UID is a hash of its title, start and end, so a booking keeps the
same UID across scrapes and calendar apps update it in place instead of
duplicating it.
"""

import hashlib
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from icalendar import Alarm, Calendar, Event, vDuration

from src.appointy_sync.models import Appointment

PRODID = "-//appointy-sync//appointy-scraper//EN"
UID_DOMAIN = "appointy-sync"

# Calendar apps poll at this interval
REFRESH_INTERVAL = timedelta(hours=1)

REMINDERS: tuple[tuple[timedelta, str], ...] = (
    (timedelta(hours=1), "Reminder: {title} in 1 hour"),
    (timedelta(hours=24), "Tomorrow: {title}"),
)


def event_uid(appointment: Appointment) -> str:
    """Stable UID for an appointment, e.g. ``"3f2a...@appointy-sync"``."""
    content = (
        f"{appointment.title}-{appointment.start.isoformat()}-{appointment.end.isoformat()}"
    )
    digest = hashlib.md5(content.encode("utf-8")).hexdigest()
    return f"{digest}@{UID_DOMAIN}"


def _event(appointment: Appointment, stamp: datetime) -> Event:
    event = Event()
    event.add("uid", event_uid(appointment))
    event.add("dtstamp", stamp)
    event.add("dtstart", appointment.start)
    event.add("dtend", appointment.end)
    event.add("summary", appointment.title)
    event.add("location", appointment.location)
    if appointment.description:
        event.add("description", appointment.description)

    for before, message in REMINDERS:
        alarm = Alarm()
        alarm.add("action", "DISPLAY")
        alarm.add("trigger", -before)
        alarm.add("description", message.format(title=appointment.title))
        event.add_component(alarm)

    return event


def encode_calendar(
    appointments: Iterable[Appointment],
    *,
    name: str,
    timezone_name: str,
    generated_at: datetime | None = None,
) -> str:
    """Render appointments as an iCalendar document.

    Args:
        appointments: Appointments in the order they should appear.
        name: Calendar display name.
        timezone_name: IANA zone advertised to clients (X-WR-TIMEZONE).
        generated_at: DTSTAMP for every event; defaults to now (UTC).

    Returns:
        The serialized calendar (CRLF line endings, folded per RFC 5545),
        with a VTIMEZONE for every zone the events are written in.
    """
    stamp = generated_at or datetime.now(timezone.utc)

    calendar = Calendar()
    calendar.add("prodid", PRODID)
    calendar.add("version", "2.0")
    calendar.add("calscale", "GREGORIAN")
    calendar.add("method", "PUBLISH")
    calendar.add("x-wr-calname", name)
    calendar.add("x-wr-timezone", timezone_name)
    calendar.add(
        "refresh-interval",
        vDuration(REFRESH_INTERVAL),
        parameters={"VALUE": "DURATION"},
    )
    calendar.add("x-published-ttl", vDuration(REFRESH_INTERVAL))

    for appointment in appointments:
        calendar.add_component(_event(appointment, stamp))

    # One VTIMEZONE per TZID the events use
    calendar.add_missing_timezones()

    return calendar.to_ical().decode("utf-8")
