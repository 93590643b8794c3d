"""Appointy bookings republished as an iCalendar feed.

Scrapes the Appointy "my bookings" page, extracts appointment dates and
times, and serves them as a token-protected calendar with a 15-minute cache.
"""

from src.appointy_sync.builder import build_appointments
from src.appointy_sync.extractor import extract_matches
from src.appointy_sync.ics import encode_calendar, event_uid
from src.appointy_sync.models import Appointment, RawMatch, TimeMatch
from src.appointy_sync.service import FeedService

__all__ = [
    "Appointment",
    "FeedService",
    "RawMatch",
    "TimeMatch",
    "build_appointments",
    "encode_calendar",
    "event_uid",
    "extract_matches",
]
