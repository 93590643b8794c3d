"""Pydantic models for booking data.

All data structures use Pydantic v2 for validation, serialization, and type safety.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TimeMatch(BaseModel):
    """A located clock time, optionally a range.

    Meridiem values are kept as found ("pm", "PM", ...); the normalizer
    compares them case-insensitively.
    """

    model_config = ConfigDict(frozen=True)

    start_hour: int
    start_minute: int
    start_meridiem: str | None = None
    end_hour: int | None = None
    end_minute: int | None = None
    end_meridiem: str | None = None

    @property
    def has_end(self) -> bool:
        return self.end_hour is not None and self.end_minute is not None


class RawMatch(BaseModel):
    """An unvalidated date/time pair located on the bookings page.

    Produced and consumed within one extraction pass; never persisted.
    """

    model_config = ConfigDict(frozen=True)

    date_text: str  # "Monday, January 15, 2026", "1/5/26", "Jan 08 2026"
    time: TimeMatch
    context: str = ""  # Surrounding text, used for title inference
    title: str | None = None  # Heading found inside a booking card


class Appointment(BaseModel):
    """A normalized booking, ready to be written as a calendar event."""

    model_config = ConfigDict(frozen=True)

    title: str
    start: datetime
    end: datetime
    location: str
    description: str = ""


class FetchResult(BaseModel):
    """What a page fetcher returns for one request."""

    url: str  # Final URL after redirects
    cookies: list[dict] = Field(default_factory=list)
    html: str = ""
