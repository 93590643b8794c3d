"""Tests for date resolution and 12/24-hour conversion."""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from src.appointy_sync.errors import UnresolvedDate
from src.appointy_sync.models import RawMatch, TimeMatch
from src.appointy_sync.normalizer import normalize, resolve_date, resolve_times, to_24_hour


class TestTo24Hour:
    @pytest.mark.parametrize(
        ("hour", "meridiem", "expected"),
        [
            (12, "AM", 0),
            (12, "PM", 12),
            (1, "PM", 13),
            (11, "PM", 23),
            (11, "AM", 11),
            (9, "am", 9),
            (4, "pm", 16),
            (7, None, 7),
            (19, None, 19),
        ],
    )
    def test_conversion(self, hour, meridiem, expected):
        assert to_24_hour(hour, meridiem) == expected

    def test_clock_times_are_exact(self):
        """12:00 AM, 12:00 PM, 1:05 PM and 11:59 PM land on the right minute."""
        day = date(2026, 1, 15)
        cases = [
            (TimeMatch(start_hour=12, start_minute=0, start_meridiem="AM"), (0, 0)),
            (TimeMatch(start_hour=12, start_minute=0, start_meridiem="PM"), (12, 0)),
            (TimeMatch(start_hour=1, start_minute=5, start_meridiem="PM"), (13, 5)),
            (TimeMatch(start_hour=11, start_minute=59, start_meridiem="PM"), (23, 59)),
        ]
        for time, (hour, minute) in cases:
            start, _ = resolve_times(day, time)
            assert (start.hour, start.minute) == (hour, minute)


class TestResolveDate:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Monday, January 15, 2026", date(2026, 1, 15)),
            ("January 15, 2026", date(2026, 1, 15)),
            ("Jan 08 2026", date(2026, 1, 8)),
            ("1/5/26", date(2026, 1, 5)),
            ("1/15/2026", date(2026, 1, 15)),
            ("01-05-2026", date(2026, 1, 5)),
        ],
    )
    def test_resolves(self, text, expected):
        assert resolve_date(text) == expected

    def test_unparseable_raises(self):
        with pytest.raises(UnresolvedDate):
            resolve_date("not a date")

    def test_impossible_numeric_date_raises(self):
        with pytest.raises(UnresolvedDate):
            resolve_date("2/30/26")

    def test_empty_raises(self):
        with pytest.raises(UnresolvedDate):
            resolve_date(" , ")

    def test_unresolved_date_is_a_value_error(self):
        with pytest.raises(ValueError):
            resolve_date("nothing here")


class TestResolveTimes:
    def test_default_duration_is_one_hour(self):
        start, end = resolve_times(
            date(2026, 1, 5), TimeMatch(start_hour=9, start_minute=30, start_meridiem="am")
        )
        assert start == datetime(2026, 1, 5, 9, 30)
        assert end - start == timedelta(minutes=60)

    def test_range_end_on_same_date(self):
        start, end = resolve_times(
            date(2026, 1, 15),
            TimeMatch(
                start_hour=4,
                start_minute=0,
                start_meridiem="PM",
                end_hour=5,
                end_minute=0,
                end_meridiem="PM",
            ),
        )
        assert start == datetime(2026, 1, 15, 16, 0)
        assert end == datetime(2026, 1, 15, 17, 0)

    def test_no_rollover_past_midnight(self):
        """An end before the start stays on the same day."""
        start, end = resolve_times(
            date(2026, 1, 15),
            TimeMatch(
                start_hour=11,
                start_minute=30,
                start_meridiem="PM",
                end_hour=12,
                end_minute=15,
                end_meridiem="AM",
            ),
        )
        assert start == datetime(2026, 1, 15, 23, 30)
        assert end == datetime(2026, 1, 15, 0, 15)

    def test_invalid_clock_value_raises(self):
        with pytest.raises(UnresolvedDate):
            resolve_times(date(2026, 1, 15), TimeMatch(start_hour=25, start_minute=0))

    def test_timezone_applied(self):
        tz = ZoneInfo("America/New_York")
        start, end = resolve_times(
            date(2026, 7, 1), TimeMatch(start_hour=10, start_minute=0), tz
        )
        assert start.tzinfo is tz
        assert start.utcoffset() == timedelta(hours=-4)
        assert end == datetime(2026, 7, 1, 11, 0, tzinfo=tz)


class TestNormalize:
    def test_raw_match(self):
        match = RawMatch(
            date_text="1/5/26",
            time=TimeMatch(start_hour=9, start_minute=30, start_meridiem="am"),
        )
        assert normalize(match) == (datetime(2026, 1, 5, 9, 30), datetime(2026, 1, 5, 10, 30))
