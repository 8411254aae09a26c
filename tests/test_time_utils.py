"""Tests for time utilities."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from caremind.utils.time_utils import (
    format_next_dose,
    format_relative_time,
    from_utc,
    is_valid_timezone,
    local_slot,
    to_utc,
)

UTC = ZoneInfo("UTC")


def test_to_utc():
    """Test timezone conversion to UTC."""
    # Create a datetime in EDT (March is DST)
    dt = datetime(2026, 3, 15, 14, 30, tzinfo=ZoneInfo("America/New_York"))
    utc_dt = to_utc(dt, "America/New_York")

    assert utc_dt.tzinfo == UTC
    # EDT is UTC-4, so 14:30 EDT = 18:30 UTC
    assert utc_dt.hour == 18


def test_to_utc_naive_is_local():
    utc_dt = to_utc(datetime(2026, 1, 10, 8, 0), "America/Sao_Paulo")

    assert utc_dt == datetime(2026, 1, 10, 11, 0, tzinfo=UTC)


def test_from_utc():
    """Test timezone conversion from UTC."""
    dt = datetime(2026, 3, 15, 19, 30, tzinfo=UTC)
    edt_dt = from_utc(dt, "America/New_York")

    assert edt_dt.tzinfo == ZoneInfo("America/New_York")
    assert edt_dt.hour == 15  # 19:30 UTC = 15:30 EDT


def test_from_utc_naive_is_utc():
    local = from_utc(datetime(2026, 1, 10, 2, 0), "America/Sao_Paulo")

    # Still the previous local day
    assert local.date() == date(2026, 1, 9)
    assert local.hour == 23


def test_is_valid_timezone():
    assert is_valid_timezone("America/Sao_Paulo")
    assert is_valid_timezone("UTC")
    assert not is_valid_timezone("Mars/Olympus_Mons")


def test_local_slot():
    slot = local_slot(date(2026, 1, 10), time(8, 0), "America/Sao_Paulo")

    assert slot == datetime(2026, 1, 10, 11, 0, tzinfo=UTC)


def test_format_next_dose():
    """Test dose time formatting relative to the local day."""
    tz = "America/Sao_Paulo"
    now = datetime(2026, 1, 10, 12, 0, tzinfo=UTC)  # 09:00 local

    assert format_next_dose(datetime(2026, 1, 10, 23, 0, tzinfo=UTC), tz, now) == "today at 20:00"
    assert format_next_dose(datetime(2026, 1, 11, 11, 0, tzinfo=UTC), tz, now) == "tomorrow at 08:00"
    assert format_next_dose(datetime(2026, 1, 14, 12, 30, tzinfo=UTC), tz, now) == "14/01 at 09:30"


def test_format_relative_time():
    """Test relative time formatting."""
    now = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)

    assert format_relative_time(datetime(2026, 3, 15, 11, 59, 30, tzinfo=UTC), now) == "just now"
    assert format_relative_time(datetime(2026, 3, 15, 11, 35, tzinfo=UTC), now) == "25 minutes ago"
    assert format_relative_time(datetime(2026, 3, 15, 11, 0, tzinfo=UTC), now) == "1 hour ago"
    assert format_relative_time(datetime(2026, 3, 15, 9, 0, tzinfo=UTC), now) == "3 hours ago"
    assert format_relative_time(datetime(2026, 3, 13, 12, 0, tzinfo=UTC), now) == "2 days ago"
