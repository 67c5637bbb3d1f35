"""Tests for the clock abstraction."""

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from taskledger.core.clock import FixedClock, SystemClock, to_weekday_index


@pytest.mark.unit
@pytest.mark.parametrize(
    ("day", "index"),
    [
        (date(2024, 1, 7), 0),  # Sunday
        (date(2024, 1, 8), 1),
        (date(2024, 1, 10), 3),
        (date(2024, 1, 13), 6),  # Saturday
    ],
)
def test_weekday_index_starts_on_sunday(day: date, index: int) -> None:
    assert to_weekday_index(day) == index


@pytest.mark.unit
def test_fixed_clock_treats_naive_as_utc() -> None:
    clock = FixedClock(datetime(2024, 1, 10, 16, 30))

    assert clock.now().tzinfo is not None
    assert clock.now().utcoffset() == timedelta(0)
    assert clock.today_date() == date(2024, 1, 10)
    assert clock.weekday() == 3


@pytest.mark.unit
def test_fixed_clock_set_and_advance() -> None:
    clock = FixedClock(datetime(2024, 1, 10, 23, 59, tzinfo=UTC))

    clock.advance(timedelta(minutes=2))
    assert clock.today_date() == date(2024, 1, 11)

    clock.set(datetime(2024, 1, 13, 8, 0))
    assert clock.now() == datetime(2024, 1, 13, 8, 0, tzinfo=UTC)
    assert clock.weekday() == 6


@pytest.mark.unit
def test_system_clock_uses_configured_timezone() -> None:
    clock = SystemClock("Pacific/Auckland")

    now = clock.now()

    assert now.tzinfo == ZoneInfo("Pacific/Auckland")
    assert clock.today_date() in {now.date(), (now + timedelta(seconds=1)).date()}
    assert 0 <= clock.weekday() <= 6
