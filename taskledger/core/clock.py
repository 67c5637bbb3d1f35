"""Clock abstraction supplying the current instant, date and weekday."""

from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo


def to_weekday_index(day: date) -> int:
    """Convert a date to a weekday index where 0=Sunday and 6=Saturday."""
    return (day.weekday() + 1) % 7


class Clock(Protocol):
    """Source of the current time for the engines."""

    def now(self) -> datetime:
        """Return the current instant as a timezone-aware datetime."""
        ...

    def today_date(self) -> date:
        """Return the current calendar date in the clock's timezone."""
        ...

    def weekday(self) -> int:
        """Return today's weekday index (0=Sunday..6=Saturday)."""
        ...


class SystemClock:
    """Wall clock in a fixed IANA timezone."""

    def __init__(self, timezone: str = "UTC") -> None:
        self._tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self._tz)

    def today_date(self) -> date:
        return self.now().date()

    def weekday(self) -> int:
        return to_weekday_index(self.today_date())


class FixedClock:
    """Clock frozen at a given instant; can be moved explicitly."""

    def __init__(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=ZoneInfo("UTC"))
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def today_date(self) -> date:
        return self._instant.date()

    def weekday(self) -> int:
        return to_weekday_index(self._instant.date())

    def set(self, instant: datetime) -> None:
        """Move the clock to a new instant (naive values keep the current tzinfo)."""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self._instant.tzinfo)
        self._instant = instant

    def advance(self, delta: timedelta) -> None:
        """Move the clock forward by delta."""
        self._instant = self._instant + delta
