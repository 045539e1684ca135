"""
Injectable time source for business dates.

A movement's business date (and with it the year segment of its number)
defaults to the clock's ``today()``.  Services receive a Clock instead of
calling ``date.today()``, so tests can pin the date and cross year
boundaries deliberately.

``today()`` is evaluated in the clock's business time zone: a receipt
booked at 23:30 on 31 December local time belongs to that year even though
UTC has already rolled over.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo

_DEFAULT_FIXED_TIME = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of the current instant; ``now()`` is always timezone-aware."""

    def __init__(self, business_tz: tzinfo = timezone.utc):
        self.business_tz = business_tz

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        """The business date of ``now()``."""
        return self.now().astimezone(self.business_tz).date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.  Time only moves through ``set_time`` /
    ``advance`` / ``advance_days``.
    """

    def __init__(
        self,
        fixed_time: datetime | None = None,
        business_tz: tzinfo = timezone.utc,
    ):
        super().__init__(business_tz)
        self._now = fixed_time or _DEFAULT_FIXED_TIME
        if self._now.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware datetime")

    def now(self) -> datetime:
        return self._now

    def set_time(self, time: datetime) -> None:
        self._now = time

    def advance(self, seconds: int = 1) -> None:
        self._now += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        self._now += timedelta(days=days)
