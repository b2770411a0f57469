"""
Clock -- Injectable time source for report generation.

Responsibility:
    Engines never read the wall clock.  Callers read a Clock once per
    report and pass ``generated_at`` (``now()``) and the preset anchor
    (``today()``) into the engines.

Architecture position:
    Kernel > Domain.  SystemClock is the one sanctioned I/O boundary for
    time.

Invariants enforced:
    PURITY -- identical inputs (including the instants taken from the
    clock) produce identical reports.

Site-local days:
    ``now()`` is always UTC.  ``today()`` is the calendar day at the
    construction site, so a clock built with ``site_tz`` rolls "Last 7
    Days" over at local midnight rather than at UTC midnight.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta, tzinfo

DEFAULT_TEST_TIME = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


class Clock(ABC):
    """
    Abstract time source.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
        - ``today()`` is the site-local calendar date of ``now()``.
    """

    def __init__(self, site_tz: tzinfo = UTC):
        self.site_tz = site_tz

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().astimezone(self.site_tz).date()


class SystemClock(Clock):
    """Production clock reading the system time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Test clock.  ``now()`` stays fixed until moved with ``advance()``,
    ``advance_days()`` or ``set_time()``.
    """

    def __init__(self, fixed_time: datetime | None = None, site_tz: tzinfo = UTC):
        super().__init__(site_tz)
        self._current = fixed_time or DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        self._current += timedelta(days=days)
