"""
pipetrak_engines.date_range -- Date-range selection and window resolution.

Responsibility:
    Model the report date-range selection (preset plus optional custom
    dates) as an immutable state machine and resolve it against "today"
    into the half-open window a delta report covers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    ``today`` is always a parameter; callers read it from a Clock.

Invariants enforced:
    - ``all_time`` and an incomplete ``custom`` selection resolve to None;
      no delta computation is triggered for them.
    - Windows are half-open ``[start, end)``; ``end`` is the day after
      the last included day.

Failure modes:
    - UnknownDateRangePresetError for an unrecognised preset name.
    - InvalidDateRangeError when a custom start is after its end.
    - ValueError for malformed ISO date strings.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date, timedelta
from enum import Enum
from typing import Any

from pipetrak_kernel.exceptions import (
    InvalidDateRangeError,
    UnknownDateRangePresetError,
)


class DateRangePreset(str, Enum):
    ALL_TIME = "all_time"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"
    LAST_90_DAYS = "last_90_days"
    YTD = "ytd"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: DateRangePreset | str) -> DateRangePreset:
        try:
            return cls(value)
        except ValueError:
            raise UnknownDateRangePresetError(str(value)) from None


_ROLLING_DAYS: dict[DateRangePreset, int] = {
    DateRangePreset.LAST_7_DAYS: 7,
    DateRangePreset.LAST_30_DAYS: 30,
    DateRangePreset.LAST_90_DAYS: 90,
}


@dataclass(frozen=True)
class DateWindow:
    """Half-open window ``[start, end)``."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days


@dataclass(frozen=True)
class DateRangeSelection:
    """
    Current preset and custom dates.

    Contract:
        Immutable; every transition returns a new selection.  Custom dates
        are kept only while the preset is ``custom``.
    """

    preset: DateRangePreset = DateRangePreset.ALL_TIME
    start_date: date | None = None
    end_date: date | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "preset", DateRangePreset.parse(self.preset))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> DateRangeSelection:
        """Build from ``{preset, startDate, endDate}`` with ISO dates."""
        def _date(key: str, alt: str) -> date | None:
            raw = data.get(key, data.get(alt))
            if raw in (None, ""):
                return None
            return raw if isinstance(raw, date) else date.fromisoformat(raw)

        return cls(
            preset=DateRangePreset.parse(data.get("preset", DateRangePreset.ALL_TIME)),
            start_date=_date("startDate", "start_date"),
            end_date=_date("endDate", "end_date"),
        )

    @property
    def is_delta_mode(self) -> bool:
        return self.preset is not DateRangePreset.ALL_TIME

    @property
    def is_complete(self) -> bool:
        """False only for a custom selection still missing a date."""
        if self.preset is DateRangePreset.CUSTOM:
            return self.start_date is not None and self.end_date is not None
        return True

    def with_preset(self, preset: DateRangePreset | str) -> DateRangeSelection:
        preset = DateRangePreset.parse(preset)
        if preset is DateRangePreset.CUSTOM:
            return replace(self, preset=preset)
        return DateRangeSelection(preset=preset)

    def with_start(self, start_date: date | None) -> DateRangeSelection:
        return replace(self, preset=DateRangePreset.CUSTOM, start_date=start_date)

    def with_end(self, end_date: date | None) -> DateRangeSelection:
        return replace(self, preset=DateRangePreset.CUSTOM, end_date=end_date)

    def reset(self) -> DateRangeSelection:
        """Back to all time; offered when a window has no activity."""
        return DateRangeSelection()


def resolve_date_range(
    selection: DateRangeSelection, today: date
) -> DateWindow | None:
    """Window for ``selection`` relative to ``today``.

    Returns None for ``all_time`` and for an incomplete custom selection.

    Raises:
        InvalidDateRangeError: If a custom start is after its end.
    """
    end = today + timedelta(days=1)
    preset = selection.preset

    if preset is DateRangePreset.ALL_TIME:
        return None
    if preset in _ROLLING_DAYS:
        return DateWindow(start=end - timedelta(days=_ROLLING_DAYS[preset]), end=end)
    if preset is DateRangePreset.YTD:
        return DateWindow(start=date(today.year, 1, 1), end=end)

    if not selection.is_complete:
        return None
    if selection.start_date > selection.end_date:
        raise InvalidDateRangeError(
            selection.start_date.isoformat(), selection.end_date.isoformat()
        )
    return DateWindow(
        start=selection.start_date,
        end=selection.end_date + timedelta(days=1),
    )
