"""
pipetrak_engines.formatting -- Display strings for report cells.

Responsibility:
    Turn report numbers into the strings and tones that table renderers
    and exporters show: whole-number row percentages, one-decimal Grand
    Total percentages, manhours with thousands separators, and signed
    deltas that keep "exactly zero" apart from "rounds to zero".

Architecture position:
    Engines -- pure formatting helpers, zero I/O.  No engine depends on
    this module; report objects call it for their display helpers.

Invariants enforced:
    - ZERO_BUDGET_UNDEFINED: an undefined Percent always renders "--".
    - The sign of a formatted delta matches the sign of its value.

Failure modes:
    None.  All helpers are total over Decimal / Percent input.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from pipetrak_kernel.domain.values import ZERO, Percent, round_half_up

UNDEFINED_TEXT = "--"
ZERO_DELTA_PLACEHOLDER = "—"


class DeltaTone(str, Enum):
    """Visual class of a delta cell."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class FormattedDelta:
    text: str
    tone: DeltaTone


@dataclass(frozen=True)
class StackedDelta:
    """Manhour delta over its percentage, as shown in stacked cells."""

    mh: str
    pct: str
    tone: DeltaTone
    is_zero: bool


def _tone(value: Decimal) -> DeltaTone:
    if value > ZERO:
        return DeltaTone.POSITIVE
    if value < ZERO:
        return DeltaTone.NEGATIVE
    return DeltaTone.NEUTRAL


def _plain(value: Decimal, places: int, grouped: bool = False) -> str:
    rounded = round_half_up(value, places)
    if rounded == ZERO:
        rounded = abs(rounded)
    spec = f"{',' if grouped else ''}.{places}f"
    return format(rounded, spec)


def format_percent(percent: Percent, places: int = 0) -> str:
    """``"--"`` when undefined, otherwise e.g. ``"67%"`` / ``"66.7%"``."""
    if not percent.is_defined:
        return UNDEFINED_TEXT
    return f"{_plain(percent.value, places)}%"


def format_row_percent(percent: Percent, is_grand_total: bool = False) -> str:
    """Data rows show whole numbers; the Grand Total keeps one decimal."""
    return format_percent(percent, 1 if is_grand_total else 0)


def format_manhours(value: Decimal) -> str:
    """``0`` -> "0", below 10 one decimal, otherwise grouped integer.

    The threshold applies to the value rounded to one place, so 9.96
    shows as "10" rather than "10.0".
    """
    if value == ZERO:
        return "0"
    if abs(round_half_up(value, 1)) < Decimal("10"):
        return _plain(value, 1)
    return _plain(value, 0, grouped=True)


def format_count_delta(value: int) -> FormattedDelta:
    if value > 0:
        return FormattedDelta(f"+{value}", DeltaTone.POSITIVE)
    if value < 0:
        return FormattedDelta(str(value), DeltaTone.NEGATIVE)
    return FormattedDelta("0", DeltaTone.NEUTRAL)


def format_percent_delta(percent: Percent) -> FormattedDelta:
    """Signed one-decimal percentage change; "--" when undefined."""
    if not percent.is_defined:
        return FormattedDelta(UNDEFINED_TEXT, DeltaTone.NEUTRAL)
    value = percent.value
    if value > ZERO:
        return FormattedDelta(f"+{_plain(value, 1)}%", DeltaTone.POSITIVE)
    if value < ZERO:
        return FormattedDelta(f"{_plain(value, 1)}%", DeltaTone.NEGATIVE)
    return FormattedDelta("0.0%", DeltaTone.NEUTRAL)


def _tiny_mh(value: Decimal) -> str:
    return "<1 mh" if value > ZERO else ">-1 mh"


def format_mh_delta(value: Decimal) -> FormattedDelta:
    """Compact manhour delta: ``+12 MH`` / ``-12 MH``.

    An exact zero shows the placeholder; a non-zero value that rounds to
    zero shows ``<1 mh`` / ``>-1 mh``.
    """
    tone = _tone(value)
    if value == ZERO:
        return FormattedDelta(ZERO_DELTA_PLACEHOLDER, tone)
    whole = round_half_up(abs(value), 0)
    if whole == ZERO:
        return FormattedDelta(_tiny_mh(value), tone)
    sign = "+" if value > ZERO else "-"
    return FormattedDelta(f"{sign}{whole:,} MH", tone)


def format_stacked_delta(mh_earned: Decimal, percent: Percent) -> StackedDelta:
    """Two-line delta cell: manhours (``+3 mh's``) over ``+1.5%``."""
    tone = _tone(mh_earned)
    if mh_earned == ZERO:
        return StackedDelta(ZERO_DELTA_PLACEHOLDER, "", tone, True)

    whole = round_half_up(abs(mh_earned), 0)
    if whole == ZERO:
        mh = _tiny_mh(mh_earned)
    else:
        unit = "mh" if whole == 1 else "mh's"
        sign = "+" if mh_earned > ZERO else "-"
        mh = f"{sign}{whole:,} {unit}"
    pct = format_percent_delta(percent)
    return StackedDelta(mh, pct.text, tone, False)
