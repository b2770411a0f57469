"""
Values -- Immutable numeric value objects for progress computation.

Responsibility:
    Provides the percentage value object with an explicit undefined
    variant, the single guarded division used for every category and
    tier percentage, and the Decimal boundary conversion applied to raw
    budgets and milestone values.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine.  No outward dependencies.

Invariants enforced:
    ZERO_BUDGET_UNDEFINED -- ``safe_percent`` with a zero denominator
    returns ``Percent.undefined()``, never 0, NaN or an exception.

Failure modes:
    - TypeError from ``to_decimal`` for non-numeric input.
    - ValueError from ``to_decimal`` for non-finite or unparseable input.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Convert a raw numeric input to Decimal.

    Floats go through ``str()`` so 0.1 becomes Decimal("0.1"), not the
    binary expansion.  Booleans are rejected: they are only meaningful
    as discrete milestone values and are handled there.

    Raises:
        TypeError: If value is a bool or not numeric/str.
        ValueError: If value cannot be parsed or is not finite.
    """
    if isinstance(value, bool):
        raise TypeError("Boolean is not a numeric amount")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Cannot convert {value!r} to Decimal") from exc
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")
    if not result.is_finite():
        raise ValueError(f"Non-finite amount: {value!r}")
    return result


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def round_half_up(value: Decimal, places: int = 0) -> Decimal:
    """Round with ROUND_HALF_UP to ``places`` decimals."""
    exponent = Decimal(1).scaleb(-places)
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class Percent:
    """
    Percentage value with an explicit undefined state.

    Contract:
        ``value`` is None exactly when the percentage could not be
        computed because its denominator was zero.

    Guarantees:
        - Immutable and hashable.
        - Undefined compares unequal to every defined percentage,
          including 0.

    Non-goals:
        - Display formatting lives in pipetrak_engines.formatting.
    """

    value: Decimal | None

    @classmethod
    def of(cls, value: Any) -> Percent:
        return cls(to_decimal(value))

    @classmethod
    def undefined(cls) -> Percent:
        return cls(None)

    @property
    def is_defined(self) -> bool:
        return self.value is not None

    def or_zero(self) -> Decimal:
        """The value, or 0 when undefined (count-based report convention)."""
        return self.value if self.value is not None else ZERO

    def rounded(self, places: int = 0) -> Percent:
        if self.value is None:
            return self
        return Percent(round_half_up(self.value, places))

    def __str__(self) -> str:
        return "--" if self.value is None else f"{self.value}%"


def safe_percent(numerator: Decimal, denominator: Decimal) -> Percent:
    """``numerator / denominator * 100`` with the zero-denominator guard.

    Postconditions:
        Returns ``Percent.undefined()`` when denominator is zero, otherwise
        an unrounded defined Percent.
    """
    if denominator == ZERO:
        return Percent.undefined()
    return Percent(numerator / denominator * HUNDRED)
