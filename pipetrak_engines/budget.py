"""
pipetrak_engines.budget -- Manhour budget distribution by component weight.

Responsibility:
    Derive a relative weight for each component from its nominal pipe
    size (and linear footage for pipe), then distribute a project manhour
    budget across components in proportion to those weights.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Produces the per-component ``mh_budget`` that aggregation and delta
    reports consume.

Invariants enforced:
    - Allocations are rounded to 4 decimal places; the rounding remainder
      goes to the last component with non-zero weight so the distribution
      sums exactly to the total budget.
    - Zero-weight components (zero-length pipe) receive exactly 0 MH.
    - Identical inputs produce identical allocations.

Failure modes:
    - InvalidBudgetError for a negative total.
    - ZeroTotalWeightError when the weights sum to zero (including an
      empty component list).

Usage:
    from pipetrak_engines.budget import BudgetComponent, distribute_budget

    result = distribute_budget(
        total_mh=Decimal("1000"),
        components=[BudgetComponent("c1", "valve", size="2"), ...],
    )
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from pipetrak_engines.tracer import traced_engine
from pipetrak_kernel.domain.values import ZERO, round_half_up, to_decimal
from pipetrak_kernel.exceptions import InvalidBudgetError, ZeroTotalWeightError
from pipetrak_kernel.logging_config import get_logger

logger = get_logger("engines.budget")

ALLOCATION_PLACES = 4
SIZE_EXPONENT = Decimal("1.5")
LINEAR_FEET_FACTOR = Decimal("0.1")
FALLBACK_WEIGHT = Decimal("0.5")
THREADED_FALLBACK_WEIGHT = Decimal("1.0")

_INTEGER = re.compile(r"\d+")
_FRACTION = re.compile(r"(\d+)\s*/\s*(\d+)")
_MIXED = re.compile(r"(\d+)\s+(\d+)\s*/\s*(\d+)")
_REDUCER_SPLIT = re.compile(r"\s*[xX]\s*")


@dataclass(frozen=True)
class ParsedSize:
    raw: str
    diameter: Decimal | None
    is_reducer: bool = False
    second_diameter: Decimal | None = None


def _parse_simple(text: str) -> Decimal | None:
    text = text.strip().replace('"', "")
    if text.upper() == "HALF":
        return Decimal("0.5")
    if _INTEGER.fullmatch(text):
        return Decimal(text)
    match = _FRACTION.fullmatch(text)
    if match:
        numerator, denominator = (Decimal(g) for g in match.groups())
        return None if denominator == ZERO else numerator / denominator
    match = _MIXED.fullmatch(text)
    if match:
        whole, numerator, denominator = (Decimal(g) for g in match.groups())
        return None if denominator == ZERO else whole + numerator / denominator
    return None


def parse_size(raw: Any) -> ParsedSize:
    """Parse a nominal size: ``2``, ``3/4``, ``1 1/2``, ``HALF`` or ``2X4``.

    Reducers use the average of both ends.  ``NOSIZE``, blank, decimal
    notation, negative and anything unrecognised give ``diameter=None``.
    """
    text = "" if raw is None else str(raw)
    stripped = text.strip()
    if not stripped or stripped.upper() == "NOSIZE":
        return ParsedSize(raw=text, diameter=None)

    parts = _REDUCER_SPLIT.split(stripped)
    if len(parts) == 2:
        first, second = _parse_simple(parts[0]), _parse_simple(parts[1])
        if first is None or second is None:
            return ParsedSize(raw=text, diameter=None)
        return ParsedSize(
            raw=text,
            diameter=(first + second) / 2,
            is_reducer=True,
            second_diameter=second,
        )
    if len(parts) > 2:
        return ParsedSize(raw=text, diameter=None)
    return ParsedSize(raw=text, diameter=_parse_simple(stripped))


class WeightBasis(str, Enum):
    DIMENSION = "dimension"
    LINEAR_FEET = "linear_feet"
    FIXED = "fixed"


@dataclass(frozen=True)
class WeightResult:
    weight: Decimal
    basis: WeightBasis
    reason: str | None = None


def _uses_linear_feet(component_type: str) -> bool:
    upper = component_type.upper()
    return "THREADED" in upper or upper == "PIPE"


def _fallback(component_type: str, reason: str) -> WeightResult:
    weight = (
        THREADED_FALLBACK_WEIGHT
        if "THREADED" in component_type.upper()
        else FALLBACK_WEIGHT
    )
    return WeightResult(weight, WeightBasis.FIXED, reason)


def calculate_weight(
    component_type: str, size: Any = None, linear_feet: Any = None
) -> WeightResult:
    """Relative weight of one component.

    ``diameter ** 1.5``; pipe and threaded pipe with footage use
    ``diameter ** 1.5 * linear_feet * 0.1``.  Without a usable size the
    weight is 0.5 (1.0 for threaded pipe).
    """
    if size is None or (isinstance(size, str) and not size.strip()):
        return _fallback(component_type, "no_size")
    parsed = parse_size(size)
    if parsed.diameter is None or parsed.diameter <= ZERO:
        return _fallback(component_type, "unparseable_size")

    base = parsed.diameter ** SIZE_EXPONENT
    if _uses_linear_feet(component_type) and linear_feet is not None:
        try:
            feet = to_decimal(linear_feet)
        except (TypeError, ValueError):
            return WeightResult(base, WeightBasis.DIMENSION, "invalid_linear_feet")
        if feet < ZERO:
            return WeightResult(base, WeightBasis.DIMENSION, "invalid_linear_feet")
        return WeightResult(base * feet * LINEAR_FEET_FACTOR, WeightBasis.LINEAR_FEET)
    return WeightResult(base, WeightBasis.DIMENSION)


@dataclass(frozen=True)
class BudgetComponent:
    component_id: str
    component_type: str
    size: Any = None
    linear_feet: Any = None


@dataclass(frozen=True)
class BudgetAllocation:
    component_id: str
    weight: Decimal
    basis: WeightBasis
    budgeted_mh: Decimal


@dataclass(frozen=True)
class BudgetDistribution:
    total_mh: Decimal
    total_weight: Decimal
    allocations: tuple[BudgetAllocation, ...]

    @property
    def allocated_total(self) -> Decimal:
        return sum((a.budgeted_mh for a in self.allocations), ZERO)

    def budget_for(self, component_id: str) -> Decimal:
        for allocation in self.allocations:
            if allocation.component_id == component_id:
                return allocation.budgeted_mh
        raise KeyError(component_id)


@traced_engine("budget", "1.0", fingerprint_fields=("total_mh",))
def distribute_budget(
    *, total_mh: Any, components: Sequence[BudgetComponent]
) -> BudgetDistribution:
    """Split ``total_mh`` across components by weight.

    Postconditions:
        ``allocated_total == total_mh`` exactly.

    Raises:
        InvalidBudgetError: If total_mh is negative.
        ZeroTotalWeightError: If all weights are zero or no components.
    """
    total = to_decimal(total_mh)
    if total < ZERO:
        raise InvalidBudgetError(str(total))

    weights = [
        calculate_weight(c.component_type, c.size, c.linear_feet) for c in components
    ]
    total_weight = sum((w.weight for w in weights), ZERO)
    if total_weight == ZERO:
        logger.error(
            "budget_distribution_zero_weight",
            extra={"component_count": len(components)},
        )
        raise ZeroTotalWeightError(len(components))

    shares = [
        round_half_up(w.weight / total_weight * total, ALLOCATION_PLACES)
        for w in weights
    ]
    # The rounding remainder goes to the last component that carries weight.
    remainder_index = max(i for i, w in enumerate(weights) if w.weight > ZERO)
    shares[remainder_index] = total - sum(
        (s for i, s in enumerate(shares) if i != remainder_index), ZERO
    )

    allocations = [
        BudgetAllocation(
            component_id=component.component_id,
            weight=weight.weight,
            basis=weight.basis,
            budgeted_mh=amount,
        )
        for component, weight, amount in zip(components, weights, shares)
    ]

    fallback_count = sum(1 for w in weights if w.basis is WeightBasis.FIXED)
    logger.info(
        "budget_distributed",
        extra={
            "total_mh": total,
            "component_count": len(components),
            "fallback_weight_count": fallback_count,
            "total_weight": round_half_up(total_weight, ALLOCATION_PLACES),
        },
    )
    return BudgetDistribution(
        total_mh=total,
        total_weight=total_weight,
        allocations=tuple(allocations),
    )
