"""
Report Invariants Contract.

These invariants are structural law for every report the core produces.
No configuration or sort preference may override them.

This module exists solely to declare them explicitly. Enforcement lives in
the engines (pipetrak_engines.milestones, aggregation, delta,
welder_summary) and is checked by tests/fuzzing.
"""

from enum import Enum, unique


@unique
class ReportInvariant(str, Enum):
    """Non-configurable invariants enforced by the engines."""

    TEMPLATE_WEIGHT_SUM = "template_weight_sum"
    """Milestone weights of every template sum to exactly 100. Enforced at
    MilestoneTemplate construction; never renormalised."""

    GRAND_TOTAL_SUMS_RAW = "grand_total_sums_raw"
    """Grand Total earned and budget equal the sum over the rows; its
    percentage is derived once from those sums, never averaged."""

    GRAND_TOTAL_LAST = "grand_total_last"
    """The Grand Total row is the final row of every rendered set,
    regardless of sort column or direction."""

    ZERO_BUDGET_UNDEFINED = "zero_budget_undefined"
    """A zero denominator yields the undefined percentage ("--"), never
    0%, NaN or an exception."""

    DELTA_BUDGET_IS_CURRENT = "delta_budget_is_current"
    """Delta percentages divide by the current (end of window) budget,
    never by a budget delta."""

    EMPTY_IS_NOT_ZERO = "empty_is_not_zero"
    """An empty entity set (or an activity-free window) is reported as an
    explicit state, not as an all-zero Grand Total."""

    PURITY = "purity"
    """Engines perform no I/O and never read the clock; identical inputs
    produce identical outputs."""


ALL_REPORT_INVARIANTS: frozenset[ReportInvariant] = frozenset(ReportInvariant)

# The engines package may not import from these packages.
# This is enforced by tests/architecture/test_import_boundaries.py.
FORBIDDEN_ENGINE_IMPORTS: tuple[str, ...] = (
    "pipetrak_config",
    "scripts",
)
