"""
Typed Exception Hierarchy for the PipeTrak progress core.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Report computation sits between data entry (templates, milestone updates)
and rendering. When upstream data is wrong the core must say so precisely,
so callers can tell a broken template from a pending date selection.

Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        template = MilestoneTemplate(...)
    except TemplateWeightSumError as e:
        api_response(code=e.code, total=e.total_weight)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PipeTrakError (base)
    |
    +-- TemplateError
    |   +-- InvalidTemplateError
    |   |   +-- TemplateWeightSumError
    |   |   +-- DuplicateMilestoneOrderError
    |   |   +-- DuplicateMilestoneNameError
    |   |   +-- UnknownMilestoneCategoryError
    |   +-- TemplateNotFoundError
    |
    +-- MilestoneValueError
    |   +-- InvalidMilestoneValueError
    |
    +-- GroupingError
    |   +-- InvalidDimensionError
    |   +-- MissingGroupKeyError
    |
    +-- DateRangeError
    |   +-- InvalidDateRangeError
    |   +-- UnknownDateRangePresetError
    |
    +-- SortError
    |   +-- UnknownSortColumnError
    |
    +-- BudgetError
        +-- ZeroTotalWeightError
        +-- InvalidBudgetError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                        | When Raised
------------|-----------------------------|------------------------------------
Template    | TEMPLATE_WEIGHT_SUM         | Milestone weights do not sum to 100
            | DUPLICATE_MILESTONE_ORDER   | Two milestones share an order
            | DUPLICATE_MILESTONE_NAME    | Two milestones share a name
            | UNKNOWN_MILESTONE_CATEGORY  | Milestone has no report category
            | TEMPLATE_NOT_FOUND          | No template for type/version
------------|-----------------------------|------------------------------------
Milestone   | INVALID_MILESTONE_VALUE     | Value not allowed for milestone
------------|-----------------------------|------------------------------------
Grouping    | INVALID_DIMENSION           | Dimension not valid for entity kind
            | MISSING_GROUP_KEY           | Entity has no key (strict mode)
------------|-----------------------------|------------------------------------
Date range  | INVALID_DATE_RANGE          | Custom start after end
            | UNKNOWN_DATE_RANGE_PRESET   | Preset name not recognised
------------|-----------------------------|------------------------------------
Sort        | UNKNOWN_SORT_COLUMN         | Column not sortable for report
------------|-----------------------------|------------------------------------
Budget      | ZERO_TOTAL_WEIGHT           | Nothing to distribute budget over
            | INVALID_BUDGET              | Negative budget

Zero-budget division is NOT an error: it resolves to the undefined
percentage (see ``pipetrak_kernel.domain.values.safe_percent``).
===============================================================================
"""


class PipeTrakError(Exception):
    """
    Base exception for all PipeTrak core errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PIPETRAK_ERROR"


# Template-related exceptions


class TemplateError(PipeTrakError):
    """Base exception for milestone template errors."""

    code: str = "TEMPLATE_ERROR"


class InvalidTemplateError(TemplateError):
    """
    Template violates a structural invariant.

    Templates are validated at data entry; reaching the engine with an
    invalid one means an upstream data bug. Never renormalise.
    """

    code: str = "INVALID_TEMPLATE"

    def __init__(self, component_type: str, version: int, reason: str):
        self.component_type = component_type
        self.version = version
        self.reason = reason
        super().__init__(
            f"Invalid milestone template {component_type} v{version}: {reason}"
        )


class TemplateWeightSumError(InvalidTemplateError):
    """Milestone weights do not sum to exactly 100."""

    code: str = "TEMPLATE_WEIGHT_SUM"

    def __init__(self, component_type: str, version: int, total_weight: int):
        self.total_weight = total_weight
        super().__init__(
            component_type,
            version,
            f"weights sum to {total_weight}, expected 100",
        )


class DuplicateMilestoneOrderError(InvalidTemplateError):
    """Two milestones in one template share an order value."""

    code: str = "DUPLICATE_MILESTONE_ORDER"

    def __init__(self, component_type: str, version: int, order: int):
        self.order = order
        super().__init__(
            component_type, version, f"order {order} used more than once"
        )


class DuplicateMilestoneNameError(InvalidTemplateError):
    """Two milestones in one template share a name."""

    code: str = "DUPLICATE_MILESTONE_NAME"

    def __init__(self, component_type: str, version: int, milestone: str):
        self.milestone = milestone
        super().__init__(
            component_type,
            version,
            f"milestone '{milestone}' defined more than once",
        )


class UnknownMilestoneCategoryError(InvalidTemplateError):
    """Milestone has no explicit category and its name is not in the map."""

    code: str = "UNKNOWN_MILESTONE_CATEGORY"

    def __init__(self, component_type: str, version: int, milestone: str):
        self.milestone = milestone
        super().__init__(
            component_type,
            version,
            f"milestone '{milestone}' has no report category",
        )


class TemplateNotFoundError(TemplateError):
    """No template registered for the component type / version."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, component_type: str, version: int | None = None):
        self.component_type = component_type
        self.version = version
        suffix = f" v{version}" if version is not None else ""
        super().__init__(f"Milestone template not found: {component_type}{suffix}")


# Milestone value exceptions


class MilestoneValueError(PipeTrakError):
    """Base exception for milestone value errors."""

    code: str = "MILESTONE_VALUE_ERROR"


class InvalidMilestoneValueError(MilestoneValueError):
    """Value is not allowed for the milestone (e.g. 0.5 on a discrete one)."""

    code: str = "INVALID_MILESTONE_VALUE"

    def __init__(self, milestone: str, value: object, is_partial: bool):
        self.milestone = milestone
        self.value = value
        self.is_partial = is_partial
        kind = "partial" if is_partial else "discrete"
        super().__init__(
            f"Invalid value {value!r} for {kind} milestone '{milestone}'"
        )


# Grouping exceptions


class GroupingError(PipeTrakError):
    """Base exception for grouping dimension errors."""

    code: str = "GROUPING_ERROR"


class InvalidDimensionError(GroupingError):
    """Dimension cannot be used for this kind of report."""

    code: str = "INVALID_DIMENSION"

    def __init__(self, dimension: str, report_kind: str):
        self.dimension = dimension
        self.report_kind = report_kind
        super().__init__(
            f"Dimension '{dimension}' is not valid for {report_kind} reports"
        )


class MissingGroupKeyError(GroupingError):
    """Entity has no value for the grouping dimension (strict mode only)."""

    code: str = "MISSING_GROUP_KEY"

    def __init__(self, entity_id: str, dimension: str):
        self.entity_id = entity_id
        self.dimension = dimension
        super().__init__(
            f"Entity {entity_id} has no {dimension}; refusing to bucket it"
        )


# Date range exceptions


class DateRangeError(PipeTrakError):
    """Base exception for date range errors."""

    code: str = "DATE_RANGE_ERROR"


class InvalidDateRangeError(DateRangeError):
    """Custom range ends before it starts."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date: str, end_date: str):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"Date range start {start_date} is after end {end_date}"
        )


class UnknownDateRangePresetError(DateRangeError):
    """Preset name is not one of the supported presets."""

    code: str = "UNKNOWN_DATE_RANGE_PRESET"

    def __init__(self, preset: str):
        self.preset = preset
        super().__init__(f"Unknown date range preset: {preset}")


# Sort exceptions


class SortError(PipeTrakError):
    """Base exception for sort errors."""

    code: str = "SORT_ERROR"


class UnknownSortColumnError(SortError):
    """Column is not sortable for the given row type."""

    code: str = "UNKNOWN_SORT_COLUMN"

    def __init__(self, column: str, row_type: str):
        self.column = column
        self.row_type = row_type
        super().__init__(f"Cannot sort {row_type} rows by '{column}'")


# Budget exceptions


class BudgetError(PipeTrakError):
    """Base exception for manhour budget errors."""

    code: str = "BUDGET_ERROR"


class ZeroTotalWeightError(BudgetError):
    """Sum of component weights is zero; nothing to distribute over."""

    code: str = "ZERO_TOTAL_WEIGHT"

    def __init__(self, component_count: int):
        self.component_count = component_count
        super().__init__(
            f"Sum of weights across {component_count} components is zero, "
            "cannot distribute budget"
        )


class InvalidBudgetError(BudgetError):
    """Budget amount is negative."""

    code: str = "INVALID_BUDGET"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"Manhour budget cannot be negative: {amount}")
