"""
Module: pipetrak_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    report engines: milestone resolution, progress aggregation, delta
    reports, field-weld reports, the welder tiered summary, budget
    distribution, date ranges, formatting and sorting.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import pipetrak_kernel (values, exceptions, logging) and sibling
    engine modules.  MUST NOT import pipetrak_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      ``generated_at`` and ``today`` are explicit parameters.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Report entrypoints are traced via ``@traced_engine`` (see
    ``pipetrak_engines.tracer``), emitting PIPETRAK_ENGINE_TRACE records.

Usage:
    from pipetrak_engines import ProgressAggregator, DeltaEngine
    from pipetrak_engines import resolve_date_range, DateRangeSelection
"""

from pipetrak_kernel.logging_config import get_logger

logger = get_logger("engines")

from pipetrak_engines.aggregation import (
    ManhourReport,
    ProgressAggregator,
    ProgressReport,
    ProgressRow,
)
from pipetrak_engines.budget import (
    BudgetAllocation,
    BudgetComponent,
    BudgetDistribution,
    ParsedSize,
    WeightBasis,
    WeightResult,
    calculate_weight,
    distribute_budget,
    parse_size,
)
from pipetrak_engines.date_range import (
    DateRangePreset,
    DateRangeSelection,
    DateWindow,
    resolve_date_range,
)
from pipetrak_engines.delta import (
    DeltaEngine,
    DeltaEntity,
    MilestoneEvent,
    ProgressDeltaReport,
    ProgressDeltaRow,
    values_as_of,
)
from pipetrak_engines.field_welds import (
    FieldWeldAggregator,
    FieldWeldDeltaEngine,
    FieldWeldDeltaReport,
    FieldWeldDeltaRow,
    FieldWeldEntity,
    FieldWeldReport,
    FieldWeldRow,
    NdeResult,
    WeldStatus,
)
from pipetrak_engines.formatting import (
    DeltaTone,
    FormattedDelta,
    StackedDelta,
    format_count_delta,
    format_manhours,
    format_mh_delta,
    format_percent,
    format_percent_delta,
    format_row_percent,
    format_stacked_delta,
)
from pipetrak_engines.grouping import (
    GRAND_TOTAL_NAME,
    ComponentEntity,
    GroupingDimension,
    ReportBasis,
    ReportState,
)
from pipetrak_engines.milestones import (
    CategoryTotals,
    MilestoneDefinition,
    MilestoneResolver,
    MilestoneTemplate,
    ReportCategory,
    ResolvedProgress,
    TemplateRegistry,
    WorkflowType,
    category_for,
)
from pipetrak_engines.sorting import (
    SortDirection,
    SortPreferences,
    SortSpec,
    sort_rows,
    sort_with_grand_total,
)
from pipetrak_engines.welder_summary import (
    TierStats,
    WelderSummaryCalculator,
    WelderSummaryReport,
    WelderSummaryRow,
    WeldSection,
    XrayTier,
)

logger.debug(
    "engines_loaded",
    extra={
        "modules": [
            "milestones",
            "aggregation",
            "delta",
            "field_welds",
            "welder_summary",
            "budget",
            "date_range",
            "formatting",
            "sorting",
        ]
    },
)

__all__ = [
    # aggregation
    "ManhourReport",
    "ProgressAggregator",
    "ProgressReport",
    "ProgressRow",
    # budget
    "BudgetAllocation",
    "BudgetComponent",
    "BudgetDistribution",
    "ParsedSize",
    "WeightBasis",
    "WeightResult",
    "calculate_weight",
    "distribute_budget",
    "parse_size",
    # date_range
    "DateRangePreset",
    "DateRangeSelection",
    "DateWindow",
    "resolve_date_range",
    # delta
    "DeltaEngine",
    "DeltaEntity",
    "MilestoneEvent",
    "ProgressDeltaReport",
    "ProgressDeltaRow",
    "values_as_of",
    # field_welds
    "FieldWeldAggregator",
    "FieldWeldDeltaEngine",
    "FieldWeldDeltaReport",
    "FieldWeldDeltaRow",
    "FieldWeldEntity",
    "FieldWeldReport",
    "FieldWeldRow",
    "NdeResult",
    "WeldStatus",
    # formatting
    "DeltaTone",
    "FormattedDelta",
    "StackedDelta",
    "format_count_delta",
    "format_manhours",
    "format_mh_delta",
    "format_percent",
    "format_percent_delta",
    "format_row_percent",
    "format_stacked_delta",
    # grouping
    "GRAND_TOTAL_NAME",
    "ComponentEntity",
    "GroupingDimension",
    "ReportBasis",
    "ReportState",
    # milestones
    "CategoryTotals",
    "MilestoneDefinition",
    "MilestoneResolver",
    "MilestoneTemplate",
    "ReportCategory",
    "ResolvedProgress",
    "TemplateRegistry",
    "WorkflowType",
    "category_for",
    # sorting
    "SortDirection",
    "SortPreferences",
    "SortSpec",
    "sort_rows",
    "sort_with_grand_total",
    # welder_summary
    "TierStats",
    "WelderSummaryCalculator",
    "WelderSummaryReport",
    "WelderSummaryRow",
    "WeldSection",
    "XrayTier",
]
