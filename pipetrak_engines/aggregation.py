"""
pipetrak_engines.aggregation -- Progress aggregation by grouping dimension.

Responsibility:
    Group components by area, system or test package and produce one
    progress row per group plus a Grand Total row.  Count-based reports
    weight every component equally (unit budget); manhour reports weight
    by each component's manhour budget.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Depends on milestones (resolution), grouping (dispatch) and sorting.

Invariants enforced:
    - GRAND_TOTAL_SUMS_RAW: row and Grand Total percentages derive from
      summed budget / earned; child percentages are never averaged.
    - GRAND_TOTAL_LAST: ``display_rows`` pins the Grand Total last.
    - ZERO_BUDGET_UNDEFINED: category percent over zero budget is "--".
    - EMPTY_IS_NOT_ZERO: no included components gives ReportState.EMPTY
      and no Grand Total.
    - PURITY: ``generated_at`` is a parameter; no clock access.

Failure modes:
    - InvalidDimensionError for ``welder`` or an unknown dimension.
    - MissingGroupKeyError for a keyless component when ``strict=True``.
    - InvalidMilestoneValueError / InvalidBudgetError from resolution.

Audit relevance:
    Every report call is traced via ``@traced_engine`` and logs
    ``progress_report_completed`` with row and exclusion counts.

Usage:
    from pipetrak_engines.aggregation import ProgressAggregator

    report = ProgressAggregator().manhour_report(
        entities=components,
        dimension=GroupingDimension.AREA,
        project_id="proj-1",
        generated_at=clock.now(),
    )
    for row in report.display_rows(SortSpec("pct_total", SortDirection.DESC)):
        ...
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from pipetrak_engines.formatting import format_manhours, format_row_percent
from pipetrak_engines.grouping import (
    COMPONENT_KEY_EXTRACTORS,
    GRAND_TOTAL_NAME,
    ComponentEntity,
    GroupingDimension,
    ReportBasis,
    ReportState,
    group_entities,
    key_extractor,
)
from pipetrak_engines.milestones import (
    CategoryTotals,
    MilestoneResolver,
    ReportCategory,
    ResolvedProgress,
    empty_categories,
    sum_categories,
)
from pipetrak_engines.sorting import SortSpec, sort_with_grand_total
from pipetrak_engines.tracer import traced_engine
from pipetrak_kernel.domain.values import ONE, ZERO, Percent, safe_percent
from pipetrak_kernel.exceptions import UnknownSortColumnError
from pipetrak_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")

EMPTY_MESSAGE = "No components found for this project."


@dataclass(frozen=True)
class ProgressRow:
    """
    One group (or the Grand Total) of a progress report.

    ``categories`` holds summed raw budget / earned per category; on a
    count basis each member contributes a unit budget.
    """

    name: str
    entity_count: int
    basis: ReportBasis
    categories: dict[ReportCategory, CategoryTotals] = field(
        default_factory=empty_categories
    )
    is_grand_total: bool = False

    @property
    def total_budget(self) -> Decimal:
        return sum((c.budget for c in self.categories.values()), ZERO)

    @property
    def total_earned(self) -> Decimal:
        return sum((c.earned for c in self.categories.values()), ZERO)

    @property
    def pct_total(self) -> Percent:
        """Overall percent; 0 rather than "--" on an empty count basis."""
        percent = safe_percent(self.total_earned, self.total_budget)
        if self.basis is ReportBasis.COUNT and not percent.is_defined:
            return Percent(ZERO)
        return percent

    def category_percent(self, category: ReportCategory) -> Percent:
        return self.categories[category].percent

    def sort_value(self, column: str) -> Any:
        try:
            return _ROW_COLUMNS[column](self)
        except KeyError:
            raise UnknownSortColumnError(column, "progress") from None

    def formatted_percent(self, category: ReportCategory | None = None) -> str:
        """Display string for a category percent, or the overall one."""
        percent = self.pct_total if category is None else self.category_percent(category)
        return format_row_percent(percent, self.is_grand_total)

    def formatted_manhours(self, category: ReportCategory | None = None) -> str:
        value = (
            self.total_earned if category is None else self.categories[category].earned
        )
        return format_manhours(value)


def _category_columns() -> dict[str, Callable[[ProgressRow], Any]]:
    columns: dict[str, Callable[[ProgressRow], Any]] = {}
    for category in ReportCategory:
        columns[f"pct_{category.value}"] = (
            lambda r, c=category: r.category_percent(c)
        )
        columns[f"{category.value}_budget"] = (
            lambda r, c=category: r.categories[c].budget
        )
        columns[f"{category.value}_earned"] = (
            lambda r, c=category: r.categories[c].earned
        )
    return columns


_ROW_COLUMNS: dict[str, Callable[[ProgressRow], Any]] = {
    "budget": lambda r: r.entity_count,
    "total_budget": lambda r: r.total_budget,
    "total_earned": lambda r: r.total_earned,
    "pct_total": lambda r: r.pct_total,
    **_category_columns(),
}

SORTABLE_PROGRESS_COLUMNS: frozenset[str] = frozenset(_ROW_COLUMNS) | {"name"}


def build_progress_row(
    name: str,
    members: Sequence[ResolvedProgress],
    basis: ReportBasis,
) -> ProgressRow:
    return ProgressRow(
        name=name,
        entity_count=len(members),
        basis=basis,
        categories=sum_categories(m.categories for m in members),
    )


def grand_total_row(rows: Sequence[ProgressRow], basis: ReportBasis) -> ProgressRow:
    """Sum of raw row values; percentages are derived once from the sums."""
    return ProgressRow(
        name=GRAND_TOTAL_NAME,
        entity_count=sum(r.entity_count for r in rows),
        basis=basis,
        categories=sum_categories(r.categories for r in rows),
        is_grand_total=True,
    )


@dataclass(frozen=True)
class ProgressReport:
    """Rows for one dimension plus the Grand Total and report metadata."""

    dimension: GroupingDimension
    basis: ReportBasis
    rows: tuple[ProgressRow, ...]
    grand_total: ProgressRow | None
    generated_at: datetime
    project_id: str
    state: ReportState = ReportState.READY
    excluded_count: int = 0

    @property
    def is_empty(self) -> bool:
        return self.state is ReportState.EMPTY

    @property
    def message(self) -> str | None:
        return EMPTY_MESSAGE if self.is_empty else None

    def display_rows(self, sort: SortSpec | None = None) -> list[ProgressRow]:
        """Sorted data rows with the Grand Total last; empty when EMPTY."""
        if self.is_empty:
            return []
        return sort_with_grand_total(self.rows, self.grand_total, sort)


class ManhourReport(ProgressReport):
    """ProgressReport on a manhour basis."""

    @property
    def total_mh_budget(self) -> Decimal:
        return self.grand_total.total_budget if self.grand_total else ZERO

    @property
    def total_mh_earned(self) -> Decimal:
        return self.grand_total.total_earned if self.grand_total else ZERO

    @property
    def mh_percent_complete(self) -> Percent:
        if self.grand_total is None:
            return Percent.undefined()
        return self.grand_total.pct_total


class ProgressAggregator:
    """
    Pure aggregator for component progress reports.

    Contract:
        No I/O, no clock access, fully deterministic.
    Guarantees:
        - Rows appear in first-seen group order; use ``display_rows`` to sort.
        - ``grand_total`` earned / budget equal the sums over ``rows``.
        - Components without a key are in no row and not in the total.
    Non-goals:
        - Field-weld specific metrics (see ``FieldWeldAggregator``).
    """

    def __init__(self, resolver: MilestoneResolver | None = None):
        self._resolver = resolver or MilestoneResolver()

    @traced_engine(
        "aggregation", "1.0", fingerprint_fields=("dimension", "project_id", "strict")
    )
    def component_report(
        self,
        *,
        entities: Iterable[ComponentEntity],
        dimension: GroupingDimension | str,
        project_id: str,
        generated_at: datetime,
        strict: bool = False,
    ) -> ProgressReport:
        """Count-based report: every component weighs the same."""
        return self._build(
            entities, dimension, project_id, generated_at, strict,
            ReportBasis.COUNT, ProgressReport,
        )

    @traced_engine(
        "aggregation", "1.0", fingerprint_fields=("dimension", "project_id", "strict")
    )
    def manhour_report(
        self,
        *,
        entities: Iterable[ComponentEntity],
        dimension: GroupingDimension | str,
        project_id: str,
        generated_at: datetime,
        strict: bool = False,
    ) -> ManhourReport:
        """Manhour-based report: components weigh by ``mh_budget``."""
        return self._build(
            entities, dimension, project_id, generated_at, strict,
            ReportBasis.MANHOUR, ManhourReport,
        )

    def resolve(self, entity: ComponentEntity, basis: ReportBasis) -> ResolvedProgress:
        budget = ONE if basis is ReportBasis.COUNT else entity.mh_budget
        return self._resolver.resolve(
            entity.template, entity.milestone_values, budget, entity.entity_id
        )

    def _build(
        self,
        entities: Iterable[ComponentEntity],
        dimension: GroupingDimension | str,
        project_id: str,
        generated_at: datetime,
        strict: bool,
        basis: ReportBasis,
        report_cls: type[ProgressReport],
    ) -> ProgressReport:
        t0 = time.monotonic()
        extract = key_extractor(dimension, COMPONENT_KEY_EXTRACTORS, "component")
        dimension = GroupingDimension(dimension)
        entities = list(entities)

        logger.info(
            "progress_report_started",
            extra={
                "project_id": project_id,
                "dimension": dimension.value,
                "basis": basis.value,
                "entity_count": len(entities),
            },
        )

        grouping = group_entities(entities, dimension, extract, strict=strict)
        rows = tuple(
            build_progress_row(
                key, [self.resolve(e, basis) for e in members], basis
            )
            for key, members in grouping.groups.items()
        )

        if rows:
            state = ReportState.READY
            grand_total = grand_total_row(rows, basis)
        else:
            state = ReportState.EMPTY
            grand_total = None

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "progress_report_completed",
            extra={
                "project_id": project_id,
                "dimension": dimension.value,
                "basis": basis.value,
                "state": state.value,
                "row_count": len(rows),
                "excluded_count": grouping.excluded_count,
                "duration_ms": duration_ms,
            },
        )

        return report_cls(
            dimension=dimension,
            basis=basis,
            rows=rows,
            grand_total=grand_total,
            generated_at=generated_at,
            project_id=project_id,
            state=state,
            excluded_count=grouping.excluded_count,
        )
