"""
pipetrak_engines.delta -- Time-windowed change in earned value.

Responsibility:
    Compare each entity's milestone values at the start and end of a
    date window, compute per-category earned deltas against current
    budgets, and roll active entities into delta rows plus a Grand Total.
    Start / end snapshots are supplied directly or rebuilt by replaying
    milestone events.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Depends on milestones, grouping and sorting; reuses the aggregation
    division rule via ``CategoryTotals.percent``.

Invariants enforced:
    - ``delta_earned == end_earned - start_earned`` per entity and category.
    - DELTA_BUDGET_IS_CURRENT: delta percentages divide by the current
      budget of every group member, never by a budget delta.
    - GRAND_TOTAL_SUMS_RAW / GRAND_TOTAL_LAST as for aggregation.
    - EMPTY_IS_NOT_ZERO: a window with no active entities gives
      ReportState.NO_ACTIVITY and no Grand Total.

Failure modes:
    - InvalidDimensionError / MissingGroupKeyError as for aggregation.
    - InvalidMilestoneValueError from resolving either snapshot.

Audit relevance:
    Delta reports answer "what was earned this week"; every call is
    traced via ``@traced_engine``.

Usage:
    from pipetrak_engines.delta import DeltaEngine, DeltaEntity

    window = resolve_date_range(selection, clock.today())
    report = DeltaEngine().component_delta_report(
        entities=[
            DeltaEntity.from_events(c, events, window, clock.site_tz)
            for c in components
        ],
        dimension=GroupingDimension.SYSTEM,
        window=window,
        project_id="proj-1",
        generated_at=clock.now(),
    )
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, tzinfo
from decimal import Decimal
from typing import Any

from pipetrak_engines.date_range import DateWindow
from pipetrak_engines.formatting import (
    FormattedDelta,
    StackedDelta,
    format_mh_delta,
    format_percent_delta,
    format_stacked_delta,
)
from pipetrak_engines.grouping import (
    COMPONENT_KEY_EXTRACTORS,
    GRAND_TOTAL_NAME,
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
    empty_categories,
    sum_categories,
)
from pipetrak_engines.sorting import SortSpec, sort_with_grand_total
from pipetrak_engines.tracer import traced_engine
from pipetrak_kernel.domain.values import ONE, ZERO, Percent, safe_percent
from pipetrak_kernel.exceptions import UnknownSortColumnError
from pipetrak_kernel.logging_config import get_logger

logger = get_logger("engines.delta")

NO_ACTIVITY_MESSAGES: dict[ReportBasis, str] = {
    ReportBasis.MANHOUR: "No manhour activity found for the selected time period.",
    ReportBasis.COUNT: "No activity found for the selected time period.",
}
EMPTY_MESSAGE = "No components found for this project."


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MilestoneEvent:
    """One recorded milestone change."""

    entity_id: str
    milestone: str
    value: Any
    recorded_at: datetime


def _is_before(recorded_at: date, cutoff: date, tz: tzinfo = UTC) -> bool:
    if isinstance(cutoff, datetime):
        return recorded_at < cutoff
    if isinstance(recorded_at, datetime):
        # Naive timestamps are taken as already site-local.
        if recorded_at.tzinfo is not None:
            recorded_at = recorded_at.astimezone(tz)
        recorded_at = recorded_at.date()
    return recorded_at < cutoff


def values_as_of(
    events: Iterable[MilestoneEvent],
    entity_id: str,
    cutoff: date | datetime,
    tz: tzinfo = UTC,
) -> dict[str, Any] | None:
    """Milestone values of ``entity_id`` from events strictly before ``cutoff``.

    A ``date`` cutoff excludes every event on that day, where an event's
    day is its ``recorded_at`` in ``tz`` (the site timezone the window was
    resolved in).  Returns None when the entity has no event before the
    cutoff.
    """
    relevant = sorted(
        (
            e for e in events
            if e.entity_id == entity_id and _is_before(e.recorded_at, cutoff, tz)
        ),
        key=lambda e: e.recorded_at,
    )
    if not relevant:
        return None
    values: dict[str, Any] = {}
    for event in relevant:
        values[event.milestone] = event.value
    return values


@dataclass(frozen=True)
class DeltaEntity:
    """
    An entity with its milestone values at both window edges.

    ``start_values`` of None means the entity had no recorded progress
    when the window opened.  ``end_values`` of None means "current values".
    """

    entity: Any
    start_values: Mapping[str, Any] | None = None
    end_values: Mapping[str, Any] | None = None

    @property
    def entity_id(self) -> str:
        return self.entity.entity_id

    @property
    def existed_at_start(self) -> bool:
        return self.start_values is not None

    @property
    def current_values(self) -> Mapping[str, Any]:
        if self.end_values is not None:
            return self.end_values
        return self.entity.milestone_values

    @classmethod
    def from_events(
        cls,
        entity: Any,
        events: Sequence[MilestoneEvent],
        window: DateWindow,
        tz: tzinfo = UTC,
    ) -> DeltaEntity:
        """Replay ``events`` to both window edges, bucketing days in ``tz``."""
        return cls(
            entity=entity,
            start_values=values_as_of(events, entity.entity_id, window.start, tz),
            end_values=values_as_of(events, entity.entity_id, window.end, tz) or {},
        )


@dataclass(frozen=True)
class EntityDelta:
    """Per-entity change: category ``earned`` holds the delta."""

    entity_id: str
    categories: dict[ReportCategory, CategoryTotals]
    percent_delta: Decimal

    @property
    def is_active(self) -> bool:
        if self.percent_delta != ZERO:
            return True
        return any(c.earned != ZERO for c in self.categories.values())


def compute_entity_delta(
    resolver: MilestoneResolver, item: DeltaEntity, basis: ReportBasis
) -> EntityDelta:
    """Resolve both snapshots against the current template and budget."""
    entity = item.entity
    budget = ONE if basis is ReportBasis.COUNT else entity.mh_budget
    start = resolver.resolve(
        entity.template, item.start_values or {}, budget, entity.entity_id
    )
    end = resolver.resolve(
        entity.template, item.current_values, budget, entity.entity_id
    )
    categories = {
        category: CategoryTotals(
            budget=end.categories[category].budget,
            earned=end.categories[category].earned - start.categories[category].earned,
        )
        for category in ReportCategory
    }
    return EntityDelta(
        entity_id=entity.entity_id,
        categories=categories,
        percent_delta=end.percent_complete - start.percent_complete,
    )


# ---------------------------------------------------------------------------
# Rows and report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProgressDeltaRow:
    """
    One group (or the Grand Total) of a delta report.

    ``categories[c].budget`` is the current budget of every member;
    ``categories[c].earned`` is the summed earned delta.
    """

    name: str
    entities_with_activity: int
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
    def delta_total_earned(self) -> Decimal:
        return sum((c.earned for c in self.categories.values()), ZERO)

    @property
    def delta_pct_complete(self) -> Percent:
        return safe_percent(self.delta_total_earned, self.total_budget)

    def delta_earned(self, category: ReportCategory) -> Decimal:
        return self.categories[category].earned

    def delta_percent(self, category: ReportCategory) -> Percent:
        return self.categories[category].percent

    def sort_value(self, column: str) -> Any:
        try:
            return _DELTA_COLUMNS[column](self)
        except KeyError:
            raise UnknownSortColumnError(column, "delta") from None

    def formatted_mh_delta(self) -> FormattedDelta:
        return format_mh_delta(self.delta_total_earned)

    def formatted_pct_delta(self) -> FormattedDelta:
        return format_percent_delta(self.delta_pct_complete)

    def stacked(self, category: ReportCategory | None = None) -> StackedDelta:
        if category is None:
            return format_stacked_delta(
                self.delta_total_earned, self.delta_pct_complete
            )
        return format_stacked_delta(
            self.delta_earned(category), self.delta_percent(category)
        )


def _delta_category_columns() -> dict[str, Callable[[ProgressDeltaRow], Any]]:
    columns: dict[str, Callable[[ProgressDeltaRow], Any]] = {}
    for category in ReportCategory:
        columns[f"delta_{category.value}_earned"] = (
            lambda r, c=category: r.delta_earned(c)
        )
        columns[f"delta_pct_{category.value}"] = (
            lambda r, c=category: r.delta_percent(c)
        )
        columns[f"{category.value}_budget"] = (
            lambda r, c=category: r.categories[c].budget
        )
    return columns


_DELTA_COLUMNS: dict[str, Callable[[ProgressDeltaRow], Any]] = {
    "entities_with_activity": lambda r: r.entities_with_activity,
    "total_budget": lambda r: r.total_budget,
    "delta_total_earned": lambda r: r.delta_total_earned,
    "delta_pct_complete": lambda r: r.delta_pct_complete,
    **_delta_category_columns(),
}

SORTABLE_DELTA_COLUMNS: frozenset[str] = frozenset(_DELTA_COLUMNS) | {"name"}


def delta_grand_total(
    rows: Sequence[ProgressDeltaRow], basis: ReportBasis
) -> ProgressDeltaRow:
    return ProgressDeltaRow(
        name=GRAND_TOTAL_NAME,
        entities_with_activity=sum(r.entities_with_activity for r in rows),
        entity_count=sum(r.entity_count for r in rows),
        basis=basis,
        categories=sum_categories(r.categories for r in rows),
        is_grand_total=True,
    )


@dataclass(frozen=True)
class ProgressDeltaReport:
    dimension: GroupingDimension
    basis: ReportBasis
    window: DateWindow
    rows: tuple[ProgressDeltaRow, ...]
    grand_total: ProgressDeltaRow | None
    generated_at: datetime
    project_id: str
    state: ReportState = ReportState.READY
    excluded_count: int = 0

    @property
    def has_activity(self) -> bool:
        return self.state is ReportState.READY

    @property
    def message(self) -> str | None:
        if self.state is ReportState.NO_ACTIVITY:
            return NO_ACTIVITY_MESSAGES[self.basis]
        if self.state is ReportState.EMPTY:
            return EMPTY_MESSAGE
        return None

    def display_rows(self, sort: SortSpec | None = None) -> list[ProgressDeltaRow]:
        if not self.has_activity:
            return []
        return sort_with_grand_total(self.rows, self.grand_total, sort)


class DeltaEngine:
    """
    Pure engine for component delta reports.

    Contract:
        No I/O, no clock access, fully deterministic.
    Guarantees:
        - Entities whose deltas are all zero appear in no activity count.
        - Groups without an active entity produce no row.
        - Row budgets are current budgets of all group members.
        - ``grand_total`` sums the rows.
    """

    def __init__(self, resolver: MilestoneResolver | None = None):
        self._resolver = resolver or MilestoneResolver()

    @traced_engine(
        "delta",
        "1.0",
        fingerprint_fields=("dimension", "window", "project_id", "basis"),
    )
    def component_delta_report(
        self,
        *,
        entities: Iterable[DeltaEntity],
        dimension: GroupingDimension | str,
        window: DateWindow,
        project_id: str,
        generated_at: datetime,
        basis: ReportBasis = ReportBasis.MANHOUR,
        strict: bool = False,
    ) -> ProgressDeltaReport:
        """
        Preconditions:
            ``window`` came from ``resolve_date_range``; callers skip this
            call when it returned None.

        Postconditions:
            state is READY iff at least one row exists.
        """
        t0 = time.monotonic()
        extract = key_extractor(dimension, COMPONENT_KEY_EXTRACTORS, "component")
        dimension = GroupingDimension(dimension)
        entities = list(entities)

        logger.info(
            "delta_report_started",
            extra={
                "project_id": project_id,
                "dimension": dimension.value,
                "basis": basis.value,
                "window_start": window.start,
                "window_end": window.end,
                "entity_count": len(entities),
            },
        )

        grouping = group_entities(
            entities,
            dimension,
            lambda d: extract(d.entity),
            strict=strict,
        )

        rows: list[ProgressDeltaRow] = []
        for key, members in grouping.groups.items():
            deltas = [compute_entity_delta(self._resolver, m, basis) for m in members]
            active = sum(1 for d in deltas if d.is_active)
            if not active:
                continue
            rows.append(
                ProgressDeltaRow(
                    name=key,
                    entities_with_activity=active,
                    entity_count=len(members),
                    basis=basis,
                    categories=sum_categories(d.categories for d in deltas),
                )
            )

        if rows:
            state = ReportState.READY
            grand_total = delta_grand_total(rows, basis)
        else:
            state = (
                ReportState.NO_ACTIVITY if grouping.groups else ReportState.EMPTY
            )
            grand_total = None

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "delta_report_completed",
            extra={
                "project_id": project_id,
                "dimension": dimension.value,
                "basis": basis.value,
                "state": state.value,
                "row_count": len(rows),
                "entities_with_activity": (
                    grand_total.entities_with_activity if grand_total else 0
                ),
                "excluded_count": grouping.excluded_count,
                "duration_ms": duration_ms,
            },
        )

        return ProgressDeltaReport(
            dimension=dimension,
            basis=basis,
            window=window,
            rows=tuple(rows),
            grand_total=grand_total,
            generated_at=generated_at,
            project_id=project_id,
            state=state,
            excluded_count=grouping.excluded_count,
        )
