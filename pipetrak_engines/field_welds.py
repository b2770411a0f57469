"""
pipetrak_engines.field_welds -- Field-weld progress and delta reports.

Responsibility:
    Count-based reporting for field welds: per group milestone counts
    (fit-up, weld complete, accepted), status and repair counts, NDE
    outcome counts and the rates derived from them, average days from
    welding to NDE and to acceptance, plus the windowed delta of the
    milestone counts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Field-weld specialisation of aggregation and delta; the only reports
    that may group by ``welder``.

Invariants enforced:
    - GRAND_TOTAL_SUMS_RAW: every Grand Total rate derives from summed
      counts, never from averaged row rates.
    - ZERO_BUDGET_UNDEFINED: rates over an empty denominator are "--".
    - EMPTY_IS_NOT_ZERO: EMPTY / NO_ACTIVITY states as for components.
    - Accepted and NDE pending come from the weld's status and NDE
      result, never from milestones or a missing result.

Failure modes:
    - InvalidDimensionError / MissingGroupKeyError from grouping.
    - InvalidMilestoneValueError from milestone resolution.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pipetrak_engines.date_range import DateWindow
from pipetrak_engines.delta import DeltaEntity
from pipetrak_engines.formatting import FormattedDelta, format_count_delta, format_percent_delta
from pipetrak_engines.grouping import (
    FIELD_WELD_KEY_EXTRACTORS,
    GRAND_TOTAL_NAME,
    GroupingDimension,
    ReportState,
    group_entities,
    key_extractor,
)
from pipetrak_engines.milestones import (
    MilestoneResolver,
    MilestoneTemplate,
    completion_fraction,
)
from pipetrak_engines.sorting import SortSpec, sort_with_grand_total
from pipetrak_engines.tracer import traced_engine
from pipetrak_kernel.domain.values import (
    HUNDRED,
    ONE,
    ZERO,
    Percent,
    round_half_up,
    safe_percent,
)
from pipetrak_kernel.exceptions import UnknownSortColumnError
from pipetrak_kernel.logging_config import get_logger

logger = get_logger("engines.field_welds")

FIT_UP = "Fit-up"
WELD_COMPLETE = "Weld Complete"
ACCEPTED = "Accepted"

# Earlier template versions name the same checkpoint differently.
MILESTONE_ALIASES: dict[str, tuple[str, ...]] = {
    WELD_COMPLETE.lower(): ("weld made",),
}

# A milestone counts as reached at half completion or more.
REACHED_THRESHOLD = Decimal("0.5")

EMPTY_MESSAGE = "No field welds found for this project."
NO_ACTIVITY_MESSAGE = "No field weld activity found for the selected time period."


class WeldStatus(str, Enum):
    ACTIVE = "active"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class NdeResult(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    PENDING = "PENDING"


@dataclass(frozen=True)
class FieldWeldEntity:
    """A field weld with its milestone values and inspection data."""

    entity_id: str
    template: MilestoneTemplate
    milestone_values: Mapping[str, Any] = field(default_factory=dict)
    mh_budget: Decimal = ZERO
    area: str | None = None
    system: str | None = None
    test_package: str | None = None
    welder: str | None = None
    welder_name: str | None = None
    weld_type: str | None = None
    xray_percent: int | None = None
    date_welded: date | None = None
    status: WeldStatus = WeldStatus.ACTIVE
    nde_required: bool = False
    nde_type: str | None = None
    nde_result: NdeResult | None = None
    nde_date: date | None = None
    is_repair: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.status, WeldStatus):
            object.__setattr__(self, "status", WeldStatus(self.status))
        if self.nde_result is not None and not isinstance(self.nde_result, NdeResult):
            object.__setattr__(self, "nde_result", NdeResult(self.nde_result))


def milestone_reached(
    template: MilestoneTemplate, values: Mapping[str, Any], name: str
) -> bool:
    """True when milestone ``name`` (case-insensitive) is at least half done."""
    wanted = {name.lower(), *MILESTONE_ALIASES.get(name.lower(), ())}
    for m in template.milestones:
        if m.name.lower() in wanted:
            return completion_fraction(m, values.get(m.name)) >= REACHED_THRESHOLD
    return False


# ---------------------------------------------------------------------------
# Progress report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldWeldRow:
    name: str
    total_welds: int = 0
    active_count: int = 0
    fitup_count: int = 0
    weld_complete_count: int = 0
    accepted_count: int = 0
    rejected_count: int = 0
    repair_count: int = 0
    nde_required_count: int = 0
    nde_pass_count: int = 0
    nde_fail_count: int = 0
    nde_pending_count: int = 0
    days_to_nde_sum: int = 0
    days_to_nde_count: int = 0
    days_to_acceptance_sum: int = 0
    days_to_acceptance_count: int = 0
    welder_name: str | None = None
    is_grand_total: bool = False

    @property
    def pct_fitup(self) -> Percent:
        return safe_percent(Decimal(self.fitup_count), Decimal(self.total_welds))

    @property
    def pct_weld_complete(self) -> Percent:
        return safe_percent(Decimal(self.weld_complete_count), Decimal(self.total_welds))

    @property
    def pct_accepted(self) -> Percent:
        return safe_percent(Decimal(self.accepted_count), Decimal(self.total_welds))

    @property
    def nde_pass_rate(self) -> Percent:
        decided = self.nde_pass_count + self.nde_fail_count
        return safe_percent(Decimal(self.nde_pass_count), Decimal(decided))

    @property
    def repair_rate(self) -> Percent:
        return safe_percent(Decimal(self.repair_count), Decimal(self.total_welds))

    @property
    def pct_total(self) -> Percent:
        """Share of welds at Weld Complete; 0 when the row has no welds."""
        percent = self.pct_weld_complete
        return percent if percent.is_defined else Percent(ZERO)

    @property
    def avg_days_to_nde(self) -> Decimal | None:
        """Mean days from welding to NDE, to one place; None when no weld has both dates."""
        return _mean_days(self.days_to_nde_sum, self.days_to_nde_count)

    @property
    def avg_days_to_acceptance(self) -> Decimal | None:
        return _mean_days(self.days_to_acceptance_sum, self.days_to_acceptance_count)

    def sort_value(self, column: str) -> Any:
        try:
            return _WELD_COLUMNS[column](self)
        except KeyError:
            raise UnknownSortColumnError(column, "field_weld") from None


def _mean_days(total: int, count: int) -> Decimal | None:
    if count == 0:
        return None
    return round_half_up(Decimal(total) / Decimal(count), 1)


_COUNT_FIELDS = (
    "total_welds",
    "active_count",
    "fitup_count",
    "weld_complete_count",
    "accepted_count",
    "rejected_count",
    "repair_count",
    "nde_required_count",
    "nde_pass_count",
    "nde_fail_count",
    "nde_pending_count",
    "days_to_nde_sum",
    "days_to_nde_count",
    "days_to_acceptance_sum",
    "days_to_acceptance_count",
)

_WELD_COLUMNS: dict[str, Callable[[FieldWeldRow], Any]] = {
    **{name: (lambda r, n=name: getattr(r, n)) for name in _COUNT_FIELDS},
    "pct_fitup": lambda r: r.pct_fitup,
    "pct_weld_complete": lambda r: r.pct_weld_complete,
    "pct_accepted": lambda r: r.pct_accepted,
    "nde_pass_rate": lambda r: r.nde_pass_rate,
    "repair_rate": lambda r: r.repair_rate,
    "pct_total": lambda r: r.pct_total,
    "avg_days_to_nde": lambda r: r.avg_days_to_nde,
    "avg_days_to_acceptance": lambda r: r.avg_days_to_acceptance,
}


def _weld_counts(weld: FieldWeldEntity) -> dict[str, Any]:
    values = weld.milestone_values
    accepted = weld.status is WeldStatus.ACCEPTED
    days_to_nde = (
        (weld.nde_date - weld.date_welded).days
        if weld.date_welded is not None and weld.nde_date is not None
        else None
    )
    # Acceptance is timed to the NDE date.
    timed_acceptance = accepted and days_to_nde is not None
    return {
        "total_welds": 1,
        "active_count": int(weld.status is WeldStatus.ACTIVE),
        "fitup_count": int(milestone_reached(weld.template, values, FIT_UP)),
        "weld_complete_count": int(
            milestone_reached(weld.template, values, WELD_COMPLETE)
        ),
        "accepted_count": int(accepted),
        "rejected_count": int(weld.status is WeldStatus.REJECTED),
        "repair_count": int(weld.is_repair),
        "nde_required_count": int(weld.nde_required),
        "nde_pass_count": int(weld.nde_result is NdeResult.PASS),
        "nde_fail_count": int(weld.nde_result is NdeResult.FAIL),
        "nde_pending_count": int(weld.nde_result is NdeResult.PENDING),
        "days_to_nde_sum": days_to_nde or 0,
        "days_to_nde_count": int(days_to_nde is not None),
        "days_to_acceptance_sum": days_to_nde if timed_acceptance else 0,
        "days_to_acceptance_count": int(timed_acceptance),
    }


def combine_weld_rows(
    name: str,
    parts: Iterable[Mapping[str, Any]],
    *,
    welder_name: str | None = None,
    is_grand_total: bool = False,
) -> FieldWeldRow:
    """Sum count fields (from dicts or rows) into one row."""
    totals: dict[str, Any] = {n: 0 for n in _COUNT_FIELDS}
    for part in parts:
        for key in totals:
            totals[key] += part[key]
    return FieldWeldRow(
        name=name, welder_name=welder_name, is_grand_total=is_grand_total, **totals
    )


def _row_as_mapping(row: FieldWeldRow) -> dict[str, Any]:
    return {f.name: getattr(row, f.name) for f in fields(row)}


@dataclass(frozen=True)
class FieldWeldReport:
    dimension: GroupingDimension
    rows: tuple[FieldWeldRow, ...]
    grand_total: FieldWeldRow | None
    generated_at: datetime
    project_id: str
    state: ReportState = ReportState.READY
    excluded_count: int = 0

    @property
    def message(self) -> str | None:
        return EMPTY_MESSAGE if self.state is ReportState.EMPTY else None

    def display_rows(self, sort: SortSpec | None = None) -> list[FieldWeldRow]:
        if self.state is not ReportState.READY:
            return []
        return sort_with_grand_total(self.rows, self.grand_total, sort)


class FieldWeldAggregator:
    """
    Count-based field-weld progress by area, system, test package or welder.

    Contract:
        No I/O, no clock access, fully deterministic.
    """

    @traced_engine(
        "field_welds", "1.0", fingerprint_fields=("dimension", "project_id", "strict")
    )
    def report(
        self,
        *,
        entities: Iterable[FieldWeldEntity],
        dimension: GroupingDimension | str,
        project_id: str,
        generated_at: datetime,
        strict: bool = False,
    ) -> FieldWeldReport:
        t0 = time.monotonic()
        extract = key_extractor(dimension, FIELD_WELD_KEY_EXTRACTORS, "field_weld")
        dimension = GroupingDimension(dimension)
        grouping = group_entities(list(entities), dimension, extract, strict=strict)

        rows = tuple(
            combine_weld_rows(
                key,
                (_weld_counts(w) for w in members),
                welder_name=(
                    members[0].welder_name
                    if dimension is GroupingDimension.WELDER
                    else None
                ),
            )
            for key, members in grouping.groups.items()
        )
        if rows:
            state = ReportState.READY
            grand_total = combine_weld_rows(
                GRAND_TOTAL_NAME,
                (_row_as_mapping(r) for r in rows),
                is_grand_total=True,
            )
        else:
            state = ReportState.EMPTY
            grand_total = None

        logger.info(
            "field_weld_report_completed",
            extra={
                "project_id": project_id,
                "dimension": dimension.value,
                "state": state.value,
                "row_count": len(rows),
                "excluded_count": grouping.excluded_count,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return FieldWeldReport(
            dimension=dimension,
            rows=rows,
            grand_total=grand_total,
            generated_at=generated_at,
            project_id=project_id,
            state=state,
            excluded_count=grouping.excluded_count,
        )


# ---------------------------------------------------------------------------
# Delta report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldWeldDeltaRow:
    name: str
    welds_with_activity: int = 0
    total_welds: int = 0
    delta_fitup_count: int = 0
    delta_weld_complete_count: int = 0
    delta_accepted_count: int = 0
    delta_new_welds: int = 0
    delta_percent_sum: Decimal = ZERO
    is_grand_total: bool = False

    @property
    def delta_pct_total(self) -> Percent:
        """Summed percent change over the current weld count."""
        return safe_percent(self.delta_percent_sum, self.total_welds * HUNDRED)

    def formatted(self, column: str) -> FormattedDelta:
        if column == "delta_pct_total":
            return format_percent_delta(self.delta_pct_total)
        return format_count_delta(getattr(self, column))

    def sort_value(self, column: str) -> Any:
        try:
            return _WELD_DELTA_COLUMNS[column](self)
        except KeyError:
            raise UnknownSortColumnError(column, "field_weld_delta") from None


_DELTA_COUNT_FIELDS = (
    "welds_with_activity",
    "total_welds",
    "delta_fitup_count",
    "delta_weld_complete_count",
    "delta_accepted_count",
    "delta_new_welds",
)

_WELD_DELTA_COLUMNS: dict[str, Callable[[FieldWeldDeltaRow], Any]] = {
    **{name: (lambda r, n=name: getattr(r, n)) for name in _DELTA_COUNT_FIELDS},
    "delta_pct_total": lambda r: r.delta_pct_total,
}


@dataclass(frozen=True)
class _WeldDelta:
    fitup: int
    weld_complete: int
    accepted: int
    is_new: bool
    percent: Decimal

    @property
    def is_active(self) -> bool:
        return bool(
            self.fitup or self.weld_complete or self.accepted or self.is_new
            or self.percent != ZERO
        )


@dataclass(frozen=True)
class FieldWeldDeltaReport:
    dimension: GroupingDimension
    window: DateWindow
    rows: tuple[FieldWeldDeltaRow, ...]
    grand_total: FieldWeldDeltaRow | None
    generated_at: datetime
    project_id: str
    state: ReportState = ReportState.READY
    excluded_count: int = 0

    @property
    def message(self) -> str | None:
        if self.state is ReportState.NO_ACTIVITY:
            return NO_ACTIVITY_MESSAGE
        if self.state is ReportState.EMPTY:
            return EMPTY_MESSAGE
        return None

    def display_rows(self, sort: SortSpec | None = None) -> list[FieldWeldDeltaRow]:
        if self.state is not ReportState.READY:
            return []
        return sort_with_grand_total(self.rows, self.grand_total, sort)


class FieldWeldDeltaEngine:
    """
    Windowed change in field-weld milestone counts.

    Guarantees:
        - Count deltas are end minus start, so regressions are negative.
        - A weld counts as new when it is absent from the start snapshot
          (``start_values is None``).
        - ``total_welds`` is the current size of the group, active or not.
    """

    def __init__(self, resolver: MilestoneResolver | None = None):
        self._resolver = resolver or MilestoneResolver()

    def _weld_delta(self, item: DeltaEntity) -> _WeldDelta:
        weld: FieldWeldEntity = item.entity
        start = item.start_values or {}
        end = item.current_values

        def _diff(name: str) -> int:
            return int(milestone_reached(weld.template, end, name)) - int(
                milestone_reached(weld.template, start, name)
            )

        start_pct = self._resolver.resolve(weld.template, start, ONE).percent_complete
        end_pct = self._resolver.resolve(weld.template, end, ONE).percent_complete
        return _WeldDelta(
            fitup=_diff(FIT_UP),
            weld_complete=_diff(WELD_COMPLETE),
            accepted=_diff(ACCEPTED),
            is_new=not item.existed_at_start,
            percent=end_pct - start_pct,
        )

    @traced_engine(
        "field_weld_delta",
        "1.0",
        fingerprint_fields=("dimension", "window", "project_id"),
    )
    def report(
        self,
        *,
        entities: Iterable[DeltaEntity],
        dimension: GroupingDimension | str,
        window: DateWindow,
        project_id: str,
        generated_at: datetime,
        strict: bool = False,
    ) -> FieldWeldDeltaReport:
        t0 = time.monotonic()
        extract = key_extractor(dimension, FIELD_WELD_KEY_EXTRACTORS, "field_weld")
        dimension = GroupingDimension(dimension)
        grouping = group_entities(
            list(entities), dimension, lambda d: extract(d.entity), strict=strict
        )

        rows: list[FieldWeldDeltaRow] = []
        for key, members in grouping.groups.items():
            deltas: Sequence[_WeldDelta] = [self._weld_delta(m) for m in members]
            active = [d for d in deltas if d.is_active]
            if not active:
                continue
            rows.append(
                FieldWeldDeltaRow(
                    name=key,
                    welds_with_activity=len(active),
                    total_welds=len(members),
                    delta_fitup_count=sum(d.fitup for d in active),
                    delta_weld_complete_count=sum(d.weld_complete for d in active),
                    delta_accepted_count=sum(d.accepted for d in active),
                    delta_new_welds=sum(1 for d in active if d.is_new),
                    delta_percent_sum=sum((d.percent for d in active), ZERO),
                )
            )

        if rows:
            state = ReportState.READY
            grand_total = FieldWeldDeltaRow(
                name=GRAND_TOTAL_NAME,
                is_grand_total=True,
                delta_percent_sum=sum((r.delta_percent_sum for r in rows), ZERO),
                **{n: sum(getattr(r, n) for r in rows) for n in _DELTA_COUNT_FIELDS},
            )
        else:
            state = ReportState.NO_ACTIVITY if grouping.groups else ReportState.EMPTY
            grand_total = None

        logger.info(
            "field_weld_delta_report_completed",
            extra={
                "project_id": project_id,
                "dimension": dimension.value,
                "state": state.value,
                "row_count": len(rows),
                "excluded_count": grouping.excluded_count,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return FieldWeldDeltaReport(
            dimension=dimension,
            window=window,
            rows=tuple(rows),
            grand_total=grand_total,
            generated_at=generated_at,
            project_id=project_id,
            state=state,
            excluded_count=grouping.excluded_count,
        )
