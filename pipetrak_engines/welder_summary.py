"""
pipetrak_engines.welder_summary -- Tiered weld summary by welder.

Responsibility:
    Partition completed butt (BW) and socket (SW) welds by welder, weld
    section and X-ray tier (5%, 10%, 100%), count welds, radiographic
    NDE performed and rejects, and derive reject and NDE-completion rates
    per tier, per section, per welder and for the Grand Total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes FieldWeldEntity records; shares the guarded percentage of
    pipetrak_kernel.domain.values.

Invariants enforced:
    - Only welds with ``date_welded`` (inside the window when given) and a
      BW / SW type are counted; other X-ray percentages fall in no tier.
    - Rates derive from summed counts at every level; never averaged.
    - ZERO_BUDGET_UNDEFINED: rates over zero welds are "--".

Failure modes:
    None beyond malformed input types.

Usage:
    report = WelderSummaryCalculator().summarize(
        welds=welds, window=window, generated_at=clock.now()
    )
    report.grand_total.overall.reject_rate
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pipetrak_engines.date_range import DateWindow
from pipetrak_engines.field_welds import FieldWeldEntity, NdeResult
from pipetrak_engines.grouping import GRAND_TOTAL_NAME, ReportState
from pipetrak_engines.sorting import SortSpec, sort_with_grand_total
from pipetrak_engines.tracer import traced_engine
from pipetrak_kernel.domain.values import Percent, safe_percent
from pipetrak_kernel.exceptions import UnknownSortColumnError
from pipetrak_kernel.logging_config import get_logger

logger = get_logger("engines.welder_summary")

RADIOGRAPHY = "RT"
EMPTY_MESSAGE = "No completed welds found for the selected filters."


class XrayTier(int, Enum):
    FIVE = 5
    TEN = 10
    HUNDRED = 100


class WeldSection(str, Enum):
    BW = "BW"
    SW = "SW"


@dataclass(frozen=True)
class TierStats:
    welds: int = 0
    nde: int = 0
    rejects: int = 0

    @property
    def reject_rate(self) -> Percent:
        return safe_percent(Decimal(self.rejects), Decimal(self.welds))

    @property
    def nde_completion_rate(self) -> Percent:
        return safe_percent(Decimal(self.nde), Decimal(self.welds))

    def __add__(self, other: TierStats) -> TierStats:
        return TierStats(
            welds=self.welds + other.welds,
            nde=self.nde + other.nde,
            rejects=self.rejects + other.rejects,
        )


def _empty_tiers() -> dict[XrayTier, TierStats]:
    return {tier: TierStats() for tier in XrayTier}


def _empty_sections() -> dict[WeldSection, dict[XrayTier, TierStats]]:
    return {section: _empty_tiers() for section in WeldSection}


def _sum_stats(stats: Iterable[TierStats]) -> TierStats:
    total = TierStats()
    for s in stats:
        total = total + s
    return total


@dataclass(frozen=True)
class WelderSummaryRow:
    """Counts for one welder (or the Grand Total) by section and tier."""

    welder_stencil: str
    welder_name: str | None = None
    sections: dict[WeldSection, dict[XrayTier, TierStats]] = field(
        default_factory=_empty_sections
    )
    is_grand_total: bool = False

    @property
    def name(self) -> str:
        return self.welder_stencil

    def tier(self, section: WeldSection, tier: XrayTier) -> TierStats:
        return self.sections[section][tier]

    def section_total(self, section: WeldSection) -> TierStats:
        return _sum_stats(self.sections[section].values())

    def overall_tier(self, tier: XrayTier) -> TierStats:
        """One tier summed across sections."""
        return _sum_stats(self.sections[s][tier] for s in WeldSection)

    @property
    def overall(self) -> TierStats:
        return _sum_stats(self.section_total(s) for s in WeldSection)

    def sort_value(self, column: str) -> Any:
        try:
            return _SUMMARY_COLUMNS[column](self)
        except KeyError:
            raise UnknownSortColumnError(column, "welder_summary") from None


def _summary_columns() -> dict[str, Callable[[WelderSummaryRow], Any]]:
    columns: dict[str, Callable[[WelderSummaryRow], Any]] = {
        "welds_total": lambda r: r.overall.welds,
        "nde_total": lambda r: r.overall.nde,
        "reject_total": lambda r: r.overall.rejects,
        "reject_rate": lambda r: r.overall.reject_rate,
        "nde_completion_rate": lambda r: r.overall.nde_completion_rate,
    }
    for section in WeldSection:
        prefix = section.value.lower()
        columns[f"{prefix}_reject_rate"] = (
            lambda r, s=section: r.section_total(s).reject_rate
        )
        for tier in XrayTier:
            suffix = f"{tier.value}pct"
            columns[f"{prefix}_welds_{suffix}"] = (
                lambda r, s=section, t=tier: r.tier(s, t).welds
            )
            columns[f"{prefix}_nde_{suffix}"] = (
                lambda r, s=section, t=tier: r.tier(s, t).nde
            )
            columns[f"{prefix}_reject_{suffix}"] = (
                lambda r, s=section, t=tier: r.tier(s, t).rejects
            )
            columns[f"{prefix}_nde_comp_{suffix}"] = (
                lambda r, s=section, t=tier: r.tier(s, t).nde_completion_rate
            )
    return columns


_SUMMARY_COLUMNS = _summary_columns()


def combine_summary_rows(
    stencil: str,
    rows: Iterable[WelderSummaryRow],
    *,
    welder_name: str | None = None,
    is_grand_total: bool = False,
) -> WelderSummaryRow:
    sections = _empty_sections()
    for row in rows:
        for section in WeldSection:
            for tier in XrayTier:
                sections[section][tier] = sections[section][tier] + row.tier(section, tier)
    return WelderSummaryRow(
        welder_stencil=stencil,
        welder_name=welder_name,
        sections=sections,
        is_grand_total=is_grand_total,
    )


@dataclass(frozen=True)
class WelderSummaryReport:
    rows: tuple[WelderSummaryRow, ...]
    grand_total: WelderSummaryRow | None
    generated_at: datetime
    project_id: str = ""
    window: DateWindow | None = None
    state: ReportState = ReportState.READY

    @property
    def message(self) -> str | None:
        return EMPTY_MESSAGE if self.state is ReportState.EMPTY else None

    def display_rows(self, sort: SortSpec | None = None) -> list[WelderSummaryRow]:
        if self.state is not ReportState.READY:
            return []
        return sort_with_grand_total(self.rows, self.grand_total, sort)


def _section_of(weld: FieldWeldEntity) -> WeldSection | None:
    if weld.weld_type is None:
        return None
    try:
        return WeldSection(weld.weld_type.strip().upper())
    except ValueError:
        return None


def _tier_of(weld: FieldWeldEntity) -> XrayTier | None:
    if weld.xray_percent is None:
        return None
    try:
        return XrayTier(int(weld.xray_percent))
    except ValueError:
        return None


class WelderSummaryCalculator:
    """
    Pure calculator for the tiered welder summary.

    Contract:
        No I/O, no clock access, fully deterministic.
    Guarantees:
        - Rows are ordered by welder stencil.
        - ``grand_total`` counts equal the sums over ``rows``.
    Non-goals:
        - Area / system / package filtering; callers pre-filter welds.
    """

    @traced_engine(
        "welder_summary", "1.0", fingerprint_fields=("window", "welder_ids", "project_id")
    )
    def summarize(
        self,
        *,
        welds: Iterable[FieldWeldEntity],
        generated_at: datetime,
        window: DateWindow | None = None,
        welder_ids: Iterable[str] | None = None,
        project_id: str = "",
    ) -> WelderSummaryReport:
        """
        Args:
            welder_ids: Optional stencils to restrict the summary to.
        """
        t0 = time.monotonic()
        wanted = set(welder_ids) if welder_ids is not None else None

        per_welder: dict[str, dict[WeldSection, dict[XrayTier, TierStats]]] = {}
        names: dict[str, str | None] = {}
        skipped = 0
        for weld in welds:
            section = _section_of(weld)
            tier = _tier_of(weld)
            if (
                weld.date_welded is None
                or weld.welder is None
                or section is None
                or tier is None
                or (window is not None and not window.contains(weld.date_welded))
                or (wanted is not None and weld.welder not in wanted)
            ):
                skipped += 1
                continue

            # Any recorded RT result, PENDING included, is NDE performed.
            rt_done = weld.nde_type == RADIOGRAPHY and weld.nde_result is not None
            rejected = weld.nde_type == RADIOGRAPHY and weld.nde_result is NdeResult.FAIL
            sections = per_welder.setdefault(weld.welder, _empty_sections())
            sections[section][tier] = sections[section][tier] + TierStats(
                welds=1, nde=int(rt_done), rejects=int(rejected)
            )
            names.setdefault(weld.welder, weld.welder_name)

        rows = tuple(
            WelderSummaryRow(
                welder_stencil=stencil,
                welder_name=names[stencil],
                sections=per_welder[stencil],
            )
            for stencil in sorted(per_welder, key=lambda s: (s.casefold(), s))
        )
        if rows:
            state = ReportState.READY
            grand_total = combine_summary_rows(
                GRAND_TOTAL_NAME, rows, is_grand_total=True
            )
        else:
            state = ReportState.EMPTY
            grand_total = None

        logger.info(
            "welder_summary_completed",
            extra={
                "project_id": project_id,
                "state": state.value,
                "welder_count": len(rows),
                "skipped_welds": skipped,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return WelderSummaryReport(
            rows=rows,
            grand_total=grand_total,
            generated_at=generated_at,
            project_id=project_id,
            window=window,
            state=state,
        )
