"""
pipetrak_engines.sorting -- Row ordering and per-report sort preferences.

Responsibility:
    Sort report rows by a caller-chosen column and direction, keeping the
    Grand Total row pinned last, and hold per-report-type sort
    preferences as an explicit immutable value.

Architecture position:
    Engines -- pure helpers, zero I/O.  Sort preferences are passed in by
    the caller; nothing here is global state.

Invariants enforced:
    - GRAND_TOTAL_LAST: ``sort_with_grand_total`` always returns the
      Grand Total as the final element, whatever the spec.
    - Undefined values sort after defined ones in both directions.

Failure modes:
    - UnknownSortColumnError propagated from a row's ``sort_value``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from pipetrak_kernel.domain.values import Percent

NAME_COLUMN = "name"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortableRow(Protocol):
    name: str

    def sort_value(self, column: str) -> Any: ...


@dataclass(frozen=True)
class SortSpec:
    """Column and direction to order rows by."""

    column: str = NAME_COLUMN
    direction: SortDirection = SortDirection.ASC

    def __post_init__(self) -> None:
        if not isinstance(self.direction, SortDirection):
            object.__setattr__(self, "direction", SortDirection(self.direction))

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESC

    def toggled(self, column: str) -> SortSpec:
        """Same column flips direction; a new column starts ascending."""
        if column == self.column:
            flipped = SortDirection.ASC if self.descending else SortDirection.DESC
            return SortSpec(column, flipped)
        return SortSpec(column, SortDirection.ASC)


def _normalise(value: Any) -> Any:
    if isinstance(value, Percent):
        return value.value
    return value


def sort_rows(rows: Iterable[SortableRow], spec: SortSpec) -> list:
    """Order rows by ``spec``; None / undefined values always last.

    ``name`` compares case-insensitively with a case-sensitive tie-break.
    """
    rows = list(rows)
    if spec.column == NAME_COLUMN:
        return sorted(
            rows,
            key=lambda r: (r.name.casefold(), r.name),
            reverse=spec.descending,
        )

    keyed = [(_normalise(r.sort_value(spec.column)), r) for r in rows]
    present = [(v, r) for v, r in keyed if v is not None]
    missing = [r for v, r in keyed if v is None]
    present.sort(key=lambda vr: vr[0], reverse=spec.descending)
    return [r for _, r in present] + missing


def sort_with_grand_total(
    rows: Iterable[SortableRow],
    grand_total: SortableRow | None,
    spec: SortSpec | None = None,
) -> list:
    """Sorted data rows followed by the Grand Total, if any."""
    ordered = sort_rows(rows, spec or SortSpec())
    if grand_total is not None:
        ordered.append(grand_total)
    return ordered


@dataclass(frozen=True)
class SortPreferences:
    """
    Sort spec per report type.

    Contract:
        Immutable; ``toggle`` returns a new instance.  Report types with
        no stored preference fall back to ``default``.
    """

    by_report: Mapping[str, SortSpec] = field(default_factory=dict)
    default: SortSpec = SortSpec()

    def get(self, report_type: str) -> SortSpec:
        return self.by_report.get(report_type, self.default)

    def toggle(self, report_type: str, column: str) -> SortPreferences:
        updated = dict(self.by_report)
        updated[report_type] = self.get(report_type).toggled(column)
        return SortPreferences(by_report=updated, default=self.default)

    def with_spec(self, report_type: str, spec: SortSpec) -> SortPreferences:
        updated = dict(self.by_report)
        updated[report_type] = spec
        return SortPreferences(by_report=updated, default=self.default)
