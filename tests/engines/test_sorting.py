"""
Tests for row sorting and per-report sort preferences.
"""

from dataclasses import dataclass
from decimal import Decimal

import pytest

from pipetrak_engines.sorting import (
    SortDirection,
    SortPreferences,
    SortSpec,
    sort_rows,
    sort_with_grand_total,
)
from pipetrak_kernel.domain.values import Percent


@dataclass(frozen=True)
class _Row:
    name: str
    pct: Percent

    def sort_value(self, column):
        return {"pct": self.pct}[column]


ROWS = [
    _Row("beta", Percent(Decimal("40"))),
    _Row("Alpha", Percent.undefined()),
    _Row("alpha", Percent(Decimal("10"))),
    _Row("Gamma", Percent(Decimal("90"))),
]


class TestSortRows:

    def test_name_ascending_case_insensitive(self):
        names = [r.name for r in sort_rows(ROWS, SortSpec())]

        assert names == ["Alpha", "alpha", "beta", "Gamma"]

    def test_name_descending(self):
        names = [r.name for r in sort_rows(ROWS, SortSpec("name", SortDirection.DESC))]

        assert names == ["Gamma", "beta", "alpha", "Alpha"]

    def test_undefined_last_ascending(self):
        names = [r.name for r in sort_rows(ROWS, SortSpec("pct"))]

        assert names == ["alpha", "beta", "Gamma", "Alpha"]

    def test_undefined_last_descending(self):
        names = [r.name for r in sort_rows(ROWS, SortSpec("pct", "desc"))]

        assert names == ["Gamma", "beta", "alpha", "Alpha"]

    def test_grand_total_appended(self):
        total = _Row("Grand Total", Percent(Decimal("100")))
        rows = sort_with_grand_total(ROWS, total, SortSpec("pct", "desc"))

        assert rows[-1] is total

    def test_no_grand_total(self):
        assert len(sort_with_grand_total(ROWS, None)) == len(ROWS)


class TestSortSpec:

    def test_toggle_same_column_flips(self):
        spec = SortSpec("pct").toggled("pct")

        assert spec.direction is SortDirection.DESC
        assert spec.toggled("pct").direction is SortDirection.ASC

    def test_toggle_new_column_starts_ascending(self):
        spec = SortSpec("pct", SortDirection.DESC).toggled("name")

        assert spec == SortSpec("name", SortDirection.ASC)

    def test_bad_direction(self):
        with pytest.raises(ValueError):
            SortSpec("name", "sideways")


class TestSortPreferences:

    def test_default_used_for_unknown_report(self):
        prefs = SortPreferences(default=SortSpec("pct", "desc"))

        assert prefs.get("component_progress") == SortSpec("pct", "desc")

    def test_toggle_is_per_report(self):
        prefs = SortPreferences().toggle("manhour_progress", "pct")

        assert prefs.get("manhour_progress") == SortSpec("pct", "asc")
        assert prefs.get("component_progress") == SortSpec()

    def test_toggle_returns_new_instance(self):
        prefs = SortPreferences()
        updated = prefs.with_spec("welder_summary", SortSpec("reject_rate", "desc"))

        assert prefs.get("welder_summary") == SortSpec()
        assert updated.get("welder_summary").column == "reject_rate"
