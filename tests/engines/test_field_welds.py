"""
Tests for field-weld progress and delta reports.

Covers:
- Milestone reached detection, including legacy names
- Count and rate columns per group and for the Grand Total
- Welder grouping
- Windowed count deltas, new welds and regressions
"""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from pipetrak_engines.date_range import DateWindow
from pipetrak_engines.delta import DeltaEntity
from pipetrak_engines.field_welds import (
    FieldWeldAggregator,
    FieldWeldDeltaEngine,
    NdeResult,
    WeldStatus,
    milestone_reached,
)
from pipetrak_engines.grouping import GRAND_TOTAL_NAME, GroupingDimension, ReportState
from pipetrak_engines.milestones import MilestoneDefinition, MilestoneTemplate
from pipetrak_kernel.domain.values import ZERO

GENERATED_AT = datetime(2025, 3, 14, 12, 0, tzinfo=UTC)
WINDOW = DateWindow(date(2025, 3, 1), date(2025, 3, 15))

DONE = {"Fit-up": True, "Weld Complete": True}


class TestMilestoneReached:

    def test_case_insensitive(self, field_weld_template):
        assert milestone_reached(field_weld_template, {"Fit-up": True}, "FIT-UP")

    def test_not_reached(self, field_weld_template):
        assert not milestone_reached(field_weld_template, {}, "Fit-up")

    def test_missing_milestone(self, valve_template):
        assert not milestone_reached(valve_template, {"Receive": True}, "Fit-up")

    def test_legacy_weld_made_counts_as_weld_complete(self):
        template = MilestoneTemplate(
            component_type="field_weld",
            version=1,
            milestones=(
                MilestoneDefinition("Fit-Up", 10, order=1),
                MilestoneDefinition("Weld Made", 60, order=2),
                MilestoneDefinition("Punch", 10, order=3),
                MilestoneDefinition("Test", 15, order=4),
                MilestoneDefinition("Restore", 5, order=5),
            ),
        )

        assert milestone_reached(template, {"Weld Made": True}, "Weld Complete")


class TestFieldWeldReport:

    def setup_method(self):
        self.aggregator = FieldWeldAggregator()

    def _report(self, welds, dimension=GroupingDimension.AREA):
        return self.aggregator.report(
            entities=welds,
            dimension=dimension,
            project_id="proj-1",
            generated_at=GENERATED_AT,
        )

    def test_counts(self, weld_factory):
        report = self._report(
            [
                weld_factory("w1", {"Fit-up": True}),
                weld_factory("w2", DONE, nde_type="RT", nde_result="PASS"),
                weld_factory(
                    "w3",
                    DONE,
                    nde_type="RT",
                    nde_result="FAIL",
                    is_repair=True,
                    status=WeldStatus.ACCEPTED,
                ),
                weld_factory("w4", {}, status=WeldStatus.REJECTED),
            ]
        )
        row = report.rows[0]

        assert row.total_welds == 4
        assert row.fitup_count == 3
        assert row.weld_complete_count == 2
        assert row.accepted_count == 1
        assert row.rejected_count == 1
        assert row.repair_count == 1
        assert row.nde_pass_count == 1
        assert row.nde_fail_count == 1
        assert row.active_count == 2

    def test_rates(self, weld_factory):
        report = self._report(
            [
                weld_factory("w1", {"Fit-up": True}),
                weld_factory("w2", DONE, nde_type="RT", nde_result="PASS"),
                weld_factory("w3", DONE, nde_type="RT", nde_result="PASS"),
                weld_factory("w4", DONE, nde_type="RT", nde_result="FAIL"),
            ]
        )
        row = report.rows[0]

        assert row.pct_fitup.value == Decimal("100")
        assert row.pct_weld_complete.value == Decimal("75")
        assert row.nde_pass_rate.rounded(2).value == Decimal("66.67")
        # 3 of 4 welds at Weld Complete
        assert row.pct_total.value == Decimal("75")

    def test_pct_total_ignores_partial_credit(self, weld_factory):
        """Fit-up alone earns percent complete but not pct_total."""
        report = self._report(
            [weld_factory("w1", {"Fit-up": True}), weld_factory("w2", {"Fit-up": True})]
        )

        assert report.rows[0].pct_total.value == ZERO
        assert report.grand_total.pct_total.value == ZERO

    def test_accepted_milestone_without_status_not_accepted(self, weld_factory):
        report = self._report([weld_factory("w1", {**DONE, "Accepted": True})])

        assert report.rows[0].accepted_count == 0
        assert report.rows[0].pct_accepted.value == ZERO

    def test_no_nde_rate_undefined(self, weld_factory):
        report = self._report([weld_factory("w1", DONE)])

        assert not report.rows[0].nde_pass_rate.is_defined

    def test_accepted_status_counts_as_accepted(self, weld_factory):
        report = self._report([weld_factory("w1", DONE, status="accepted")])

        assert report.rows[0].accepted_count == 1

    def test_pending_nde(self, weld_factory):
        report = self._report(
            [
                weld_factory("w1", DONE, nde_type="RT", nde_result=NdeResult.PENDING),
                weld_factory("w2", DONE, nde_type="RT"),
            ]
        )

        # Required NDE with no result yet is not pending.
        assert report.rows[0].nde_required_count == 2
        assert report.rows[0].nde_pending_count == 1

    def test_days_to_nde_and_acceptance(self, weld_factory):
        report = self._report(
            [
                weld_factory(
                    "w1",
                    DONE,
                    date_welded=date(2025, 3, 1),
                    nde_type="RT",
                    nde_result="PASS",
                    nde_date=date(2025, 3, 4),
                    status=WeldStatus.ACCEPTED,
                ),
                weld_factory(
                    "w2",
                    DONE,
                    date_welded=date(2025, 3, 1),
                    nde_type="RT",
                    nde_result="FAIL",
                    nde_date=date(2025, 3, 5),
                ),
                # No NDE date: excluded from both means.
                weld_factory("w3", DONE, nde_type="RT", nde_result="PENDING"),
                weld_factory("w4", DONE, date_welded=None, nde_date=date(2025, 3, 5)),
            ],
            dimension=GroupingDimension.AREA,
        )
        row = report.rows[0]

        assert row.avg_days_to_nde == Decimal("3.5")
        assert row.avg_days_to_acceptance == Decimal("3.0")
        assert report.grand_total.avg_days_to_nde == Decimal("3.5")

    def test_days_to_nde_undefined_without_dates(self, weld_factory):
        report = self._report([weld_factory("w1", DONE)])

        assert report.rows[0].avg_days_to_nde is None
        assert report.rows[0].avg_days_to_acceptance is None

    def test_grand_total_days_weighted_by_weld(self, weld_factory):
        """The Grand Total averages over welds, not over row averages."""
        report = self._report(
            [
                weld_factory(
                    "w1", DONE, area="A-100",
                    date_welded=date(2025, 3, 1), nde_date=date(2025, 3, 2),
                ),
                weld_factory(
                    "w2", DONE, area="A-100",
                    date_welded=date(2025, 3, 1), nde_date=date(2025, 3, 2),
                ),
                weld_factory(
                    "w3", DONE, area="A-200",
                    date_welded=date(2025, 3, 1), nde_date=date(2025, 3, 11),
                ),
            ]
        )

        assert report.grand_total.avg_days_to_nde == Decimal("4.0")

    def test_grand_total_sums_rows(self, weld_factory):
        report = self._report(
            [
                weld_factory("w1", DONE, area="A-100"),
                weld_factory("w2", {}, area="A-200"),
                weld_factory("w3", {"Fit-up": True}, area="A-200"),
            ]
        )
        total = report.grand_total

        assert total.name == GRAND_TOTAL_NAME
        assert total.total_welds == 3
        assert total.fitup_count == 2
        assert total.pct_fitup.rounded(1).value == Decimal("66.7")

    def test_group_by_welder_carries_name(self, weld_factory):
        report = self._report(
            [
                weld_factory("w1", DONE, welder="W-02", welder_name="Two"),
                weld_factory("w2", DONE, welder="W-01", welder_name="One"),
                weld_factory("w3", DONE, welder=None),
            ],
            dimension=GroupingDimension.WELDER,
        )
        rows = report.display_rows()

        assert [r.name for r in rows] == ["W-01", "W-02", GRAND_TOTAL_NAME]
        assert rows[0].welder_name == "One"
        assert report.excluded_count == 1

    def test_empty(self):
        report = self._report([])

        assert report.state is ReportState.EMPTY
        assert report.message == "No field welds found for this project."


class TestFieldWeldDelta:

    def setup_method(self):
        self.engine = FieldWeldDeltaEngine()

    def _report(self, items, dimension=GroupingDimension.WELDER):
        return self.engine.report(
            entities=items,
            dimension=dimension,
            window=WINDOW,
            project_id="proj-1",
            generated_at=GENERATED_AT,
        )

    def test_count_deltas(self, weld_factory):
        report = self._report(
            [
                DeltaEntity(
                    weld_factory("w1", DONE),
                    start_values={"Fit-up": True},
                ),
                DeltaEntity(
                    weld_factory("w2", {"Fit-up": True}),
                    start_values=None,
                ),
                DeltaEntity(
                    weld_factory("w3", DONE),
                    start_values=DONE,
                ),
            ]
        )
        row = report.rows[0]

        assert row.welds_with_activity == 2
        assert row.total_welds == 3
        assert row.delta_fitup_count == 1
        assert row.delta_weld_complete_count == 1
        assert row.delta_new_welds == 1
        assert row.formatted("delta_fitup_count").text == "+1"

    def test_new_welds_follow_start_snapshot_not_dates(self, weld_factory):
        """A weld is new only when the start snapshot has no record of it."""
        report = self._report(
            [
                # Welded inside the window but already on record at the start.
                DeltaEntity(
                    weld_factory("w1", DONE, date_welded=date(2025, 3, 5)),
                    start_values={},
                ),
                # Welded long ago but first recorded during the window.
                DeltaEntity(
                    weld_factory("w2", DONE, date_welded=date(2024, 11, 2)),
                    start_values=None,
                ),
                DeltaEntity(
                    weld_factory("w3", {"Fit-up": True}, date_welded=None),
                    start_values=None,
                ),
            ]
        )

        assert report.rows[0].welds_with_activity == 3
        assert report.rows[0].delta_new_welds == 2
        assert report.grand_total.delta_new_welds == 2

    def test_regression_negative(self, weld_factory):
        report = self._report(
            [
                DeltaEntity(
                    weld_factory("w1", {"Fit-up": True}),
                    start_values=DONE,
                )
            ]
        )
        row = report.rows[0]

        assert row.delta_weld_complete_count == -1
        assert row.formatted("delta_weld_complete_count").text == "-1"
        assert row.formatted("delta_pct_total").text == "-65.0%"

    def test_no_activity(self, weld_factory):
        report = self._report(
            [DeltaEntity(weld_factory("w1", DONE), start_values=DONE)]
        )

        assert report.state is ReportState.NO_ACTIVITY
        assert report.display_rows() == []
        assert report.message == (
            "No field weld activity found for the selected time period."
        )

    def test_grand_total(self, weld_factory):
        report = self._report(
            [
                DeltaEntity(weld_factory("w1", DONE, welder="W-01"), start_values={}),
                DeltaEntity(weld_factory("w2", DONE, welder="W-02"), start_values={}),
            ]
        )

        assert report.grand_total.delta_weld_complete_count == 2
        assert report.grand_total.delta_pct_total.value == Decimal("95")

    @pytest.mark.parametrize("column", ["delta_new_welds", "delta_pct_total"])
    def test_sortable_columns(self, weld_factory, column):
        report = self._report(
            [DeltaEntity(weld_factory("w1", DONE), start_values={})]
        )

        assert len(report.display_rows()) == 2
        assert report.rows[0].sort_value(column) is not None
