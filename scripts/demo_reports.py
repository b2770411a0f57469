#!/usr/bin/env python3
"""
Progress report walkthrough on a small sample project.

Loads the YAML configuration through ``get_active_config()``, builds a
handful of components and field welds against the configured templates,
and prints the report tables the engines produce:

  - component progress (count basis)
  - manhour progress, with budgets from ``distribute_budget``
  - manhour delta for a date-range preset
  - field-weld progress and field-weld delta
  - tiered welder summary

Usage:
    python3 scripts/demo_reports.py
    python3 scripts/demo_reports.py --dimension system
    python3 scripts/demo_reports.py --preset last_30_days --sort pct_total:desc
    python3 scripts/demo_reports.py --log-level DEBUG   # include trace records
"""

import argparse
import sys
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from pipetrak_config import get_active_config  # noqa: E402
from pipetrak_engines import (  # noqa: E402
    BudgetComponent,
    ComponentEntity,
    DateRangeSelection,
    DeltaEngine,
    DeltaEntity,
    FieldWeldAggregator,
    FieldWeldDeltaEngine,
    FieldWeldEntity,
    GroupingDimension,
    MilestoneEvent,
    ProgressAggregator,
    ReportCategory,
    SortSpec,
    WelderSummaryCalculator,
    WeldSection,
    XrayTier,
    distribute_budget,
    format_percent,
    resolve_date_range,
)
from pipetrak_kernel.domain.clock import DeterministicClock  # noqa: E402
from pipetrak_kernel.logging_config import configure_logging  # noqa: E402

PROJECT_ID = "demo-project"
TOTAL_MH = Decimal("1200")
NOW = datetime(2025, 3, 14, 17, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


def _sample_components(config):
    spool = config.templates.active("spool")
    pipe = config.templates.active("pipe")
    valve = config.templates.active("valve")
    specs = [
        ("SP-001", spool, "2", None, "A-100", "Cooling Water", "TP-01",
         {"Receive": True, "Erect": True, "Connect": True}),
        ("SP-002", spool, "4", None, "A-100", "Cooling Water", "TP-01",
         {"Receive": True, "Erect": True}),
        ("PP-001", pipe, "6", "40", "A-200", "Steam", "TP-02",
         {"Receive": True, "Erect": 50, "Connect": 25}),
        ("PP-002", pipe, "3/4", "120", "A-200", "Steam", None,
         {"Receive": True}),
        ("VL-001", valve, "1 1/2", None, "A-200", "Cooling Water", "TP-02",
         {"Receive": True, "Install": True, "Punch": True}),
        ("VL-002", valve, "NOSIZE", None, None, "Steam", "TP-02", {}),
    ]
    budgets = distribute_budget(
        total_mh=TOTAL_MH,
        components=[
            BudgetComponent(cid, t.component_type, size=size, linear_feet=feet)
            for cid, t, size, feet, *_ in specs
        ],
    )
    return [
        ComponentEntity(
            entity_id=cid,
            template=template,
            milestone_values=values,
            mh_budget=budgets.budget_for(cid),
            area=area,
            system=system,
            test_package=package,
        )
        for cid, template, _size, _feet, area, system, package, values in specs
    ]


def _sample_events():
    def at(day):
        return datetime(2025, day[0], day[1], 9, 0, tzinfo=UTC)

    return [
        MilestoneEvent("SP-001", "Receive", True, at((1, 6))),
        MilestoneEvent("SP-001", "Erect", True, at((1, 20))),
        MilestoneEvent("SP-001", "Connect", True, at((3, 3))),
        MilestoneEvent("SP-002", "Receive", True, at((1, 6))),
        MilestoneEvent("SP-002", "Erect", True, at((3, 10))),
        MilestoneEvent("PP-001", "Receive", True, at((2, 1))),
        MilestoneEvent("PP-001", "Erect", 50, at((3, 5))),
        MilestoneEvent("PP-001", "Connect", 25, at((3, 12))),
        MilestoneEvent("PP-002", "Receive", True, at((1, 28))),
        MilestoneEvent("VL-001", "Receive", True, at((1, 6))),
        MilestoneEvent("VL-001", "Install", True, at((2, 2))),
        MilestoneEvent("VL-001", "Punch", True, at((2, 9))),
    ]


def _sample_welds(config):
    template = config.templates.active("field_weld")
    done = {"Fit-up": True, "Weld Complete": True}
    rows = [
        ("FW-001", "W-07", "J. Ortiz", "BW", 10, date(2025, 3, 3), "RT", "PASS", date(2025, 3, 6), "A-100"),
        ("FW-002", "W-07", "J. Ortiz", "BW", 10, date(2025, 3, 4), "RT", "FAIL", date(2025, 3, 9), "A-100"),
        ("FW-003", "W-07", "J. Ortiz", "SW", 5, date(2025, 3, 10), None, None, None, "A-200"),
        ("FW-004", "W-12", "K. Chen", "BW", 100, date(2025, 2, 20), "RT", "PASS", date(2025, 2, 24), "A-200"),
        ("FW-005", "W-12", "K. Chen", "SW", 10, date(2025, 3, 11), "RT", "PENDING", None, "A-200"),
        ("FW-006", "W-12", "K. Chen", "BW", 5, None, None, None, None, "A-100"),
    ]
    return [
        FieldWeldEntity(
            entity_id=wid,
            template=template,
            milestone_values=done if welded else {"Fit-up": True},
            area=area,
            welder=stencil,
            welder_name=name,
            weld_type=weld_type,
            xray_percent=xray,
            date_welded=welded,
            status="accepted" if result == "PASS" else "active",
            nde_required=nde_type is not None,
            nde_type=nde_type,
            nde_result=result,
            nde_date=nde_date,
        )
        for wid, stencil, name, weld_type, xray, welded, nde_type, result, nde_date, area in rows
    ]


# ---------------------------------------------------------------------------
# Printing
# ---------------------------------------------------------------------------


def _print_table(title, headers, lines, message=None):
    print()
    print(f"== {title} ==")
    if message:
        print(f"   {message}")
        return
    widths = [
        max([len(str(h)), *(len(str(line[i])) for line in lines)])
        for i, h in enumerate(headers)
    ]
    print("  ".join(str(h).ljust(w) for h, w in zip(headers, widths)))
    print("  ".join("-" * w for w in widths))
    for line in lines:
        print("  ".join(str(c).ljust(w) for c, w in zip(line, widths)))


def _progress_lines(report, sort, config, manhours=False):
    lines = []
    for row in report.display_rows(sort):
        cells = [row.name, row.entity_count]
        for category in ReportCategory:
            cells.append(row.formatted_percent(category))
        if manhours:
            cells.append(row.formatted_manhours())
        cells.append(row.formatted_percent())
        lines.append(cells)
    headers = ["Name", "Budget"] + [config.label_for(c) for c in ReportCategory]
    if manhours:
        headers.append("MH Earned")
    headers.append("% Complete")
    return headers, lines


def _delta_lines(report, sort, config):
    lines = []
    for row in report.display_rows(sort):
        cells = [row.name, row.entities_with_activity]
        for category in ReportCategory:
            stacked = row.stacked(category)
            cells.append(stacked.mh if stacked.is_zero else f"{stacked.mh} {stacked.pct}")
        cells.append(row.formatted_mh_delta().text)
        cells.append(row.formatted_pct_delta().text)
        lines.append(cells)
    headers = (
        ["Name", "Active"]
        + [config.label_for(c) for c in ReportCategory]
        + ["MH Delta", "% Delta"]
    )
    return headers, lines


def _parse_sort(raw):
    if raw is None:
        return None
    column, _, direction = raw.partition(":")
    return SortSpec(column, direction or "asc")


def main() -> int:
    parser = argparse.ArgumentParser(description="Progress report walkthrough")
    parser.add_argument(
        "--dimension",
        default="area",
        choices=[d.value for d in GroupingDimension if d is not GroupingDimension.WELDER],
    )
    parser.add_argument("--preset", default="last_30_days")
    parser.add_argument("--sort", help="column[:asc|desc], e.g. pct_total:desc")
    parser.add_argument("--config-set", default="default")
    parser.add_argument(
        "--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"]
    )
    args = parser.parse_args()

    configure_logging(level=args.log_level)

    config = get_active_config(args.config_set)
    clock = DeterministicClock(NOW)
    sort = _parse_sort(args.sort)

    components = _sample_components(config)
    aggregator = ProgressAggregator()

    counts = aggregator.component_report(
        entities=components,
        dimension=args.dimension,
        project_id=PROJECT_ID,
        generated_at=clock.now(),
    )
    headers, lines = _progress_lines(
        counts, sort or config.sort_preferences.get("component_progress"), config
    )
    _print_table(f"Component progress by {args.dimension}", headers, lines, counts.message)
    if counts.excluded_count:
        print(f"   ({counts.excluded_count} component(s) without {args.dimension})")

    manhours = aggregator.manhour_report(
        entities=components,
        dimension=args.dimension,
        project_id=PROJECT_ID,
        generated_at=clock.now(),
    )
    headers, lines = _progress_lines(
        manhours,
        sort or config.sort_preferences.get("manhour_progress"),
        config,
        manhours=True,
    )
    _print_table(f"Manhour progress by {args.dimension}", headers, lines, manhours.message)
    print(
        f"   Budget {manhours.total_mh_budget:,.0f} MH, "
        f"earned {manhours.total_mh_earned:,.1f} MH "
        f"({format_percent(manhours.mh_percent_complete, 1)})"
    )

    selection = DateRangeSelection(preset=args.preset)
    window = resolve_date_range(selection, clock.today())
    events = _sample_events()
    welds = _sample_welds(config)

    if window is None:
        print()
        print("== Delta reports skipped: no date window for this selection ==")
    else:
        delta = DeltaEngine().component_delta_report(
            entities=[
                DeltaEntity.from_events(c, events, window, clock.site_tz)
                for c in components
            ],
            dimension=args.dimension,
            window=window,
            project_id=PROJECT_ID,
            generated_at=clock.now(),
        )
        headers, lines = _delta_lines(
            delta, sort or config.sort_preferences.get("component_delta"), config
        )
        _print_table(
            f"Manhour delta {window.start} .. {window.end} (exclusive)",
            headers,
            lines,
            delta.message,
        )

        weld_delta = FieldWeldDeltaEngine().report(
            entities=[
                DeltaEntity(
                    w,
                    start_values=(
                        None
                        if w.date_welded is not None and window.contains(w.date_welded)
                        else {"Fit-up": True}
                    ),
                )
                for w in welds
            ],
            dimension=GroupingDimension.WELDER,
            window=window,
            project_id=PROJECT_ID,
            generated_at=clock.now(),
        )
        columns = (
            "welds_with_activity",
            "delta_fitup_count",
            "delta_weld_complete_count",
            "delta_accepted_count",
            "delta_new_welds",
            "delta_pct_total",
        )
        _print_table(
            "Field weld delta by welder",
            ["Welder", *columns],
            [
                [row.name, *(row.formatted(c).text for c in columns)]
                for row in weld_delta.display_rows(
                    config.sort_preferences.get("field_weld_delta")
                )
            ],
            weld_delta.message,
        )

    weld_report = FieldWeldAggregator().report(
        entities=welds,
        dimension=GroupingDimension.WELDER,
        project_id=PROJECT_ID,
        generated_at=clock.now(),
    )
    _print_table(
        "Field weld progress by welder",
        [
            "Welder", "Welds", "Fit-up", "Weld Complete", "Accepted",
            "NDE Pass", "Days to NDE", "% Complete",
        ],
        [
            [
                row.name,
                row.total_welds,
                format_percent(row.pct_fitup),
                format_percent(row.pct_weld_complete),
                format_percent(row.pct_accepted),
                format_percent(row.nde_pass_rate),
                "--" if row.avg_days_to_nde is None else str(row.avg_days_to_nde),
                format_percent(row.pct_total, 1 if row.is_grand_total else 0),
            ]
            for row in weld_report.display_rows(
                config.sort_preferences.get("field_weld_progress")
            )
        ],
        weld_report.message,
    )

    summary = WelderSummaryCalculator().summarize(
        welds=welds, window=window, generated_at=clock.now(), project_id=PROJECT_ID
    )
    summary_lines = []
    for row in summary.display_rows(config.sort_preferences.get("welder_summary")):
        cells = [row.name, row.welder_name or ""]
        for section in WeldSection:
            for tier in XrayTier:
                stats = row.tier(section, tier)
                cells.append(f"{stats.welds}/{stats.nde}/{stats.rejects}")
        cells.append(format_percent(row.overall.reject_rate, 1))
        cells.append(format_percent(row.overall.nde_completion_rate, 1))
        summary_lines.append(cells)
    _print_table(
        "Welder summary (welds/NDE/rejects)",
        ["Stencil", "Name"]
        + [f"{s.value} {t.value}%" for s in WeldSection for t in XrayTier]
        + ["Reject Rate", "NDE Comp"],
        summary_lines,
        summary.message,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
