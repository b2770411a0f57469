"""
Pytest fixtures for the PipeTrak report engine test suite.

Provides:
- Structured logging configuration and log capture
- A deterministic clock
- Milestone templates mirroring the default configuration set
- Builders for components and field welds
"""

import json
import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from io import StringIO

import pytest

from pipetrak_engines.field_welds import FieldWeldEntity
from pipetrak_engines.grouping import ComponentEntity
from pipetrak_engines.milestones import (
    MilestoneDefinition,
    MilestoneTemplate,
    TemplateRegistry,
    WorkflowType,
)
from pipetrak_kernel.domain.clock import DeterministicClock
from pipetrak_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

GENERATED_AT = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture pipetrak logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            aggregator.component_report(...)
            logs = captured_logs()
            assert any(r["message"] == "progress_report_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("pipetrak")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(GENERATED_AT)


# =============================================================================
# Templates
# =============================================================================


def make_template(component_type, milestones, version=1, workflow_type="discrete"):
    """Build a template from ``(name, weight)`` or ``(name, weight, partial)``."""
    return MilestoneTemplate(
        component_type=component_type,
        version=version,
        workflow_type=WorkflowType(workflow_type),
        milestones=tuple(
            MilestoneDefinition(
                name=spec[0],
                weight=spec[1],
                order=i,
                is_partial=spec[2] if len(spec) > 2 else False,
            )
            for i, spec in enumerate(milestones, start=1)
        ),
    )


SPOOL_TEMPLATE = make_template(
    "spool",
    [("Receive", 5), ("Erect", 40), ("Connect", 40), ("Punch", 5), ("Test", 5), ("Restore", 5)],
)

PIPE_TEMPLATE = make_template(
    "pipe",
    [
        ("Receive", 5),
        ("Erect", 30, True),
        ("Connect", 30, True),
        ("Support", 20, True),
        ("Punch", 5),
        ("Test", 5),
        ("Restore", 5),
    ],
    version=2,
    workflow_type="hybrid",
)

VALVE_TEMPLATE = make_template(
    "valve",
    [("Receive", 10), ("Install", 60), ("Punch", 10), ("Test", 15), ("Restore", 5)],
)

FIELD_WELD_TEMPLATE = make_template(
    "field_weld", [("Fit-up", 30), ("Weld Complete", 65), ("Accepted", 5)], version=2
)


@pytest.fixture
def spool_template():
    return SPOOL_TEMPLATE


@pytest.fixture
def pipe_template():
    return PIPE_TEMPLATE


@pytest.fixture
def valve_template():
    return VALVE_TEMPLATE


@pytest.fixture
def field_weld_template():
    return FIELD_WELD_TEMPLATE


@pytest.fixture
def template_registry():
    return TemplateRegistry([SPOOL_TEMPLATE, PIPE_TEMPLATE, VALVE_TEMPLATE, FIELD_WELD_TEMPLATE])


# =============================================================================
# Entity builders
# =============================================================================


def make_component(
    entity_id,
    values=None,
    *,
    template=SPOOL_TEMPLATE,
    mh_budget="0",
    area="A-100",
    system="SYS-1",
    test_package="TP-1",
):
    return ComponentEntity(
        entity_id=entity_id,
        template=template,
        milestone_values=values or {},
        mh_budget=Decimal(mh_budget),
        area=area,
        system=system,
        test_package=test_package,
    )


def make_weld(
    entity_id,
    values=None,
    *,
    welder="W-01",
    welder_name="Welder One",
    weld_type="BW",
    xray_percent=10,
    date_welded=date(2025, 1, 10),
    nde_type=None,
    nde_result=None,
    area="A-100",
    **kwargs,
):
    return FieldWeldEntity(
        entity_id=entity_id,
        template=FIELD_WELD_TEMPLATE,
        milestone_values=values or {},
        area=area,
        welder=welder,
        welder_name=welder_name,
        weld_type=weld_type,
        xray_percent=xray_percent,
        date_welded=date_welded,
        nde_required=nde_type is not None,
        nde_type=nde_type,
        nde_result=nde_result,
        **kwargs,
    )


@pytest.fixture
def component_factory():
    return make_component


@pytest.fixture
def weld_factory():
    return make_weld
