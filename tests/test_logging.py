"""Tests for the structured logging system (pipetrak_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from pipetrak_engines.grouping import GroupingDimension
from pipetrak_kernel.exceptions import MissingGroupKeyError
from pipetrak_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state, then restore the suite-wide DEBUG configuration."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_all_logs(stream)[0]
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "pipetrak.test"
        assert "ts" in record

    def test_extra_fields_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "report_built",
            extra={"row_count": 3, "total_mh": Decimal("12.50"), "day": date(2025, 1, 15)},
        )

        record = _parse_all_logs(stream)[0]
        assert record["row_count"] == 3
        assert record["total_mh"] == "12.50"
        assert record["day"] == "2025-01-15"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(project_id="P-1", engine="delta")
        get_logger("test").info("with_context")

        record = _parse_all_logs(stream)[0]
        assert record["project_id"] == "P-1"
        assert record["engine"] == "delta"

    def test_pipetrak_exception_fields(self):
        """Typed errors surface their code and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise MissingGroupKeyError("c-42", "area")
        except MissingGroupKeyError:
            get_logger("test").error("grouping_failed", exc_info=True)

        record = _parse_all_logs(stream)[0]
        assert record["exc_code"] == "MISSING_GROUP_KEY"
        assert record["exc_type"] == "MissingGroupKeyError"
        assert record["exc_entity_id"] == "c-42"
        assert record["exc_dimension"] == "area"
        assert "traceback" in record

    def test_debug_filtered_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.debug("second")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first"]

    def test_configure_is_idempotent(self):
        first, first_stream = _make_handler()
        second, second_stream = _make_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)
        get_logger("test").info("once")

        assert len(_parse_all_logs(first_stream)) == 1
        assert second_stream.getvalue() == ""


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_is_additive(self):
        LogContext.set(project_id="P-1")
        LogContext.set(dimension="area")

        assert LogContext.get_all() == {"project_id": "P-1", "dimension": "area"}

    def test_clear(self):
        LogContext.set(trace_id="t")
        LogContext.clear()

        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(project_id="outer")
        with LogContext.bind(project_id="inner"):
            assert LogContext.get_all()["project_id"] == "inner"

        assert LogContext.get_all()["project_id"] == "outer"

    def test_bind_restores_none(self):
        with LogContext.bind(trace_id="temp"):
            assert LogContext.get_all()["trace_id"] == "temp"

        assert "trace_id" not in LogContext.get_all()

    def test_enum_values_stored_as_text(self):
        LogContext.set(dimension=GroupingDimension.TEST_PACKAGE)

        assert LogContext.get_all()["dimension"] == "test_package"

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="report_id"):
            LogContext.set(report_id="R-1")


class TestConfigureLogging:

    def test_level_by_name(self):
        handler, stream = _make_handler()
        configure_logging(level="debug", handler=handler)
        get_logger("test").debug("visible")

        assert _parse_all_logs(stream)[0]["level"] == "DEBUG"

    def test_unknown_level_name(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(level="chatty")
