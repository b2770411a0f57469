"""
Tests for the engine invocation tracer.
"""

from datetime import date
from decimal import Decimal

import pytest

from pipetrak_engines.date_range import DateWindow
from pipetrak_engines.grouping import GroupingDimension
from pipetrak_engines.tracer import compute_input_fingerprint, traced_engine
from pipetrak_kernel.exceptions import ZeroTotalWeightError
from pipetrak_kernel.logging_config import LogContext, get_logger


class TestInputFingerprint:

    def test_deterministic(self):
        kwargs = {"dimension": GroupingDimension.AREA, "project_id": "p1"}

        assert compute_input_fingerprint(
            ("dimension", "project_id"), kwargs
        ) == compute_input_fingerprint(("dimension", "project_id"), dict(kwargs))

    def test_enum_and_value_fingerprint_alike(self):
        assert compute_input_fingerprint(
            ("dimension",), {"dimension": GroupingDimension.AREA}
        ) == compute_input_fingerprint(("dimension",), {"dimension": "area"})

    def test_dict_key_order_irrelevant(self):
        a = compute_input_fingerprint(("d",), {"d": {"x": 1, "y": Decimal("2")}})
        b = compute_input_fingerprint(("d",), {"d": {"y": Decimal("2"), "x": 1}})

        assert a == b

    def test_different_inputs_differ(self):
        a = compute_input_fingerprint(("day",), {"day": date(2025, 1, 1)})
        b = compute_input_fingerprint(("day",), {"day": date(2025, 1, 2)})

        assert a != b

    def test_missing_field_is_null(self):
        assert len(compute_input_fingerprint(("absent",), {})) == 16


class TestTracedEngine:

    def test_result_unchanged_and_trace_logged(self, captured_logs):
        @traced_engine("sample", "2.1", fingerprint_fields=("value",))
        def double(*, value):
            return value * 2

        assert double(value=21) == 42

        trace = [r for r in captured_logs() if r["message"] == "PIPETRAK_ENGINE_TRACE"][-1]
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["input_fingerprint"] == compute_input_fingerprint(
            ("value",), {"value": 21}
        )
        assert trace["duration_ms"] >= 0

    def test_wraps_preserves_name(self):
        @traced_engine("sample", "1.0")
        def compute():
            return None

        assert compute.__name__ == "compute"

    def test_error_outcome_traced_and_reraised(self, captured_logs):
        @traced_engine("sample", "1.0")
        def explode():
            raise ZeroTotalWeightError(0)

        with pytest.raises(ZeroTotalWeightError):
            explode()

        trace = [r for r in captured_logs() if r["message"] == "PIPETRAK_ENGINE_TRACE"][-1]
        assert trace["outcome"] == "error"

    def test_engine_logs_carry_context(self, captured_logs):
        logger = get_logger("engines.sample")

        @traced_engine("sample", "1.0")
        def run(*, project_id, dimension):
            logger.info("sample_step")

        run(project_id="P-7", dimension=GroupingDimension.SYSTEM)

        step = [r for r in captured_logs() if r["message"] == "sample_step"][-1]
        assert step["engine"] == "sample"
        assert step["project_id"] == "P-7"
        assert step["dimension"] == "system"
        assert LogContext.get_all() == {}


class TestFingerprintDataclasses:

    def test_window_fingerprint_stable(self):
        window = DateWindow(date(2025, 1, 1), date(2025, 1, 16))

        assert compute_input_fingerprint(("window",), {"window": window}) == (
            compute_input_fingerprint(
                ("window",), {"window": DateWindow(date(2025, 1, 1), date(2025, 1, 16))}
            )
        )
        assert compute_input_fingerprint(("window",), {"window": window}) != (
            compute_input_fingerprint(
                ("window",), {"window": DateWindow(date(2025, 1, 2), date(2025, 1, 16))}
            )
        )
