"""
Tests for kernel numeric value objects.
"""

from decimal import Decimal

import pytest

from pipetrak_kernel.domain.values import (
    Percent,
    clamp,
    round_half_up,
    safe_percent,
    to_decimal,
)


class TestToDecimal:

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_string_and_int(self):
        assert to_decimal(" 12.50 ") == Decimal("12.5")
        assert to_decimal(7) == Decimal("7")

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            to_decimal(True)

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            to_decimal([1])

    @pytest.mark.parametrize("value", ["abc", "NaN", float("inf")])
    def test_unparseable_or_non_finite(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)


class TestRounding:

    def test_half_up(self):
        assert round_half_up(Decimal("2.5")) == Decimal("3")
        assert round_half_up(Decimal("-2.5")) == Decimal("-3")
        assert round_half_up(Decimal("66.65"), 1) == Decimal("66.7")

    def test_clamp(self):
        assert clamp(Decimal("150"), Decimal("0"), Decimal("100")) == Decimal("100")
        assert clamp(Decimal("-5"), Decimal("0"), Decimal("100")) == Decimal("0")


class TestPercent:

    def test_zero_denominator_is_undefined(self):
        percent = safe_percent(Decimal("5"), Decimal("0"))

        assert not percent.is_defined
        assert percent != Percent(Decimal("0"))
        assert str(percent) == "--"

    def test_defined(self):
        percent = safe_percent(Decimal("1"), Decimal("4"))

        assert percent.value == Decimal("25")
        assert percent.or_zero() == Decimal("25")

    def test_or_zero(self):
        assert Percent.undefined().or_zero() == Decimal("0")

    def test_rounded(self):
        assert Percent(Decimal("66.666")).rounded(1) == Percent(Decimal("66.7"))
        assert Percent.undefined().rounded(1) == Percent.undefined()

    def test_of(self):
        assert Percent.of("12.5").value == Decimal("12.5")

    def test_immutable(self):
        percent = Percent(Decimal("1"))

        with pytest.raises(AttributeError):
            percent.value = Decimal("2")
