"""
Tests for report cell formatting.
"""

from decimal import Decimal

import pytest

from pipetrak_engines.formatting import (
    ZERO_DELTA_PLACEHOLDER,
    DeltaTone,
    format_count_delta,
    format_manhours,
    format_mh_delta,
    format_percent,
    format_percent_delta,
    format_row_percent,
    format_stacked_delta,
)
from pipetrak_kernel.domain.values import Percent


class TestPercentFormatting:

    def test_undefined(self):
        assert format_percent(Percent.undefined()) == "--"

    def test_whole_number_half_up(self):
        assert format_percent(Percent(Decimal("66.5"))) == "67%"

    def test_row_vs_grand_total(self):
        percent = Percent(Decimal("200") / Decimal("3"))

        assert format_row_percent(percent) == "67%"
        assert format_row_percent(percent, is_grand_total=True) == "66.7%"

    def test_zero_is_not_undefined(self):
        assert format_percent(Percent(Decimal("0"))) == "0%"


class TestManhourFormatting:

    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("0"), "0"),
            (Decimal("4.25"), "4.3"),
            (Decimal("9.94"), "9.9"),
            (Decimal("9.96"), "10"),
            (Decimal("-9.96"), "-10"),
            (Decimal("12.5"), "13"),
            (Decimal("12345.6"), "12,346"),
        ],
    )
    def test_manhours(self, value, expected):
        assert format_manhours(value) == expected


class TestCountDelta:

    def test_positive(self):
        assert format_count_delta(3).text == "+3"
        assert format_count_delta(3).tone is DeltaTone.POSITIVE

    def test_negative(self):
        assert format_count_delta(-2).text == "-2"
        assert format_count_delta(-2).tone is DeltaTone.NEGATIVE

    def test_zero(self):
        assert format_count_delta(0).text == "0"
        assert format_count_delta(0).tone is DeltaTone.NEUTRAL


class TestPercentDelta:

    def test_positive(self):
        assert format_percent_delta(Percent(Decimal("1.25"))).text == "+1.3%"

    def test_negative(self):
        formatted = format_percent_delta(Percent(Decimal("-4")))

        assert formatted.text == "-4.0%"
        assert formatted.tone is DeltaTone.NEGATIVE

    def test_zero(self):
        assert format_percent_delta(Percent(Decimal("0"))).text == "0.0%"

    def test_undefined(self):
        assert format_percent_delta(Percent.undefined()).text == "--"


class TestManhourDelta:
    """Compact deltas keep exact zero apart from rounds-to-zero."""

    def test_negative(self):
        formatted = format_mh_delta(Decimal("-12"))

        assert formatted.text == "-12 MH"
        assert formatted.tone is DeltaTone.NEGATIVE

    def test_positive_grouped(self):
        assert format_mh_delta(Decimal("1234.5")).text == "+1,235 MH"

    def test_exact_zero(self):
        formatted = format_mh_delta(Decimal("0"))

        assert formatted.text == ZERO_DELTA_PLACEHOLDER
        assert formatted.tone is DeltaTone.NEUTRAL

    def test_rounds_to_zero(self):
        assert format_mh_delta(Decimal("0.3")).text == "<1 mh"
        assert format_mh_delta(Decimal("-0.3")).text == ">-1 mh"
        assert format_mh_delta(Decimal("-0.3")).tone is DeltaTone.NEGATIVE


class TestStackedDelta:

    def test_singular_unit(self):
        stacked = format_stacked_delta(Decimal("1.2"), Percent(Decimal("0.5")))

        assert stacked.mh == "+1 mh"
        assert stacked.pct == "+0.5%"

    def test_plural_unit(self):
        assert format_stacked_delta(Decimal("-7"), Percent(Decimal("-3"))).mh == "-7 mh's"

    def test_exact_zero(self):
        stacked = format_stacked_delta(Decimal("0"), Percent(Decimal("0")))

        assert stacked.is_zero
        assert stacked.mh == ZERO_DELTA_PLACEHOLDER
        assert stacked.pct == ""

    def test_rounds_to_zero(self):
        stacked = format_stacked_delta(Decimal("0.2"), Percent(Decimal("0.1")))

        assert not stacked.is_zero
        assert stacked.mh == "<1 mh"
