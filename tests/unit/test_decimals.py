"""
Unit tests for decimal parsing.

Verifies:
- Accepted input types and whitespace handling
- Float inputs pass through str() so no binary expansion leaks in
- Rejection of blanks, booleans, garbage and non-finite values
- The 9-place scale limit
- Sign-constrained variants
"""

from decimal import Decimal

import pytest

from procurement_kernel.domain.decimals import (
    to_decimal,
    to_decimal_or_null,
    to_decimal_or_zero,
    to_non_negative_decimal,
    to_positive_decimal,
)
from procurement_kernel.exceptions import InvalidNumberError, ValidationError


class TestToDecimal:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("100.50", Decimal("100.50")),
            ("  42 ", Decimal("42")),
            (7, Decimal("7")),
            (Decimal("3.14159"), Decimal("3.14159")),
            ("-0.25", Decimal("-0.25")),
            ("1E+3", Decimal("1000")),
        ],
    )
    def test_accepted_inputs(self, raw, expected):
        assert to_decimal(raw) == expected

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", "1,000", True, False])
    def test_rejected_inputs(self, raw):
        with pytest.raises(InvalidNumberError) as exc_info:
            to_decimal(raw, field="unit_price")
        assert exc_info.value.field == "unit_price"
        assert exc_info.value.code == "INVALID_NUMBER"

    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "-inf", Decimal("NaN"), float("inf")])
    def test_non_finite_rejected(self, raw):
        with pytest.raises(InvalidNumberError):
            to_decimal(raw)

    def test_nine_places_kept_exactly(self):
        assert to_decimal("0.000000001") == Decimal("0.000000001")
        # trailing zeros past the ninth place carry no information
        assert to_decimal("2.50000000000") == Decimal("2.5")

    @pytest.mark.parametrize("raw", ["0.0000000001", "12.3456789012", Decimal("1E-10")])
    def test_more_than_nine_places_refused(self, raw):
        with pytest.raises(ValidationError) as exc_info:
            to_decimal(raw, field="unit_price")
        assert not isinstance(exc_info.value, InvalidNumberError)
        assert exc_info.value.field == "unit_price"

    def test_invalid_number_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            to_decimal("twelve")

    def test_repeated_increments_do_not_drift(self):
        total = Decimal("0")
        for _ in range(1000):
            total += to_decimal("0.1")
        for _ in range(1000):
            total -= to_decimal("0.1")
        assert total == Decimal("0")


class TestOptionalVariants:
    @pytest.mark.parametrize("raw", [None, "", "  "])
    def test_blank_becomes_zero(self, raw):
        assert to_decimal_or_zero(raw) == Decimal("0")

    @pytest.mark.parametrize("raw", [None, "", "  "])
    def test_blank_stays_null(self, raw):
        assert to_decimal_or_null(raw) is None

    def test_values_still_parsed(self):
        assert to_decimal_or_zero("5.5") == Decimal("5.5")
        assert to_decimal_or_null("5.5") == Decimal("5.5")
        with pytest.raises(InvalidNumberError):
            to_decimal_or_zero("x")


class TestSignConstraints:
    def test_positive(self):
        assert to_positive_decimal("0.001") == Decimal("0.001")
        for raw in ("0", "-1"):
            with pytest.raises(ValidationError) as exc_info:
                to_positive_decimal(raw, field="quantity")
            assert exc_info.value.field == "quantity"

    def test_non_negative(self):
        assert to_non_negative_decimal("0") == Decimal("0")
        with pytest.raises(ValidationError):
            to_non_negative_decimal("-0.01", field="tax_amount")
