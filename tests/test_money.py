"""Tests for decimal validation and profit arithmetic."""

from decimal import Decimal

import pytest

from hawala.core.exceptions import ValidationError
from hawala.core.money import (
    money,
    require_amount,
    require_rate,
    settlement_profit,
    unit_profit,
)


class TestRequireAmount:
    def test_accepts_two_places(self):
        assert require_amount("10.25") == Decimal("10.25")

    def test_accepts_integer_and_normalizes(self):
        assert require_amount(5) == Decimal("5.00")

    @pytest.mark.parametrize("value", ["0", "-1", "-0.01"])
    def test_rejects_non_positive(self, value):
        with pytest.raises(ValidationError):
            require_amount(value)

    def test_zero_allowed_when_asked(self):
        assert require_amount("0", allow_zero=True) == Decimal("0.00")

    def test_rejects_sub_cent(self):
        with pytest.raises(ValidationError) as exc:
            require_amount("1.005")
        assert exc.value.code == "VALIDATION_ERROR"

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError):
            require_amount(value)

    def test_float_goes_through_str(self):
        assert require_amount(0.1) == Decimal("0.10")

    @pytest.mark.parametrize("value", ["1000000000000000000", "1e30"])
    def test_rejects_amounts_beyond_column_capacity(self, value):
        with pytest.raises(ValidationError) as exc:
            require_amount(value)
        assert exc.value.field == "amount"

    def test_accepts_column_maximum(self):
        assert require_amount("999999999999999999.99") == Decimal("999999999999999999.99")


class TestRates:
    def test_rate_must_be_positive(self):
        with pytest.raises(ValidationError):
            require_rate("0")

    def test_rate_precision(self):
        assert require_rate("85000.123456") == Decimal("85000.123456")
        with pytest.raises(ValidationError):
            require_rate("1.1234567")

    def test_rate_beyond_column_capacity(self):
        with pytest.raises(ValidationError):
            require_rate("100000000000000")


class TestProfit:
    def test_profitable_when_payout_rate_higher(self):
        profit = settlement_profit(Decimal("700000"), Decimal("85000"), Decimal("86000"))
        assert profit == Decimal("0.0958")

    def test_loss_when_payout_rate_lower(self):
        profit = settlement_profit(Decimal("300000"), Decimal("85000"), Decimal("84000"))
        assert profit == Decimal("-0.0420")

    def test_equal_rates_zero(self):
        assert settlement_profit(Decimal("1000"), Decimal("5"), Decimal("5")) == Decimal("0")

    def test_unit_profit_ordering(self):
        assert unit_profit(Decimal("85000"), Decimal("86000")) > unit_profit(
            Decimal("85000"), Decimal("84000")
        )

    def test_money_rounds_half_up(self):
        assert money(Decimal("11.765")) == Decimal("11.77")
