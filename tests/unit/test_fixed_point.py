"""Unit tests for checked fixed-point arithmetic."""
from __future__ import annotations

from decimal import Decimal

import pytest

from redbank.constants import MAX_UINT128
from redbank.errors import ArithmeticError, ValidationError
from redbank.fixed_point import (
    amount_value,
    checked_add,
    checked_sub,
    decimal_div,
    decimal_mul,
    decimal_sub,
    div_ceil,
    div_floor,
    mul_ceil,
    mul_floor,
    to_amount,
    to_decimal,
    value_to_amount,
)


class TestParsing:
    def test_to_decimal_from_string(self) -> None:
        assert to_decimal("0.07") == Decimal("0.07")

    def test_to_decimal_from_float_uses_repr(self) -> None:
        assert to_decimal(0.1) == Decimal("0.1")

    def test_to_decimal_truncates_to_18_places(self) -> None:
        assert to_decimal("0.1234567890123456789") == Decimal("0.123456789012345678")

    def test_to_decimal_rejects_garbage(self) -> None:
        with pytest.raises(ValidationError, match="not a number"):
            to_decimal("abc", "rate")

    def test_to_decimal_rejects_infinity(self) -> None:
        with pytest.raises(ValidationError, match="finite"):
            to_decimal("Infinity")

    def test_to_decimal_rejects_bool(self) -> None:
        with pytest.raises(ValidationError):
            to_decimal(True)

    def test_to_amount_rejects_negative(self) -> None:
        with pytest.raises(ValidationError, match="negative") as exc_info:
            to_amount(-5)
        assert exc_info.value.details["amount"] == -5

    def test_to_amount_rejects_float(self) -> None:
        with pytest.raises(ValidationError, match="integer"):
            to_amount(1.5)

    def test_to_amount_accepts_numeric_string(self) -> None:
        assert to_amount("1000") == 1000


class TestCheckedIntegers:
    def test_add_overflow_raises(self) -> None:
        with pytest.raises(ArithmeticError, match="Overflow") as exc_info:
            checked_add(MAX_UINT128, 1)
        assert exc_info.value.details["operation"] == "add"

    def test_sub_underflow_raises(self) -> None:
        with pytest.raises(ArithmeticError, match="Underflow"):
            checked_sub(1, 2)

    def test_add_at_bound(self) -> None:
        assert checked_add(MAX_UINT128 - 1, 1) == MAX_UINT128


class TestDecimals:
    def test_mul_truncates(self) -> None:
        assert decimal_mul(Decimal("1") / 3, Decimal("3")) == Decimal("0.999999999999999999")

    def test_div_by_zero_raises(self) -> None:
        with pytest.raises(ArithmeticError, match="Division by zero"):
            decimal_div(Decimal("1"), Decimal("0"))

    def test_sub_below_zero_raises(self) -> None:
        with pytest.raises(ArithmeticError, match="underflow"):
            decimal_sub(Decimal("0.1"), Decimal("0.2"))

    def test_never_saturates(self) -> None:
        huge = Decimal(10) ** 60
        with pytest.raises(ArithmeticError):
            decimal_mul(huge, huge)


class TestRounding:
    def test_mul_floor_and_ceil(self) -> None:
        index = Decimal("1.05")
        assert mul_floor(333, index) == 349
        assert mul_ceil(333, index) == 350

    def test_exact_products_do_not_round_up(self) -> None:
        assert mul_ceil(1000, Decimal("1.05")) == 1050

    def test_div_floor_and_ceil(self) -> None:
        index = Decimal("1.1")
        assert div_floor(100, index) == 90
        assert div_ceil(100, index) == 91

    def test_div_by_zero_index_raises(self) -> None:
        with pytest.raises(ArithmeticError):
            div_floor(100, Decimal("0"))

    def test_amount_value(self) -> None:
        assert amount_value(250, Decimal("2.5")) == Decimal("625")

    def test_value_to_amount_rounds_down(self) -> None:
        assert value_to_amount(Decimal("330"), Decimal("9")) == 36

    def test_result_above_uint128_raises(self) -> None:
        with pytest.raises(ArithmeticError, match="Overflow"):
            mul_floor(MAX_UINT128, Decimal("2"))
