"""Checked fixed-point arithmetic for amounts (int) and indices/rates (Decimal).

Amounts behave like Uint128: they never go negative and never exceed
``MAX_UINT128``. Decimals carry 18 fractional digits and are truncated
toward zero unless a helper explicitly rounds up.
"""
from __future__ import annotations

from decimal import (
    ROUND_CEILING,
    ROUND_FLOOR,
    Context,
    Decimal,
    DecimalException,
    DivisionByZero,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import Any, Callable

from .constants import DECIMAL_QUANTUM, MAX_DECIMAL, MAX_UINT128
from .errors import ArithmeticError, ValidationError

_CONTEXT = Context(
    prec=160,
    rounding=ROUND_FLOOR,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def to_decimal(value: Any, name: str = "value") -> Decimal:
    """Parse a config/user value into a finite Decimal."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"{name} must be numeric", **{name: value})
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise ValidationError(f"{name} is not a number", **{name: value}) from None
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        raise ValidationError(f"{name} must be numeric", **{name: value})

    if not result.is_finite():
        raise ValidationError(f"{name} must be finite", **{name: value})
    return quantize(result)


def to_amount(value: Any, name: str = "amount") -> int:
    """Parse a user value into a Uint128 amount."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError(f"{name} must be an integer", **{name: value})
    try:
        amount = int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", **{name: value}) from None
    if amount < 0:
        raise ValidationError(f"{name} cannot be negative", **{name: amount})
    return check_uint128(amount, "parse")


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------


def check_uint128(value: int, operation: str) -> int:
    if value < 0:
        raise ArithmeticError("Underflow", operation=operation, value=value)
    if value > MAX_UINT128:
        raise ArithmeticError("Overflow", operation=operation, value=value)
    return value


def quantize(value: Decimal, rounding: str = ROUND_FLOOR) -> Decimal:
    """Truncate to 18 fractional digits and check the Decimal range."""
    if abs(value) > MAX_DECIMAL:
        raise ArithmeticError("Decimal overflow", value=value)
    with localcontext(_CONTEXT):
        return value.quantize(DECIMAL_QUANTUM, rounding=rounding)


# ---------------------------------------------------------------------------
# Integer amounts
# ---------------------------------------------------------------------------


def checked_add(a: int, b: int) -> int:
    return check_uint128(a + b, "add")


def checked_sub(a: int, b: int) -> int:
    return check_uint128(a - b, "sub")


# ---------------------------------------------------------------------------
# Decimals
# ---------------------------------------------------------------------------


def _apply(
    operation: str, fn: Callable[[Decimal, Decimal], Decimal], a: Decimal, b: Decimal
) -> Decimal:
    try:
        with localcontext(_CONTEXT):
            result = fn(a, b)
    except DecimalException as exc:
        raise ArithmeticError(
            f"Decimal {operation} failed", operation=operation, operands=(a, b)
        ) from exc
    return quantize(result)


def decimal_mul(a: Decimal, b: Decimal) -> Decimal:
    return _apply("mul", lambda x, y: x * y, a, b)


def decimal_div(a: Decimal, b: Decimal) -> Decimal:
    if b == 0:
        raise ArithmeticError("Division by zero", operation="div", numerator=a)
    return _apply("div", lambda x, y: x / y, a, b)


def decimal_add(a: Decimal, b: Decimal) -> Decimal:
    return _apply("add", lambda x, y: x + y, a, b)


def decimal_sub(a: Decimal, b: Decimal) -> Decimal:
    """Subtract, refusing to go below zero."""
    result = _apply("sub", lambda x, y: x - y, a, b)
    if result < 0:
        raise ArithmeticError("Decimal underflow", operation="sub", lhs=a, rhs=b)
    return result


# ---------------------------------------------------------------------------
# Mixed int * Decimal
# ---------------------------------------------------------------------------


def _to_int(value: Decimal, rounding: str, operation: str) -> int:
    try:
        with localcontext(_CONTEXT):
            result = int(value.to_integral_value(rounding=rounding))
    except DecimalException as exc:
        raise ArithmeticError(
            "Integer conversion failed", operation=operation, value=value
        ) from exc
    return check_uint128(result, operation)


def mul_floor(amount: int, factor: Decimal) -> int:
    """``floor(amount * factor)``."""
    with localcontext(_CONTEXT):
        product = Decimal(amount) * factor
    return _to_int(product, ROUND_FLOOR, "mul_floor")


def mul_ceil(amount: int, factor: Decimal) -> int:
    """``ceil(amount * factor)``."""
    with localcontext(_CONTEXT):
        product = Decimal(amount) * factor
    return _to_int(product, ROUND_CEILING, "mul_ceil")


def div_floor(amount: int, divisor: Decimal) -> int:
    """``floor(amount / divisor)``."""
    if divisor == 0:
        raise ArithmeticError("Division by zero", operation="div_floor", numerator=amount)
    with localcontext(_CONTEXT):
        quotient = Decimal(amount) / divisor
    return _to_int(quotient, ROUND_FLOOR, "div_floor")


def div_ceil(amount: int, divisor: Decimal) -> int:
    """``ceil(amount / divisor)``."""
    if divisor == 0:
        raise ArithmeticError("Division by zero", operation="div_ceil", numerator=amount)
    with localcontext(_CONTEXT):
        quotient = Decimal(amount) / divisor
    return _to_int(quotient, ROUND_CEILING, "div_ceil")


def amount_value(amount: int, price: Decimal) -> Decimal:
    """Value of ``amount`` units at ``price``, as an 18-digit Decimal."""
    return _apply("value", lambda x, y: x * y, Decimal(amount), price)


def value_to_amount(value: Decimal, price: Decimal) -> int:
    """Units of an asset worth ``value`` at ``price``, rounded down."""
    if price == 0:
        raise ArithmeticError("Division by zero", operation="value_to_amount", value=value)
    with localcontext(_CONTEXT):
        quotient = value / price
    return _to_int(quotient, ROUND_FLOOR, "value_to_amount")
