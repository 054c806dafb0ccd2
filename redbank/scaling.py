"""Conversions between scaled (stored) and underlying (real) amounts.

``real = scaled * index`` and ``scaled = real / index``. Rounding always
favours the protocol: floor whatever is credited to a user, ceil whatever a
user owes or gives up.
"""
from __future__ import annotations

from decimal import Decimal

from .fixed_point import div_ceil, div_floor, mul_ceil, mul_floor

# ---------------------------------------------------------------------------
# Deposits (liquidity index)
# ---------------------------------------------------------------------------


def compute_scaled_deposit(amount: int, liquidity_index: Decimal) -> int:
    """Receipt tokens minted for depositing ``amount``."""
    return div_floor(amount, liquidity_index)


def compute_scaled_withdrawal(amount: int, liquidity_index: Decimal) -> int:
    """Receipt tokens burned to withdraw exactly ``amount``."""
    return div_ceil(amount, liquidity_index)


def compute_underlying_deposit(amount_scaled: int, liquidity_index: Decimal) -> int:
    """Underlying redeemable for ``amount_scaled`` receipt tokens."""
    return mul_floor(amount_scaled, liquidity_index)


# ---------------------------------------------------------------------------
# Debt (borrow index)
# ---------------------------------------------------------------------------


def compute_scaled_borrow(amount: int, borrow_index: Decimal) -> int:
    """Scaled debt recorded for borrowing ``amount``."""
    return div_ceil(amount, borrow_index)


def compute_scaled_repayment(amount: int, borrow_index: Decimal) -> int:
    """Scaled debt cleared by paying ``amount``."""
    return div_floor(amount, borrow_index)


def compute_underlying_debt(amount_scaled: int, borrow_index: Decimal) -> int:
    """Underlying owed for ``amount_scaled`` of debt."""
    return mul_ceil(amount_scaled, borrow_index)
