"""Liquidation amount resolution: close factor, bonus and collateral cap."""
from __future__ import annotations

from decimal import Decimal

from .constants import ONE
from .fixed_point import (
    amount_value,
    checked_sub,
    decimal_add,
    decimal_div,
    decimal_mul,
    mul_floor,
    value_to_amount,
)
from .models import LiquidationAmounts


def compute_liquidation_amounts(
    sent_amount: int,
    user_debt: int,
    user_collateral: int,
    close_factor: Decimal,
    liquidation_bonus: Decimal,
    debt_price: Decimal,
    collateral_price: Decimal,
) -> LiquidationAmounts:
    """Resolve how much debt is repaid and how much collateral is seized.

    The repayment is capped at ``close_factor * user_debt``. Collateral is
    worth the repaid value plus the bonus; when that exceeds what the user
    holds, the whole balance is seized and the repayment shrinks so that
    value in still matches value out. Whatever is not repaid is refunded.
    """
    max_repayable = mul_floor(user_debt, close_factor)
    debt_amount_to_repay = min(sent_amount, max_repayable, user_debt)

    bonus_factor = decimal_add(ONE, liquidation_bonus)
    debt_value = amount_value(debt_amount_to_repay, debt_price)
    collateral_amount = value_to_amount(
        decimal_mul(debt_value, bonus_factor), collateral_price
    )

    if collateral_amount > user_collateral:
        collateral_amount = user_collateral
        collateral_value = amount_value(user_collateral, collateral_price)
        debt_amount_to_repay = value_to_amount(
            decimal_div(collateral_value, bonus_factor), debt_price
        )

    return LiquidationAmounts(
        debt_amount_to_repay=debt_amount_to_repay,
        collateral_amount_to_liquidate=collateral_amount,
        refund_amount=checked_sub(sent_amount, debt_amount_to_repay),
    )
