"""User position aggregation and health status: pure functions, no I/O."""
from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from .constants import ZERO
from .fixed_point import amount_value, decimal_add, decimal_div, decimal_mul
from .models import AssetPosition, UserHealthStatus, UserPosition


def compute_position(asset_positions: Iterable[AssetPosition]) -> UserPosition:
    """Aggregate priced per-market positions into totals and a health status.

    Collateral counts only where it is enabled. Debt up to the market's
    uncollateralized limit is gross debt but is excluded from the debt the
    collateral must back.
    """
    positions = tuple(asset_positions)

    total_collateral_value = ZERO
    weighted_liquidation_threshold_value = ZERO
    max_debt_value = ZERO
    total_debt_value = ZERO
    total_collateralized_debt_value = ZERO

    for position in positions:
        if position.collateral_enabled and position.collateral_amount > 0:
            collateral_value = amount_value(position.collateral_amount, position.price)
            total_collateral_value = decimal_add(total_collateral_value, collateral_value)
            weighted_liquidation_threshold_value = decimal_add(
                weighted_liquidation_threshold_value,
                decimal_mul(collateral_value, position.liquidation_threshold),
            )
            max_debt_value = decimal_add(
                max_debt_value,
                decimal_mul(collateral_value, position.max_loan_to_value),
            )

        if position.debt_amount > 0:
            debt_value = amount_value(position.debt_amount, position.price)
            total_debt_value = decimal_add(total_debt_value, debt_value)

            collateralized = position.debt_amount - position.uncollateralized_limit
            if collateralized > 0:
                total_collateralized_debt_value = decimal_add(
                    total_collateralized_debt_value,
                    amount_value(collateralized, position.price),
                )

    return UserPosition(
        total_collateral_value=total_collateral_value,
        total_debt_value=total_debt_value,
        total_collateralized_debt_value=total_collateralized_debt_value,
        weighted_liquidation_threshold_value=weighted_liquidation_threshold_value,
        max_debt_value=max_debt_value,
        health_status=compute_health_status(
            total_debt_value,
            total_collateralized_debt_value,
            weighted_liquidation_threshold_value,
        ),
        asset_positions=positions,
    )


def compute_health_status(
    total_debt_value: Decimal,
    total_collateralized_debt_value: Decimal,
    weighted_liquidation_threshold_value: Decimal,
) -> UserHealthStatus:
    if total_debt_value == ZERO:
        return UserHealthStatus.not_borrowing()
    if total_collateralized_debt_value == ZERO:
        return UserHealthStatus.with_health_factor(None)
    return UserHealthStatus.with_health_factor(
        decimal_div(weighted_liquidation_threshold_value, total_collateralized_debt_value)
    )


def exceeds_max_debt(position: UserPosition) -> bool:
    """True when the collateral no longer supports the collateralized debt at max LTV."""
    return position.total_collateralized_debt_value > position.max_debt_value
