"""Index accrual: advance a market's liquidity and borrow indices over time."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from .constants import ONE, SECONDS_PER_YEAR, ZERO
from .errors import ValidationError
from .fixed_point import (
    checked_sub,
    decimal_add,
    decimal_div,
    decimal_mul,
    mul_ceil,
    mul_floor,
)
from .interest_rate_models import (
    RateModelState,
    compute_rates,
    compute_utilization_rate,
)
from .models import Market

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccrualOutcome:
    """Market fields after accrual, plus the reserve share of new interest."""

    borrow_index: Decimal
    liquidity_index: Decimal
    borrow_rate: Decimal
    liquidity_rate: Decimal
    rate_model_state: RateModelState
    current_time: int
    protocol_rewards: int = 0


def calculate_applied_linear_interest_rate(
    index: Decimal, rate: Decimal, time_elapsed: int
) -> Decimal:
    """``index * (1 + rate * elapsed / seconds_per_year)``.

    Interest is linear within a step but compounds across steps since each
    step multiplies the running index.
    """
    rate_factor = decimal_div(
        decimal_mul(rate, Decimal(time_elapsed)), Decimal(SECONDS_PER_YEAR)
    )
    return decimal_mul(index, decimal_add(ONE, rate_factor))


def total_debt(market: Market, borrow_index: Decimal | None = None) -> int:
    index = market.borrow_index if borrow_index is None else borrow_index
    return mul_ceil(market.debt_total_scaled, index)


def compute_accrual(
    market: Market, current_time: int, available_liquidity: int
) -> AccrualOutcome:
    """Compute the accrued market state at ``current_time`` without mutating it.

    Rates for the elapsed period come from the utilization that prevailed
    during it, i.e. the state left by the previous action.
    """
    elapsed = current_time - market.indexes_last_updated
    if elapsed < 0:
        raise ValidationError(
            "Current time precedes the market's last update",
            current_time=current_time,
            indexes_last_updated=market.indexes_last_updated,
        )
    if elapsed == 0:
        return AccrualOutcome(
            borrow_index=market.borrow_index,
            liquidity_index=market.liquidity_index,
            borrow_rate=market.borrow_rate,
            liquidity_rate=market.liquidity_rate,
            rate_model_state=market.rate_model_state,
            current_time=current_time,
        )

    previous_debt = total_debt(market)
    utilization_rate = compute_utilization_rate(previous_debt, available_liquidity)
    state = market.rate_model_state
    borrow_rate, liquidity_rate, state = compute_rates(
        utilization_rate,
        market.interest_rate_model,
        state,
        current_time,
        borrow_rate=market.borrow_rate,
        reserve_factor=market.reserve_factor,
    )

    borrow_index = market.borrow_index
    if borrow_rate > ZERO:
        borrow_index = calculate_applied_linear_interest_rate(
            borrow_index, borrow_rate, elapsed
        )
    liquidity_index = market.liquidity_index
    if liquidity_rate > ZERO:
        liquidity_index = calculate_applied_linear_interest_rate(
            liquidity_index, liquidity_rate, elapsed
        )

    protocol_rewards = 0
    if market.reserve_factor > ZERO and borrow_index > market.borrow_index:
        interest = checked_sub(total_debt(market, borrow_index), previous_debt)
        protocol_rewards = mul_floor(interest, market.reserve_factor)

    return AccrualOutcome(
        borrow_index=borrow_index,
        liquidity_index=liquidity_index,
        borrow_rate=borrow_rate,
        liquidity_rate=liquidity_rate,
        rate_model_state=state,
        current_time=current_time,
        protocol_rewards=protocol_rewards,
    )


def accrue(market: Market, current_time: int, available_liquidity: int) -> int:
    """Accrue ``market`` in place up to ``current_time``.

    A no-op when no time has elapsed. Returns the protocol's reserve share of
    the interest accrued over the step, in underlying units.
    """
    outcome = compute_accrual(market, current_time, available_liquidity)
    if outcome.current_time == market.indexes_last_updated:
        return 0

    market.borrow_index = outcome.borrow_index
    market.liquidity_index = outcome.liquidity_index
    market.borrow_rate = outcome.borrow_rate
    market.liquidity_rate = outcome.liquidity_rate
    market.rate_model_state = outcome.rate_model_state
    market.indexes_last_updated = current_time

    logger.debug(
        "Accrued %s to t=%d: borrow_index=%s liquidity_index=%s "
        "borrow_rate=%s liquidity_rate=%s",
        market.asset,
        current_time,
        market.borrow_index,
        market.liquidity_index,
        market.borrow_rate,
        market.liquidity_rate,
    )
    return outcome.protocol_rewards
