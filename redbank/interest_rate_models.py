"""Interest rate models: utilization -> (borrow_rate, liquidity_rate)."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Union

from .constants import ONE, ZERO
from .errors import ValidationError
from .fixed_point import (
    decimal_add,
    decimal_div,
    decimal_mul,
    decimal_sub,
    to_decimal,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Model state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateModelState:
    """Counters since the borrow rate was last recomputed."""

    last_updated: int = 0
    txs_since_last_update: int = 0

    def record_transaction(self) -> RateModelState:
        return replace(self, txs_since_last_update=self.txs_since_last_update + 1)


# ---------------------------------------------------------------------------
# Linear
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LinearInterestRate:
    """Two-slope model with a kink at the optimal utilization rate.

    u <= optimal:  base + slope_1 * u / optimal
    u >  optimal:  base + slope_1 + slope_2 * (u - optimal) / (1 - optimal)
    """

    optimal_utilization_rate: Decimal
    base: Decimal
    slope_1: Decimal
    slope_2: Decimal

    kind = "linear"

    def validate(self) -> None:
        _require_non_negative(self, ("base", "slope_1", "slope_2"))
        if not ZERO < self.optimal_utilization_rate <= ONE:
            raise ValidationError(
                "optimal_utilization_rate must be in (0, 1]",
                optimal_utilization_rate=self.optimal_utilization_rate,
            )

    def get_borrow_rate(self, utilization_rate: Decimal) -> Decimal:
        if utilization_rate <= self.optimal_utilization_rate:
            ratio = decimal_div(utilization_rate, self.optimal_utilization_rate)
            return decimal_add(self.base, decimal_mul(self.slope_1, ratio))

        excess = decimal_sub(utilization_rate, self.optimal_utilization_rate)
        ratio = decimal_div(excess, decimal_sub(ONE, self.optimal_utilization_rate))
        return decimal_add(
            decimal_add(self.base, self.slope_1), decimal_mul(self.slope_2, ratio)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "linear": {
                "optimal_utilization_rate": str(self.optimal_utilization_rate),
                "base": str(self.base),
                "slope_1": str(self.slope_1),
                "slope_2": str(self.slope_2),
            }
        }


# ---------------------------------------------------------------------------
# Dynamic (proportional controller)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DynamicInterestRate:
    """Proportional controller steering utilization toward the optimum.

    The borrow rate moves by ``kp * |u - optimal|`` per recomputation,
    upwards when utilization is above the optimum and downwards below it.
    ``kp_2`` replaces ``kp_1`` once the error reaches
    ``kp_augmentation_threshold``. Recomputation only happens once
    ``update_threshold_seconds`` have passed or ``update_threshold_txs``
    rate-affecting transactions have been recorded since the last one.
    """

    min_borrow_rate: Decimal
    max_borrow_rate: Decimal
    kp_1: Decimal
    optimal_utilization_rate: Decimal
    kp_augmentation_threshold: Decimal
    kp_2: Decimal
    update_threshold_txs: int = 1
    update_threshold_seconds: int = 0

    kind = "dynamic"

    def validate(self) -> None:
        _require_non_negative(
            self,
            (
                "min_borrow_rate",
                "max_borrow_rate",
                "kp_1",
                "optimal_utilization_rate",
                "kp_augmentation_threshold",
                "kp_2",
                "update_threshold_txs",
                "update_threshold_seconds",
            ),
        )
        if self.min_borrow_rate > self.max_borrow_rate:
            raise ValidationError(
                "min_borrow_rate must not exceed max_borrow_rate",
                min_borrow_rate=self.min_borrow_rate,
                max_borrow_rate=self.max_borrow_rate,
            )
        if self.optimal_utilization_rate > ONE:
            raise ValidationError(
                "optimal_utilization_rate must be <= 1",
                optimal_utilization_rate=self.optimal_utilization_rate,
            )

    def should_update(self, elapsed_time: int, elapsed_tx_count: int) -> bool:
        return (
            elapsed_tx_count >= self.update_threshold_txs
            or elapsed_time >= self.update_threshold_seconds
        )

    def get_borrow_rate(
        self, utilization_rate: Decimal, current_borrow_rate: Decimal
    ) -> Decimal:
        if utilization_rate < self.optimal_utilization_rate:
            error = decimal_sub(self.optimal_utilization_rate, utilization_rate)
        else:
            error = decimal_sub(utilization_rate, self.optimal_utilization_rate)

        kp = self.kp_2 if error >= self.kp_augmentation_threshold else self.kp_1
        adjustment = decimal_mul(kp, error)

        if utilization_rate < self.optimal_utilization_rate:
            new_rate = (
                decimal_sub(current_borrow_rate, adjustment)
                if current_borrow_rate > adjustment
                else ZERO
            )
        else:
            new_rate = decimal_add(current_borrow_rate, adjustment)

        return min(max(new_rate, self.min_borrow_rate), self.max_borrow_rate)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dynamic": {
                "min_borrow_rate": str(self.min_borrow_rate),
                "max_borrow_rate": str(self.max_borrow_rate),
                "kp_1": str(self.kp_1),
                "optimal_utilization_rate": str(self.optimal_utilization_rate),
                "kp_augmentation_threshold": str(self.kp_augmentation_threshold),
                "kp_2": str(self.kp_2),
                "update_threshold_txs": self.update_threshold_txs,
                "update_threshold_seconds": self.update_threshold_seconds,
            }
        }


InterestRateModel = Union[LinearInterestRate, DynamicInterestRate]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compute_utilization_rate(total_debt: int, available_liquidity: int) -> Decimal:
    """``debt / (available + debt)``, zero when there is no debt."""
    if total_debt == 0:
        return ZERO
    return decimal_div(Decimal(total_debt), Decimal(available_liquidity + total_debt))


def compute_liquidity_rate(
    borrow_rate: Decimal, utilization_rate: Decimal, reserve_factor: Decimal
) -> Decimal:
    return decimal_mul(
        decimal_mul(borrow_rate, utilization_rate), decimal_sub(ONE, reserve_factor)
    )


def compute_rates(
    utilization_rate: Decimal,
    model: InterestRateModel,
    state: RateModelState,
    current_time: int,
    *,
    borrow_rate: Decimal,
    reserve_factor: Decimal,
) -> tuple[Decimal, Decimal, RateModelState]:
    """Return ``(borrow_rate, liquidity_rate, state)`` for the next period.

    ``borrow_rate`` is the market's current rate; a dynamic model keeps it
    unchanged until one of its update thresholds is reached.
    """
    if isinstance(model, DynamicInterestRate):
        elapsed_time = current_time - state.last_updated
        if model.should_update(elapsed_time, state.txs_since_last_update):
            new_borrow_rate = model.get_borrow_rate(utilization_rate, borrow_rate)
            state = RateModelState(
                last_updated=current_time,
                txs_since_last_update=0,
            )
            logger.debug(
                "Dynamic borrow rate %s -> %s at utilization %s",
                borrow_rate,
                new_borrow_rate,
                utilization_rate,
            )
        else:
            new_borrow_rate = borrow_rate
    else:
        new_borrow_rate = model.get_borrow_rate(utilization_rate)

    liquidity_rate = compute_liquidity_rate(
        new_borrow_rate, utilization_rate, reserve_factor
    )
    return new_borrow_rate, liquidity_rate, state


def interest_rate_model_from_dict(raw: dict[str, Any]) -> InterestRateModel:
    """Build a model from ``{"linear": {...}}`` or ``{"dynamic": {...}}``."""
    if not isinstance(raw, dict) or len(raw) != 1:
        raise ValidationError(
            "interest_rate_model must have exactly one of 'linear' or 'dynamic'",
            interest_rate_model=raw,
        )
    (kind, params), = raw.items()
    params = params or {}

    try:
        if kind == "linear":
            return LinearInterestRate(
                optimal_utilization_rate=to_decimal(
                    params["optimal_utilization_rate"], "optimal_utilization_rate"
                ),
                base=to_decimal(params.get("base", 0), "base"),
                slope_1=to_decimal(params["slope_1"], "slope_1"),
                slope_2=to_decimal(params["slope_2"], "slope_2"),
            )
        if kind == "dynamic":
            return DynamicInterestRate(
                min_borrow_rate=to_decimal(params["min_borrow_rate"], "min_borrow_rate"),
                max_borrow_rate=to_decimal(params["max_borrow_rate"], "max_borrow_rate"),
                kp_1=to_decimal(params["kp_1"], "kp_1"),
                optimal_utilization_rate=to_decimal(
                    params["optimal_utilization_rate"], "optimal_utilization_rate"
                ),
                kp_augmentation_threshold=to_decimal(
                    params["kp_augmentation_threshold"], "kp_augmentation_threshold"
                ),
                kp_2=to_decimal(params["kp_2"], "kp_2"),
                update_threshold_txs=int(params.get("update_threshold_txs", 1)),
                update_threshold_seconds=int(params.get("update_threshold_seconds", 0)),
            )
    except KeyError as exc:
        raise ValidationError(
            f"{kind} interest rate model is missing '{exc.args[0]}'", model=kind
        ) from None

    raise ValidationError("Unknown interest rate model", model=kind)


def _require_non_negative(model: Any, fields: tuple[str, ...]) -> None:
    for name in fields:
        value = getattr(model, name)
        if value < 0:
            raise ValidationError(f"{name} cannot be negative", **{name: value})
