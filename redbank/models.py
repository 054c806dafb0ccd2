"""Data models: asset identity, market/user records, results and messages."""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from .constants import DEFAULT_CLOSE_FACTOR, ONE, ZERO
from .errors import MarketInactiveError, ValidationError
from .fixed_point import to_decimal
from .interest_rate_models import (
    DynamicInterestRate,
    InterestRateModel,
    RateModelState,
    interest_rate_model_from_dict,
)

# ---------------------------------------------------------------------------
# Asset identity
# ---------------------------------------------------------------------------


class AssetKind(str, Enum):
    NATIVE = "native"
    TOKEN = "token"


@dataclass(frozen=True)
class Asset:
    """A native denom or a fungible-token contract address."""

    kind: AssetKind
    reference: str

    def __post_init__(self) -> None:
        if not self.reference:
            raise ValidationError("Asset reference cannot be empty", kind=self.kind)

    @classmethod
    def native(cls, denom: str) -> Asset:
        return cls(AssetKind.NATIVE, denom)

    @classmethod
    def token(cls, contract_address: str) -> Asset:
        return cls(AssetKind.TOKEN, contract_address)

    @property
    def key(self) -> str:
        """Canonical storage key; distinct for a denom and an address with the same text."""
        return f"{self.kind.value}:{self.reference}"

    @classmethod
    def from_dict(cls, raw: dict[str, str]) -> Asset:
        """Parse ``{"native": denom}`` or ``{"token": address}``."""
        if not isinstance(raw, dict) or len(raw) != 1:
            raise ValidationError("Asset must have exactly one of 'native' or 'token'", asset=raw)
        (kind, reference), = raw.items()
        try:
            return cls(AssetKind(kind), str(reference))
        except ValueError:
            raise ValidationError("Unknown asset kind", asset=raw) from None

    def to_dict(self) -> dict[str, str]:
        return {self.kind.value: self.reference}

    def __str__(self) -> str:
        return self.reference


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


@dataclass
class Config:
    owner: str
    address: str
    address_provider: str = ""
    close_factor: Decimal = DEFAULT_CLOSE_FACTOR

    def validate(self) -> None:
        if not self.owner:
            raise ValidationError("owner cannot be empty")
        if not ZERO <= self.close_factor <= ONE:
            raise ValidationError("close_factor must be in [0, 1]", close_factor=self.close_factor)


# ---------------------------------------------------------------------------
# Asset listing parameters
# ---------------------------------------------------------------------------

_FRACTION_FIELDS = (
    "initial_borrow_rate",
    "max_loan_to_value",
    "reserve_factor",
    "liquidation_threshold",
    "liquidation_bonus",
    "close_factor",
)


@dataclass(frozen=True)
class AssetParams:
    """Listing parameters; every field is required on init, optional on update."""

    initial_borrow_rate: Decimal | None = None
    max_loan_to_value: Decimal | None = None
    reserve_factor: Decimal | None = None
    liquidation_threshold: Decimal | None = None
    liquidation_bonus: Decimal | None = None
    interest_rate_model: InterestRateModel | None = None
    active: bool | None = None
    deposit_enabled: bool | None = None
    borrow_enabled: bool | None = None
    close_factor: Decimal | None = None

    def missing_for_init(self) -> list[str]:
        return [
            f.name
            for f in fields(self)
            if f.name != "close_factor" and getattr(self, f.name) is None
        ]

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> AssetParams:
        values: dict[str, Any] = {}
        for name in _FRACTION_FIELDS:
            if raw.get(name) is not None:
                values[name] = to_decimal(raw[name], name)
        for name in ("active", "deposit_enabled", "borrow_enabled"):
            if raw.get(name) is not None:
                values[name] = bool(raw[name])
        if raw.get("interest_rate_model") is not None:
            values["interest_rate_model"] = interest_rate_model_from_dict(
                raw["interest_rate_model"]
            )
        return cls(**values)


# ---------------------------------------------------------------------------
# Market
# ---------------------------------------------------------------------------


@dataclass
class Market:
    asset: Asset
    ma_token_address: str
    interest_rate_model: InterestRateModel
    max_loan_to_value: Decimal
    liquidation_threshold: Decimal
    liquidation_bonus: Decimal
    reserve_factor: Decimal
    indexes_last_updated: int
    borrow_index: Decimal = ONE
    liquidity_index: Decimal = ONE
    borrow_rate: Decimal = ZERO
    liquidity_rate: Decimal = ZERO
    debt_total_scaled: int = 0
    rate_model_state: RateModelState = field(default_factory=RateModelState)
    close_factor: Decimal | None = None
    active: bool = True
    deposit_enabled: bool = True
    borrow_enabled: bool = True

    @classmethod
    def create(
        cls, asset: Asset, ma_token_address: str, params: AssetParams, current_time: int
    ) -> Market:
        missing = params.missing_for_init()
        if missing:
            raise ValidationError(
                "All asset params are required on init", missing=",".join(missing)
            )
        if params.initial_borrow_rate < 0:
            raise ValidationError(
                "initial_borrow_rate cannot be negative",
                initial_borrow_rate=params.initial_borrow_rate,
            )
        market = cls(
            asset=asset,
            ma_token_address=ma_token_address,
            interest_rate_model=params.interest_rate_model,
            max_loan_to_value=params.max_loan_to_value,
            liquidation_threshold=params.liquidation_threshold,
            liquidation_bonus=params.liquidation_bonus,
            reserve_factor=params.reserve_factor,
            indexes_last_updated=current_time,
            borrow_rate=params.initial_borrow_rate,
            rate_model_state=RateModelState(last_updated=current_time),
            close_factor=params.close_factor,
            active=params.active,
            deposit_enabled=params.deposit_enabled,
            borrow_enabled=params.borrow_enabled,
        )
        market.validate()
        return market

    def with_params(self, params: AssetParams) -> Market:
        """Return a copy with every non-None param applied and validated."""
        updates = {
            f.name: getattr(params, f.name)
            for f in fields(params)
            if getattr(params, f.name) is not None and f.name != "initial_borrow_rate"
        }
        updated = replace(self, **updates)
        # A newly selected dynamic model restarts from the given rate
        if isinstance(params.interest_rate_model, DynamicInterestRate):
            if params.initial_borrow_rate is not None:
                if params.initial_borrow_rate < 0:
                    raise ValidationError(
                        "initial_borrow_rate cannot be negative",
                        initial_borrow_rate=params.initial_borrow_rate,
                    )
                updated.borrow_rate = params.initial_borrow_rate
        updated.validate()
        return updated

    def validate(self) -> None:
        for name in (
            "max_loan_to_value",
            "liquidation_threshold",
            "liquidation_bonus",
            "reserve_factor",
        ):
            value = getattr(self, name)
            if not ZERO <= value <= ONE:
                raise ValidationError(f"{name} must be in [0, 1]", **{name: value})
        if self.close_factor is not None and not ZERO <= self.close_factor <= ONE:
            raise ValidationError("close_factor must be in [0, 1]", close_factor=self.close_factor)
        if self.liquidation_threshold <= self.max_loan_to_value:
            raise ValidationError(
                "liquidation_threshold must be greater than max_loan_to_value",
                liquidation_threshold=self.liquidation_threshold,
                max_loan_to_value=self.max_loan_to_value,
            )
        self.interest_rate_model.validate()

    # -- action gating ------------------------------------------------------

    def check_deposit_allowed(self) -> None:
        self._check_active("deposit")
        if not self.deposit_enabled:
            raise MarketInactiveError("Deposits are disabled", asset=self.asset.key)

    def check_borrow_allowed(self) -> None:
        self._check_active("borrow")
        if not self.borrow_enabled:
            raise MarketInactiveError("Borrowing is disabled", asset=self.asset.key)

    def check_withdraw_allowed(self) -> None:
        self._check_active("withdraw")

    def check_repay_allowed(self) -> None:
        self._check_active("repay")

    def check_liquidate_allowed(self) -> None:
        self._check_active("liquidate")

    def _check_active(self, action: str) -> None:
        if not self.active:
            raise MarketInactiveError(
                f"Market is not active, cannot {action}", asset=self.asset.key
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "asset": self.asset.to_dict(),
            "ma_token_address": self.ma_token_address,
            "borrow_index": str(self.borrow_index),
            "liquidity_index": str(self.liquidity_index),
            "borrow_rate": str(self.borrow_rate),
            "liquidity_rate": str(self.liquidity_rate),
            "debt_total_scaled": self.debt_total_scaled,
            "indexes_last_updated": self.indexes_last_updated,
            "max_loan_to_value": str(self.max_loan_to_value),
            "liquidation_threshold": str(self.liquidation_threshold),
            "liquidation_bonus": str(self.liquidation_bonus),
            "reserve_factor": str(self.reserve_factor),
            "close_factor": None if self.close_factor is None else str(self.close_factor),
            "interest_rate_model": self.interest_rate_model.to_dict(),
            "active": self.active,
            "deposit_enabled": self.deposit_enabled,
            "borrow_enabled": self.borrow_enabled,
        }


# ---------------------------------------------------------------------------
# User records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Debt:
    """A user's debt in one market."""

    amount_scaled: int = 0
    uncollateralized_limit: int = 0

    @property
    def uncollateralized(self) -> bool:
        return self.uncollateralized_limit > 0


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserHealthStatus:
    """``NotBorrowing`` or ``Borrowing(health_factor)``.

    A borrowing user whose debt is entirely uncollateralized has no health
    factor (``None``) and is treated as infinitely healthy.
    """

    borrowing: bool = False
    health_factor: Decimal | None = None

    @classmethod
    def not_borrowing(cls) -> UserHealthStatus:
        return cls()

    @classmethod
    def with_health_factor(cls, health_factor: Decimal | None) -> UserHealthStatus:
        return cls(borrowing=True, health_factor=health_factor)

    @property
    def liquidatable(self) -> bool:
        return self.borrowing and self.health_factor is not None and self.health_factor < ONE

    def __str__(self) -> str:
        if not self.borrowing:
            return "NotBorrowing"
        return f"Borrowing({self.health_factor if self.health_factor is not None else 'inf'})"


@dataclass(frozen=True)
class AssetPosition:
    """A user's standing in one market, priced and ready for aggregation."""

    asset: Asset
    price: Decimal
    max_loan_to_value: Decimal
    liquidation_threshold: Decimal
    collateral_amount: int = 0
    collateral_enabled: bool = False
    debt_amount: int = 0
    uncollateralized_limit: int = 0


@dataclass(frozen=True)
class UserPosition:
    total_collateral_value: Decimal
    total_debt_value: Decimal
    total_collateralized_debt_value: Decimal
    weighted_liquidation_threshold_value: Decimal
    max_debt_value: Decimal
    health_status: UserHealthStatus
    asset_positions: tuple[AssetPosition, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_collateral_value": str(self.total_collateral_value),
            "total_debt_value": str(self.total_debt_value),
            "total_collateralized_debt_value": str(self.total_collateralized_debt_value),
            "weighted_liquidation_threshold_value": str(
                self.weighted_liquidation_threshold_value
            ),
            "max_debt_value": str(self.max_debt_value),
            "health_status": str(self.health_status),
        }


# ---------------------------------------------------------------------------
# Liquidation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LiquidationAmounts:
    debt_amount_to_repay: int
    collateral_amount_to_liquidate: int
    refund_amount: int


# ---------------------------------------------------------------------------
# Action output: events and outbound messages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Event:
    name: str
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MintMessage:
    token_address: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class BurnMessage:
    token_address: str
    holder: str
    amount: int


@dataclass(frozen=True)
class TransferOnLiquidationMessage:
    token_address: str
    sender: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class SendMessage:
    asset: Asset
    sender: str
    recipient: str
    amount: int


Message = Union[MintMessage, BurnMessage, TransferOnLiquidationMessage, SendMessage]


@dataclass(frozen=True)
class Response:
    events: tuple[Event, ...] = ()
    messages: tuple[Message, ...] = ()

    def event(self, name: str) -> Event:
        for event in self.events:
            if event.name == name:
                return event
        raise KeyError(name)


# ---------------------------------------------------------------------------
# Query results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserAssetDebt:
    asset: Asset
    amount_scaled: int
    amount: int
    uncollateralized_limit: int = 0
