"""Error taxonomy for the ledger.

Every error carries the offending value(s) as attributes so a rejected
call can be reproduced from the exception alone.
"""
from __future__ import annotations

from typing import Any


class RedBankError(Exception):
    """Base class for all ledger errors."""

    kind = "red_bank_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if not self.details:
            return self.message
        extra = ", ".join(f"{k}={v}" for k, v in sorted(self.details.items()))
        return f"{self.message} ({extra})"


class ValidationError(RedBankError):
    """Malformed or out-of-range input."""

    kind = "validation"


class UnauthorizedError(ValidationError):
    kind = "unauthorized"


class AssetNotFoundError(ValidationError):
    kind = "asset_not_found"


class PriceNotFoundError(ValidationError):
    kind = "price_not_found"


class MarketInactiveError(RedBankError):
    """Action attempted on a deactivated market or a disabled action type."""

    kind = "market_inactive"


class InsufficientHealthError(RedBankError):
    """Action would leave the user's debt above its max debt value."""

    kind = "insufficient_health"


class NotLiquidatableError(RedBankError):
    kind = "not_liquidatable"


class ArithmeticError(RedBankError):  # noqa: A001
    """Overflow, underflow or division by zero in fixed-point math."""

    kind = "arithmetic"


ERROR_KINDS: dict[str, type[RedBankError]] = {
    cls.kind: cls
    for cls in (
        RedBankError,
        ValidationError,
        UnauthorizedError,
        AssetNotFoundError,
        PriceNotFoundError,
        MarketInactiveError,
        InsufficientHealthError,
        NotLiquidatableError,
        ArithmeticError,
    )
}
