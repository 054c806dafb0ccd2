"""Snapshot price oracle."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from ..errors import PriceNotFoundError, ValidationError
from ..fixed_point import to_decimal
from ..models import Asset

logger = logging.getLogger(__name__)


class StaticPriceOracle:
    """Serve prices from an in-memory snapshot keyed by asset."""

    def __init__(self, prices: dict[Asset, Any] | None = None) -> None:
        self._prices: dict[str, Decimal] = {}
        for asset, price in (prices or {}).items():
            self.set_price(asset, price)

    def set_price(self, asset: Asset, price: Any) -> None:
        value = to_decimal(price, "price")
        if value <= 0:
            raise ValidationError("Price must be positive", asset=asset.key, price=value)
        self._prices[asset.key] = value
        logger.debug("Price for %s set to %s", asset, value)

    def get_price(self, asset: Asset) -> Decimal:
        try:
            return self._prices[asset.key]
        except KeyError:
            raise PriceNotFoundError("No price for asset", asset=asset.key) from None
