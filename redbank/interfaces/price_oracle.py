"""Price oracle protocol: asset valuation abstraction."""
from decimal import Decimal
from typing import Protocol

from ..models import Asset


class PriceOracle(Protocol):
    """Prices are queried fresh for every health or liquidation computation."""

    def get_price(self, asset: Asset) -> Decimal: ...
