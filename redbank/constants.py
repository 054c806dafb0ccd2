"""Protocol-wide numeric constants."""
from __future__ import annotations

from decimal import Decimal

SECONDS_PER_YEAR = 31_536_000

# Fixed-point precision for indices, rates, prices and values
DECIMAL_PLACES = 18
DECIMAL_QUANTUM = Decimal(1).scaleb(-DECIMAL_PLACES)

MAX_UINT128 = 2**128 - 1
MAX_DECIMAL = Decimal(2**256 - 1).scaleb(-DECIMAL_PLACES)

ZERO = Decimal(0)
ONE = Decimal(1)

DEFAULT_CLOSE_FACTOR = Decimal("0.5")
