"""In-memory bank tracking balances per (address, asset)."""
from __future__ import annotations

import logging

from ..errors import ValidationError
from ..fixed_point import checked_add, checked_sub
from ..models import Asset

logger = logging.getLogger(__name__)


class InMemoryBank:
    def __init__(self) -> None:
        self._balances: dict[tuple[str, str], int] = {}

    def balance(self, address: str, asset: Asset) -> int:
        return self._balances.get((address, asset.key), 0)

    def fund(self, address: str, asset: Asset, amount: int) -> None:
        """Credit ``amount`` out of thin air (genesis balances, faucets)."""
        key = (address, asset.key)
        self._balances[key] = checked_add(self._balances.get(key, 0), amount)
        logger.debug("Funded %s with %d %s", address, amount, asset)

    def send(self, sender: str, recipient: str, asset: Asset, amount: int) -> None:
        available = self.balance(sender, asset)
        if available < amount:
            raise ValidationError(
                "Insufficient funds", address=sender, balance=available, amount=amount
            )
        self._balances[(sender, asset.key)] = checked_sub(available, amount)
        key = (recipient, asset.key)
        self._balances[key] = checked_add(self._balances.get(key, 0), amount)
