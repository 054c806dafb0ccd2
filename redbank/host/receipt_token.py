"""In-memory receipt token holding scaled balances."""
from __future__ import annotations

import logging
from itertools import count

from ..errors import UnauthorizedError, ValidationError
from ..fixed_point import checked_add, checked_sub
from ..interfaces.receipt_token import TransferHook
from ..models import Asset

logger = logging.getLogger(__name__)


class InMemoryReceiptToken:
    """Scaled-balance token; only the minter may mint, burn or seize."""

    def __init__(self, address: str, minter: str, on_transfer: TransferHook) -> None:
        self._address = address
        self.minter = minter
        self._on_transfer = on_transfer
        self._balances: dict[str, int] = {}
        self._total_supply = 0

    @property
    def address(self) -> str:
        return self._address

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def total_supply(self) -> int:
        return self._total_supply

    def mint(self, caller: str, recipient: str, amount: int) -> None:
        self._check_minter(caller)
        self._balances[recipient] = checked_add(self.balance_of(recipient), amount)
        self._total_supply = checked_add(self._total_supply, amount)

    def burn_from(self, caller: str, holder: str, amount: int) -> None:
        self._check_minter(caller)
        self._debit(holder, amount)
        self._total_supply = checked_sub(self._total_supply, amount)

    def transfer_on_liquidation(
        self, caller: str, sender: str, recipient: str, amount: int
    ) -> None:
        self._check_minter(caller)
        self._debit(sender, amount)
        self._balances[recipient] = checked_add(self.balance_of(recipient), amount)

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """User-initiated transfer; reverted if the ledger rejects it."""
        if amount <= 0:
            raise ValidationError("Transfer amount must be greater than 0", amount=amount)
        sender_previous = self.balance_of(sender)
        recipient_previous = self.balance_of(recipient)
        self._debit(sender, amount)
        self._balances[recipient] = checked_add(recipient_previous, amount)
        try:
            self._on_transfer(
                self._address, sender, recipient, sender_previous, recipient_previous, amount
            )
        except Exception:
            self._balances[sender] = sender_previous
            self._balances[recipient] = recipient_previous
            raise

    def _check_minter(self, caller: str) -> None:
        if caller != self.minter:
            raise UnauthorizedError(
                "Only the minter may call this", caller=caller, minter=self.minter
            )

    def _debit(self, holder: str, amount: int) -> None:
        balance = self.balance_of(holder)
        if balance < amount:
            raise ValidationError(
                "Insufficient receipt token balance", holder=holder, balance=balance, amount=amount
            )
        self._balances[holder] = balance - amount


class InMemoryReceiptTokenFactory:
    def __init__(self, prefix: str = "ma") -> None:
        self._prefix = prefix
        self._ids = count(1)
        self.tokens: dict[str, InMemoryReceiptToken] = {}
        self._by_asset: dict[str, InMemoryReceiptToken] = {}

    def instantiate(
        self, asset: Asset, minter: str, on_transfer: TransferHook
    ) -> InMemoryReceiptToken:
        address = f"{self._prefix}{asset.reference}-{next(self._ids)}"
        token = InMemoryReceiptToken(address, minter, on_transfer)
        self.tokens[address] = token
        self._by_asset[asset.key] = token
        logger.debug("Instantiated receipt token %s for %s", address, asset)
        return token

    def token_for(self, asset: Asset) -> InMemoryReceiptToken:
        return self._by_asset[asset.key]
