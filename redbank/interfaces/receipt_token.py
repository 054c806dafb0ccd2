"""Receipt token protocol: per-market scaled deposit token."""
from typing import Callable, Protocol

from ..models import Asset

# (caller, sender, recipient, sender_previous_balance, recipient_previous_balance, amount)
TransferHook = Callable[[str, str, str, int, int, int], object]


class ReceiptToken(Protocol):
    """Balances are held in scaled units; the minter is the ledger."""

    @property
    def address(self) -> str: ...

    def balance_of(self, holder: str) -> int: ...

    def total_supply(self) -> int: ...

    def mint(self, caller: str, recipient: str, amount: int) -> None: ...

    def burn_from(self, caller: str, holder: str, amount: int) -> None: ...

    def transfer_on_liquidation(
        self, caller: str, sender: str, recipient: str, amount: int
    ) -> None: ...


class ReceiptTokenFactory(Protocol):
    def instantiate(
        self, asset: Asset, minter: str, on_transfer: TransferHook
    ) -> ReceiptToken: ...
