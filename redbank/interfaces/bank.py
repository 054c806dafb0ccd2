"""Bank protocol: transfer primitive for the underlying assets."""
from typing import Protocol

from ..models import Asset


class Bank(Protocol):
    def balance(self, address: str, asset: Asset) -> int: ...

    def send(self, sender: str, recipient: str, asset: Asset, amount: int) -> None: ...
