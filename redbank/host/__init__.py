"""In-memory collaborators for running the ledger outside a chain."""
from .address_provider import StaticAddressProvider
from .bank import InMemoryBank
from .clock import BlockClock
from .receipt_token import InMemoryReceiptToken, InMemoryReceiptTokenFactory

__all__ = [
    "BlockClock",
    "InMemoryBank",
    "InMemoryReceiptToken",
    "InMemoryReceiptTokenFactory",
    "StaticAddressProvider",
]
