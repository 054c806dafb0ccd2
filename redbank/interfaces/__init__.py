"""Protocol interfaces for the ledger's external collaborators."""
from .address_provider import AddressProvider, ContractRole
from .bank import Bank
from .clock import Clock
from .price_oracle import PriceOracle
from .receipt_token import ReceiptToken, ReceiptTokenFactory, TransferHook

__all__ = [
    "AddressProvider",
    "Bank",
    "Clock",
    "ContractRole",
    "PriceOracle",
    "ReceiptToken",
    "ReceiptTokenFactory",
    "TransferHook",
]
