"""Red Bank money-market ledger."""
from .models import Asset, AssetKind
from .red_bank import RedBank

__all__ = ["Asset", "AssetKind", "RedBank"]

__version__ = "0.1.0"
