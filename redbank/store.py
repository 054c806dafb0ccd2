"""Keyed state store for markets, user debts and collateral flags."""
from __future__ import annotations

import copy
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from .errors import AssetNotFoundError
from .models import Asset, Config, Debt, Market

logger = logging.getLogger(__name__)


@dataclass
class LedgerStore:
    """All persisted ledger state.

    One record per market keyed by asset key, one debt record and one
    collateral flag per ``(asset key, user)``, and the global config.
    """

    config: Config
    markets: dict[str, Market] = field(default_factory=dict)
    market_tokens: dict[str, str] = field(default_factory=dict)
    debts: dict[tuple[str, str], Debt] = field(default_factory=dict)
    collateral: dict[tuple[str, str], bool] = field(default_factory=dict)

    # -- transactions ----------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[LedgerStore]:
        """Restore every record to its pre-call state if the body raises."""
        snapshot = copy.deepcopy(self.__dict__)
        try:
            yield self
        except BaseException:
            self.__dict__.clear()
            self.__dict__.update(snapshot)
            logger.debug("Rolled back ledger state")
            raise

    # -- markets ---------------------------------------------------------------

    def market(self, asset: Asset) -> Market:
        try:
            return self.markets[asset.key]
        except KeyError:
            raise AssetNotFoundError("Asset not initialized", asset=asset.key) from None

    def market_by_token(self, token_address: str) -> Market | None:
        key = self.market_tokens.get(token_address)
        return None if key is None else self.markets[key]

    def save_market(self, market: Market) -> None:
        self.markets[market.asset.key] = market
        self.market_tokens[market.ma_token_address] = market.asset.key

    # -- debts -----------------------------------------------------------------

    def debt(self, asset: Asset, user: str) -> Debt:
        return self.debts.get((asset.key, user), Debt())

    def save_debt(self, asset: Asset, user: str, debt: Debt) -> None:
        self.debts[(asset.key, user)] = debt

    # -- collateral flags ------------------------------------------------------

    def collateral_flag(self, asset: Asset, user: str) -> bool | None:
        """``None`` when the user never had a flag recorded for this market."""
        return self.collateral.get((asset.key, user))

    def set_collateral(self, asset: Asset, user: str, enabled: bool) -> None:
        self.collateral[(asset.key, user)] = enabled

    def is_collateral(self, asset: Asset, user: str) -> bool:
        return bool(self.collateral.get((asset.key, user), False))

    def is_borrowing(self, user: str) -> bool:
        return any(
            debt.amount_scaled > 0
            for (_, debt_user), debt in self.debts.items()
            if debt_user == user
        )

    def user_markets(self, user: str) -> list[Market]:
        """Markets where ``user`` has a debt record or a collateral flag."""
        keys = {key for key, u in self.debts if u == user}
        keys.update(key for key, u in self.collateral if u == user)
        return [self.markets[key] for key in sorted(keys)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "config": {
                "owner": self.config.owner,
                "address": self.config.address,
                "address_provider": self.config.address_provider,
                "close_factor": str(self.config.close_factor),
            },
            "markets": {key: market.to_dict() for key, market in sorted(self.markets.items())},
            "debts": [
                {
                    "asset": key,
                    "user": user,
                    "amount_scaled": debt.amount_scaled,
                    "uncollateralized_limit": debt.uncollateralized_limit,
                }
                for (key, user), debt in sorted(self.debts.items())
            ],
            "collateral": [
                {"asset": key, "user": user, "enabled": enabled}
                for (key, user), enabled in sorted(self.collateral.items())
            ],
        }
