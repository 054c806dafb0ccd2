"""Assemble a ledger with in-memory collaborators from application config."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ..config import AppConfig
from ..host import (
    BlockClock,
    InMemoryBank,
    InMemoryReceiptTokenFactory,
    StaticAddressProvider,
)
from ..interfaces import ContractRole
from ..models import Asset, Config
from ..oracles import StaticPriceOracle
from ..red_bank import RedBank

logger = logging.getLogger(__name__)

DEFAULT_ADDRESSES = {
    ContractRole.PROTOCOL_REWARDS_COLLECTOR.value: "protocol_rewards_collector",
    ContractRole.ORACLE.value: "oracle",
}


@dataclass
class LedgerEnvironment:
    config: AppConfig
    red_bank: RedBank
    bank: InMemoryBank
    oracle: StaticPriceOracle
    clock: BlockClock
    tokens: InMemoryReceiptTokenFactory
    assets: dict[str, Asset]

    def asset(self, symbol: str) -> Asset:
        try:
            return self.assets[symbol]
        except KeyError:
            raise KeyError(f"Unknown market symbol '{symbol}'") from None

    def set_price(self, symbol: str, price: Any) -> None:
        self.oracle.set_price(self.asset(symbol), price)

    def fund(self, address: str, symbol: str, amount: int) -> None:
        self.bank.fund(address, self.asset(symbol), amount)


def build_environment(
    config: AppConfig,
    prices: dict[str, Decimal] | None = None,
    start_time: int = 0,
) -> LedgerEnvironment:
    """Create a ledger, list every configured market and seed prices.

    ``prices`` (keyed by symbol) overrides the static prices from config,
    e.g. with a live Pyth snapshot.
    """
    clock = BlockClock(start_time)
    bank = InMemoryBank()
    oracle = StaticPriceOracle()
    tokens = InMemoryReceiptTokenFactory()
    address_provider = StaticAddressProvider({**DEFAULT_ADDRESSES, **config.addresses})

    owner = config.red_bank.owner
    red_bank = RedBank(
        Config(
            owner=owner,
            address=config.red_bank.address,
            address_provider=config.red_bank.address_provider,
            close_factor=config.red_bank.close_factor,
        ),
        bank=bank,
        oracle=oracle,
        address_provider=address_provider,
        token_factory=tokens,
        clock=clock,
    )

    assets: dict[str, Asset] = {}
    for market in config.markets:
        red_bank.init_asset(owner, market.asset, market.params)
        assets[market.symbol] = market.asset

    seed = dict(config.price_oracle.prices)
    seed.update(prices or {})
    for symbol, price in seed.items():
        if symbol in assets:
            oracle.set_price(assets[symbol], price)
        else:
            logger.warning("Ignoring price for unlisted symbol %s", symbol)

    logger.info("Ledger ready with %d markets", len(assets))
    return LedgerEnvironment(
        config=config,
        red_bank=red_bank,
        bank=bank,
        oracle=oracle,
        clock=clock,
        tokens=tokens,
        assets=assets,
    )
