"""Pyth Network price fetcher (Hermes API)."""
from __future__ import annotations

import logging
import ssl
from decimal import Decimal

import aiohttp
import certifi

from ..config import PythConfig

logger = logging.getLogger(__name__)


class PythOracle:
    """Fetch latest prices from Pyth Hermes, keyed by market symbol."""

    def __init__(self, config: PythConfig) -> None:
        self.hermes_url = config.hermes_url
        self.price_feeds = dict(config.feeds)

    async def fetch_prices(self, symbols: list[str] | None = None) -> dict[str, Decimal]:
        """Fetch current prices.

        Args:
            symbols: Optional list of symbols to fetch. If None, fetches all
                     configured feeds.
        """
        prices: dict[str, Decimal] = {}

        feeds = self.price_feeds
        if symbols is not None:
            feeds = {k: v for k, v in self.price_feeds.items() if k in symbols}

        feed_ids = sorted(set(feeds.values()))
        if not feed_ids:
            return prices

        url = f"{self.hermes_url}?" + "&".join(f"ids[]={fid}" for fid in feed_ids)
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        symbols_by_feed: dict[str, list[str]] = {}
        for symbol, feed_id in feeds.items():
            symbols_by_feed.setdefault(feed_id.lower().removeprefix("0x"), []).append(symbol)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        logger.error("Error fetching prices from Pyth: HTTP %s", response.status)
                        return prices
                    data = await response.json()

            for item in data.get("parsed", []):
                feed_id = str(item.get("id", "")).lower().removeprefix("0x")
                price_data = item.get("price", {})
                price = Decimal(int(price_data.get("price", 0))).scaleb(
                    int(price_data.get("expo", 0))
                )
                for symbol in symbols_by_feed.get(feed_id, []):
                    prices[symbol] = price
        except Exception as e:
            logger.error("Error fetching prices from Pyth: %s", e)
            return {}

        for symbol, price in sorted(prices.items()):
            logger.info("  %s: $%s", symbol, price)
        return prices
