"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .constants import DEFAULT_CLOSE_FACTOR
from .errors import ValidationError
from .fixed_point import to_decimal
from .models import Asset, AssetParams

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RedBankConfig:
    owner: str = ""
    address: str = "red_bank"
    address_provider: str = "address_provider"
    close_factor: Decimal = DEFAULT_CLOSE_FACTOR


@dataclass(frozen=True)
class MarketConfig:
    symbol: str
    asset: Asset
    params: AssetParams


@dataclass(frozen=True)
class PythConfig:
    hermes_url: str = "https://hermes.pyth.network/v2/updates/price/latest"
    feeds: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PriceOracleConfig:
    provider: str = "static"
    prices: dict[str, Decimal] = field(default_factory=dict)
    pyth: PythConfig = field(default_factory=PythConfig)


@dataclass(frozen=True)
class AppConfig:
    red_bank: RedBankConfig = field(default_factory=RedBankConfig)
    addresses: dict[str, str] = field(default_factory=dict)
    markets: tuple[MarketConfig, ...] = ()
    price_oracle: PriceOracleConfig = field(default_factory=PriceOracleConfig)

    def market(self, symbol: str) -> MarketConfig:
        for market in self.markets:
            if market.symbol == symbol:
                return market
        raise KeyError(symbol)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_red_bank(raw: dict[str, Any]) -> RedBankConfig:
    return RedBankConfig(
        owner=str(raw.get("owner", "")),
        address=str(raw.get("address", "red_bank")),
        address_provider=str(raw.get("address_provider", "address_provider")),
        close_factor=_decimal(raw.get("close_factor", DEFAULT_CLOSE_FACTOR), "close_factor"),
    )


def _build_markets(raw: list[dict[str, Any]]) -> tuple[MarketConfig, ...]:
    markets: list[MarketConfig] = []
    for i, m in enumerate(raw):
        symbol = str(m.get("symbol", ""))
        if not symbol:
            raise ValueError(f"Market #{i} has no symbol")
        try:
            asset = Asset.from_dict(m.get("asset", {}))
            params = AssetParams.from_dict(m)
        except ValidationError as e:
            raise ValueError(f"Market '{symbol}': {e}") from e
        markets.append(MarketConfig(symbol=symbol, asset=asset, params=params))
    return tuple(markets)


def _build_price_oracle(raw: dict[str, Any]) -> PriceOracleConfig:
    pyth_raw = raw.get("pyth", {})
    return PriceOracleConfig(
        provider=raw.get("provider", "static"),
        prices={
            str(symbol): _decimal(price, f"price of {symbol}")
            for symbol, price in (raw.get("prices") or {}).items()
        },
        pyth=PythConfig(
            hermes_url=pyth_raw.get("hermes_url", PythConfig.hermes_url),
            feeds=dict(pyth_raw.get("feeds", {})),
        ),
    )


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return to_decimal(value, name)
    except ValidationError as e:
        raise ValueError(str(e)) from e


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        red_bank=_build_red_bank(raw.get("red_bank", {})),
        addresses={str(k): str(v) for k, v in (raw.get("addresses") or {}).items()},
        markets=_build_markets(raw.get("markets", [])),
        price_oracle=_build_price_oracle(raw.get("price_oracle", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s (%d markets)", config_path, len(cfg.markets))
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.red_bank.owner:
        raise ValueError("red_bank.owner must be set")
    if not 0 <= cfg.red_bank.close_factor <= 1:
        raise ValueError("red_bank.close_factor must be between 0 and 1")

    if not cfg.markets:
        raise ValueError("At least one market must be configured")

    symbols: set[str] = set()
    assets: set[str] = set()
    for market in cfg.markets:
        if market.symbol in symbols:
            raise ValueError(f"Duplicate market symbol '{market.symbol}'")
        if market.asset.key in assets:
            raise ValueError(f"Duplicate market asset '{market.asset.key}'")
        symbols.add(market.symbol)
        assets.add(market.asset.key)

        missing = market.params.missing_for_init()
        if missing:
            raise ValueError(
                f"Market '{market.symbol}' is missing: {', '.join(missing)}"
            )

    if cfg.price_oracle.provider not in ("static", "pyth"):
        raise ValueError(f"Unknown price oracle provider '{cfg.price_oracle.provider}'")
    for symbol in cfg.price_oracle.prices:
        if symbol not in symbols:
            raise ValueError(f"Price configured for unknown market '{symbol}'")
