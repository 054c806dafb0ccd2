"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from decimal import Decimal
from pathlib import Path

import pytest

from redbank.config import (
    AppConfig,
    MarketConfig,
    PriceOracleConfig,
    PythConfig,
    RedBankConfig,
)
from redbank.interest_rate_models import DynamicInterestRate, LinearInterestRate
from redbank.models import Asset, AssetParams
from redbank.services import LedgerEnvironment, build_environment

OWNER = "owner"
RED_BANK = "red_bank"
REWARDS_COLLECTOR = "rewards_collector"

UUSD = Asset.native("uusd")
ULUNA = Asset.native("uluna")


# ---------------------------------------------------------------------------
# Interest rate model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def linear_model() -> LinearInterestRate:
    return LinearInterestRate(
        optimal_utilization_rate=Decimal("0.8"),
        base=Decimal("0"),
        slope_1=Decimal("0.07"),
        slope_2=Decimal("0.45"),
    )


@pytest.fixture()
def dynamic_model() -> DynamicInterestRate:
    return DynamicInterestRate(
        min_borrow_rate=Decimal("0.01"),
        max_borrow_rate=Decimal("0.9"),
        kp_1=Decimal("2"),
        optimal_utilization_rate=Decimal("0.6"),
        kp_augmentation_threshold=Decimal("0.1"),
        kp_2=Decimal("3"),
        update_threshold_txs=5,
        update_threshold_seconds=3600,
    )


# ---------------------------------------------------------------------------
# Asset params fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def ust_params(linear_model: LinearInterestRate) -> AssetParams:
    return AssetParams(
        initial_borrow_rate=Decimal("0.1"),
        max_loan_to_value=Decimal("0.75"),
        reserve_factor=Decimal("0.1"),
        liquidation_threshold=Decimal("0.8"),
        liquidation_bonus=Decimal("0.05"),
        interest_rate_model=linear_model,
        active=True,
        deposit_enabled=True,
        borrow_enabled=True,
    )


@pytest.fixture()
def luna_params() -> AssetParams:
    return AssetParams(
        initial_borrow_rate=Decimal("0"),
        max_loan_to_value=Decimal("0.6"),
        reserve_factor=Decimal("0"),
        liquidation_threshold=Decimal("0.65"),
        liquidation_bonus=Decimal("0.1"),
        interest_rate_model=LinearInterestRate(
            optimal_utilization_rate=Decimal("0.5"),
            base=Decimal("0"),
            slope_1=Decimal("0.2"),
            slope_2=Decimal("2"),
        ),
        active=True,
        deposit_enabled=True,
        borrow_enabled=True,
    )


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_pyth_config() -> PythConfig:
    return PythConfig(
        hermes_url="https://hermes.example.com/v2/updates/price/latest",
        feeds={"LUNA": "aaa111", "UST": "bbb222"},
    )


@pytest.fixture()
def sample_app_config(
    ust_params: AssetParams,
    luna_params: AssetParams,
    sample_pyth_config: PythConfig,
) -> AppConfig:
    return AppConfig(
        red_bank=RedBankConfig(
            owner=OWNER,
            address=RED_BANK,
            address_provider="address_provider",
            close_factor=Decimal("0.5"),
        ),
        addresses={"protocol_rewards_collector": REWARDS_COLLECTOR},
        markets=(
            MarketConfig(symbol="UST", asset=UUSD, params=ust_params),
            MarketConfig(symbol="LUNA", asset=ULUNA, params=luna_params),
        ),
        price_oracle=PriceOracleConfig(
            provider="static",
            prices={"UST": Decimal("1"), "LUNA": Decimal("10")},
            pyth=sample_pyth_config,
        ),
    )


# ---------------------------------------------------------------------------
# Ledger fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def env(sample_app_config: AppConfig) -> LedgerEnvironment:
    """Ledger with UST and LUNA listed at t=0, UST at $1 and LUNA at $10."""
    return build_environment(sample_app_config)


@pytest.fixture()
def funded_env(env: LedgerEnvironment) -> LedgerEnvironment:
    """Bob supplies 10_000 UST of liquidity; Alice holds 1_000 LUNA and some UST."""
    env.bank.fund("bob", UUSD, 20_000)
    env.bank.fund("alice", ULUNA, 1_000)
    env.bank.fund("alice", UUSD, 2_000)
    env.red_bank.deposit("bob", UUSD, 10_000)
    return env


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    red_bank:
      owner: owner
      address: red_bank
      close_factor: "0.5"
    addresses:
      protocol_rewards_collector: rewards_collector
    markets:
      - symbol: UST
        asset: {native: uusd}
        initial_borrow_rate: "0.1"
        max_loan_to_value: "0.75"
        liquidation_threshold: "0.8"
        liquidation_bonus: "0.05"
        reserve_factor: "0.1"
        active: true
        deposit_enabled: true
        borrow_enabled: true
        interest_rate_model:
          linear:
            optimal_utilization_rate: "0.8"
            base: "0"
            slope_1: "0.07"
            slope_2: "0.45"
      - symbol: LUNA
        asset: {native: uluna}
        initial_borrow_rate: "0.05"
        max_loan_to_value: "0.6"
        liquidation_threshold: "0.65"
        liquidation_bonus: "0.1"
        reserve_factor: "0"
        close_factor: "0.4"
        active: true
        deposit_enabled: true
        borrow_enabled: true
        interest_rate_model:
          dynamic:
            min_borrow_rate: "0.01"
            max_borrow_rate: "0.9"
            kp_1: "2"
            optimal_utilization_rate: "0.6"
            kp_augmentation_threshold: "0.1"
            kp_2: "3"
            update_threshold_txs: 5
            update_threshold_seconds: 3600
    price_oracle:
      provider: static
      prices: {UST: "1", LUNA: "10"}
      pyth:
        hermes_url: "https://hermes.example.com"
        feeds: {LUNA: "aaa"}
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
