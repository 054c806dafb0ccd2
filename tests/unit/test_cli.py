"""Unit tests for CLI argument parsing and the rate table."""
from __future__ import annotations

from decimal import Decimal

import pytest

from redbank.cli import DEFAULT_UTILIZATIONS, _rate_table, build_parser
from redbank.config import AppConfig


class TestBuildParser:
    def test_run_command(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["run", "scenarios/liquidation.yaml"])
        assert args.command == "run"
        assert args.scenario == "scenarios/liquidation.yaml"
        assert args.live_prices is False

    def test_run_live_prices(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["run", "s.yaml", "--live-prices"])
        assert args.live_prices is True

    def test_rates_command_default_utilizations(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["rates", "UST"])
        assert args.command == "rates"
        assert args.symbol == "UST"
        assert args.utilization is None

    def test_rates_command_custom_utilizations(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["rates", "UST", "--utilization", "0.5", "--utilization", "0.9"])
        assert args.utilization == ["0.5", "0.9"]

    def test_prices_command(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["prices"])
        assert args.command == "prices"

    def test_config_flag(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["--config", "/tmp/c.yaml", "prices"])
        assert args.config == "/tmp/c.yaml"

    def test_log_level_flag(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["--log-level", "DEBUG", "prices"])
        assert args.log_level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        parser = build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["--log-level", "LOUD", "prices"])

    def test_no_command(self) -> None:
        parser = build_parser()
        args = parser.parse_args([])
        assert args.command is None


class TestRateTable:
    def test_linear_market(self, sample_app_config: AppConfig) -> None:
        rows = _rate_table(sample_app_config, "UST", ["0.4", "1"])
        assert rows[0] == {
            "utilization": "0.4",
            "borrow_rate": str(Decimal("0.035000000000000000")),
            "liquidity_rate": str(Decimal("0.012600000000000000")),
        }
        assert Decimal(rows[1]["borrow_rate"]) == Decimal("0.52")

    def test_default_utilizations(self, sample_app_config: AppConfig) -> None:
        rows = _rate_table(sample_app_config, "LUNA", list(DEFAULT_UTILIZATIONS))
        assert [r["utilization"] for r in rows] == list(DEFAULT_UTILIZATIONS)

    def test_unknown_symbol(self, sample_app_config: AppConfig) -> None:
        with pytest.raises(KeyError):
            _rate_table(sample_app_config, "BTC", ["0.5"])
