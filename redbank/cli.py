"""Command-line interface for the Red Bank ledger."""
from __future__ import annotations

import argparse
import asyncio
import sys
from decimal import Decimal

import yaml

from .config import AppConfig, load_config
from .interest_rate_models import (
    DynamicInterestRate,
    RateModelState,
    compute_rates,
)
from .logging_setup import configure_logging
from .oracles import PythOracle
from .services import ScenarioRunner, build_environment

DEFAULT_UTILIZATIONS = ("0", "0.25", "0.5", "0.7", "0.8", "0.9", "1")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="redbank",
        description="Red Bank money-market ledger",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    run_parser = sub.add_parser("run", help="Replay a scenario file and print the report")
    run_parser.add_argument("scenario", help="Path to the scenario YAML")
    run_parser.add_argument(
        "--live-prices",
        action="store_true",
        help="Seed prices from Pyth instead of the static config prices",
    )

    rates_parser = sub.add_parser("rates", help="Tabulate a market's interest rate model")
    rates_parser.add_argument("symbol", help="Market symbol")
    rates_parser.add_argument(
        "--utilization",
        action="append",
        default=None,
        help="Utilization rate to evaluate (repeatable)",
    )

    sub.add_parser("prices", help="Fetch live prices from Pyth")

    return parser


def _rate_table(config: AppConfig, symbol: str, utilizations: list[str]) -> list[dict[str, str]]:
    market = config.market(symbol)
    params = market.params
    model = params.interest_rate_model
    rows = []
    for raw in utilizations:
        utilization = Decimal(raw)
        # One recomputation step from the initial rate for a dynamic model
        txs = model.update_threshold_txs if isinstance(model, DynamicInterestRate) else 0
        borrow_rate, liquidity_rate, _ = compute_rates(
            utilization,
            model,
            RateModelState(txs_since_last_update=txs),
            0,
            borrow_rate=params.initial_borrow_rate,
            reserve_factor=params.reserve_factor,
        )
        rows.append(
            {
                "utilization": str(utilization),
                "borrow_rate": str(borrow_rate),
                "liquidity_rate": str(liquidity_rate),
            }
        )
    return rows


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)

    if args.command == "run":
        prices = None
        if args.live_prices:
            prices = await PythOracle(config.price_oracle.pyth).fetch_prices()
        env = build_environment(config, prices=prices)
        report = ScenarioRunner(env).run_file(args.scenario)
        print(yaml.safe_dump(report.to_dict(), sort_keys=False))
        if report.failed_steps:
            print(f"{len(report.failed_steps)} step(s) rejected as expected")
    elif args.command == "rates":
        rows = _rate_table(config, args.symbol, args.utilization or list(DEFAULT_UTILIZATIONS))
        print(yaml.safe_dump(rows, sort_keys=False))
    elif args.command == "prices":
        prices = await PythOracle(config.price_oracle.pyth).fetch_prices()
        if not prices:
            print("No prices fetched")
            sys.exit(1)
        for symbol, price in sorted(prices.items()):
            print(f"{symbol}: {price}")
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
