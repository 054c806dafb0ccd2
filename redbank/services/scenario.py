"""Replay timed action scripts against a ledger environment."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..errors import ERROR_KINDS, RedBankError
from ..models import AssetParams, Response
from .environment import LedgerEnvironment

logger = logging.getLogger(__name__)


class ScenarioError(Exception):
    """The script itself is malformed or a step did not behave as expected."""


@dataclass(frozen=True)
class StepResult:
    index: int
    action: str
    time: int
    ok: bool
    error_kind: str | None = None
    message: str = ""
    events: tuple[dict[str, Any], ...] = ()


@dataclass(frozen=True)
class ScenarioReport:
    time: int
    steps: tuple[StepResult, ...] = ()
    markets: dict[str, dict[str, Any]] = field(default_factory=dict)
    positions: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def failed_steps(self) -> tuple[StepResult, ...]:
        return tuple(s for s in self.steps if not s.ok)

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "steps": [
                {
                    "index": s.index,
                    "action": s.action,
                    "time": s.time,
                    "ok": s.ok,
                    **({"error": s.error_kind, "message": s.message} if not s.ok else {}),
                }
                for s in self.steps
            ],
            "markets": self.markets,
            "positions": self.positions,
        }


class ScenarioRunner:
    """Drive a :class:`LedgerEnvironment` through a list of steps.

    Each step is a mapping with an ``action`` and its arguments. Assets are
    referred to by market symbol. ``at`` (absolute) or ``advance`` (relative)
    move the block clock before the action runs. A step with
    ``expect_error: <kind>`` must be rejected with that error kind.
    """

    def __init__(self, environment: LedgerEnvironment) -> None:
        self.env = environment
        self._participants: set[str] = set()
        self._handlers = {
            "fund": self._fund,
            "set_price": self._set_price,
            "advance": self._noop,
            "deposit": self._deposit,
            "withdraw": self._withdraw,
            "borrow": self._borrow,
            "repay": self._repay,
            "liquidate": self._liquidate,
            "update_collateral_status": self._update_collateral_status,
            "update_uncollateralized_limit": self._update_uncollateralized_limit,
            "update_asset": self._update_asset,
            "transfer": self._transfer,
        }

    def run_file(self, path: str | Path) -> ScenarioReport:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Scenario file not found: {path}")
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        steps = raw.get("steps", []) if isinstance(raw, dict) else raw
        logger.info("Running scenario %s (%d steps)", path, len(steps))
        return self.run(steps)

    def run(self, steps: list[dict[str, Any]]) -> ScenarioReport:
        results = [self._run_step(i, step) for i, step in enumerate(steps)]
        return ScenarioReport(
            time=self.env.clock.now(),
            steps=tuple(results),
            markets={
                m.asset.reference: m.to_dict() for m in self.env.red_bank.query_markets_list()
            },
            positions={user: self._position_summary(user) for user in sorted(self._participants)},
        )

    # -- step execution ------------------------------------------------------

    def _run_step(self, index: int, step: dict[str, Any]) -> StepResult:
        action = step.get("action")
        handler = self._handlers.get(action)
        if handler is None:
            raise ScenarioError(f"Step {index}: unknown action '{action}'")

        if "at" in step:
            self.env.clock.set(int(step["at"]))
        if "advance" in step:
            self.env.clock.advance(int(step["advance"]))

        expected = step.get("expect_error")
        if expected is not None and expected not in ERROR_KINDS:
            raise ScenarioError(f"Step {index}: unknown error kind '{expected}'")

        now = self.env.clock.now()
        try:
            response = handler(step)
        except RedBankError as e:
            if expected is None or not isinstance(e, ERROR_KINDS[expected]):
                raise ScenarioError(f"Step {index} ({action}) failed: {e}") from e
            logger.info("Step %d (%s) rejected as expected: %s", index, action, e)
            return StepResult(index, action, now, ok=False, error_kind=e.kind, message=str(e))
        except KeyError as e:
            raise ScenarioError(f"Step {index} ({action}): missing or unknown {e}") from e

        if expected is not None:
            raise ScenarioError(f"Step {index} ({action}) was expected to fail with {expected}")

        events = tuple(
            {"name": ev.name, **ev.attributes} for ev in (response.events if response else ())
        )
        logger.debug("Step %d (%s) ok at t=%d", index, action, now)
        return StepResult(index, action, now, ok=True, events=events)

    def _participant(self, step: dict[str, Any], key: str = "sender") -> str:
        address = str(step[key])
        self._participants.add(address)
        return address

    def _position_summary(self, user: str) -> dict[str, Any]:
        red_bank = self.env.red_bank
        summary = red_bank.query_user_position(user).to_dict()
        summary["collateral"] = [a.reference for a in red_bank.query_user_collateral(user)]
        summary["debts"] = {
            d.asset.reference: d.amount for d in red_bank.query_user_debt(user) if d.amount_scaled
        }
        summary["deposits"] = {
            symbol: red_bank.query_underlying_liquidity_amount(
                asset, self.env.tokens.token_for(asset).balance_of(user)
            )
            for symbol, asset in sorted(self.env.assets.items())
            if self.env.tokens.token_for(asset).balance_of(user)
        }
        return summary

    # -- handlers ------------------------------------------------------------

    def _noop(self, step: dict[str, Any]) -> None:
        return None

    def _fund(self, step: dict[str, Any]) -> None:
        self.env.fund(self._participant(step, "address"), step["asset"], int(step["amount"]))

    def _set_price(self, step: dict[str, Any]) -> None:
        self.env.set_price(step["asset"], step["price"])

    def _deposit(self, step: dict[str, Any]) -> Response:
        return self.env.red_bank.deposit(
            self._participant(step), self.env.asset(step["asset"]), step["amount"]
        )

    def _withdraw(self, step: dict[str, Any]) -> Response:
        return self.env.red_bank.withdraw(
            self._participant(step),
            self.env.asset(step["asset"]),
            step.get("amount"),
            recipient=step.get("recipient"),
        )

    def _borrow(self, step: dict[str, Any]) -> Response:
        return self.env.red_bank.borrow(
            self._participant(step),
            self.env.asset(step["asset"]),
            step["amount"],
            recipient=step.get("recipient"),
        )

    def _repay(self, step: dict[str, Any]) -> Response:
        return self.env.red_bank.repay(
            self._participant(step),
            self.env.asset(step["asset"]),
            step.get("amount"),
            on_behalf_of=step.get("on_behalf_of"),
        )

    def _liquidate(self, step: dict[str, Any]) -> Response:
        return self.env.red_bank.liquidate(
            self._participant(step),
            self._participant(step, "user"),
            self.env.asset(step["collateral_asset"]),
            self.env.asset(step["debt_asset"]),
            step["amount"],
            receive_ma_token=bool(step.get("receive_ma_token", False)),
        )

    def _update_collateral_status(self, step: dict[str, Any]) -> Response:
        return self.env.red_bank.update_collateral_status(
            self._participant(step), self.env.asset(step["asset"]), bool(step["enable"])
        )

    def _update_uncollateralized_limit(self, step: dict[str, Any]) -> Response:
        return self.env.red_bank.update_uncollateralized_limit(
            str(step.get("sender", self.env.config.red_bank.owner)),
            self._participant(step, "user"),
            self.env.asset(step["asset"]),
            step["limit"],
        )

    def _update_asset(self, step: dict[str, Any]) -> Response:
        return self.env.red_bank.update_asset(
            str(step.get("sender", self.env.config.red_bank.owner)),
            self.env.asset(step["asset"]),
            AssetParams.from_dict(step.get("params", {})),
        )

    def _transfer(self, step: dict[str, Any]) -> None:
        token = self.env.tokens.token_for(self.env.asset(step["asset"]))
        token.transfer(
            self._participant(step), self._participant(step, "recipient"), int(step["amount"])
        )
