"""Unit tests for asset identity, market records and action results."""
from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import pytest

from redbank.errors import MarketInactiveError, ValidationError
from redbank.interest_rate_models import DynamicInterestRate
from redbank.models import (
    Asset,
    AssetKind,
    AssetParams,
    Config,
    Debt,
    Event,
    Market,
    Response,
    UserHealthStatus,
)

D = Decimal


class TestAsset:
    def test_native_and_token_keys_differ(self) -> None:
        assert Asset.native("abc").key == "native:abc"
        assert Asset.token("abc").key == "token:abc"
        assert Asset.native("abc") != Asset.token("abc")

    def test_from_dict(self) -> None:
        asset = Asset.from_dict({"native": "uluna"})
        assert asset.kind is AssetKind.NATIVE
        assert asset.to_dict() == {"native": "uluna"}

    def test_from_dict_rejects_two_variants(self) -> None:
        with pytest.raises(ValidationError, match="exactly one"):
            Asset.from_dict({"native": "uluna", "token": "x"})

    def test_from_dict_unknown_kind(self) -> None:
        with pytest.raises(ValidationError, match="Unknown asset kind"):
            Asset.from_dict({"ibc": "x"})

    def test_empty_reference(self) -> None:
        with pytest.raises(ValidationError):
            Asset.native("")

    def test_str_is_reference(self) -> None:
        assert str(Asset.native("uusd")) == "uusd"


class TestConfig:
    def test_validate_ok(self) -> None:
        Config(owner="owner", address="red_bank").validate()

    def test_close_factor_out_of_range(self) -> None:
        with pytest.raises(ValidationError, match="close_factor"):
            Config(owner="owner", address="red_bank", close_factor=D("1.2")).validate()


class TestAssetParams:
    def test_missing_for_init(self) -> None:
        params = AssetParams(max_loan_to_value=D("0.5"))
        missing = params.missing_for_init()
        assert "max_loan_to_value" not in missing
        assert "liquidation_threshold" in missing
        assert "close_factor" not in missing

    def test_from_dict_partial(self) -> None:
        params = AssetParams.from_dict({"max_loan_to_value": "0.4", "borrow_enabled": False})
        assert params.max_loan_to_value == D("0.4")
        assert params.borrow_enabled is False
        assert params.reserve_factor is None


class TestMarket:
    def test_create(self, ust_params: AssetParams) -> None:
        market = Market.create(Asset.native("uusd"), "mauusd", ust_params, 100)
        assert market.borrow_index == D("1")
        assert market.liquidity_index == D("1")
        assert market.borrow_rate == D("0.1")
        assert market.indexes_last_updated == 100
        assert market.rate_model_state.last_updated == 100

    def test_create_requires_all_params(self) -> None:
        with pytest.raises(ValidationError, match="All asset params are required"):
            Market.create(Asset.native("uusd"), "mauusd", AssetParams(), 0)

    def test_create_rejects_negative_initial_rate(self, ust_params: AssetParams) -> None:
        params = replace(ust_params, initial_borrow_rate=D("-0.1"))
        with pytest.raises(ValidationError, match="initial_borrow_rate cannot be negative"):
            Market.create(Asset.native("uusd"), "mauusd", params, 0)

    def test_threshold_must_exceed_ltv(self, ust_params: AssetParams) -> None:
        params = replace(ust_params, liquidation_threshold=D("0.75"))
        with pytest.raises(ValidationError, match="liquidation_threshold must be greater"):
            Market.create(Asset.native("uusd"), "mauusd", params, 0)

    def test_fraction_out_of_range(self, ust_params: AssetParams) -> None:
        params = replace(ust_params, reserve_factor=D("1.5"))
        with pytest.raises(ValidationError, match="reserve_factor must be in"):
            Market.create(Asset.native("uusd"), "mauusd", params, 0)

    def test_with_params_applies_only_given_fields(self, ust_params: AssetParams) -> None:
        market = Market.create(Asset.native("uusd"), "mauusd", ust_params, 0)
        updated = market.with_params(AssetParams(max_loan_to_value=D("0.5"), active=False))
        assert updated.max_loan_to_value == D("0.5")
        assert updated.active is False
        assert updated.liquidation_threshold == D("0.8")
        # the stored market is unchanged
        assert market.max_loan_to_value == D("0.75")

    def test_with_params_new_dynamic_model_resets_rate(
        self, ust_params: AssetParams, dynamic_model: DynamicInterestRate
    ) -> None:
        market = Market.create(Asset.native("uusd"), "mauusd", ust_params, 0)
        updated = market.with_params(
            AssetParams(interest_rate_model=dynamic_model, initial_borrow_rate=D("0.2"))
        )
        assert updated.borrow_rate == D("0.2")

    def test_with_params_validates(self, ust_params: AssetParams) -> None:
        market = Market.create(Asset.native("uusd"), "mauusd", ust_params, 0)
        with pytest.raises(ValidationError):
            market.with_params(AssetParams(max_loan_to_value=D("0.9")))

    def test_inactive_market_rejects_actions(self, ust_params: AssetParams) -> None:
        market = Market.create(Asset.native("uusd"), "mauusd", ust_params, 0)
        market.active = False
        for check in (
            market.check_deposit_allowed,
            market.check_borrow_allowed,
            market.check_withdraw_allowed,
            market.check_repay_allowed,
            market.check_liquidate_allowed,
        ):
            with pytest.raises(MarketInactiveError, match="not active"):
                check()

    def test_disabled_actions(self, ust_params: AssetParams) -> None:
        market = Market.create(Asset.native("uusd"), "mauusd", ust_params, 0)
        market.deposit_enabled = False
        market.borrow_enabled = False
        with pytest.raises(MarketInactiveError, match="Deposits are disabled"):
            market.check_deposit_allowed()
        with pytest.raises(MarketInactiveError, match="Borrowing is disabled"):
            market.check_borrow_allowed()
        market.check_withdraw_allowed()
        market.check_repay_allowed()


class TestUserRecords:
    def test_debt_defaults(self) -> None:
        debt = Debt()
        assert debt.amount_scaled == 0
        assert not debt.uncollateralized

    def test_uncollateralized_debt(self) -> None:
        assert Debt(uncollateralized_limit=500).uncollateralized

    def test_health_status_str(self) -> None:
        assert str(UserHealthStatus.not_borrowing()) == "NotBorrowing"
        assert str(UserHealthStatus.with_health_factor(D("1.5"))) == "Borrowing(1.5)"

    def test_health_factor_at_one_is_not_liquidatable(self) -> None:
        assert not UserHealthStatus.with_health_factor(D("1")).liquidatable


class TestResponse:
    def test_event_lookup(self) -> None:
        response = Response(events=(Event("deposit", {"amount": 5}),))
        assert response.event("deposit").attributes["amount"] == 5

    def test_missing_event(self) -> None:
        with pytest.raises(KeyError):
            Response().event("borrow")
