"""Red Bank ledger: the action and query surface over the keyed store."""
from __future__ import annotations

import copy
import logging
from dataclasses import replace
from decimal import Decimal

from .constants import ONE, ZERO
from .errors import (
    InsufficientHealthError,
    NotLiquidatableError,
    PriceNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from .fixed_point import checked_add, checked_sub, to_amount, to_decimal
from .health import compute_position, exceeds_max_debt
from .interest_rates import AccrualOutcome, accrue, compute_accrual
from .interfaces import (
    AddressProvider,
    Bank,
    Clock,
    ContractRole,
    PriceOracle,
    ReceiptToken,
    ReceiptTokenFactory,
)
from .liquidation import compute_liquidation_amounts
from .models import (
    Asset,
    AssetParams,
    AssetPosition,
    BurnMessage,
    Config,
    Event,
    Market,
    Message,
    MintMessage,
    Response,
    SendMessage,
    TransferOnLiquidationMessage,
    UserAssetDebt,
    UserPosition,
)
from .scaling import (
    compute_scaled_borrow,
    compute_scaled_deposit,
    compute_scaled_repayment,
    compute_scaled_withdrawal,
    compute_underlying_debt,
    compute_underlying_deposit,
)
from .store import LedgerStore

logger = logging.getLogger(__name__)


class RedBank:
    """Money-market ledger.

    Each mutating action validates, accrues the markets it touches, updates
    the store and finally dispatches its outbound messages (native sends,
    receipt-token mints and burns). The store is snapshotted per action, so
    an exception anywhere leaves every record as it was before the call.
    """

    def __init__(
        self,
        config: Config,
        *,
        bank: Bank,
        oracle: PriceOracle,
        address_provider: AddressProvider,
        token_factory: ReceiptTokenFactory,
        clock: Clock,
    ) -> None:
        config.validate()
        self.store = LedgerStore(config=config)
        self._bank = bank
        self._oracle = oracle
        self._address_provider = address_provider
        self._token_factory = token_factory
        self._clock = clock
        self._tokens: dict[str, ReceiptToken] = {}

    @property
    def address(self) -> str:
        return self.store.config.address

    # ---------------------------------------------------------------------
    # Admin
    # ---------------------------------------------------------------------

    def update_config(
        self,
        sender: str,
        *,
        owner: str | None = None,
        address_provider: str | None = None,
        close_factor: Decimal | str | None = None,
    ) -> Response:
        self._require_owner(sender)
        config = copy.copy(self.store.config)
        if owner is not None:
            config.owner = owner
        if address_provider is not None:
            config.address_provider = address_provider
        if close_factor is not None:
            config.close_factor = to_decimal(close_factor, "close_factor")
        config.validate()

        self.store.config = config
        logger.info("Config updated by %s", sender)
        return Response(events=(Event("update_config", {"owner": config.owner}),))

    def init_asset(self, sender: str, asset: Asset, params: AssetParams) -> Response:
        """List a new asset and instantiate its receipt token."""
        self._require_owner(sender)
        if asset.key in self.store.markets:
            raise ValidationError("Asset already initialized", asset=asset.key)

        market = Market.create(asset, "", params, self._clock.now())
        token = self._token_factory.instantiate(
            asset, self.address, self.finalize_liquidity_token_transfer
        )
        market.ma_token_address = token.address

        with self.store.atomic() as store:
            store.save_market(market)
            self._tokens[token.address] = token

        logger.info("Initialized market %s with receipt token %s", asset, token.address)
        return Response(
            events=(
                Event(
                    "init_asset",
                    {"asset": asset.key, "ma_token_address": token.address},
                ),
            )
        )

    def update_asset(self, sender: str, asset: Asset, params: AssetParams) -> Response:
        """Change listing params; interest so far accrues under the old ones."""
        self._require_owner(sender)
        messages: list[Message] = []

        with self.store.atomic() as store:
            market = store.market(asset)
            now = self._clock.now()
            self._accrue(market, now, messages)
            updated = market.with_params(params)
            store.save_market(updated)
            self._dispatch(messages)

        logger.info("Updated market %s", asset)
        return Response(
            events=(Event("update_asset", {"asset": asset.key}),),
            messages=tuple(messages),
        )

    def update_uncollateralized_limit(
        self, sender: str, user: str, asset: Asset, new_limit: int
    ) -> Response:
        self._require_owner(sender)
        new_limit = to_amount(new_limit, "new_limit")

        with self.store.atomic() as store:
            store.market(asset)
            debt = store.debt(asset, user)
            store.save_debt(asset, user, replace(debt, uncollateralized_limit=new_limit))

        logger.info(
            "Uncollateralized limit for %s in %s set to %d", user, asset, new_limit
        )
        return Response(
            events=(
                Event(
                    "update_uncollateralized_loan_limit",
                    {"user": user, "asset": asset.key, "new_allowance": new_limit},
                ),
            )
        )

    # ---------------------------------------------------------------------
    # User actions
    # ---------------------------------------------------------------------

    def deposit(self, sender: str, asset: Asset, amount: int) -> Response:
        amount = self._positive_amount(amount)
        market = self.store.market(asset)
        market.check_deposit_allowed()
        self._require_funds(sender, asset, amount)

        messages: list[Message] = [SendMessage(asset, sender, self.address, amount)]
        with self.store.atomic() as store:
            now = self._clock.now()
            self._accrue(market, now, messages)

            amount_scaled = compute_scaled_deposit(amount, market.liquidity_index)
            if amount_scaled == 0:
                raise ValidationError("Deposit amount too small", amount=amount)

            if store.collateral_flag(asset, sender) is None:
                store.set_collateral(asset, sender, True)

            self._record_transaction(market)
            messages.append(MintMessage(market.ma_token_address, sender, amount_scaled))
            self._dispatch(messages)

        logger.info("Deposit: %s deposited %d %s", sender, amount, asset)
        return Response(
            events=(
                Event(
                    "deposit",
                    {
                        "asset": asset.key,
                        "user": sender,
                        "amount": amount,
                        "amount_scaled": amount_scaled,
                    },
                ),
            ),
            messages=tuple(messages),
        )

    def withdraw(
        self,
        sender: str,
        asset: Asset,
        amount: int | None = None,
        recipient: str | None = None,
    ) -> Response:
        """Withdraw ``amount`` underlying, or the whole balance when omitted."""
        market = self.store.market(asset)
        market.check_withdraw_allowed()
        recipient = recipient or sender
        token = self._token(market)

        messages: list[Message] = []
        with self.store.atomic() as store:
            now = self._clock.now()
            self._accrue(market, now, messages)

            balance_scaled = token.balance_of(sender)
            if balance_scaled == 0:
                raise ValidationError("User has no balance", user=sender, asset=asset.key)

            if amount is None:
                amount_scaled = balance_scaled
                withdraw_amount = compute_underlying_deposit(
                    balance_scaled, market.liquidity_index
                )
            else:
                withdraw_amount = self._positive_amount(amount)
                amount_scaled = compute_scaled_withdrawal(
                    withdraw_amount, market.liquidity_index
                )
                if amount_scaled > balance_scaled:
                    raise ValidationError(
                        "Withdraw amount must be less than or equal to the balance",
                        amount=withdraw_amount,
                        balance_scaled=balance_scaled,
                    )
            if withdraw_amount == 0:
                raise ValidationError("Withdraw amount rounds to zero", asset=asset.key)
            self._require_liquidity(asset, withdraw_amount)

            if store.is_collateral(asset, sender) and store.is_borrowing(sender):
                position = self._user_position(
                    sender, now, collateral_deltas={asset.key: -amount_scaled}
                )
                if exceeds_max_debt(position):
                    raise InsufficientHealthError(
                        "Withdrawal would leave debt above the max debt value",
                        user=sender,
                        max_debt_value=position.max_debt_value,
                        collateralized_debt_value=position.total_collateralized_debt_value,
                    )

            if amount_scaled == balance_scaled and store.is_collateral(asset, sender):
                store.set_collateral(asset, sender, False)

            self._record_transaction(market)
            messages.append(BurnMessage(market.ma_token_address, sender, amount_scaled))
            messages.append(SendMessage(asset, self.address, recipient, withdraw_amount))
            self._dispatch(messages)

        logger.info("Withdraw: %s withdrew %d %s", sender, withdraw_amount, asset)
        return Response(
            events=(
                Event(
                    "withdraw",
                    {
                        "asset": asset.key,
                        "user": sender,
                        "recipient": recipient,
                        "burn_amount": amount_scaled,
                        "withdraw_amount": withdraw_amount,
                    },
                ),
            ),
            messages=tuple(messages),
        )

    def borrow(
        self, sender: str, asset: Asset, amount: int, recipient: str | None = None
    ) -> Response:
        amount = self._positive_amount(amount)
        market = self.store.market(asset)
        market.check_borrow_allowed()
        recipient = recipient or sender

        messages: list[Message] = []
        with self.store.atomic() as store:
            now = self._clock.now()
            self._accrue(market, now, messages)
            self._require_liquidity(asset, amount)

            amount_scaled = compute_scaled_borrow(amount, market.borrow_index)
            debt = store.debt(asset, sender)
            store.save_debt(
                asset,
                sender,
                replace(debt, amount_scaled=checked_add(debt.amount_scaled, amount_scaled)),
            )
            market.debt_total_scaled = checked_add(market.debt_total_scaled, amount_scaled)

            position = self._user_position(sender, now)
            if exceeds_max_debt(position):
                raise InsufficientHealthError(
                    "Borrow amount exceeds the maximum allowed given current collateral value",
                    user=sender,
                    amount=amount,
                    max_debt_value=position.max_debt_value,
                    collateralized_debt_value=position.total_collateralized_debt_value,
                )

            self._record_transaction(market)
            messages.append(SendMessage(asset, self.address, recipient, amount))
            self._dispatch(messages)

        logger.info("Borrow: %s borrowed %d %s", sender, amount, asset)
        return Response(
            events=(
                Event(
                    "borrow",
                    {
                        "asset": asset.key,
                        "user": sender,
                        "recipient": recipient,
                        "amount": amount,
                        "amount_scaled": amount_scaled,
                    },
                ),
            ),
            messages=tuple(messages),
        )

    def repay(
        self,
        sender: str,
        asset: Asset,
        amount: int | None = None,
        on_behalf_of: str | None = None,
    ) -> Response:
        """Repay ``amount`` of debt, or all of it when omitted.

        Only the owed part of ``amount`` is taken from the sender.
        """
        market = self.store.market(asset)
        market.check_repay_allowed()
        user = on_behalf_of or sender

        messages: list[Message] = []
        with self.store.atomic() as store:
            now = self._clock.now()
            self._accrue(market, now, messages)

            debt = store.debt(asset, user)
            if debt.amount_scaled == 0:
                raise ValidationError("Cannot repay 0 debt", user=user, asset=asset.key)
            owed = compute_underlying_debt(debt.amount_scaled, market.borrow_index)

            refund_amount = 0
            if amount is None:
                repay_scaled = debt.amount_scaled
                repay_amount = owed
            else:
                requested = self._positive_amount(amount)
                repay_scaled = compute_scaled_repayment(requested, market.borrow_index)
                if repay_scaled == 0:
                    raise ValidationError("Repay amount too small", amount=requested)
                if repay_scaled >= debt.amount_scaled:
                    repay_scaled = debt.amount_scaled
                    repay_amount = min(requested, owed)
                    refund_amount = requested - repay_amount
                else:
                    repay_amount = requested
            self._require_funds(sender, asset, repay_amount)

            store.save_debt(
                asset,
                user,
                replace(debt, amount_scaled=checked_sub(debt.amount_scaled, repay_scaled)),
            )
            market.debt_total_scaled = checked_sub(market.debt_total_scaled, repay_scaled)

            self._record_transaction(market)
            messages.insert(0, SendMessage(asset, sender, self.address, repay_amount))
            self._dispatch(messages)

        logger.info("Repay: %s repaid %d %s for %s", sender, repay_amount, asset, user)
        return Response(
            events=(
                Event(
                    "repay",
                    {
                        "asset": asset.key,
                        "sender": sender,
                        "user": user,
                        "amount": repay_amount,
                        "amount_scaled": repay_scaled,
                        "refund_amount": refund_amount,
                    },
                ),
            ),
            messages=tuple(messages),
        )

    def liquidate(
        self,
        sender: str,
        user: str,
        collateral_asset: Asset,
        debt_asset: Asset,
        amount: int,
        receive_ma_token: bool = False,
    ) -> Response:
        """Repay part of an unhealthy user's debt in exchange for their collateral.

        ``amount`` is what the liquidator offers; only the resolved repayment
        is taken. With ``receive_ma_token`` the liquidator gets the user's
        receipt tokens instead of the underlying collateral.
        """
        amount = self._positive_amount(amount)
        debt_market = self.store.market(debt_asset)
        collateral_market = self.store.market(collateral_asset)
        debt_market.check_liquidate_allowed()
        collateral_market.check_liquidate_allowed()
        same_asset = collateral_asset.key == debt_asset.key

        if not self.store.is_collateral(collateral_asset, user):
            raise ValidationError(
                "User has not enabled the asset as collateral",
                user=user,
                asset=collateral_asset.key,
            )
        collateral_token = self._token(collateral_market)

        messages: list[Message] = []
        with self.store.atomic() as store:
            now = self._clock.now()
            self._accrue(debt_market, now, messages)
            if not same_asset:
                self._accrue(collateral_market, now, messages)

            collateral_scaled = collateral_token.balance_of(user)
            if collateral_scaled == 0:
                raise ValidationError(
                    "User has no balance in the specified collateral asset",
                    user=user,
                    asset=collateral_asset.key,
                )
            debt = store.debt(debt_asset, user)
            if debt.amount_scaled == 0:
                raise ValidationError(
                    "User has no outstanding debt in the specified debt asset",
                    user=user,
                    asset=debt_asset.key,
                )
            user_debt = compute_underlying_debt(debt.amount_scaled, debt_market.borrow_index)
            if debt.uncollateralized and user_debt <= debt.uncollateralized_limit:
                raise NotLiquidatableError(
                    "Debt is within the user's uncollateralized limit",
                    user=user,
                    asset=debt_asset.key,
                )

            position = self._user_position(user, now)
            if not position.health_status.liquidatable:
                raise NotLiquidatableError(
                    "User's health factor is not less than 1 and thus cannot be liquidated",
                    user=user,
                    health_status=str(position.health_status),
                )

            if same_asset:
                debt_price = collateral_price = ONE
            else:
                debt_price = self._price(debt_asset)
                collateral_price = self._price(collateral_asset)

            user_collateral = compute_underlying_deposit(
                collateral_scaled, collateral_market.liquidity_index
            )
            amounts = compute_liquidation_amounts(
                amount,
                user_debt,
                user_collateral,
                self._close_factor(debt_market),
                collateral_market.liquidation_bonus,
                debt_price,
                collateral_price,
            )
            repay_amount = amounts.debt_amount_to_repay
            collateral_amount = amounts.collateral_amount_to_liquidate
            if repay_amount == 0 or collateral_amount == 0:
                raise ValidationError(
                    "Liquidation amounts round to zero",
                    debt_amount_to_repay=repay_amount,
                    collateral_amount_to_liquidate=collateral_amount,
                )
            self._require_funds(sender, debt_asset, repay_amount)

            # Debt side
            debt_scaled_repaid = min(
                compute_scaled_repayment(repay_amount, debt_market.borrow_index),
                debt.amount_scaled,
            )
            store.save_debt(
                debt_asset,
                user,
                replace(
                    debt, amount_scaled=checked_sub(debt.amount_scaled, debt_scaled_repaid)
                ),
            )
            debt_market.debt_total_scaled = checked_sub(
                debt_market.debt_total_scaled, debt_scaled_repaid
            )
            self._record_transaction(debt_market)
            messages.insert(0, SendMessage(debt_asset, sender, self.address, repay_amount))

            # Collateral side
            index = collateral_market.liquidity_index
            if collateral_amount == user_collateral:
                collateral_scaled_seized = collateral_scaled
            elif receive_ma_token:
                collateral_scaled_seized = compute_scaled_deposit(collateral_amount, index)
            else:
                collateral_scaled_seized = min(
                    compute_scaled_withdrawal(collateral_amount, index), collateral_scaled
                )

            if receive_ma_token:
                messages.append(
                    TransferOnLiquidationMessage(
                        collateral_market.ma_token_address,
                        user,
                        sender,
                        collateral_scaled_seized,
                    )
                )
                if store.collateral_flag(collateral_asset, sender) is None:
                    store.set_collateral(collateral_asset, sender, True)
            else:
                available = self._bank.balance(self.address, collateral_asset)
                if same_asset:
                    available += repay_amount
                if available < collateral_amount:
                    raise ValidationError(
                        "Not enough liquidity to pay out the collateral",
                        available=available,
                        amount=collateral_amount,
                    )
                messages.append(
                    BurnMessage(
                        collateral_market.ma_token_address, user, collateral_scaled_seized
                    )
                )
                messages.append(
                    SendMessage(collateral_asset, self.address, sender, collateral_amount)
                )
                if not same_asset:
                    self._record_transaction(collateral_market)

            if collateral_scaled_seized == collateral_scaled:
                store.set_collateral(collateral_asset, user, False)

            self._dispatch(messages)

        logger.info(
            "Liquidation: %s repaid %d %s of %s's debt and seized %d %s",
            sender,
            repay_amount,
            debt_asset,
            user,
            collateral_amount,
            collateral_asset,
        )
        return Response(
            events=(
                Event(
                    "liquidate",
                    {
                        "collateral_asset": collateral_asset.key,
                        "debt_asset": debt_asset.key,
                        "user": user,
                        "liquidator": sender,
                        "collateral_amount_liquidated": collateral_amount,
                        "debt_amount_repaid": repay_amount,
                        "refund_amount": amounts.refund_amount,
                        "receive_ma_token": receive_ma_token,
                    },
                ),
            ),
            messages=tuple(messages),
        )

    def update_collateral_status(self, sender: str, asset: Asset, enable: bool) -> Response:
        market = self.store.market(asset)

        with self.store.atomic() as store:
            if enable:
                if self._token(market).balance_of(sender) == 0:
                    raise ValidationError(
                        "User address has no balance in the specified asset",
                        user=sender,
                        asset=asset.key,
                    )
                store.set_collateral(asset, sender, True)
            else:
                store.set_collateral(asset, sender, False)
                if store.is_borrowing(sender):
                    position = self._user_position(sender, self._clock.now())
                    if exceeds_max_debt(position):
                        raise InsufficientHealthError(
                            "Cannot disable collateral that backs outstanding debt",
                            user=sender,
                            asset=asset.key,
                            max_debt_value=position.max_debt_value,
                        )

        logger.info(
            "Collateral %s for %s in %s", "enabled" if enable else "disabled", sender, asset
        )
        return Response(
            events=(
                Event(
                    "update_user_collateral_asset_status",
                    {"user": sender, "asset": asset.key, "enable": enable},
                ),
            )
        )

    def finalize_liquidity_token_transfer(
        self,
        caller: str,
        sender: str,
        recipient: str,
        sender_previous_balance: int,
        recipient_previous_balance: int,
        amount: int,
    ) -> Response:
        """Callback from a receipt token after it moved balances between users.

        Accepted only from the token registered for some market. Token
        balances already reflect the transfer when this runs.
        """
        market = self.store.market_by_token(caller)
        if market is None:
            raise ValidationError(
                "Caller is not a registered receipt token", caller=caller
            )
        asset = market.asset

        with self.store.atomic() as store:
            if store.is_collateral(asset, sender) and store.is_borrowing(sender):
                position = self._user_position(sender, self._clock.now())
                if exceeds_max_debt(position):
                    raise InsufficientHealthError(
                        "Transfer would leave the sender's debt above the max debt value",
                        user=sender,
                        asset=asset.key,
                    )

            if sender_previous_balance - amount == 0 and store.is_collateral(asset, sender):
                store.set_collateral(asset, sender, False)
            if (
                recipient_previous_balance == 0
                and amount > 0
                and store.collateral_flag(asset, recipient) is None
            ):
                store.set_collateral(asset, recipient, True)

        logger.debug(
            "Finalized %s transfer of %d from %s to %s", asset, amount, sender, recipient
        )
        return Response(
            events=(
                Event(
                    "finalize_liquidity_token_transfer",
                    {"asset": asset.key, "from": sender, "to": recipient, "amount": amount},
                ),
            )
        )

    # ---------------------------------------------------------------------
    # Queries
    # ---------------------------------------------------------------------

    def query_config(self) -> Config:
        return copy.copy(self.store.config)

    def query_market(self, asset: Asset) -> Market:
        return copy.deepcopy(self.store.market(asset))

    def query_markets_list(self) -> list[Market]:
        return [copy.deepcopy(m) for _, m in sorted(self.store.markets.items())]

    def query_user_debt(self, user: str) -> list[UserAssetDebt]:
        """Debt in every listed market, zero where the user has none."""
        now = self._clock.now()
        debts = []
        for _, market in sorted(self.store.markets.items()):
            debt = self.store.debt(market.asset, user)
            borrow_index = self._projected(market, now).borrow_index
            debts.append(
                UserAssetDebt(
                    asset=market.asset,
                    amount_scaled=debt.amount_scaled,
                    amount=compute_underlying_debt(debt.amount_scaled, borrow_index),
                    uncollateralized_limit=debt.uncollateralized_limit,
                )
            )
        return debts

    def query_user_collateral(self, user: str) -> list[Asset]:
        return [
            market.asset
            for _, market in sorted(self.store.markets.items())
            if self.store.is_collateral(market.asset, user)
        ]

    def query_uncollateralized_limit(self, user: str, asset: Asset) -> int:
        self.store.market(asset)
        return self.store.debt(asset, user).uncollateralized_limit

    def query_user_position(self, user: str) -> UserPosition:
        return self._user_position(user, self._clock.now())

    def query_scaled_liquidity_amount(self, asset: Asset, amount: int) -> int:
        index = self._projected(self.store.market(asset), self._clock.now()).liquidity_index
        return compute_scaled_deposit(to_amount(amount), index)

    def query_underlying_liquidity_amount(self, asset: Asset, amount_scaled: int) -> int:
        index = self._projected(self.store.market(asset), self._clock.now()).liquidity_index
        return compute_underlying_deposit(to_amount(amount_scaled, "amount_scaled"), index)

    def query_scaled_debt_amount(self, asset: Asset, amount: int) -> int:
        index = self._projected(self.store.market(asset), self._clock.now()).borrow_index
        return compute_scaled_borrow(to_amount(amount), index)

    def query_underlying_debt_amount(self, asset: Asset, amount_scaled: int) -> int:
        index = self._projected(self.store.market(asset), self._clock.now()).borrow_index
        return compute_underlying_debt(to_amount(amount_scaled, "amount_scaled"), index)

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    def _require_owner(self, sender: str) -> None:
        if sender != self.store.config.owner:
            raise UnauthorizedError("Only the owner can perform this action", sender=sender)

    @staticmethod
    def _positive_amount(amount: int) -> int:
        amount = to_amount(amount)
        if amount == 0:
            raise ValidationError("Amount must be greater than 0", amount=amount)
        return amount

    def _require_funds(self, address: str, asset: Asset, amount: int) -> None:
        balance = self._bank.balance(address, asset)
        if balance < amount:
            raise ValidationError(
                "Insufficient funds", address=address, balance=balance, amount=amount
            )

    def _require_liquidity(self, asset: Asset, amount: int) -> None:
        available = self._bank.balance(self.address, asset)
        if available < amount:
            raise ValidationError(
                "Operation exceeds available liquidity", available=available, amount=amount
            )

    def _token(self, market: Market) -> ReceiptToken:
        return self._tokens[market.ma_token_address]

    def _close_factor(self, market: Market) -> Decimal:
        if market.close_factor is not None:
            return market.close_factor
        return self.store.config.close_factor

    def _price(self, asset: Asset) -> Decimal:
        price = self._oracle.get_price(asset)
        if price <= ZERO:
            raise PriceNotFoundError("Oracle returned a non-positive price", asset=asset.key, price=price)
        return price

    def _accrue(self, market: Market, now: int, messages: list[Message]) -> None:
        """Accrue ``market`` and queue the reserve's receipt-token mint."""
        available = self._bank.balance(self.address, market.asset)
        protocol_rewards = accrue(market, now, available)
        if protocol_rewards == 0:
            return
        amount_scaled = compute_scaled_deposit(protocol_rewards, market.liquidity_index)
        if amount_scaled == 0:
            return
        collector = self._address_provider.resolve(ContractRole.PROTOCOL_REWARDS_COLLECTOR)
        messages.append(MintMessage(market.ma_token_address, collector, amount_scaled))
        logger.debug("Minting %d scaled %s to %s", amount_scaled, market.asset, collector)

    def _projected(self, market: Market, now: int) -> AccrualOutcome:
        return compute_accrual(market, now, self._bank.balance(self.address, market.asset))

    @staticmethod
    def _record_transaction(market: Market) -> None:
        market.rate_model_state = market.rate_model_state.record_transaction()

    def _user_position(
        self, user: str, now: int, collateral_deltas: dict[str, int] | None = None
    ) -> UserPosition:
        """Price every market the user touches at indices projected to ``now``.

        ``collateral_deltas`` adjusts scaled receipt balances for burns that
        are queued but not yet dispatched.
        """
        deltas = collateral_deltas or {}
        positions: list[AssetPosition] = []

        for market in self.store.user_markets(user):
            asset = market.asset
            debt = self.store.debt(asset, user)
            enabled = self.store.is_collateral(asset, user)
            collateral_scaled = 0
            if enabled:
                collateral_scaled = max(
                    self._token(market).balance_of(user) + deltas.get(asset.key, 0), 0
                )
            if collateral_scaled == 0 and debt.amount_scaled == 0:
                continue

            accrued = self._projected(market, now)
            positions.append(
                AssetPosition(
                    asset=asset,
                    price=self._price(asset),
                    max_loan_to_value=market.max_loan_to_value,
                    liquidation_threshold=market.liquidation_threshold,
                    collateral_amount=compute_underlying_deposit(
                        collateral_scaled, accrued.liquidity_index
                    ),
                    collateral_enabled=enabled,
                    debt_amount=compute_underlying_debt(
                        debt.amount_scaled, accrued.borrow_index
                    ),
                    uncollateralized_limit=debt.uncollateralized_limit,
                )
            )
        return compute_position(positions)

    def _dispatch(self, messages: list[Message]) -> None:
        for message in messages:
            if isinstance(message, SendMessage):
                self._bank.send(
                    message.sender, message.recipient, message.asset, message.amount
                )
            elif isinstance(message, MintMessage):
                self._tokens[message.token_address].mint(
                    self.address, message.recipient, message.amount
                )
            elif isinstance(message, BurnMessage):
                self._tokens[message.token_address].burn_from(
                    self.address, message.holder, message.amount
                )
            elif isinstance(message, TransferOnLiquidationMessage):
                self._tokens[message.token_address].transfer_on_liquidation(
                    self.address, message.sender, message.recipient, message.amount
                )
