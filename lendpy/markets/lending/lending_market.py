"""Collateralized borrowing against a single vault"""
from __future__ import annotations

import logging

from fixedpointmath import FixedPoint

import lendpy.errors as errors
import lendpy.time as time
from lendpy.config import Config
from lendpy.events import Event, EventLog, EventType
from lendpy.markets.base import BaseMarket
from lendpy.markets.lending.debt_position import DebtPosition
from lendpy.markets.lending.lending_market_deltas import LendingMarketDeltas
from lendpy.markets.lending.lending_market_state import LendingMarketState
from lendpy.markets.lending.market_snapshot import MarketSnapshot
from lendpy.markets.vault import Vault
from lendpy.oracle import PriceSource
from lendpy.rates import InterestRateModel, UsageStats, calc_price_volatility, calc_supply_demand_ratio
from lendpy.registry import AssetRegistry
from lendpy.tokens import Token, check_transfer_from, safe_transfer, safe_transfer_from
from lendpy.transaction import atomic
from lendpy.types import Address, Quantity


class LendingMarket(BaseMarket[LendingMarketState, LendingMarketDeltas]):
    r"""Risk and borrowing engine bound to one vault

    Users post registered collateral assets, and borrow the vault's asset up to their
    borrowing power: the sum over collateral assets of balance times price times LTV.
    Loans leave the vault through its admin-borrow path, so the vault keeps counting
    them, plus the interest they accrue, in `total_assets()`.

    Each debt position accrues simple interest at the rate captured at its last checkpoint.
    Borrowing capitalizes the accrued interest into principal; repayment pays interest first,
    then principal. Both reset the checkpoint and snapshot a fresh rate.
    """

    # pylint: disable=too-many-instance-attributes
    # pylint: disable=too-many-arguments

    def __init__(
        self,
        owner: Address,
        vault: Vault,
        registry: AssetRegistry,
        price_source: PriceSource,
        interest_rate_model: InterestRateModel,
        block_time: time.BlockTime,
        config: Config | None = None,
        event_log: EventLog | None = None,
        address: Address | None = None,
        state: LendingMarketState | None = None,
    ):
        super().__init__(state=state or LendingMarketState(), block_time=block_time)
        self.owner = owner
        self.vault = vault
        self.registry = registry
        self.price_source = price_source
        self.interest_rate_model = interest_rate_model
        self.config = config or Config()
        self.event_log = event_log if event_log is not None else vault.event_log
        self.address = address or f"market:{vault.asset}"
        vault.bind_market(self)

    def __repr__(self) -> str:
        return f"LendingMarket({self.asset!r}, borrowers={len(self.state.active_borrowers)})"

    @property
    def asset(self) -> Address:
        """The borrowable asset"""
        return self.vault.asset

    @property
    def asset_token(self) -> Token:
        """Token handle of the borrowable asset"""
        return self.vault.asset_token

    def _check_owner(self, caller: Address) -> None:
        if caller != self.owner:
            raise errors.UnauthorizedCaller(f"{caller=} is not the owner of {self.address}")

    def _emit(self, event_type: EventType, actor: Address, asset: Address, amount: FixedPoint | None, **meta) -> None:
        self.event_log.add(
            Event(
                timestamp=self.block_time.time,
                event_type=event_type,
                actor=actor,
                asset=asset,
                amount=amount,
                meta=meta,
            )
        )

    ### Collateral registration ###
    def add_collateral_token(self, caller: Address, token: Token, ltv: int) -> None:
        r"""Accept a new asset as collateral

        Arguments
        ---------
        caller : Address
            Must be the market owner.
        token : Token
            The collateral token.
        ltv : int
            Loan-to-value ratio as a whole percentage in [1, 100].
        """
        self._check_owner(caller)
        if token.symbol == self.asset:
            raise errors.AssetNotSupported(f"{token.symbol} is borrowed from this market and cannot be its collateral")
        with atomic(self.registry, name="add_collateral_token"):
            self.registry.add_collateral(token, ltv)
        self._emit(EventType.COLLATERAL_ADDED, caller, token.symbol, None)
        self._emit(EventType.LTV_SET, caller, token.symbol, None, ltv=ltv)

    def remove_collateral_token(self, caller: Address, asset: Address) -> None:
        """Stop accepting an asset as collateral; no user may hold any of it"""
        self._check_owner(caller)
        held = self.state.total_collateral.get(asset, FixedPoint(0))
        if held > FixedPoint(0):
            raise errors.CollateralInUse(f"users still hold {held} {asset} as collateral")
        with atomic(self.registry, name="remove_collateral_token"):
            self.registry.remove_collateral(asset)
        self._emit(EventType.COLLATERAL_REMOVED, caller, asset, None)

    def get_ltv_ratio(self, asset: Address) -> int:
        """Loan-to-value ratio of a collateral asset, as a whole percentage"""
        return self.registry.get_ltv(asset)

    ### Collateral positions ###
    def collateral_balance(self, user: Address, asset: Address) -> FixedPoint:
        """Amount of asset the market holds as collateral for user"""
        return self.state.collateral.get(user, {}).get(asset, FixedPoint(0))

    def deposit_collateral(self, caller: Address, asset: Address, amount: FixedPoint) -> None:
        """Move collateral from caller into market custody"""
        if amount <= FixedPoint(0):
            raise errors.ZeroAmount(f"collateral deposit {amount=} must be > 0")
        token = self.registry.collateral_token(asset)
        check_transfer_from(token, self.address, caller, amount)
        market_deltas = LendingMarketDeltas(user=caller, d_collateral=Quantity(amount=amount, unit=asset))
        with atomic(self, token, name="deposit_collateral"):
            safe_transfer_from(token, self.address, caller, self.address, amount)
            self.update_market(market_deltas)
        logging.debug("%s deposited %s %s as collateral", caller, amount, asset)
        self._emit(EventType.COLLATERAL_DEPOSITED, caller, asset, amount)

    def calc_withdraw_collateral(self, caller: Address, asset: Address, amount: FixedPoint) -> LendingMarketDeltas:
        r"""Validate a collateral withdrawal and return the market deltas

        Prices are only read when the caller has outstanding debt, in which case the
        borrowing power left after the withdrawal must still cover that debt.
        """
        if amount <= FixedPoint(0):
            raise errors.ZeroAmount(f"collateral withdrawal {amount=} must be > 0")
        balance = self.collateral_balance(caller, asset)
        if amount > balance:
            raise errors.InsufficientCollateral(f"{caller} holds {balance} {asset} as collateral, {amount} requested")
        debt = self.debt_of(caller)
        if debt > FixedPoint(0):
            remaining = dict(self.state.collateral.get(caller, {}))
            remaining[asset] = balance - amount
            borrowing_power = self.calc_borrowing_power(remaining)
            if borrowing_power < debt:
                raise errors.InsufficientCollateral(
                    f"withdrawing {amount} {asset} leaves borrowing power {borrowing_power} below debt {debt}"
                )
        return LendingMarketDeltas(user=caller, d_collateral=Quantity(amount=-amount, unit=asset))

    def withdraw_collateral(self, caller: Address, asset: Address, amount: FixedPoint) -> None:
        """Return collateral from market custody to caller"""
        token = self.registry.collateral_token(asset)
        market_deltas = self.calc_withdraw_collateral(caller, asset, amount)
        with atomic(self, token, name="withdraw_collateral"):
            self.update_market(market_deltas)
            safe_transfer(token, self.address, caller, amount)
        logging.debug("%s withdrew %s %s of collateral", caller, amount, asset)
        self._emit(EventType.COLLATERAL_WITHDRAWN, caller, asset, amount)

    ### Valuation ###
    def get_collateral_price(self, asset: Address) -> FixedPoint:
        """Latest price of a collateral asset, normalized and checked for staleness"""
        return self.price_source.get_normalized_price(
            asset,
            reference_decimals=self.config.reference_decimals,
            max_age=self.config.price_staleness_tolerance,
        )

    def calc_borrowing_power(self, balances: dict[Address, FixedPoint]) -> FixedPoint:
        r"""LTV-weighted value of a set of collateral balances

        .. math::
            power = \sum_{a} balance_a \cdot price_a \cdot \frac{ltv_a}{100}
        """
        borrowing_power = FixedPoint(0)
        for asset, balance in balances.items():
            if balance <= FixedPoint(0):
                continue
            value = balance * self.get_collateral_price(asset)
            borrowing_power += value * FixedPoint(self.registry.get_ltv(asset)) / FixedPoint(100)
        return borrowing_power

    def get_total_collateral_value(self, user: Address) -> FixedPoint:
        """Borrowing power of user: collateral value after each asset's LTV is applied"""
        return self.calc_borrowing_power(self.state.collateral.get(user, {}))

    ### Debt ###
    def calculate_accrued_interest(self, user: Address) -> FixedPoint:
        """Interest accrued by user since their last checkpoint"""
        if user not in self.state.debts:
            return FixedPoint(0)
        return self.state.debts[user].accrued_interest(self.block_time.time)

    def debt_of(self, user: Address) -> FixedPoint:
        """Outstanding principal plus accrued interest of user"""
        if user not in self.state.debts:
            return FixedPoint(0)
        return self.state.debts[user].debt(self.block_time.time)

    def borrowed_plus_interest(self) -> FixedPoint:
        """Outstanding principal plus accrued interest over every open position"""
        current_time = self.block_time.time
        return sum(
            (self.state.debts[user].debt(current_time) for user in self.state.active_borrowers),
            FixedPoint(0),
        )

    def total_principal(self) -> FixedPoint:
        """Outstanding principal over every open position"""
        return sum((self.state.debts[user].principal for user in self.state.active_borrowers), FixedPoint(0))

    def active_borrowers(self) -> list[Address]:
        """Users with an open debt position"""
        return list(self.state.active_borrowers)

    def max_borrow(self, user: Address) -> FixedPoint:
        """Largest amount user could borrow right now"""
        headroom = self.get_total_collateral_value(user) - self.debt_of(user)
        if headroom <= FixedPoint(0):
            return FixedPoint(0)
        return headroom if headroom <= self.vault.idle_assets else self.vault.idle_assets

    def health(self, user: Address) -> FixedPoint:
        """Borrowing power over outstanding debt; inf without debt, below 1 when undercollateralized"""
        debt = self.debt_of(user)
        if debt <= FixedPoint(0):
            return FixedPoint("inf")
        return self.get_total_collateral_value(user) / debt

    ### Rates ###
    def calc_collateral_volatility(self) -> FixedPoint:
        """Largest return volatility among the priced collateral assets"""
        volatility = FixedPoint(0)
        for asset in self.registry.collateral_assets:
            if not self.price_source.has_feed(asset):
                continue
            prices = self.price_source.get_price_history(asset, self.config.volatility_window)
            asset_volatility = calc_price_volatility(prices)
            if asset_volatility > volatility:
                volatility = asset_volatility
        return volatility

    def usage_stats(self, d_borrowed: FixedPoint = FixedPoint(0), d_idle: FixedPoint = FixedPoint(0)) -> UsageStats:
        r"""Usage of the vault asset, optionally after a pending borrow or repay

        Arguments
        ---------
        d_borrowed : FixedPoint
            Change in borrowed plus interest that the pending operation makes.
        d_idle : FixedPoint
            Change in vault idle assets that the pending operation makes.
        """
        total_borrowed = self.borrowed_plus_interest() + d_borrowed
        idle_assets = self.vault.idle_assets + d_idle
        if self.interest_rate_model.rate_curve.price_volatility_factor > FixedPoint(0):
            price_volatility = self.calc_collateral_volatility()
        else:
            price_volatility = FixedPoint(0)
        return UsageStats(
            asset=self.asset,
            total_borrowed=total_borrowed,
            total_supply=idle_assets + total_borrowed,
            price_volatility=price_volatility,
            supply_demand_ratio=calc_supply_demand_ratio(total_borrowed, idle_assets),
        )

    def calc_borrow_rate(
        self, d_borrowed: FixedPoint = FixedPoint(0), d_idle: FixedPoint = FixedPoint(0)
    ) -> FixedPoint:
        """Borrow rate the model gives for usage after a pending operation"""
        return self.interest_rate_model.get_dynamic_borrow_rate(self.usage_stats(d_borrowed, d_idle))

    def current_borrow_rate(self) -> FixedPoint:
        """Borrow rate the model gives for current usage"""
        return self.calc_borrow_rate()

    def utilization(self) -> FixedPoint:
        """Fraction of the vault's total assets that is lent out"""
        return self.interest_rate_model.get_utilization_rate(self.usage_stats())

    ### Borrowing ###
    def calc_borrow(self, caller: Address, amount: FixedPoint) -> LendingMarketDeltas:
        r"""Validate a borrow and return the market deltas

        Raises
        ------
        BorrowLimitExceeded
            If amount exceeds borrowing power minus outstanding debt.
        InsufficientLiquidity
            If the vault does not hold amount of idle assets.
        """
        if amount <= FixedPoint(0):
            raise errors.ZeroAmount(f"borrow {amount=} must be > 0")
        debt = self.debt_of(caller)
        borrowing_power = self.get_total_collateral_value(caller)
        if debt + amount > borrowing_power:
            raise errors.BorrowLimitExceeded(
                f"{caller} has borrowing power {borrowing_power} and debt {debt}; cannot borrow {amount}"
            )
        if amount > self.vault.idle_assets:
            raise errors.InsufficientLiquidity(
                f"{self.vault.address} holds {self.vault.idle_assets} idle assets; {amount} requested"
            )
        rate = self.calc_borrow_rate(d_borrowed=amount, d_idle=-amount)
        debt_position = DebtPosition(principal=debt + amount, rate=rate, timestamp=self.block_time.time)
        return LendingMarketDeltas(user=caller, debt_position=debt_position)

    def borrow(self, caller: Address, amount: FixedPoint) -> DebtPosition:
        r"""Lend amount of the vault asset to caller against their collateral

        Returns
        -------
        DebtPosition
            The caller's position after the borrow.
        """
        market_deltas = self.calc_borrow(caller, amount)
        with atomic(self, self.vault, self.asset_token, name="borrow"):
            self.vault.admin_borrow_function(self.address, amount)
            safe_transfer(self.asset_token, self.address, caller, amount)
            self.update_market(market_deltas)
        debt_position = self.state.debts[caller]
        logging.debug("%s borrowed %s %s at rate %s", caller, amount, self.asset, debt_position.rate)
        self._emit(
            EventType.BORROW,
            caller,
            self.asset,
            amount,
            principal=debt_position.principal,
            rate=debt_position.rate,
        )
        return debt_position

    def calc_repay(self, caller: Address, amount: FixedPoint) -> tuple[FixedPoint, LendingMarketDeltas]:
        r"""Validate a repayment and return the interest it pays along with the market deltas

        Raises
        ------
        NoOutstandingDebt
            If caller has no open position.
        RepayAmountTooSmall
            If amount does not cover the accrued interest.
        RepayExceedsDebt
            If amount exceeds principal plus accrued interest.
        """
        if amount <= FixedPoint(0):
            raise errors.ZeroAmount(f"repay {amount=} must be > 0")
        if caller not in self.state.debts:
            raise errors.NoOutstandingDebt(f"{caller} has no debt to repay")
        current_time = self.block_time.time
        position = self.state.debts[caller]
        interest = position.accrued_interest(current_time)
        debt = position.principal + interest
        if amount < interest:
            raise errors.RepayAmountTooSmall(f"repay of {amount} does not cover accrued interest {interest}")
        if amount > debt:
            raise errors.RepayExceedsDebt(f"repay of {amount} exceeds outstanding debt {debt}")
        check_transfer_from(self.asset_token, self.address, caller, amount)
        remaining = debt - amount
        if remaining > FixedPoint(0):
            rate = self.calc_borrow_rate(d_borrowed=-amount, d_idle=amount)
            debt_position = DebtPosition(principal=remaining, rate=rate, timestamp=current_time)
        else:
            debt_position = DebtPosition()
        return interest, LendingMarketDeltas(user=caller, debt_position=debt_position)

    def repay(self, caller: Address, amount: FixedPoint) -> FixedPoint:
        r"""Repay amount of caller's debt, interest first, and return the funds to the vault

        Returns
        -------
        FixedPoint
            The principal still outstanding.
        """
        interest, market_deltas = self.calc_repay(caller, amount)
        with atomic(self, self.vault, self.asset_token, name="repay"):
            safe_transfer_from(self.asset_token, self.address, caller, self.address, amount)
            self.vault.admin_repay_function(self.address, amount)
            self.update_market(market_deltas)
        remaining = market_deltas.debt_position.principal
        logging.debug(
            "%s repaid %s %s (%s interest), %s principal remains", caller, amount, self.asset, interest, remaining
        )
        self._emit(
            EventType.REPAY,
            caller,
            self.asset,
            amount,
            interest_paid=interest,
            principal_paid=amount - interest,
            remaining_principal=remaining,
        )
        return remaining

    ### Reporting ###
    def snapshot(self) -> MarketSnapshot:
        """Record the aggregate figures of the market and its vault at the current block"""
        stats = self.usage_stats()
        return MarketSnapshot(
            timestamp=self.block_time.time,
            block_number=self.block_time.block_number,
            asset=self.asset,
            total_assets=self.vault.total_assets(),
            idle_assets=self.vault.idle_assets,
            total_shares=self.vault.total_shares,
            share_price=self.vault.share_price(),
            borrowed_plus_interest=stats.total_borrowed,
            total_principal=self.total_principal(),
            utilization=self.interest_rate_model.get_utilization_rate(stats),
            borrow_rate=self.interest_rate_model.get_dynamic_borrow_rate(stats),
            supply_rate=self.interest_rate_model.get_supply_rate(stats),
            num_borrowers=len(self.state.active_borrowers),
        )

    def check_invariants(self) -> None:
        r"""Raise InvariantViolation if debt, collateral or vault bookkeeping has diverged

        Also checks that the vault's total assets equal its physical asset balance plus the value lent
        out, and raises UtilizationAboveMaximum if more is lent out than the vault's total assets.
        """
        self.state.check_valid_state()
        if set(self.state.active_borrowers) != set(self.state.debts):
            raise errors.InvariantViolation(
                f"active borrowers {self.state.active_borrowers} do not match debt positions {list(self.state.debts)}"
            )
        for index, user in enumerate(self.state.active_borrowers):
            if self.state.borrower_index.get(user) != index:
                raise errors.InvariantViolation(f"borrower index of {user} is out of date")
            if not self.state.debts[user].is_open:
                raise errors.InvariantViolation(f"{user} is an active borrower with zero principal")
        for asset, total in self.state.total_collateral.items():
            user_sum = sum(
                (balances.get(asset, FixedPoint(0)) for balances in self.state.collateral.values()), FixedPoint(0)
            )
            if user_sum != total:
                raise errors.InvariantViolation(f"{asset} collateral sums to {user_sum}, total is {total}")
            if total > FixedPoint(0) and self.registry.collateral_token(asset).balance_of(self.address) < total:
                raise errors.InvariantViolation(f"{self.address} holds less {asset} than its users deposited")
        borrowed = self.borrowed_plus_interest()
        held = self.asset_token.balance_of(self.vault.address)
        if self.vault.total_assets() != held + borrowed:
            raise errors.InvariantViolation(
                f"vault total assets {self.vault.total_assets()} != physical balance {held} + lent {borrowed}"
            )
        self.interest_rate_model.get_utilization_rate(self.usage_stats())
        self.vault.check_invariants()
