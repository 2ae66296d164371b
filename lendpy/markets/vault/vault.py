"""Pooled vault that issues shares against one underlying asset"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fixedpointmath import FixedPoint, FixedPointIntegerMath

import lendpy.errors as errors
import lendpy.time as time
from lendpy.events import Event, EventLog, EventType
from lendpy.markets.base import BaseMarket
from lendpy.markets.vault.vault_deltas import VaultDeltas
from lendpy.markets.vault.vault_state import VaultState
from lendpy.registry import AssetRegistry
from lendpy.tokens import Token, check_transfer_from, safe_transfer, safe_transfer_from
from lendpy.transaction import atomic
from lendpy.types import Address

if TYPE_CHECKING:
    from lendpy.markets.lending import LendingMarket


def mul_div_down(x: FixedPoint, y: FixedPoint, d: FixedPoint) -> FixedPoint:
    """x * y / d with a single rounding step, toward zero"""
    return FixedPoint(scaled_value=FixedPointIntegerMath.mul_div_down(x.scaled_value, y.scaled_value, d.scaled_value))


def mul_div_up(x: FixedPoint, y: FixedPoint, d: FixedPoint) -> FixedPoint:
    """x * y / d with a single rounding step, away from zero"""
    return FixedPoint(scaled_value=FixedPointIntegerMath.mul_div_up(x.scaled_value, y.scaled_value, d.scaled_value))


class Vault(BaseMarket[VaultState, VaultDeltas]):
    r"""Holds a pooled balance of one asset and represents ownership with shares

    Some of the pool's value may be lent out at any time.  The vault physically holds
    `idle_assets`; the rest of its value lives in the bound market's loans, and
    `total_assets()` adds the two so that the share price reflects real economic value.

    Conversions round in the vault's favor: depositors receive shares rounded down,
    withdrawers burn shares rounded up, so the share price never falls because of
    a deposit or a withdrawal.
    """

    def __init__(
        self,
        asset_token: Token,
        registry: AssetRegistry,
        block_time: time.BlockTime,
        event_log: EventLog | None = None,
        address: Address | None = None,
        state: VaultState | None = None,
    ):
        super().__init__(state=state or VaultState(), block_time=block_time)
        self.asset_token = asset_token
        self.registry = registry
        self.event_log = event_log if event_log is not None else EventLog()
        self.address = address or f"vault:{asset_token.symbol}"
        self.market: LendingMarket | None = None
        registry.register_vault(self.asset, self)

    def __repr__(self) -> str:
        return f"Vault({self.asset!r}, total_shares={self.state.total_shares}, idle_assets={self.state.idle_assets})"

    @property
    def asset(self) -> Address:
        """Identity of the underlying asset"""
        return self.asset_token.symbol

    @property
    def total_shares(self) -> FixedPoint:
        """Sum of every share balance"""
        return self.state.total_shares

    @property
    def idle_assets(self) -> FixedPoint:
        """Assets physically held by the vault"""
        return self.state.idle_assets

    def bind_market(self, market: LendingMarket) -> None:
        """Authorize the one market that may move assets without touching shares"""
        if self.market is not None:
            raise errors.UnauthorizedCaller(f"{self.address} is already bound to {self.market.address}")
        self.market = market
        logging.info("%s bound to %s", self.address, market.address)

    def _check_market(self, caller: Address) -> LendingMarket:
        if self.market is None or caller != self.market.address:
            raise errors.UnauthorizedCaller(f"{caller=} is not the market bound to {self.address}")
        return self.market

    ### Views ###
    def lent_assets(self) -> FixedPoint:
        """Principal lent out through the bound market plus interest accrued on it"""
        if self.market is None:
            return FixedPoint(0)
        return self.market.borrowed_plus_interest()

    def total_assets(self) -> FixedPoint:
        r"""Assets physically held plus assets lent out plus interest accrued on them"""
        return self.state.idle_assets + self.lent_assets()

    def balance_of(self, account: Address) -> FixedPoint:
        """Shares held by account"""
        return self.state.share_balances.get(account, FixedPoint(0))

    def share_allowance(self, owner: Address, spender: Address) -> FixedPoint:
        """Shares spender may burn on behalf of owner"""
        return self.state.share_allowances.get((owner, spender), FixedPoint(0))

    def _checked_total_assets(self) -> FixedPoint:
        total_assets = self.total_assets()
        if self.state.total_shares > FixedPoint(0) and total_assets <= FixedPoint(0):
            raise errors.InvariantViolation(
                f"{self.address} has {self.state.total_shares} shares outstanding against zero assets"
            )
        return total_assets

    def convert_to_shares(self, assets: FixedPoint) -> FixedPoint:
        """Shares worth `assets`, rounded down"""
        if self.state.total_shares == FixedPoint(0):
            return assets
        return mul_div_down(assets, self.state.total_shares, self._checked_total_assets())

    def convert_to_assets(self, shares: FixedPoint) -> FixedPoint:
        """Assets that `shares` are worth, rounded down"""
        if self.state.total_shares == FixedPoint(0):
            return shares
        return mul_div_down(shares, self._checked_total_assets(), self.state.total_shares)

    def preview_deposit(self, assets: FixedPoint) -> FixedPoint:
        """Shares a deposit of `assets` would mint"""
        return self.convert_to_shares(assets)

    def preview_withdraw(self, assets: FixedPoint) -> FixedPoint:
        """Shares that must be burned to withdraw `assets`, rounded up"""
        if self.state.total_shares == FixedPoint(0):
            return assets
        return mul_div_up(assets, self.state.total_shares, self._checked_total_assets())

    def preview_redeem(self, shares: FixedPoint) -> FixedPoint:
        """Assets that redeeming `shares` would pay out"""
        return self.convert_to_assets(shares)

    def max_withdraw(self, owner: Address) -> FixedPoint:
        """Largest amount owner can withdraw right now, limited by idle liquidity"""
        claim = self.convert_to_assets(self.balance_of(owner))
        return claim if claim <= self.state.idle_assets else self.state.idle_assets

    def share_price(self) -> FixedPoint:
        """Assets per share; 1 while the vault is empty"""
        if self.state.total_shares == FixedPoint(0):
            return FixedPoint(1)
        return self._checked_total_assets() / self.state.total_shares

    ### Deposits ###
    def calc_deposit(self, caller: Address, amount: FixedPoint, receiver: Address) -> tuple[FixedPoint, VaultDeltas]:
        r"""Validate a deposit and return the shares it mints along with the vault deltas

        Arguments
        ---------
        caller : Address
            The account the assets are pulled from.
        amount : FixedPoint
            Assets to deposit.
        receiver : Address
            The account credited with the minted shares.
        """
        if amount <= FixedPoint(0):
            raise errors.ZeroAmount(f"deposit {amount=} must be > 0")
        shares = self.preview_deposit(amount)
        if shares <= FixedPoint(0):
            raise errors.ZeroShares(f"deposit of {amount} into {self.address} would mint zero shares")
        check_transfer_from(self.asset_token, self.address, caller, amount)
        vault_deltas = VaultDeltas(
            d_total_shares=shares,
            d_idle_assets=amount,
            d_share_balances={receiver: shares},
        )
        return shares, vault_deltas

    def deposit(self, caller: Address, amount: FixedPoint, receiver: Address | None = None) -> FixedPoint:
        r"""Pull `amount` of the underlying asset from caller and mint shares to receiver

        Returns
        -------
        FixedPoint
            The shares minted.
        """
        receiver = receiver or caller
        shares, vault_deltas = self.calc_deposit(caller, amount, receiver)
        with atomic(self, self.asset_token, name="deposit"):
            safe_transfer_from(self.asset_token, self.address, caller, self.address, amount)
            self.update_market(vault_deltas)
        logging.debug("%s deposited %s into %s for %s shares", caller, amount, self.address, shares)
        self.event_log.add(
            Event(
                timestamp=self.block_time.time,
                event_type=EventType.DEPOSIT,
                actor=caller,
                asset=self.asset,
                amount=amount,
                meta={"receiver": receiver, "shares": shares},
            )
        )
        return shares

    ### Withdrawals ###
    def _calc_burn(
        self, caller: Address, owner: Address, assets: FixedPoint, shares: FixedPoint, receiver: Address
    ) -> VaultDeltas:
        if shares > self.balance_of(owner):
            raise errors.InsufficientShares(
                f"{owner} holds {self.balance_of(owner)} shares worth "
                f"{self.convert_to_assets(self.balance_of(owner))}; withdrawing {assets} needs {shares}"
            )
        if assets > self.state.idle_assets:
            raise errors.InsufficientLiquidity(
                f"{self.address} holds {self.state.idle_assets} idle assets; {assets} requested"
            )
        d_share_allowances = {}
        if caller != owner:
            allowance = self.share_allowance(owner, caller)
            if allowance < shares:
                raise errors.InsufficientAllowance(f"{caller} may burn {allowance} of {owner}'s shares, needs {shares}")
            d_share_allowances = {(owner, caller): -shares}
        return VaultDeltas(
            d_total_shares=-shares,
            d_idle_assets=-assets,
            d_share_balances={owner: -shares},
            d_share_allowances=d_share_allowances,
        )

    def calc_withdraw(
        self, caller: Address, amount: FixedPoint, receiver: Address, owner: Address
    ) -> tuple[FixedPoint, VaultDeltas]:
        """Validate a withdrawal of `amount` assets and return the shares it burns along with the vault deltas"""
        if amount <= FixedPoint(0):
            raise errors.ZeroAmount(f"withdraw {amount=} must be > 0")
        shares = self.preview_withdraw(amount)
        # burning the last share must pay out everything, else the next depositor inherits the remainder
        if shares == self.state.total_shares and amount < self.total_assets():
            raise errors.StrandedAssets(
                f"withdrawing {amount} burns all {shares} shares of {self.address} "
                f"but leaves {self.total_assets() - amount} assets behind"
            )
        return shares, self._calc_burn(caller, owner, amount, shares, receiver)

    def withdraw(
        self, caller: Address, amount: FixedPoint, receiver: Address | None = None, owner: Address | None = None
    ) -> FixedPoint:
        r"""Burn owner's shares and send exactly `amount` of the underlying asset to receiver

        Returns
        -------
        FixedPoint
            The shares burned, rounded up.
        """
        receiver = receiver or caller
        owner = owner or caller
        shares, vault_deltas = self.calc_withdraw(caller, amount, receiver, owner)
        self._settle_burn(caller, owner, receiver, amount, shares, vault_deltas)
        return shares

    def calc_redeem(
        self, caller: Address, shares: FixedPoint, receiver: Address, owner: Address
    ) -> tuple[FixedPoint, VaultDeltas]:
        """Validate a redemption of `shares` and return the assets it pays along with the vault deltas"""
        if shares <= FixedPoint(0):
            raise errors.ZeroAmount(f"redeem {shares=} must be > 0")
        assets = self.preview_redeem(shares)
        if assets <= FixedPoint(0):
            raise errors.ZeroAmount(f"redeeming {shares} shares pays out zero assets")
        return assets, self._calc_burn(caller, owner, assets, shares, receiver)

    def redeem(
        self, caller: Address, shares: FixedPoint, receiver: Address | None = None, owner: Address | None = None
    ) -> FixedPoint:
        r"""Burn exactly `shares` of owner's shares and send the assets they are worth to receiver

        Returns
        -------
        FixedPoint
            The assets paid out, rounded down.
        """
        receiver = receiver or caller
        owner = owner or caller
        assets, vault_deltas = self.calc_redeem(caller, shares, receiver, owner)
        self._settle_burn(caller, owner, receiver, assets, shares, vault_deltas)
        return assets

    def _settle_burn(
        self,
        caller: Address,
        owner: Address,
        receiver: Address,
        assets: FixedPoint,
        shares: FixedPoint,
        vault_deltas: VaultDeltas,
    ) -> None:
        # pylint: disable=too-many-arguments
        with atomic(self, self.asset_token, name="withdraw"):
            self.update_market(vault_deltas)
            safe_transfer(self.asset_token, self.address, receiver, assets)
        logging.debug("%s withdrew %s from %s to %s, burning %s shares", owner, assets, self.address, receiver, shares)
        self.event_log.add(
            Event(
                timestamp=self.block_time.time,
                event_type=EventType.WITHDRAW,
                actor=caller,
                asset=self.asset,
                amount=assets,
                meta={"owner": owner, "receiver": receiver, "shares": shares},
            )
        )

    def approve_shares(self, owner: Address, spender: Address, shares: FixedPoint) -> None:
        """Allow spender to withdraw or redeem up to `shares` of owner's shares"""
        if shares < FixedPoint(0):
            raise errors.ValidationError(f"share allowance {shares=} must be >= 0")
        self.state.share_allowances[(owner, spender)] = shares

    ### Market-only custody moves ###
    def admin_borrow_function(self, caller: Address, amount: FixedPoint) -> None:
        r"""Send idle assets to the bound market without burning shares

        The loaned value keeps counting toward `total_assets()` through the market's
        borrowed-plus-interest total, so the share price is unchanged.
        """
        market = self._check_market(caller)
        if amount <= FixedPoint(0):
            raise errors.ZeroAmount(f"admin borrow {amount=} must be > 0")
        if amount > self.state.idle_assets:
            raise errors.InsufficientLiquidity(
                f"{self.address} holds {self.state.idle_assets} idle assets; {amount} requested"
            )
        with atomic(self, self.asset_token, name="admin_borrow"):
            self.update_market(VaultDeltas(d_idle_assets=-amount))
            safe_transfer(self.asset_token, self.address, market.address, amount)
        logging.debug("%s lent %s to %s", self.address, amount, market.address)

    def admin_repay_function(self, caller: Address, amount: FixedPoint) -> None:
        """Take repaid assets back from the bound market without minting shares"""
        market = self._check_market(caller)
        if amount <= FixedPoint(0):
            raise errors.ZeroAmount(f"admin repay {amount=} must be > 0")
        with atomic(self, self.asset_token, name="admin_repay"):
            safe_transfer(self.asset_token, market.address, self.address, amount)
            self.update_market(VaultDeltas(d_idle_assets=amount))
        logging.debug("%s received %s back from %s", self.address, amount, market.address)

    ### Invariants ###
    def check_invariants(self) -> None:
        r"""Raise InvariantViolation if the share or custody bookkeeping has diverged

        Checks that share balances sum to total shares, that the vault physically holds at
        least the idle assets it accounts for, that outstanding shares are backed by assets,
        and that no assets remain once every share is burned.
        """
        self.state.check_valid_state()
        share_sum = sum(self.state.share_balances.values(), FixedPoint(0))
        if share_sum != self.state.total_shares:
            raise errors.InvariantViolation(f"share balances sum to {share_sum}, total_shares={self.total_shares}")
        held = self.asset_token.balance_of(self.address)
        if held < self.state.idle_assets:
            raise errors.InvariantViolation(
                f"{self.address} accounts for {self.state.idle_assets} idle assets but holds {held}"
            )
        total_assets = self.total_assets()
        if self.state.total_shares == FixedPoint(0) and total_assets > FixedPoint(0):
            raise errors.InvariantViolation(f"{self.address} holds {total_assets} assets with no shares outstanding")
        if self.state.total_shares > FixedPoint(0) and total_assets <= FixedPoint(0):
            raise errors.InvariantViolation(f"{self.address} has shares outstanding against zero assets")
