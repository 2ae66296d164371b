"""Testing the Vault share accounting"""
from __future__ import annotations  # types are strings by default in 3.11

import itertools
import unittest

import numpy as np
from fixedpointmath import FixedPoint

import lendpy
import lendpy.errors as errors
import utils_for_tests as test_utils  # utilities for testing
from lendpy.events import EventType
from lendpy.markets.vault import Vault
from lendpy.registry import AssetRegistry
from lendpy.time import BlockTime
from lendpy.tokens import Token
from utils_for_tests import BORROWER, LENDER, SECOND_LENDER


class TestVault(unittest.TestCase):
    """Deposits, withdrawals and redemptions against a vault"""

    def test_bootstrap_deposit(self):
        """first deposit mints 1:1, later deposits mint amount * total_shares / total_assets"""
        market = test_utils.get_market()
        vault = market.vault
        shares = test_utils.deposit(market, LENDER, FixedPoint(1000))
        self.assertEqual(shares, FixedPoint(1000))
        self.assertEqual(vault.total_assets(), FixedPoint(1000))
        shares = test_utils.deposit(market, SECOND_LENDER, FixedPoint(500))
        self.assertEqual(shares, FixedPoint(500))
        self.assertEqual(vault.total_shares, FixedPoint(1500))
        self.assertEqual(vault.balance_of(SECOND_LENDER), FixedPoint(500))
        self.assertEqual(market.asset_token.balance_of(vault.address), FixedPoint(1500))
        self.assertEqual(len(vault.event_log.filter(EventType.DEPOSIT)), 2)
        vault.check_invariants()

    def test_deposit_to_receiver(self):
        """shares are credited to the receiver while assets come from the caller"""
        market = test_utils.get_market()
        test_utils.fund(market.asset_token, LENDER, market.vault.address, FixedPoint(100))
        market.vault.deposit(LENDER, FixedPoint(100), receiver=SECOND_LENDER)
        self.assertEqual(market.vault.balance_of(LENDER), FixedPoint(0))
        self.assertEqual(market.vault.balance_of(SECOND_LENDER), FixedPoint(100))
        self.assertEqual(market.asset_token.balance_of(LENDER), FixedPoint(0))

    def test_deposit_zero(self):
        """zero deposits are rejected"""
        market = test_utils.get_market()
        with self.assertRaises(errors.ZeroAmount):
            market.vault.deposit(LENDER, FixedPoint(0))

    def test_deposit_without_funds(self):
        """deposits fail without balance or allowance, and leave no trace"""
        market = test_utils.get_market()
        vault = market.vault
        with self.assertRaises(errors.InsufficientBalance):
            vault.deposit(LENDER, FixedPoint(10))
        market.asset_token.mint(LENDER, FixedPoint(10))
        with self.assertRaises(errors.InsufficientAllowance):
            vault.deposit(LENDER, FixedPoint(10))
        self.assertEqual(vault.total_shares, FixedPoint(0))
        self.assertEqual(vault.idle_assets, FixedPoint(0))
        self.assertEqual(market.asset_token.balance_of(LENDER), FixedPoint(10))
        self.assertEqual(len(vault.event_log.filter(EventType.DEPOSIT)), 0)

    def test_deposit_minting_zero_shares(self):
        """a deposit worth less than one unit of shares is rejected"""
        market = test_utils.get_borrowing_market()
        market.block_time.tick(lendpy.SECONDS_IN_YEAR)
        self.assertGreater(market.vault.share_price(), FixedPoint(1))
        test_utils.fund(market.asset_token, SECOND_LENDER, market.vault.address, lendpy.WEI)
        with self.assertRaises(errors.ZeroShares):
            market.vault.deposit(SECOND_LENDER, lendpy.WEI)

    def test_share_conservation(self):
        """share balances always sum to total shares over a sequence of deposits and withdrawals"""
        market = test_utils.get_market()
        vault = market.vault
        accounts = [LENDER, SECOND_LENDER, "third_lender"]
        for account in accounts:
            test_utils.fund(market.asset_token, account, vault.address, FixedPoint(10_000))
        amounts = [FixedPoint(int(amount)) for amount in np.arange(100, 1000, 150)]
        for step, (account, amount) in enumerate(itertools.product(accounts, amounts)):
            if step % 3 == 2 and vault.max_withdraw(account) >= amount:
                vault.withdraw(account, amount)
            else:
                vault.deposit(account, amount)
            share_sum = sum((vault.balance_of(holder) for holder in accounts), FixedPoint(0))
            self.assertEqual(share_sum, vault.total_shares)
            vault.check_invariants()

    def test_withdraw_everything(self):
        """withdrawing every share empties the vault"""
        market = test_utils.get_market()
        vault = market.vault
        test_utils.deposit(market, LENDER, FixedPoint(1000))
        shares = vault.withdraw(LENDER, FixedPoint(1000))
        self.assertEqual(shares, FixedPoint(1000))
        self.assertEqual(vault.total_shares, FixedPoint(0))
        self.assertEqual(vault.total_assets(), FixedPoint(0))
        self.assertEqual(market.asset_token.balance_of(LENDER), FixedPoint(1000))
        self.assertEqual(vault.event_log.filter(EventType.WITHDRAW)[0].meta["shares"], FixedPoint(1000))
        vault.check_invariants()

    def test_last_withdrawal_cannot_strand_assets(self):
        """burning the last share must pay out every asset, so an empty vault never holds value"""
        market = test_utils.get_borrowing_market()
        vault = market.vault
        market.block_time.tick(FixedPoint(30 * 24 * 60 * 60))
        debt = market.debt_of(BORROWER)
        test_utils.fund(market.asset_token, BORROWER, market.address, debt)
        market.repay(BORROWER, debt)
        total_assets = vault.total_assets()
        self.assertGreater(vault.share_price(), FixedPoint(1))
        # one wei short of everything still rounds up to every share
        self.assertEqual(vault.preview_withdraw(total_assets - lendpy.WEI), vault.total_shares)
        with self.assertRaises(errors.StrandedAssets):
            vault.withdraw(LENDER, total_assets - lendpy.WEI)
        self.assertEqual(vault.total_assets(), total_assets)
        assets = vault.redeem(LENDER, vault.balance_of(LENDER))
        self.assertEqual(assets, total_assets)
        self.assertEqual(vault.total_shares, FixedPoint(0))
        self.assertEqual(vault.total_assets(), FixedPoint(0))
        market.check_invariants()

    def test_invariants_detect_corrupted_state(self):
        """bookkeeping that no entry point can produce is reported as an invariant violation"""
        market = test_utils.get_market()
        vault = market.vault
        test_utils.deposit(market, LENDER, FixedPoint(1000))
        vault.check_invariants()
        # share balances no longer sum to total shares
        snapshot = vault.state.copy()
        vault.state.share_balances[LENDER] += lendpy.WEI
        with self.assertRaises(errors.InvariantViolation):
            vault.check_invariants()
        # idle assets above what the vault actually holds
        vault.state = snapshot.copy()
        vault.state.idle_assets += lendpy.WEI
        with self.assertRaises(errors.InvariantViolation):
            vault.check_invariants()
        # assets left behind once every share is gone
        vault.state = snapshot.copy()
        vault.state.share_balances = {}
        vault.state.total_shares = FixedPoint(0)
        with self.assertRaises(errors.InvariantViolation):
            vault.check_invariants()
        vault.state = snapshot
        vault.check_invariants()

    def test_withdraw_more_than_owned(self):
        """withdrawing more than the owner's shares are worth is rejected"""
        market = test_utils.get_market()
        test_utils.deposit(market, LENDER, FixedPoint(1000))
        test_utils.deposit(market, SECOND_LENDER, FixedPoint(1000))
        with self.assertRaises(errors.InsufficientShares):
            market.vault.withdraw(LENDER, FixedPoint(1001))
        self.assertEqual(market.vault.balance_of(LENDER), FixedPoint(1000))

    def test_withdraw_lent_out_assets(self):
        """withdrawals are limited by idle liquidity, not by the owner's claim"""
        market = test_utils.get_borrowing_market(borrow_amount=FixedPoint(700))
        vault = market.vault
        self.assertEqual(vault.max_withdraw(LENDER), FixedPoint(300))
        with self.assertRaises(errors.InsufficientLiquidity):
            vault.withdraw(LENDER, FixedPoint(400))
        vault.withdraw(LENDER, FixedPoint(300))
        self.assertEqual(vault.idle_assets, FixedPoint(0))
        market.check_invariants()

    def test_withdraw_with_share_allowance(self):
        """a third party can withdraw on the owner's behalf only up to its share allowance"""
        market = test_utils.get_market()
        vault = market.vault
        test_utils.deposit(market, LENDER, FixedPoint(1000))
        with self.assertRaises(errors.InsufficientAllowance):
            vault.withdraw(SECOND_LENDER, FixedPoint(100), receiver=SECOND_LENDER, owner=LENDER)
        vault.approve_shares(LENDER, SECOND_LENDER, FixedPoint(150))
        vault.withdraw(SECOND_LENDER, FixedPoint(100), receiver=SECOND_LENDER, owner=LENDER)
        self.assertEqual(vault.share_allowance(LENDER, SECOND_LENDER), FixedPoint(50))
        self.assertEqual(vault.balance_of(LENDER), FixedPoint(900))
        self.assertEqual(market.asset_token.balance_of(SECOND_LENDER), FixedPoint(100))
        with self.assertRaises(errors.InsufficientAllowance):
            vault.redeem(SECOND_LENDER, FixedPoint(51), receiver=SECOND_LENDER, owner=LENDER)
        with self.assertRaises(errors.ValidationError):
            vault.approve_shares(LENDER, SECOND_LENDER, FixedPoint(-1))

    def test_redeem(self):
        """redeeming burns exactly the given shares"""
        market = test_utils.get_borrowing_market()
        market.block_time.tick(lendpy.SECONDS_IN_YEAR)
        vault = market.vault
        # 500 lent at 12% for one year
        self.assertEqual(vault.total_assets(), FixedPoint(1060))
        assets = vault.redeem(LENDER, FixedPoint(100))
        self.assertEqual(assets, FixedPoint(106))
        self.assertEqual(vault.balance_of(LENDER), FixedPoint(900))
        with self.assertRaises(errors.ZeroAmount):
            vault.redeem(LENDER, FixedPoint(0))
        market.check_invariants()

    def test_no_dilution_round_trip(self):
        """depositing then redeeming the minted shares returns the deposit, less rounding"""
        market = test_utils.get_borrowing_market()
        vault = market.vault
        for deposit_amount in [FixedPoint("0.001"), FixedPoint("1.5"), FixedPoint(100), FixedPoint("333.333")]:
            market.block_time.tick(FixedPoint(7 * 24 * 60 * 60))
            share_price = vault.share_price()
            shares = test_utils.deposit(market, SECOND_LENDER, deposit_amount)
            assets = vault.redeem(SECOND_LENDER, shares)
            self.assertLessEqual(assets, deposit_amount)
            self.assertLessEqual(deposit_amount - assets, FixedPoint(scaled_value=3))
            self.assertGreaterEqual(vault.share_price(), share_price)
            market.check_invariants()

    def test_withdraw_rounds_shares_up(self):
        """withdrawals burn shares rounded up, so the share price never drops"""
        market = test_utils.get_borrowing_market()
        market.block_time.tick(FixedPoint(12345))
        vault = market.vault
        share_price = vault.share_price()
        amount = FixedPoint("33.333333333333333333")
        expected_shares = vault.preview_withdraw(amount)
        self.assertGreaterEqual(expected_shares, vault.convert_to_shares(amount))
        shares = vault.withdraw(LENDER, amount)
        self.assertEqual(shares, expected_shares)
        self.assertGreaterEqual(vault.share_price(), share_price)

    def test_total_assets_includes_lent_assets(self):
        """total assets are idle assets plus the market's principal and accrued interest"""
        market = test_utils.get_borrowing_market()
        vault = market.vault
        held = market.asset_token.balance_of(vault.address)
        self.assertEqual(held, FixedPoint(500))
        self.assertEqual(vault.total_assets(), held + market.borrowed_plus_interest())
        self.assertEqual(vault.total_assets(), FixedPoint(1000))
        self.assertEqual(vault.share_price(), FixedPoint(1))
        for _ in range(4):
            market.block_time.tick(lendpy.SECONDS_IN_YEAR / FixedPoint(4))
            self.assertEqual(vault.total_assets(), held + market.borrowed_plus_interest())
        self.assertEqual(vault.total_assets(), FixedPoint(1060))

    def test_admin_functions_are_restricted(self):
        """only the bound market can move assets without touching shares"""
        market = test_utils.get_borrowing_market()
        vault = market.vault
        with self.assertRaises(errors.UnauthorizedCaller):
            vault.admin_borrow_function(BORROWER, FixedPoint(1))
        with self.assertRaises(errors.UnauthorizedCaller):
            vault.admin_repay_function(BORROWER, FixedPoint(1))
        with self.assertRaises(errors.UnauthorizedCaller):
            vault.bind_market(market)
        with self.assertRaises(errors.InsufficientLiquidity):
            vault.admin_borrow_function(market.address, FixedPoint(501))

    def test_unbound_vault(self):
        """a vault without a market counts no lent assets and rejects admin calls"""
        vault = Vault(Token("DAI"), AssetRegistry(), BlockTime())
        self.assertEqual(vault.address, "vault:DAI")
        self.assertEqual(vault.lent_assets(), FixedPoint(0))
        self.assertEqual(vault.share_price(), FixedPoint(1))
        with self.assertRaises(errors.UnauthorizedCaller):
            vault.admin_borrow_function("market:DAI", FixedPoint(1))

    def test_one_vault_per_asset(self):
        """a registry holds one vault per asset"""
        registry = AssetRegistry()
        token = Token("DAI")
        vault = Vault(token, registry, BlockTime())
        self.assertIs(registry.vault_for("DAI"), vault)
        with self.assertRaises(errors.AssetAlreadyRegistered):
            Vault(token, registry, BlockTime())


if __name__ == "__main__":
    unittest.main()
