"""Utilities to help with testing"""
from __future__ import annotations  # types are strings by default in 3.11

from fixedpointmath import FixedPoint

from lendpy.config import Config
from lendpy.markets.lending import LendingMarket
from lendpy.oracle import PriceFeed
from lendpy.tokens import Token
from lendpy.utils import market_utils

OWNER = "owner"
LENDER = "lender"
SECOND_LENDER = "second_lender"
BORROWER = "borrower"
SECOND_BORROWER = "second_borrower"

BORROW_ASSET = "USDC"
COLLATERAL_ASSET = "WETH"
FEED_DECIMALS = 8
ONE_DOLLAR = 10**FEED_DECIMALS  # feed answer for a price of 1.0


def get_market(
    config: Config | None = None,
    ltv: int = 75,
    price: int = ONE_DOLLAR,
    collateral_token: Token | None = None,
    borrow_token: Token | None = None,
) -> LendingMarket:
    r"""Build a market that lends USDC against WETH, with a WETH price feed reporting at time zero

    Arguments
    ---------
    config : Config, optional
        The engine config; defaults are used if omitted.
    ltv : int
        Loan-to-value ratio of the collateral, as a whole percentage.
    price : int
        Initial feed answer, scaled by FEED_DECIMALS.
    collateral_token : Token, optional
        Collateral token to register; a plain WETH token if omitted.
    borrow_token : Token, optional
        Vault asset; a plain USDC token if omitted.
    """
    config = config or Config()
    borrow_token = borrow_token or Token(BORROW_ASSET)
    collateral_token = collateral_token or Token(COLLATERAL_ASSET)
    market = market_utils.get_lending_market(config, borrow_token, OWNER)
    market.add_collateral_token(OWNER, collateral_token, ltv)
    feed = PriceFeed(f"{collateral_token.symbol} / {borrow_token.symbol}", decimals=FEED_DECIMALS)
    feed.update_answer(price, market.block_time.time)
    market.price_source.add_feed(OWNER, collateral_token.symbol, feed)
    return market


def fund(token: Token, account: str, spender: str, amount: FixedPoint) -> None:
    """Mint amount to account and approve spender to move all of it"""
    token.mint(account, amount)
    token.approve(account, spender, token.allowance(account, spender) + amount)


def deposit(market: LendingMarket, lender: str, amount: FixedPoint) -> FixedPoint:
    """Fund lender and deposit amount into the market's vault"""
    fund(market.asset_token, lender, market.vault.address, amount)
    return market.vault.deposit(lender, amount)


def post_collateral(
    market: LendingMarket, borrower: str, amount: FixedPoint, asset: str = COLLATERAL_ASSET
) -> None:
    """Fund borrower with collateral and deposit it into the market"""
    fund(market.registry.collateral_token(asset), borrower, market.address, amount)
    market.deposit_collateral(borrower, asset, amount)


def report_price(market: LendingMarket, price: int, asset: str = COLLATERAL_ASSET) -> None:
    """Report a fresh answer on the asset's feed at the current block time"""
    market.price_source.get_feed(asset).update_answer(price, market.block_time.time)


def get_borrowing_market(
    deposit_amount: FixedPoint = FixedPoint(1000),
    collateral_amount: FixedPoint = FixedPoint(1000),
    borrow_amount: FixedPoint = FixedPoint(500),
    config: Config | None = None,
) -> LendingMarket:
    """A market where LENDER has deposited and BORROWER has posted collateral and borrowed"""
    market = get_market(config=config)
    deposit(market, LENDER, deposit_amount)
    post_collateral(market, BORROWER, collateral_amount)
    market.borrow(BORROWER, borrow_amount)
    return market
