"""Collateralized lending market bound to a vault"""
from .debt_position import DebtPosition
from .lending_market import LendingMarket
from .lending_market_deltas import LendingMarketDeltas
from .lending_market_state import LendingMarketState
from .market_snapshot import MarketSnapshot
