"""Class that holds the state for a lending market"""
from __future__ import annotations

from dataclasses import dataclass, field

from fixedpointmath import FixedPoint

import lendpy.types as types
from lendpy.markets.base import BaseState
from lendpy.markets.lending.debt_position import DebtPosition
from lendpy.markets.lending.lending_market_deltas import LendingMarketDeltas
from lendpy.types import Address


@types.freezable(frozen=False, no_new_attribs=False)
@dataclass
class LendingMarketState(BaseState):
    r"""Collateral and debt bookkeeping of a lending market

    Attributes
    ----------
    collateral: dict[Address, dict[Address, FixedPoint]]
        Collateral held for each user, keyed by user then by asset.
    total_collateral: dict[Address, FixedPoint]
        Collateral held for all users, keyed by asset.
    debts: dict[Address, DebtPosition]
        Open debt position of each borrower.
    active_borrowers: list[Address]
        Borrowers with an open position, in no particular order.
    borrower_index: dict[Address, int]
        Position of each borrower in active_borrowers.
    """

    collateral: dict[Address, dict[Address, FixedPoint]] = field(default_factory=dict)
    total_collateral: dict[Address, FixedPoint] = field(default_factory=dict)
    debts: dict[Address, DebtPosition] = field(default_factory=dict)
    active_borrowers: list[Address] = field(default_factory=list)
    borrower_index: dict[Address, int] = field(default_factory=dict)

    def apply_delta(self, delta: LendingMarketDeltas) -> None:
        r"""Applies a delta to the market state."""
        if delta.d_collateral is not None:
            asset = delta.d_collateral.unit
            user_collateral = self.collateral.setdefault(delta.user, {})
            balance = user_collateral.get(asset, FixedPoint(0)) + delta.d_collateral.amount
            if balance == FixedPoint(0):
                user_collateral.pop(asset, None)
            else:
                user_collateral[asset] = balance
            if not user_collateral:
                del self.collateral[delta.user]
            self.total_collateral[asset] = self.total_collateral.get(asset, FixedPoint(0)) + delta.d_collateral.amount
        if delta.debt_position is not None:
            if delta.debt_position.is_open:
                self.debts[delta.user] = delta.debt_position
                self._add_borrower(delta.user)
            else:
                self.debts.pop(delta.user, None)
                self._remove_borrower(delta.user)

    def _add_borrower(self, user: Address) -> None:
        if user not in self.borrower_index:
            self.borrower_index[user] = len(self.active_borrowers)
            self.active_borrowers.append(user)

    def _remove_borrower(self, user: Address) -> None:
        """Swap the borrower with the last entry and pop"""
        if user not in self.borrower_index:
            return
        index = self.borrower_index.pop(user)
        last_user = self.active_borrowers[-1]
        self.active_borrowers[index] = last_user
        if last_user != user:
            self.borrower_index[last_user] = index
        self.active_borrowers.pop()

    def copy(self) -> LendingMarketState:
        """Returns a new copy of self"""
        return LendingMarketState(
            collateral={user: dict(balances) for user, balances in self.collateral.items()},
            total_collateral=dict(self.total_collateral),
            debts=dict(self.debts),
            active_borrowers=list(self.active_borrowers),
            borrower_index=dict(self.borrower_index),
        )
