"""Class that holds the state for a vault"""
from __future__ import annotations

from dataclasses import dataclass, field

from fixedpointmath import FixedPoint

import lendpy.types as types
from lendpy.markets.base import BaseState
from lendpy.markets.vault.vault_deltas import VaultDeltas
from lendpy.types import Address


@types.freezable(frozen=False, no_new_attribs=False)
@dataclass
class VaultState(BaseState):
    r"""Share accounting and custody of one vault

    Attributes
    ----------
    total_shares: FixedPoint
        Sum of every share balance.
    share_balances: dict[Address, FixedPoint]
        Shares held by each account.
    share_allowances: dict[tuple[Address, Address], FixedPoint]
        Shares a spender may burn on behalf of an owner, keyed by (owner, spender).
    idle_assets: FixedPoint
        Assets physically held by the vault, as the vault accounts for them.
        Assets lent out through the market are not included here.
    """

    total_shares: FixedPoint = FixedPoint(0)
    share_balances: dict[Address, FixedPoint] = field(default_factory=dict)
    share_allowances: dict[tuple[Address, Address], FixedPoint] = field(default_factory=dict)
    idle_assets: FixedPoint = FixedPoint(0)

    def apply_delta(self, delta: VaultDeltas) -> None:
        r"""Applies a delta to the vault state."""
        self.total_shares += delta.d_total_shares
        self.idle_assets += delta.d_idle_assets
        for account, d_shares in delta.d_share_balances.items():
            balance = self.share_balances.get(account, FixedPoint(0)) + d_shares
            if balance == FixedPoint(0):
                self.share_balances.pop(account, None)
            else:
                self.share_balances[account] = balance
        for key, d_allowance in delta.d_share_allowances.items():
            self.share_allowances[key] = self.share_allowances.get(key, FixedPoint(0)) + d_allowance

    def copy(self) -> VaultState:
        """Returns a new copy of self"""
        return VaultState(
            total_shares=self.total_shares,
            share_balances=dict(self.share_balances),
            share_allowances=dict(self.share_allowances),
            idle_assets=self.idle_assets,
        )
