"""Class for storing the delta values for VaultState"""
from __future__ import annotations

from dataclasses import dataclass, field

from fixedpointmath import FixedPoint

import lendpy.types as types
from lendpy.markets.base import BaseDeltas
from lendpy.types import Address


@types.freezable(frozen=True, no_new_attribs=True)
@dataclass
class VaultDeltas(BaseDeltas):
    r"""Specifies changes to values in the vault"""

    d_total_shares: FixedPoint = FixedPoint(0)
    d_idle_assets: FixedPoint = FixedPoint(0)  # assets physically moved in or out of custody
    d_share_balances: dict[Address, FixedPoint] = field(default_factory=dict)
    # (owner, spender) -> change in share allowance
    d_share_allowances: dict[tuple[Address, Address], FixedPoint] = field(default_factory=dict)
