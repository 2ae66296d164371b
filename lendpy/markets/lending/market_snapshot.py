"""Point-in-time view of a lending market and its vault"""
from __future__ import annotations

from dataclasses import dataclass

from fixedpointmath import FixedPoint

import lendpy.types as types
from lendpy.types import Address


@types.freezable(frozen=True, no_new_attribs=True)
@dataclass
class MarketSnapshot:
    r"""Aggregate figures of a market, as recorded by `LendingMarket.snapshot()`

    Attributes
    ----------
    timestamp: FixedPoint
        Block time, in seconds.
    block_number: FixedPoint
        Block number at the time of the snapshot.
    asset: Address
        The borrowable asset.
    total_assets: FixedPoint
        Vault assets, idle plus lent plus accrued interest.
    idle_assets: FixedPoint
        Assets physically held by the vault.
    total_shares: FixedPoint
        Vault shares outstanding.
    share_price: FixedPoint
        Assets per vault share.
    borrowed_plus_interest: FixedPoint
        Outstanding principal plus accrued interest over all borrowers.
    total_principal: FixedPoint
        Outstanding principal over all borrowers.
    utilization: FixedPoint
        Fraction of total assets lent out.
    borrow_rate: FixedPoint
        Annual rate a new borrow would snapshot now.
    supply_rate: FixedPoint
        Annual rate earned by vault depositors now.
    num_borrowers: int
        Number of open debt positions.
    """

    # pylint: disable=too-many-instance-attributes

    timestamp: FixedPoint
    block_number: FixedPoint
    asset: Address
    total_assets: FixedPoint
    idle_assets: FixedPoint
    total_shares: FixedPoint
    share_price: FixedPoint
    borrowed_plus_interest: FixedPoint
    total_principal: FixedPoint
    utilization: FixedPoint
    borrow_rate: FixedPoint
    supply_rate: FixedPoint
    num_borrowers: int
