"""Class for storing the delta values for LendingMarketState"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import lendpy.types as types
from lendpy.markets.base import BaseDeltas
from lendpy.markets.lending.debt_position import DebtPosition
from lendpy.types import Address, Quantity


@types.freezable(frozen=True, no_new_attribs=True)
@dataclass
class LendingMarketDeltas(BaseDeltas):
    r"""Specifies changes to one user's collateral and debt"""

    user: Address
    d_collateral: Optional[Quantity] = None
    # replaces the user's position; a zero-principal position closes it
    debt_position: Optional[DebtPosition] = None
