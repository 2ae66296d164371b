"""Simple-interest debt position with a rate snapshot"""
from __future__ import annotations

from dataclasses import dataclass

from fixedpointmath import FixedPoint

import lendpy
import lendpy.time as time
import lendpy.types as types


@types.freezable(frozen=True, no_new_attribs=True)
@dataclass
class DebtPosition:
    r"""Debt of one borrower since its last accrual checkpoint

    A position with zero principal is the no-debt sentinel; its rate and
    timestamp carry no meaning.

    Attributes
    ----------
    principal: FixedPoint
        Amount borrowed and not yet repaid, including any interest capitalized at a checkpoint.
    rate: FixedPoint
        Annual borrow rate captured at the checkpoint, e.g. 0.05 for 5%.
    timestamp: FixedPoint
        Block time of the checkpoint, in seconds.
    """

    principal: FixedPoint = FixedPoint(0)
    rate: FixedPoint = FixedPoint(0)
    timestamp: FixedPoint = FixedPoint(0)

    @property
    def is_open(self) -> bool:
        """True while any principal is outstanding"""
        return self.principal > FixedPoint(0)

    def accrued_interest(self, current_time: FixedPoint) -> FixedPoint:
        r"""Simple interest since the checkpoint

        .. math::
            interest = principal \cdot rate \cdot \frac{elapsed}{seconds\_per\_year}
        """
        if not self.is_open:
            return FixedPoint(0)
        elapsed = time.elapsed_seconds(self.timestamp, current_time)
        return self.principal * self.rate * elapsed / lendpy.SECONDS_IN_YEAR

    def debt(self, current_time: FixedPoint) -> FixedPoint:
        """Principal plus accrued interest"""
        return self.principal + self.accrued_interest(current_time)
