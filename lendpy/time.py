"""Helper functions for tracking block time"""
from __future__ import annotations

from dataclasses import dataclass

from fixedpointmath import FixedPoint


@dataclass
class BlockTime:
    r"""State class for tracking block timestamps

    A single BlockTime is shared by the price source, the vault and the market,
    so every component agrees on "now". Time is stored in whole seconds and only moves forward.
    """

    _time: FixedPoint = FixedPoint(0)
    _block_number: FixedPoint = FixedPoint(0)

    def tick(self, delta_seconds: FixedPoint) -> None:
        """Advance the clock by delta_seconds and mine one block"""
        if not isinstance(delta_seconds, FixedPoint):
            raise TypeError(f"{delta_seconds=} must be a FixedPoint variable")
        if delta_seconds < FixedPoint(0):
            raise ValueError(f"{delta_seconds=} must be >= 0; time cannot move backwards")
        self._time += delta_seconds.floor()
        self._block_number += FixedPoint(1)

    @property
    def time(self) -> FixedPoint:
        """Seconds since the clock started"""
        return self._time

    @time.setter
    def time(self, value):
        raise AttributeError("time is a read-only attribute; use `tick()` to advance it")

    @property
    def block_number(self) -> FixedPoint:
        """Number of ticks since the clock started"""
        return self._block_number

    @block_number.setter
    def block_number(self, value):
        raise AttributeError("block_number is a read-only attribute; use `tick()` to mine a block")


def elapsed_seconds(start_time: FixedPoint, end_time: FixedPoint) -> FixedPoint:
    r"""Whole seconds between two timestamps, clipped at zero

    Arguments
    ---------
    start_time : FixedPoint
        The earlier timestamp, in seconds.
    end_time : FixedPoint
        The later timestamp, in seconds.

    Returns
    -------
    FixedPoint
        end_time - start_time, or 0 if end_time precedes start_time.
    """
    if end_time <= start_time:
        return FixedPoint(0)
    return (end_time - start_time).floor()
