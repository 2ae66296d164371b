"""Utilization-driven interest rate model"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from fixedpointmath import FixedPoint

import lendpy.errors as errors
import lendpy.types as types
from lendpy.types import Address


@types.freezable(frozen=True, no_new_attribs=True)
@dataclass
class RateCurve:
    r"""Parameters of the borrow rate curve, all as annual decimals

    Attributes
    ----------
    base_rate: FixedPoint
        Borrow rate at zero utilization.
    slope: FixedPoint
        Additional borrow rate at 100% utilization.
    price_volatility_factor: FixedPoint
        Weight on the volatility of collateral prices.
    supply_demand_factor: FixedPoint
        Weight on the borrow-side supply/demand skew.
    """

    base_rate: FixedPoint = FixedPoint("0.02")
    slope: FixedPoint = FixedPoint("0.20")
    price_volatility_factor: FixedPoint = FixedPoint(0)
    supply_demand_factor: FixedPoint = FixedPoint(0)


@types.freezable(frozen=True, no_new_attribs=True)
@dataclass
class UsageStats:
    r"""Usage statistics of one borrowable asset, as handed to the rate model

    Attributes
    ----------
    asset: Address
        The borrowable asset the statistics describe.
    total_borrowed: FixedPoint
        Outstanding principal plus accrued interest.
    total_supply: FixedPoint
        Total assets of the vault, including lent-out value.
    price_volatility: FixedPoint
        Standard deviation of recent collateral price returns.
    supply_demand_ratio: FixedPoint
        Borrow-side skew in [0, 1]; see calc_supply_demand_ratio.
    """

    asset: Address
    total_borrowed: FixedPoint
    total_supply: FixedPoint
    price_volatility: FixedPoint = FixedPoint(0)
    supply_demand_ratio: FixedPoint = FixedPoint(0)


class InterestRateModel:
    r"""Derives a borrow rate from utilization and, optionally, price volatility and supply/demand skew

    The model is a pure function of the statistics it is given.  The only mutable state is the
    rate curve, which only the owner may change.  Rates are sampled once per borrow or repay;
    existing debt keeps its snapshot until its next checkpoint.
    """

    def __init__(self, owner: Address, rate_curve: RateCurve | None = None):
        self.owner = owner
        self.rate_curve = rate_curve or RateCurve()

    def set_rate_curve(self, caller: Address, rate_curve: RateCurve) -> None:
        """Replace the rate curve parameters"""
        if caller != self.owner:
            raise errors.UnauthorizedCaller(f"{caller=} is not the rate model owner")
        self.rate_curve = rate_curve
        logging.info("rate curve set to %s", rate_curve)

    def get_utilization_rate(self, stats: UsageStats) -> FixedPoint:
        r"""Fraction of supplied assets that are currently lent out

        .. math::
            u = \frac{borrowed}{supply}

        Returns
        -------
        FixedPoint
            Utilization in [0, 1]; 0 if nothing has been supplied.

        Raises
        ------
        UtilizationAboveMaximum
            If borrowed exceeds supply, which means the vault's bookkeeping is broken.
        """
        if stats.total_supply <= FixedPoint(0):
            if stats.total_borrowed > FixedPoint(0):
                raise errors.UtilizationAboveMaximum(
                    f"{stats.asset}: {stats.total_borrowed=} is outstanding against zero supply"
                )
            return FixedPoint(0)
        utilization = stats.total_borrowed / stats.total_supply
        if utilization > FixedPoint(1):
            raise errors.UtilizationAboveMaximum(
                f"{stats.asset}: utilization {utilization} exceeds 1 "
                f"({stats.total_borrowed=}, {stats.total_supply=})"
            )
        return utilization

    def get_dynamic_borrow_rate(self, stats: UsageStats) -> FixedPoint:
        r"""Annual borrow rate for the given usage

        .. math::
            r = base + slope \cdot u + k_{p} \cdot \sigma_{p} + k_{s} \cdot skew
        """
        curve = self.rate_curve
        rate = curve.base_rate + curve.slope * self.get_utilization_rate(stats)
        rate += curve.price_volatility_factor * stats.price_volatility
        rate += curve.supply_demand_factor * stats.supply_demand_ratio
        return rate

    def get_supply_rate(self, stats: UsageStats) -> FixedPoint:
        """Annual rate earned by the vault's suppliers: the borrow rate scaled by utilization"""
        return self.get_dynamic_borrow_rate(stats) * self.get_utilization_rate(stats)


def calc_price_volatility(prices: list[FixedPoint]) -> FixedPoint:
    r"""Population standard deviation of simple returns over a price series

    Arguments
    ---------
    prices : list[FixedPoint]
        Positive prices, oldest first.

    Returns
    -------
    FixedPoint
        The volatility of returns, or 0 with fewer than two prices.
    """
    if len(prices) < 2:
        return FixedPoint(0)
    price_array = np.array([float(price) for price in prices])
    returns = np.diff(price_array) / price_array[:-1]
    return FixedPoint(float(np.std(returns)))


def calc_supply_demand_ratio(total_borrowed: FixedPoint, idle_assets: FixedPoint) -> FixedPoint:
    r"""Borrow-side skew between lent-out and idle assets

    .. math::
        skew = \frac{\max(0, borrowed - idle)}{borrowed + idle}

    This is 0 while idle liquidity covers outstanding loans and approaches 1 as the vault drains.
    """
    if total_borrowed + idle_assets <= FixedPoint(0):
        return FixedPoint(0)
    excess_demand = total_borrowed - idle_assets
    if excess_demand <= FixedPoint(0):
        return FixedPoint(0)
    return excess_demand / (total_borrowed + idle_assets)
