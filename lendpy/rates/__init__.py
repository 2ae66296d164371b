"""Collect classes & functions up one level"""

from .interest_rate_model import (
    InterestRateModel,
    RateCurve,
    UsageStats,
    calc_price_volatility,
    calc_supply_demand_ratio,
)
