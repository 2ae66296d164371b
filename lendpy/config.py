"""State object for setting lending engine configuration"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from fixedpointmath import FixedPoint

import lendpy
import lendpy.types as types
from lendpy.utils.json import ExtendedJSONEncoder


@types.freezable(frozen=False, no_new_attribs=True)
@dataclass
class Config:
    """Data object for storing user engine config parameters"""

    # lots of configs!
    # pylint: disable=too-many-instance-attributes

    # Oracle
    # maximum age of a price, in seconds, before valuation halts
    price_staleness_tolerance: FixedPoint = FixedPoint(3600)
    # decimal base that feed answers are normalized to
    reference_decimals: int = lendpy.REFERENCE_DECIMALS
    # number of recorded prices used to estimate volatility
    volatility_window: int = 24

    # Interest rate curve
    # borrow rate at zero utilization, as an annual decimal
    base_rate: FixedPoint = FixedPoint("0.02")
    # additional borrow rate at full utilization
    rate_slope: FixedPoint = FixedPoint("0.20")
    # weight on collateral price volatility
    price_volatility_factor: FixedPoint = FixedPoint(0)
    # weight on the borrow-side supply/demand skew
    supply_demand_factor: FixedPoint = FixedPoint(0)

    # Events
    # maximum number of events kept in memory; None keeps everything
    event_log_maxlen: int | None = None

    # logging
    # logging level, as defined by stdlib logging
    log_level: int = logging.INFO
    # filename for output logs
    log_filename: str = "lendpy"

    def __post_init__(self) -> None:
        self.check_config()

    def __getitem__(self, attrib) -> None:
        return getattr(self, attrib)

    def __setitem__(self, attrib, value) -> None:
        self.__setattr__(attrib, value)

    def __str__(self) -> str:
        # cls arg tells json how to handle FixedPoint objects and nested dataclasses
        return json.dumps(
            {key: value for key, value in self.__dict__.items() if key not in ["frozen", "no_new_attribs"]},
            sort_keys=True,
            indent=2,
            cls=ExtendedJSONEncoder,
        )

    def copy(self) -> Config:
        """Returns a new copy of self"""
        return Config(**{key: value for key, value in self.__dict__.items() if key not in ["frozen", "no_new_attribs"]})

    def check_config(self) -> None:
        r"""Verify that the parameters describe a usable engine"""
        if self.price_staleness_tolerance <= FixedPoint(0):
            raise ValueError(f"{self.price_staleness_tolerance=} must be > 0")
        if not 0 <= self.reference_decimals <= 18:
            raise ValueError(f"{self.reference_decimals=} must be in [0, 18]")
        if self.volatility_window < 2:
            raise ValueError(f"{self.volatility_window=} must be >= 2 to compute a return")
        for key in ["base_rate", "rate_slope", "price_volatility_factor", "supply_demand_factor"]:
            if self[key] < FixedPoint(0):
                raise ValueError(f"{key}={self[key]} must be >= 0")
