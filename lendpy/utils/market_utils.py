"""Implements helper functions for setting up a lending market"""
from __future__ import annotations

import lendpy.time as time
import lendpy.utils.logs as log_utils
from lendpy.config import Config
from lendpy.events import EventLog
from lendpy.markets.lending import LendingMarket
from lendpy.markets.vault import Vault
from lendpy.oracle import PriceSource
from lendpy.rates import InterestRateModel, RateCurve
from lendpy.registry import AssetRegistry
from lendpy.tokens import Token
from lendpy.types import Address


def get_rate_curve(config: Config) -> RateCurve:
    """Build the rate curve described by config"""
    return RateCurve(
        base_rate=config.base_rate,
        slope=config.rate_slope,
        price_volatility_factor=config.price_volatility_factor,
        supply_demand_factor=config.supply_demand_factor,
    )


def get_lending_market(
    config: Config,
    asset_token: Token,
    owner: Address,
    block_time: time.BlockTime | None = None,
    registry: AssetRegistry | None = None,
    price_source: PriceSource | None = None,
    setup_logs: bool = False,
) -> LendingMarket:
    r"""Construct a vault and the lending market bound to it, with sane defaults

    Arguments
    ---------
    config : Config
        The engine config.
    asset_token : Token
        The asset depositors supply and borrowers borrow.
    owner : Address
        Owner of the market, its rate model and, if one is created here, its price source.
    block_time : BlockTime, optional
        Shared clock; a new one starting at zero is created if omitted.
    registry : AssetRegistry, optional
        Pass an existing registry to host several markets side by side.
    price_source : PriceSource, optional
        Pass an existing price source to share feeds between markets.
    setup_logs : bool, optional
        Route the root logger to stdout and to config.log_filename at config.log_level. Defaults to False.

    Returns
    -------
    market : LendingMarket
        The market; its vault is reachable as `market.vault`.
    """
    config.check_config()
    if setup_logs:
        log_utils.setup_logging(config.log_filename, log_level=config.log_level)
    block_time = block_time or time.BlockTime()
    registry = registry or AssetRegistry()
    price_source = price_source or PriceSource(owner=owner, block_time=block_time)
    event_log = EventLog(maxlen=config.event_log_maxlen)
    vault = Vault(asset_token, registry, block_time, event_log=event_log)
    interest_rate_model = InterestRateModel(owner=owner, rate_curve=get_rate_curve(config))
    return LendingMarket(
        owner=owner,
        vault=vault,
        registry=registry,
        price_source=price_source,
        interest_rate_model=interest_rate_model,
        block_time=block_time,
        config=config,
        event_log=event_log,
    )
