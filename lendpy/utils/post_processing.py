"""Helper functions for post-processing event logs and market snapshots"""
from __future__ import annotations  # types will be strings by default in 3.11

from dataclasses import fields
from enum import Enum
from typing import TYPE_CHECKING, Any

import pandas as pd
from fixedpointmath import FixedPoint

if TYPE_CHECKING:
    from lendpy.events import EventLog
    from lendpy.markets.lending import MarketSnapshot

EVENT_COLUMNS = ["timestamp", "event_type", "actor", "asset", "amount"]


def _to_plain(value: Any) -> Any:
    """Convert FixedPoint and Enum values to types pandas can hold natively"""
    if isinstance(value, FixedPoint):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    return value


def get_events_df(event_log: EventLog) -> pd.DataFrame:
    r"""Converts an event log to a pandas dataframe

    Arguments
    ---------
    event_log : EventLog
        The event stream shared by a vault and its market.

    Returns
    -------
    events : DataFrame
        One row per event, oldest first. Event metadata keys become extra columns,
        empty for events that do not carry them.
    """
    rows = []
    for event in event_log.events:
        row = {
            "timestamp": _to_plain(event.timestamp),
            "event_type": _to_plain(event.event_type),
            "actor": event.actor,
            "asset": event.asset,
            "amount": _to_plain(event.amount),
        }
        row.update({key: _to_plain(value) for key, value in event.meta.items()})
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=EVENT_COLUMNS)
    return pd.DataFrame.from_records(rows)


def get_snapshots_df(snapshots: list[MarketSnapshot]) -> pd.DataFrame:
    r"""Converts a list of market snapshots to a pandas dataframe and computes derived variables

    Arguments
    ---------
    snapshots : list[MarketSnapshot]
        Snapshots in the order they were taken.

    Returns
    -------
    snapshots : DataFrame
        One row per snapshot with every snapshot field as a float column, plus percentage
        columns and the share price return since the first snapshot.
    """
    if not snapshots:
        return pd.DataFrame()
    snapshots_df = pd.DataFrame.from_records(
        [{field.name: _to_plain(getattr(snapshot, field.name)) for field in fields(snapshot)} for snapshot in snapshots]
    )
    snapshots_df["utilization_percent"] = snapshots_df.utilization * 100
    snapshots_df["borrow_rate_percent"] = snapshots_df.borrow_rate * 100
    snapshots_df["supply_rate_percent"] = snapshots_df.supply_rate * 100
    # percent change in share price since the first snapshot
    snapshots_df["share_price_total_return"] = snapshots_df.share_price / snapshots_df.share_price.iloc[0] - 1
    return snapshots_df
