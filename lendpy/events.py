"""Events emitted by the vault and market for observers"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from fixedpointmath import FixedPoint

from lendpy.types import Address


class EventType(Enum):
    r"""Enumerate the events the engine emits"""

    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    BORROW = "borrow"
    REPAY = "repay"
    COLLATERAL_DEPOSITED = "collateral_deposited"
    COLLATERAL_WITHDRAWN = "collateral_withdrawn"
    COLLATERAL_ADDED = "collateral_added"
    COLLATERAL_REMOVED = "collateral_removed"
    LTV_SET = "ltv_set"


@dataclass
class Event:
    r"""A single committed state transition"""

    timestamp: FixedPoint
    event_type: EventType
    actor: Optional[Address] = None
    asset: Optional[Address] = None
    amount: Optional[FixedPoint] = None
    meta: dict = field(default_factory=dict)


class EventLog:
    r"""Append-only, optionally bounded, stream of events"""

    def __init__(self, maxlen: Optional[int] = None) -> None:
        self.events: deque[Event] = deque(maxlen=maxlen)

    def __len__(self) -> int:
        return len(self.events)

    def add(self, event: Event) -> None:
        """Append an event, dropping the oldest one if the log is full"""
        self.events.append(event)

    def tail(self, n: int = 200) -> list[Event]:
        """Return the most recent n events, oldest first"""
        if n <= 0:
            return []
        if n >= len(self.events):
            return list(self.events)
        return list(self.events)[-n:]

    def filter(self, event_type: EventType) -> list[Event]:
        """Return every stored event of the given type"""
        return [event for event in self.events if event.event_type == event_type]
