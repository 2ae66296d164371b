"""Core types used across the repo"""
from __future__ import annotations  # types will be strings by default in 3.11

from dataclasses import dataclass, is_dataclass
from functools import wraps
from typing import Any, Type

from fixedpointmath import FixedPoint

# accounts, contracts and assets are all identified by plain strings
Address = str


def freezable(frozen: bool = False, no_new_attribs: bool = False) -> Type:
    r"""Class decorator that guards a dataclass's attributes after construction

    Arguments
    ---------
    frozen : bool
        Default for instances: existing attributes cannot be reassigned.
    no_new_attribs : bool
        Default for instances: attributes not set by the constructor cannot be added.

    Either default can be overridden per instance with the `frozen` and `no_new_attribs` constructor keywords.
    """

    def decorator(cls):
        if not is_dataclass(cls):
            raise TypeError(f"{cls.__name__} must be a dataclass to be made freezable")

        @wraps(wrapped=cls, updated=())
        class Guarded(cls):
            def __init__(self, *args, frozen=frozen, no_new_attribs=no_new_attribs, **kwargs) -> None:
                super().__init__(*args, **kwargs)
                object.__setattr__(self, "frozen", frozen)
                object.__setattr__(self, "no_new_attribs", no_new_attribs)

            def __setattr__(self, attrib: str, value: Any) -> None:
                exists = hasattr(self, attrib)
                if exists and getattr(self, "frozen", False):
                    raise AttributeError(f"{type(self).__name__} is frozen; '{attrib}' cannot be reassigned")
                if not exists and getattr(self, "no_new_attribs", False):
                    raise AttributeError(f"{type(self).__name__} does not accept new attribute '{attrib}'")
                super().__setattr__(attrib, value)

        return Guarded

    return decorator


@dataclass
class Quantity:
    r"""An amount with a unit, where the unit is the symbol of an asset"""

    amount: FixedPoint
    unit: Address

    def __neg__(self):
        return Quantity(amount=-self.amount, unit=self.unit)
