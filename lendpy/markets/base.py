"""Shared structure of the stateful components: a state dataclass mutated only through deltas"""
from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Generic, TypeVar

import lendpy
import lendpy.errors as errors
import lendpy.time as time
import lendpy.types as types

# all subclasses of BaseMarket need to pass subclasses of BaseState and BaseDeltas
Deltas = TypeVar("Deltas", bound="BaseDeltas")
State = TypeVar("State", bound="BaseState")


@types.freezable(frozen=True, no_new_attribs=True)
@dataclass
class BaseDeltas:
    r"""Specifies changes to values in a state"""


@types.freezable(frozen=False, no_new_attribs=False)
@dataclass
class BaseState:
    r"""Everything a component holds that can change

    Keeping all mutable data on one object lets an entry point snapshot it before
    running and restore it if the call fails.
    """

    def apply_delta(self, delta: BaseDeltas) -> None:
        r"""Applies a delta to the state."""
        raise NotImplementedError

    def copy(self) -> BaseState:
        """Returns a new copy of self"""
        return copy.deepcopy(self)

    def check_valid_state(self) -> None:
        """Test that every FixedPoint held by the state is non-negative"""
        try:
            lendpy.check_non_zero(self.__dict__)
        except AssertionError as err:
            raise errors.InvariantViolation(f"{self.__class__.__name__}: {err}") from err


class BaseMarket(Generic[State, Deltas]):
    r"""A component that holds a state and advances it by applying deltas

    Operations are split into a `calc_*` step that validates inputs and returns deltas
    without touching state, and an apply step that commits them.
    """

    def __init__(self, state: State, block_time: time.BlockTime):
        self.state = state
        self.block_time = block_time

    def update_market(self, deltas: Deltas) -> None:
        """Increments member variables to reflect current market conditions."""
        self.state.apply_delta(deltas)
        self.state.check_valid_state()
