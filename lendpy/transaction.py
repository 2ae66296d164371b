"""All-or-nothing execution of an entry point across several stateful components"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Protocol


class Stateful(Protocol):
    """Anything that keeps all of its mutable data on a `state` attribute"""

    state: Any


@contextmanager
def atomic(*components: Stateful, name: str = "tx") -> Iterator[None]:
    r"""Snapshot the state of every component and restore all of them if the body raises.

    Components must keep their mutable data in a single `state` attribute, so that
    the snapshot never captures references to other components.

    Arguments
    ---------
    *components : Stateful
        The vaults, markets, tokens and registries touched by the operation.
        The same component may be passed more than once.
    name : str
        Label used when logging a rollback.
    """
    unique_components = list({id(component): component for component in components}.values())
    snapshots = [component.state.copy() for component in unique_components]
    try:
        yield
    except Exception as err:
        for component, snapshot in zip(unique_components, snapshots):
            component.state = snapshot
        logging.debug("rolled back %s after %s: %s", name, type(err).__name__, err)
        raise
