"""Registry of borrowable vaults, supported collateral, and loan-to-value ratios"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import lendpy
import lendpy.errors as errors
import lendpy.types as types
from lendpy.types import Address

if TYPE_CHECKING:
    from lendpy.markets.vault import Vault
    from lendpy.tokens import Token


@types.freezable(frozen=False, no_new_attribs=True)
@dataclass
class RegistryState:
    r"""Keyed storage owned by the registry

    Attributes
    ----------
    collateral_assets: list[Address]
        Supported collateral, in registration order.
    is_collateral: dict[Address, bool]
        Membership flag per collateral asset; kept in lockstep with collateral_assets.
    collateral_index: dict[Address, int]
        Position of each supported collateral asset in collateral_assets.
    ltv: dict[Address, int]
        Loan-to-value ratio of each collateral asset, as a whole percentage.
    collateral_tokens: dict[Address, Token]
        Token handle of each collateral asset.
    vaults: dict[Address, Vault]
        The borrowable vault for each underlying asset.
    """

    collateral_assets: list[Address] = field(default_factory=list)
    is_collateral: dict[Address, bool] = field(default_factory=dict)
    collateral_index: dict[Address, int] = field(default_factory=dict)
    ltv: dict[Address, int] = field(default_factory=dict)
    collateral_tokens: dict[Address, Token] = field(default_factory=dict)
    vaults: dict[Address, Vault] = field(default_factory=dict)

    def copy(self) -> RegistryState:
        """Returns a new copy of the keyed storage, sharing the token and vault handles"""
        return RegistryState(
            collateral_assets=list(self.collateral_assets),
            is_collateral=dict(self.is_collateral),
            collateral_index=dict(self.collateral_index),
            ltv=dict(self.ltv),
            collateral_tokens=dict(self.collateral_tokens),
            vaults=dict(self.vaults),
        )


class AssetRegistry:
    r"""Explicit registry service, passed by reference into each vault and market

    Uniqueness is enforced at insertion: an asset can be registered as collateral once and
    can back at most one vault.  Removal uses swap-with-last-and-pop, updating the membership
    flag in the same step as the array.
    """

    def __init__(self, state: RegistryState | None = None):
        self.state = state or RegistryState()

    # vaults
    def register_vault(self, asset: Address, vault: Vault) -> None:
        """Record the single vault that lends out asset"""
        if asset in self.state.vaults:
            raise errors.AssetAlreadyRegistered(f"a vault for {asset=} is already registered")
        self.state.vaults[asset] = vault
        logging.info("registered vault for %s", asset)

    def vault_for(self, asset: Address) -> Vault:
        """Return the vault that lends out asset"""
        if asset not in self.state.vaults:
            raise errors.AssetNotSupported(f"no vault is registered for {asset=}")
        return self.state.vaults[asset]

    def has_vault(self, asset: Address) -> bool:
        """True if a vault lends out asset"""
        return asset in self.state.vaults

    # collateral
    def add_collateral(self, token: Token, ltv: int) -> None:
        r"""Register a new collateral asset and its loan-to-value ratio

        Arguments
        ---------
        token : Token
            The collateral token; it is keyed by its symbol.
        ltv : int
            Loan-to-value ratio as a whole percentage in [1, 100].
        """
        check_ltv(ltv)
        asset = token.symbol
        if self.is_supported(asset):
            raise errors.AssetAlreadyRegistered(f"{asset=} is already supported collateral")
        self.state.collateral_index[asset] = len(self.state.collateral_assets)
        self.state.collateral_assets.append(asset)
        self.state.is_collateral[asset] = True
        self.state.ltv[asset] = ltv
        self.state.collateral_tokens[asset] = token
        logging.info("added collateral %s with ltv=%s%%", asset, ltv)

    def remove_collateral(self, asset: Address) -> None:
        """Drop a collateral asset by swapping it with the last entry and popping"""
        if not self.is_supported(asset):
            raise errors.AssetNotSupported(f"{asset=} is not supported collateral")
        index = self.state.collateral_index.pop(asset)
        last_asset = self.state.collateral_assets[-1]
        self.state.collateral_assets[index] = last_asset
        if last_asset != asset:
            self.state.collateral_index[last_asset] = index
        self.state.collateral_assets.pop()
        self.state.is_collateral[asset] = False
        del self.state.ltv[asset]
        del self.state.collateral_tokens[asset]
        logging.info("removed collateral %s", asset)

    def is_supported(self, asset: Address) -> bool:
        """True if asset is currently accepted as collateral"""
        return self.state.is_collateral.get(asset, False)

    def get_ltv(self, asset: Address) -> int:
        """Loan-to-value ratio of a supported collateral asset, as a whole percentage"""
        if not self.is_supported(asset):
            raise errors.AssetNotSupported(f"{asset=} is not supported collateral")
        return self.state.ltv[asset]

    def collateral_token(self, asset: Address) -> Token:
        """Token handle of a supported collateral asset"""
        if not self.is_supported(asset):
            raise errors.AssetNotSupported(f"{asset=} is not supported collateral")
        return self.state.collateral_tokens[asset]

    @property
    def collateral_assets(self) -> list[Address]:
        """Supported collateral assets, in storage order"""
        return list(self.state.collateral_assets)


def check_ltv(ltv: int) -> None:
    """Raise InvalidLTV unless ltv is a whole percentage in [MIN_LTV, MAX_LTV]"""
    if isinstance(ltv, bool) or not isinstance(ltv, int):
        raise errors.InvalidLTV(f"{ltv=} must be an int percentage")
    if not lendpy.MIN_LTV <= ltv <= lendpy.MAX_LTV:
        raise errors.InvalidLTV(f"{ltv=} must be in [{lendpy.MIN_LTV}, {lendpy.MAX_LTV}]")
