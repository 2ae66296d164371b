"""In-memory fungible token ledger"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field

from fixedpointmath import FixedPoint

import lendpy.errors as errors
import lendpy.types as types
from lendpy.types import Address


@types.freezable(frozen=False, no_new_attribs=True)
@dataclass
class TokenState:
    r"""Balances and allowances of a fungible token

    Attributes
    ----------
    balances: dict[Address, FixedPoint]
        Token balance of each account.
    allowances: dict[tuple[Address, Address], FixedPoint]
        Amount that a spender may move on behalf of an owner, keyed by (owner, spender).
    total_supply: FixedPoint
        Sum of all balances.
    """

    balances: dict[Address, FixedPoint] = field(default_factory=dict)
    allowances: dict[tuple[Address, Address], FixedPoint] = field(default_factory=dict)
    total_supply: FixedPoint = FixedPoint(0)

    def copy(self) -> TokenState:
        """Returns a new copy of self"""
        return TokenState(
            balances=copy.copy(self.balances),
            allowances=copy.copy(self.allowances),
            total_supply=self.total_supply,
        )


class Token:
    r"""A fungible token following the standard balanceOf/transfer/transferFrom/approve/allowance interface

    Like the on-chain interface, `transfer`, `transfer_from` and `approve` report failure through
    their boolean return value instead of raising.  Callers must check it; the engine does so
    through `safe_transfer` and `safe_transfer_from`.

    Amounts are whole-token FixedPoint values at the package's 18 decimals, so a token carries no
    decimals of its own; only price feeds are rescaled.
    """

    def __init__(self, symbol: Address, state: TokenState | None = None):
        self.symbol = symbol
        self.state = state or TokenState()

    def __repr__(self) -> str:
        return f"Token({self.symbol!r})"

    @property
    def total_supply(self) -> FixedPoint:
        """Sum of every account balance"""
        return self.state.total_supply

    def balance_of(self, account: Address) -> FixedPoint:
        """Balance held by account"""
        return self.state.balances.get(account, FixedPoint(0))

    def allowance(self, owner: Address, spender: Address) -> FixedPoint:
        """Amount spender may still move on behalf of owner"""
        return self.state.allowances.get((owner, spender), FixedPoint(0))

    def approve(self, owner: Address, spender: Address, amount: FixedPoint) -> bool:
        """Set the amount spender may move on behalf of owner"""
        if amount < FixedPoint(0):
            return False
        self.state.allowances[(owner, spender)] = amount
        return True

    def mint(self, account: Address, amount: FixedPoint) -> None:
        """Create new tokens in account; used to fund simulations"""
        if amount < FixedPoint(0):
            raise ValueError(f"{amount=} must be >= 0")
        self.state.balances[account] = self.balance_of(account) + amount
        self.state.total_supply += amount

    def transfer(self, sender: Address, recipient: Address, amount: FixedPoint) -> bool:
        """Move amount from sender to recipient; returns False if the sender's balance is too low"""
        if amount < FixedPoint(0) or self.balance_of(sender) < amount:
            return False
        self.state.balances[sender] = self.balance_of(sender) - amount
        self.state.balances[recipient] = self.balance_of(recipient) + amount
        return True

    def transfer_from(self, spender: Address, owner: Address, recipient: Address, amount: FixedPoint) -> bool:
        """Move amount from owner to recipient using spender's allowance; returns False on any shortfall"""
        allowance = self.allowance(owner, spender)
        if allowance < amount:
            return False
        if not self.transfer(owner, recipient, amount):
            return False
        self.state.allowances[(owner, spender)] = allowance - amount
        return True


def safe_transfer(token: Token, sender: Address, recipient: Address, amount: FixedPoint) -> None:
    r"""Transfer tokens and raise if the token reports failure

    Raises
    ------
    TransferFailed
        If the token returned False.
    """
    if not token.transfer(sender, recipient, amount):
        logging.debug("transfer of %s %s from %s to %s failed", amount, token.symbol, sender, recipient)
        raise errors.TransferFailed(
            f"transfer of {amount} {token.symbol} from {sender} to {recipient} failed; "
            f"balance={token.balance_of(sender)}"
        )


def safe_transfer_from(
    token: Token, spender: Address, owner: Address, recipient: Address, amount: FixedPoint
) -> None:
    r"""Transfer tokens on behalf of owner and raise if the token reports failure

    Raises
    ------
    TransferFailed
        If the token returned False.
    """
    if not token.transfer_from(spender, owner, recipient, amount):
        logging.debug(
            "transfer_from of %s %s from %s to %s by %s failed", amount, token.symbol, owner, recipient, spender
        )
        raise errors.TransferFailed(
            f"transfer of {amount} {token.symbol} from {owner} to {recipient} by {spender} failed; "
            f"balance={token.balance_of(owner)}, allowance={token.allowance(owner, spender)}"
        )


def check_transfer_from(token: Token, spender: Address, owner: Address, amount: FixedPoint) -> None:
    r"""Verify that a transfer_from would succeed, without moving any tokens

    Raises
    ------
    InsufficientBalance
        If owner holds less than amount.
    InsufficientAllowance
        If spender has been approved for less than amount.
    """
    if token.balance_of(owner) < amount:
        raise errors.InsufficientBalance(f"{owner} holds {token.balance_of(owner)} {token.symbol}, needs {amount}")
    if token.allowance(owner, spender) < amount:
        raise errors.InsufficientAllowance(
            f"{spender} may move {token.allowance(owner, spender)} {token.symbol} for {owner}, needs {amount}"
        )
