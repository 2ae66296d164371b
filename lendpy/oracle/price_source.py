"""Price source backed by per-asset price feeds"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fixedpointmath import FixedPoint

import lendpy.errors as errors
import lendpy.time as time
import lendpy.types as types
from lendpy.types import Address


@dataclass(frozen=True)
class PriceRound:
    r"""One answer reported by a price feed

    Attributes
    ----------
    round_id: int
        Monotonic round counter, starting at 1.
    answer: int
        The price as a signed integer with the feed's decimals.
    updated_at: FixedPoint
        Block time, in seconds, at which the answer was reported.
    """

    round_id: int
    answer: int
    updated_at: FixedPoint


class PriceFeed:
    r"""An aggregator-style feed: signed integer answers with a fixed number of decimals

    The feed keeps every round it has reported so that price history can be
    queried; it does not validate answers, since upstream values are untrusted.
    """

    def __init__(self, description: str, decimals: int = 8):
        if decimals < 0:
            raise ValueError(f"{decimals=} must be >= 0")
        self.description = description
        self.decimals = decimals
        self.rounds: list[PriceRound] = []

    def update_answer(self, answer: int, updated_at: FixedPoint) -> PriceRound:
        """Report a new answer"""
        if not isinstance(answer, int):
            raise TypeError(f"{answer=} must be an int scaled by {self.decimals} decimals")
        price_round = PriceRound(round_id=len(self.rounds) + 1, answer=answer, updated_at=updated_at)
        self.rounds.append(price_round)
        return price_round

    def latest_round_data(self) -> PriceRound | None:
        """The most recent round, or None if the feed has never reported"""
        if not self.rounds:
            return None
        return self.rounds[-1]


@types.freezable(frozen=False, no_new_attribs=True)
@dataclass
class PriceSourceState:
    r"""Feed bindings, keyed by asset"""

    feeds: dict[Address, PriceFeed] = field(default_factory=dict)

    def copy(self) -> PriceSourceState:
        """Returns a new copy of the bindings, sharing the feed handles"""
        return PriceSourceState(feeds=dict(self.feeds))


class PriceSource:
    r"""Returns the latest positive price of an asset

    This is the only external, possibly-untrusted input to the engine.  Any problem with a
    price (no feed, non-positive answer, stale answer) raises a PriceSourceError, which
    halts every valuation-dependent operation; there is no fallback pricing.
    """

    def __init__(self, owner: Address, block_time: time.BlockTime, state: PriceSourceState | None = None):
        self.owner = owner
        self.block_time = block_time
        self.state = state or PriceSourceState()

    def _check_owner(self, caller: Address) -> None:
        if caller != self.owner:
            raise errors.UnauthorizedCaller(f"{caller=} is not the price source owner")

    def add_feed(self, caller: Address, asset: Address, feed: PriceFeed) -> None:
        """Bind a feed to an asset that does not have one yet"""
        self._check_owner(caller)
        if asset in self.state.feeds:
            raise errors.AssetAlreadyRegistered(f"{asset=} already has a price feed; use update_feed")
        self.state.feeds[asset] = feed
        logging.info("added price feed %s for %s", feed.description, asset)

    def update_feed(self, caller: Address, asset: Address, feed: PriceFeed) -> None:
        """Replace the feed bound to an asset"""
        self._check_owner(caller)
        if asset not in self.state.feeds:
            raise errors.PriceFeedNotSet(f"{asset=} has no price feed to update")
        self.state.feeds[asset] = feed
        logging.info("updated price feed for %s to %s", asset, feed.description)

    def remove_feed(self, caller: Address, asset: Address) -> None:
        """Unbind the feed of an asset"""
        self._check_owner(caller)
        if asset not in self.state.feeds:
            raise errors.PriceFeedNotSet(f"{asset=} has no price feed to remove")
        del self.state.feeds[asset]
        logging.info("removed price feed for %s", asset)

    def has_feed(self, asset: Address) -> bool:
        """True if a feed is bound to asset"""
        return asset in self.state.feeds

    def get_feed(self, asset: Address) -> PriceFeed:
        """The feed bound to asset"""
        if asset not in self.state.feeds:
            raise errors.PriceFeedNotSet(f"no price feed is registered for {asset=}")
        return self.state.feeds[asset]

    def get_latest_price(self, asset: Address, max_age: FixedPoint | None = None) -> int:
        r"""Return the latest raw answer of the asset's feed

        Arguments
        ---------
        asset : Address
            The asset to price.
        max_age : FixedPoint, optional
            Maximum allowed age of the answer, in seconds.  If None, staleness is not checked.

        Returns
        -------
        int
            The positive answer, scaled by the feed's decimals.
        """
        feed = self.get_feed(asset)
        price_round = feed.latest_round_data()
        if price_round is None:
            logging.warning("price feed for %s has not reported yet", asset)
            raise errors.PriceFeedNotSet(f"price feed for {asset=} has not reported an answer")
        if price_round.answer <= 0:
            logging.warning("price feed for %s reported non-positive answer %s", asset, price_round.answer)
            raise errors.NonPositivePrice(f"price feed for {asset=} reported {price_round.answer}")
        if max_age is not None:
            age = time.elapsed_seconds(price_round.updated_at, self.block_time.time)
            if age > max_age:
                logging.warning("price for %s is %s seconds old, tolerance is %s", asset, age, max_age)
                raise errors.StalePrice(f"price for {asset=} is {age} seconds old; tolerance is {max_age}")
        return price_round.answer

    def get_normalized_price(
        self, asset: Address, reference_decimals: int = 18, max_age: FixedPoint | None = None
    ) -> FixedPoint:
        r"""Return the latest price as a FixedPoint scaled to reference_decimals

        The raw answer is scaled by 10^(reference_decimals - feed_decimals).  FixedPoint values
        always carry 18 decimals, so the result is exact whenever reference_decimals is 18.
        """
        if not 0 <= reference_decimals <= 18:
            raise ValueError(f"{reference_decimals=} must be in [0, 18]")
        answer = self.get_latest_price(asset, max_age)
        scaled_answer = rescale(answer, self.get_feed(asset).decimals, reference_decimals)
        price = FixedPoint(scaled_value=rescale(scaled_answer, reference_decimals, 18))
        if price <= FixedPoint(0):
            # answers smaller than the reference precision truncate to zero
            raise errors.NonPositivePrice(f"price for {asset=} truncates to zero at {reference_decimals} decimals")
        return price

    def get_price_history(self, asset: Address, window: int) -> list[FixedPoint]:
        """The last `window` positive answers of the asset's feed, oldest first, as 18-decimal FixedPoint"""
        feed = self.get_feed(asset)
        answers = [price_round.answer for price_round in feed.rounds[-window:] if price_round.answer > 0]
        return [FixedPoint(scaled_value=rescale(answer, feed.decimals, 18)) for answer in answers]


def rescale(value: int, from_decimals: int, to_decimals: int) -> int:
    """Scale an integer by 10^(to_decimals - from_decimals), truncating when the exponent is negative"""
    if to_decimals >= from_decimals:
        return value * 10 ** (to_decimals - from_decimals)
    return value // 10 ** (from_decimals - to_decimals)
