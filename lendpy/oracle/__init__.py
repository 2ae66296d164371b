"""Collect classes up one level"""

from .price_source import PriceFeed, PriceRound, PriceSource
