"""Collect classes up one level"""

from .base import BaseDeltas, BaseMarket, BaseState
