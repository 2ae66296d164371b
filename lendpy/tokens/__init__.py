"""Collect classes & functions up one level"""

from .token import Token, TokenState, check_transfer_from, safe_transfer, safe_transfer_from
