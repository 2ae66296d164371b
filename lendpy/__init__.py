"""Lendpy package"""

import logging
from collections import defaultdict
from typing import Any

from fixedpointmath import FixedPoint

# Setup barebones logging without a handler for users to adapt to their needs.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# This is the smallest representable amount of any token.
WEI = FixedPoint(scaled_value=1)

# All FixedPoint values carry 18 decimals; prices are normalized to this base.
REFERENCE_DECIMALS = 18

# Loan-to-value ratios are whole percentages in [MIN_LTV, MAX_LTV].
MIN_LTV = 1
MAX_LTV = 100

# Logging defaults
DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMATTER = "\n%(asctime)s: %(levelname)s: %(module)s.%(funcName)s:\n%(message)s"
DEFAULT_LOG_DATETIME = "%y-%m-%d %H:%M:%S"
DEFAULT_LOG_MAXBYTES = int(2e6)  # 2MB

# Constant for time conversion
SECONDS_IN_YEAR = FixedPoint(365 * 24 * 60 * 60)  # 31_536_000


def check_non_zero(data: Any) -> None:
    r"""Performs a general non-negative check on a dictionary or class that has a __dict__ attribute.

    Arguments
    ---------
    data : Any
        The data to check for negative values.
        If it is a FixedPoint then it will be checked.
        If it is dict-like then each key/value in the dict will be checked.
        Otherwise it will not be checked.
    """
    if isinstance(data, FixedPoint) and data < FixedPoint(0):
        raise AssertionError(f"{data=} >= 0")
    if hasattr(data, "__dict__"):  # can be converted to a dict
        check_non_zero(data.__dict__)
    if isinstance(data, (dict, defaultdict)):
        for key, value in data.items():
            if isinstance(value, FixedPoint) and value < FixedPoint(0):
                raise AssertionError(f"{key} attribute with {value=} must be >= 0")
            if isinstance(value, dict):
                check_non_zero(value)
            elif hasattr(value, "__dict__"):  # can be converted to a dict
                check_non_zero(value.__dict__)
            else:
                continue  # noop; frozen, etc
