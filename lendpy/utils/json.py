"""Extensions to json encoding."""
import json
from dataclasses import asdict, is_dataclass
from enum import Enum

import numpy as np
from fixedpointmath import FixedPoint


class ExtendedJSONEncoder(json.JSONEncoder):
    r"""Custom encoder for JSON string dumps"""
    # pylint: disable=too-many-return-statements

    def default(self, o):
        r"""Override default behavior"""
        if isinstance(o, set):
            return sorted(o)
        if isinstance(o, Enum):
            return o.value
        if isinstance(o, np.integer):
            return int(o)
        if isinstance(o, np.floating):
            return float(o)
        if isinstance(o, np.ndarray):
            return o.tolist()
        if isinstance(o, FixedPoint):
            return str(o)
        if is_dataclass(o) and not isinstance(o, type):
            return asdict(o)
        try:
            return o.__dict__
        except AttributeError:
            pass
        # Let the base class default method raise the TypeError
        return json.JSONEncoder.default(self, o)
