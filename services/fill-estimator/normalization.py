"""Bounding of percentage candidates pulled out of model output."""

import math
import re
from typing import Any

# First signed or unsigned decimal token; ASCII digits only
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?", re.ASCII)

MIN_PERCENT = 0.0
MAX_PERCENT = 100.0


def normalize_percent(candidate: Any) -> float | None:
    """Turn a candidate value into a percentage in [0, 100].

    Numbers are clamped, strings are scanned for their first numeric token
    (so "42.5%" or "about 40 percent" both work). Returns None when no
    usable number is present; never raises.
    """
    if candidate is None or isinstance(candidate, bool):
        return None

    if isinstance(candidate, (int, float)):
        try:
            value = float(candidate)
        except OverflowError:
            # int too large for a float
            value = math.inf if candidate > 0 else -math.inf
        if math.isnan(value):
            return None
        return _clamp(value)

    if isinstance(candidate, str):
        match = _NUMBER_RE.search(candidate)
        if match is None:
            return None
        try:
            value = float(match.group(0))
        except ValueError:
            return None
        return _clamp(value)

    return None


def _clamp(value: float) -> float:
    return max(MIN_PERCENT, min(MAX_PERCENT, value))
