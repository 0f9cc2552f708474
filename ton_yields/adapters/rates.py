from __future__ import annotations

import math
from decimal import Decimal
from typing import Any


def apr_to_apy(apr: float, periods: int = 365) -> float:
    """Simple annual rate (%) to compounded yield (%), daily compounding by default."""
    return ((1 + apr / 100 / periods) ** periods - 1) * 100


def decode_fixed_point(value: int, decimals: int) -> float:
    """On-chain integer percentage scaled by 10**decimals, e.g. (81 * 10**24, 25) -> 8.1."""
    return float(Decimal(int(value)) / (Decimal(10) ** decimals))


def as_float(value: Any) -> float:
    """float() that also rejects NaN/inf, so malformed numbers drop the record."""
    f = float(value)
    if not math.isfinite(f):
        raise ValueError(f"non-finite number: {value!r}")
    return f


def as_float_or(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        return as_float(value)
    except (TypeError, ValueError):
        return default
