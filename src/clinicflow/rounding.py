"""Half-up rounding shared by check-in amounts and report figures.

Historical reports were produced with ``floor(x * 10**p + 0.5) / 10**p``;
every figure goes through the same formula so numbers stay bit-identical.
"""

from __future__ import annotations

import math

__all__ = ["round_half_up", "round_money", "round_rate"]


def round_half_up(value: float, places: int = 0) -> float:
    factor = 10**places
    return math.floor(value * factor + 0.5) / factor


def round_money(value: float) -> float:
    """Monetary figures: 2 decimal places."""
    return round_half_up(value, 2)


def round_rate(value: float) -> float:
    """Rates and percentages: 1 decimal place."""
    return round_half_up(value, 1)
