"""Monetary helpers shared by the auditor and the extraction layer."""

from __future__ import annotations

import math
from typing import Optional

from billguard.config import CURRENCY_SYMBOL


def round_money(value: float) -> float:
    """Round a monetary value to 2 fractional digits."""
    return round(float(value), 2)


def is_valid_amount(value: Optional[float]) -> bool:
    """True for a finite, non-negative number (bools excluded)."""
    if value is None or isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number >= 0


def format_money(value: float) -> str:
    """Format an amount for human-readable notes.

    Examples:
        >>> format_money(25044)
        '₱25,044.00'
    """
    return f"{CURRENCY_SYMBOL}{float(value):,.2f}"


def safe_percent(part: float, whole: float) -> float:
    """Return part/whole as a percentage, 0 when whole is 0."""
    if not whole:
        return 0.0
    return part / whole * 100
