"""Safe regex utilities for noisy bill text.

Helpers for pulling labels and amounts out of OCR lines where a match may
be None, a group may be missing, or the amount carries currency noise.
"""

from typing import Optional, Match, Tuple
import re

# "₱1,234.50", "PHP 1,234", "P 500.00", "1234.5"
AMOUNT_PATTERN = re.compile(
    r"(?:₱|PHP|Php|P(?=\s*\d))?\s*(\d+(?:,\d{3})*(?:\.\d{1,2})?)"
)

# Dates and clock times are never amounts: "01/15/2024", "2024-01-15", "10:30"
DATE_TIME_PATTERN = re.compile(
    r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b|\b\d{4}[/-]\d{1,2}[/-]\d{1,2}\b|\b\d{1,2}:\d{2}\b"
)

# Amount text with no decimals, separators or currency marker ("123456")
BARE_INTEGER_PATTERN = re.compile(r"\s*\d+\s*")


def safe_group(match: Optional[Match], group_idx: int = 1, default: str = "") -> str:
    """Safely extract a regex group with fallback.

    Args:
        match: Regex match object (may be None)
        group_idx: Group index to extract (default: 1)
        default: Default value if match is None or group doesn't exist

    Returns:
        Extracted group value or default

    Examples:
        >>> m = re.search(r"LOA No\\.?\\s*(\\w+)", "LOA No.")
        >>> safe_group(m, 1, "NONE")
        'NONE'

        >>> m = re.search(r"OR#\\s*(\\d+)", "OR# 998877")
        >>> safe_group(m, 1)
        '998877'
    """
    if match is None:
        return default

    try:
        group_value = match.group(group_idx)
        if group_value is None:
            return default
        return group_value
    except (IndexError, AttributeError):
        return default


def parse_amount(raw: str) -> Optional[float]:
    """Convert an amount string with thousands separators to float.

    Examples:
        >>> parse_amount("25,044.00")
        25044.0
        >>> parse_amount("n/a") is None
        True
    """
    if not raw:
        return None
    try:
        return float(raw.replace(",", "").strip())
    except (ValueError, AttributeError):
        return None


def find_line_amount(text: str) -> Optional[Tuple[float, int, int]]:
    """Find the amount column of a bill line (the last amount on it).

    Digits that belong to a date or clock time are skipped.

    Returns:
        (amount, start, end) of the whole match, or None

    Examples:
        >>> find_line_amount("Paracetamol 500mg  ₱120.00")
        (120.0, 19, 26)
        >>> find_line_amount("Admission Date: 01/15/2024") is None
        True
    """
    if not text:
        return None
    blocked = [m.span() for m in DATE_TIME_PATTERN.finditer(text)]
    found = None
    for match in AMOUNT_PATTERN.finditer(text):
        start, end = match.span(1)
        if any(start < b_end and end > b_start for b_start, b_end in blocked):
            continue
        amount = parse_amount(safe_group(match, 1, ""))
        if amount is not None:
            found = amount, match.start(), match.end()
    return found


def is_bare_integer(raw: str) -> bool:
    """True for amount text with no decimals, separators or currency marker.

    Examples:
        >>> is_bare_integer("123456")
        True
        >>> is_bare_integer("₱1,200.00")
        False
    """
    return bool(raw) and BARE_INTEGER_PATTERN.fullmatch(raw) is not None


def clean_label(value: str) -> str:
    """Strip leading bullets/dashes/colons and trailing separators; normalize whitespace.

    Examples:
        >>> clean_label("- Room and Board: ")
        'Room and Board'
        >>> clean_label("•  CBC ....")
        'CBC'
    """
    if not value:
        return ""
    value = re.sub(r"^[\s:.\-•*·]+", "", value)
    value = re.sub(r"[\s:.\-=]+$", "", value)
    value = re.sub(r"\s+", " ", value)
    return value.strip()
