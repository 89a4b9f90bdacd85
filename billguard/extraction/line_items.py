"""
Line-item parsing from OCR text.

Produces the independently summed ``calculatedLineItemsTotal``. Totals,
subtotals and deduction lines are excluded so the sum only covers
individual charges.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from billguard.auditor.models import TotalLevel
from billguard.auditor.total_classifier import classify_total
from billguard.extraction.deduction_parser import is_deduction_line
from billguard.extraction.regex_utils import clean_label, find_line_amount, is_bare_integer
from billguard.utils.money import round_money

logger = logging.getLogger(__name__)

MAX_LINE_ITEM_AMOUNT = 500000.0
MIN_NAME_LENGTH = 2

# Unrecognized "Total ..." labels are still totals, not charges
TOTAL_WORD = re.compile(r"\b(sub-?\s?)?totals?\b", re.IGNORECASE)

# Bill header rows: patient details, identifiers, dates and contact numbers
HEADER_LABEL_PATTERNS = [
    r"^\s*patient\s*(name|id|no|number|mrn|uhid)\b",
    r"^\s*(name|mrn|uhid|hrn)\s*[:.]?\s*$",
    r"^\s*(age|gender|sex)\b",
    r"^\s*(date\s*of\s*birth|dob)\b",
    r"^\s*address\b",
    r"^\s*(phone|mobile|contact|tel|telephone|fax)\b",
    r"^\s*(bill|invoice|soa|statement|account|case|visit|reg\.?)\s*(no|number|date|#)\b",
    r"^\s*(admission|discharge|billing|confinement)\s*(date|time|no|number)\b",
    r"^\s*(hospital|room|bed|ward)\s*(no|number|#)\.?\s*$",
    r"^\s*(tin|philhealth\s*(no|pin))\b",
    r"\b(date|mrn|uhid|tel|telephone|phone|mobile|contact)\b",
    r"\b(no|number|id)\.?\s*[:#]?\s*$",
]

# Identifier tokens; a bare integer next to one is a reference, not an amount
IDENTIFIER_TOKEN = re.compile(r"\b(no|number|id|mrn|uhid|ref|case|acct|account)\b\.?", re.IGNORECASE)


def is_header_label(label: str) -> bool:
    """True if the label names a header field rather than a charge."""
    if not label:
        return False
    text = label.lower().strip()
    return any(re.search(p, text) for p in HEADER_LABEL_PATTERNS)


@dataclass
class ParsedLineItem:
    """A single charge recovered from a text line."""
    name: str
    amount: float
    line_number: int


def parse_line(line: str, line_number: int = 0) -> Optional[ParsedLineItem]:
    """Parse one text line into a line item, or None if it is not a charge."""
    found = find_line_amount(line)
    if found is None:
        return None
    amount, start, end = found
    if not (0 < amount < MAX_LINE_ITEM_AMOUNT):
        return None

    name = clean_label(line[:start] + " " + line[end:])
    if len(name) <= MIN_NAME_LENGTH:
        return None

    if is_header_label(name):
        logger.debug(f"Skipping header line: {name!r}")
        return None
    if is_bare_integer(line[start:end]) and IDENTIFIER_TOKEN.search(name):
        logger.debug(f"Skipping identifier number: {line[start:end].strip()!r}")
        return None

    if classify_total(name, amount, []) != TotalLevel.LINE_ITEM or TOTAL_WORD.search(name):
        logger.debug(f"Skipping total line: {name!r}")
        return None
    if is_deduction_line(name):
        logger.debug(f"Skipping deduction line: {name!r}")
        return None

    return ParsedLineItem(name=name, amount=round_money(amount), line_number=line_number)


def parse_line_items(text: str) -> List[ParsedLineItem]:
    """
    Parse all charge lines from OCR free text.

    Args:
        text: Raw OCR text, one bill row per line

    Returns:
        Parsed line items in text order (empty when nothing parses)

    Example:
        >>> items = parse_line_items("Room and Board ₱5,000.00\\nGRAND TOTAL 5,000.00")
        >>> [(i.name, i.amount) for i in items]
        [('Room and Board', 5000.0)]
    """
    items: List[ParsedLineItem] = []
    for idx, line in enumerate((text or "").splitlines()):
        if not line.strip():
            continue
        item = parse_line(line, idx)
        if item is not None:
            items.append(item)

    logger.info(f"Parsed {len(items)} line items from OCR text")
    return items


def sum_line_items(items: List[ParsedLineItem]) -> float:
    """Sum line-item amounts, rounded to 2 decimals."""
    return round_money(sum(item.amount for item in items))
