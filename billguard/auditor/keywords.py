"""
Canonical keyword lists for total classification.

Matching is a case-insensitive substring test against the lower-cased,
trimmed label. The lists are data: their order and spelling are part of
the classification contract and must not be edited casually.
"""

from __future__ import annotations

from typing import Iterable, List, Tuple


# =============================================================================
# Grand Total Keywords (highest priority)
# =============================================================================
GRAND_TOTAL_KEYWORDS: List[str] = [
    "grand total",
    "grand total:",
    "total amount due",
    "total amount",
    "amount due",
    "amount payable",
    "final total",
    "final amount",
    "total balance",
    "balance due",
    "net amount due",
    "please pay this amount",
    "patient responsibility",
    "due from patient",
    "patient balance",
    "total due",
    "payable amount",
    # Filipino/Tagalog variations
    "kabuuang halaga",
    "total na babayaran",
]

# =============================================================================
# Section Total Keywords (intermediate, never the grand total)
# =============================================================================
SECTION_TOTAL_KEYWORDS: List[str] = [
    "total hospital charges",
    "hospital charges total",
    "total professional fees",
    "professional fees total",
    "total ward charges",
    "total room charges",
    "subtotal",
    "sub-total",
    "sub total",
    "charges subtotal",
]

# =============================================================================
# Intermediate Total Indicators (only with a co-occurring "total")
# =============================================================================
INTERMEDIATE_TOTAL_INDICATORS: List[str] = [
    "hospital charges",
    "professional fee",
    "room and board",
    "drugs and medicine",
    "laboratory",
    "misc",
    "supplies",
    "ward",
]

BARE_TOTAL_LABELS = ("total", "total:")


def normalize_label(label: str) -> str:
    """Lower-case and trim a label for matching."""
    return (label or "").lower().strip()


def contains_any(label: str, keywords: Iterable[str]) -> bool:
    """True if the normalized label contains any keyword as a substring."""
    text = normalize_label(label)
    return any(kw in text for kw in keywords)


def is_grand_total_label(label: str) -> bool:
    return contains_any(label, GRAND_TOTAL_KEYWORDS)


def is_section_total_label(label: str) -> bool:
    return contains_any(label, SECTION_TOTAL_KEYWORDS)


def is_intermediate_total_label(label: str) -> bool:
    text = normalize_label(label)
    return "total" in text and any(kw in text for kw in INTERMEDIATE_TOTAL_INDICATORS)


def is_bare_total_label(label: str) -> bool:
    return normalize_label(label) in BARE_TOTAL_LABELS


def find_keyword_conflicts() -> List[Tuple[str, str]]:
    """Return (grand_keyword, section_keyword) pairs where the grand keyword
    is a substring of the section keyword.

    A non-empty result means a section label could be captured as a grand
    total by the first classification rule.
    """
    return [
        (grand, section)
        for grand in GRAND_TOTAL_KEYWORDS
        for section in SECTION_TOTAL_KEYWORDS
        if grand in section
    ]


def keyword_catalog() -> dict:
    """All keyword lists, keyed by their role."""
    return {
        "grandTotal": list(GRAND_TOTAL_KEYWORDS),
        "sectionTotal": list(SECTION_TOTAL_KEYWORDS),
        "intermediateTotalIndicators": list(INTERMEDIATE_TOTAL_INDICATORS),
    }
