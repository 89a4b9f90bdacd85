"""
Total Classifier.

Labels a single extracted amount as a line item, category subtotal,
section total or grand total using keyword and relative-amount heuristics.

Priority order (first match wins):
1. GRAND_TOTAL keyword                          -> grand_total
2. SECTION_TOTAL keyword                        -> section_total
3. intermediate indicator + literal "total"     -> category_subtotal
4. bare "total" / "total:"                      -> grand_total if largest, else section_total
5. anything else                                -> line_item
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from billguard.auditor.keywords import (
    is_bare_total_label,
    is_grand_total_label,
    is_intermediate_total_label,
    is_section_total_label,
    normalize_label,
)
from billguard.auditor.models import ExtractedTotal, TotalLevel

logger = logging.getLogger(__name__)

# Labels shorter than this are OCR noise
MIN_LABEL_LENGTH = 2


def classify_total(
    label: str,
    amount: float,
    all_totals: Sequence[ExtractedTotal],
) -> TotalLevel:
    """
    Classify one candidate amount by its label.

    Pure function: ``all_totals`` is only read for the bare-"total" rule,
    where the candidate is a grand total iff its amount equals the largest
    amount among all candidates.

    Args:
        label: Label as extracted (any case)
        amount: Candidate amount (validated upstream, > 0)
        all_totals: Full candidate set for relative comparison

    Returns:
        TotalLevel for the candidate

    Examples:
        >>> classify_total("GRAND TOTAL", 25044, [])
        <TotalLevel.GRAND_TOTAL: 'grand_total'>
        >>> classify_total("Total Hospital Charges", 20044, [])
        <TotalLevel.SECTION_TOTAL: 'section_total'>
        >>> classify_total("Room and Board", 8000, [])
        <TotalLevel.LINE_ITEM: 'line_item'>
    """
    text = normalize_label(label)
    if len(text) < MIN_LABEL_LENGTH:
        return TotalLevel.LINE_ITEM

    if is_grand_total_label(text):
        return TotalLevel.GRAND_TOTAL

    if is_section_total_label(text):
        return TotalLevel.SECTION_TOTAL

    if is_intermediate_total_label(text):
        return TotalLevel.CATEGORY_SUBTOTAL

    if is_bare_total_label(text):
        if all_totals and amount == max(t.amount for t in all_totals):
            return TotalLevel.GRAND_TOTAL
        return TotalLevel.SECTION_TOTAL

    return TotalLevel.LINE_ITEM


def classify_totals(totals: Sequence[ExtractedTotal]) -> List[ExtractedTotal]:
    """
    Classify every candidate, returning re-tagged copies in input order.

    The inputs are never mutated; any ``level`` they carry is ignored.
    """
    classified = []
    for total in totals:
        level = classify_total(total.label, total.amount, totals)
        logger.debug(f"Classified '{total.label}' ({total.amount:.2f}) as {level.value}")
        classified.append(total.model_copy(update={"level": level}))
    return classified
