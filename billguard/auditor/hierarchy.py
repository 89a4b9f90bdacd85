"""
Hierarchy Builder.

Runs the Total Classifier and the Grand-Total Resolver over a flat list of
extracted candidates and produces a TotalHierarchy with a verification
status and an append-only list of verification notes.

Every candidate lands in exactly one bucket:
    len(line_items) + len(category_subtotals) + len(section_totals)
        + (1 if grand_total else 0) == len(all_totals)

Competing grand-total candidates that lose the scoring are re-tagged as
section totals. They are excluded from the section-sum cross-check, which
only uses candidates the classifier itself labeled as section totals.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from billguard.auditor.grand_total_resolver import (
    SECTION_SUM_LOOSE_TOLERANCE,
    SECTION_SUM_TIGHT_TOLERANCE,
    infer_grand_total,
    section_sum,
    select_best_grand_total,
)
from billguard.auditor.keywords import is_grand_total_label
from billguard.auditor.models import (
    ExtractedTotal,
    TotalHierarchy,
    TotalLevel,
    VerificationStatus,
)
from billguard.auditor.total_classifier import classify_totals
from billguard.utils.money import format_money, round_money

logger = logging.getLogger(__name__)


def build_total_hierarchy(extracted_totals: Sequence[ExtractedTotal]) -> TotalHierarchy:
    """
    Build the total hierarchy for one bill.

    Status rules, in order:
    - no grand total resolved                     -> failed
    - one explicitly labeled candidate            -> verified
    - several candidates                          -> uncertain
    - otherwise (inferred / bare "Total")         -> likely_correct
    Then, if at least two section totals sum to within the tight tolerance
    of the grand total, the status is upgraded to verified. A sum more
    than the loose tolerance away only adds a warning note.

    Args:
        extracted_totals: Candidates in document order

    Returns:
        Resolved TotalHierarchy (never raises)
    """
    classified = classify_totals(extracted_totals)
    notes: List[str] = []

    candidates = [t for t in classified if t.level == TotalLevel.GRAND_TOTAL]
    section_candidates = [t for t in classified if t.level == TotalLevel.SECTION_TOTAL]

    grand_total = select_best_grand_total(candidates, classified, section_candidates)
    promoted_index: Optional[int] = None
    inferred = False

    if grand_total is None and classified:
        inference = infer_grand_total(classified, section_candidates)
        if inference is not None:
            grand_total = inference.total
            promoted_index = inference.source_index
            inferred = True
            notes.append(inference.note)

    # Partition into buckets
    line_items: List[ExtractedTotal] = []
    category_subtotals: List[ExtractedTotal] = []
    section_totals: List[ExtractedTotal] = []
    demoted: List[ExtractedTotal] = []

    for index, total in enumerate(classified):
        if index == promoted_index:
            continue
        if total.level == TotalLevel.LINE_ITEM:
            line_items.append(total)
        elif total.level == TotalLevel.CATEGORY_SUBTOTAL:
            category_subtotals.append(total)
        elif total.level == TotalLevel.SECTION_TOTAL:
            section_totals.append(total)
        elif total is not grand_total:
            demoted_total = total.model_copy(update={"level": TotalLevel.SECTION_TOTAL})
            section_totals.append(demoted_total)
            demoted.append(demoted_total)

    # Verification status
    status = VerificationStatus.FAILED

    if grand_total is None:
        if classified:
            notes.append("✗ Could not identify a grand total from the extracted totals")
        else:
            notes.append("✗ No totals were extracted from the bill")
    elif len(candidates) == 1 and is_grand_total_label(grand_total.label):
        status = VerificationStatus.VERIFIED
        notes.append(
            f'✓ Single grand total found: "{grand_total.label}" = {format_money(grand_total.amount)}'
        )
    elif len(candidates) > 1:
        status = VerificationStatus.UNCERTAIN
        notes.append(
            f"⚠️ Multiple grand total candidates found ({len(candidates)}). "
            f'Selected: "{grand_total.label}" = {format_money(grand_total.amount)}'
        )
        if demoted:
            notes.append(
                "Competing candidates treated as section totals: "
                + ", ".join(f'"{t.label}" ({format_money(t.amount)})' for t in demoted)
            )
    else:
        status = VerificationStatus.LIKELY_CORRECT
        if not inferred:
            notes.append(
                f'Grand total taken from unlabeled "{grand_total.label}" '
                f"(largest amount): {format_money(grand_total.amount)}"
            )

    # Cross-check against the classified section totals (a promoted fallback total is excluded)
    checked_sections = [
        t for index, t in enumerate(classified)
        if t.level == TotalLevel.SECTION_TOTAL and index != promoted_index
    ]
    sections = section_sum(checked_sections)
    if grand_total is not None and sections is not None:
        diff = round_money(abs(grand_total.amount - sections))
        if diff < SECTION_SUM_TIGHT_TOLERANCE:
            notes.append(
                "✓ Grand total verified: equals sum of section totals ("
                + " + ".join(t.label for t in checked_sections)
                + ")"
            )
            status = VerificationStatus.VERIFIED
        elif diff > SECTION_SUM_LOOSE_TOLERANCE:
            notes.append(
                f"⚠️ Grand total ({format_money(grand_total.amount)}) differs from section sum "
                f"({format_money(sections)}) by {format_money(diff)}"
            )

    logger.info(
        f"Built total hierarchy: {len(classified)} totals, "
        f"grand_total={grand_total.amount if grand_total else None}, status={status.value}"
    )

    return TotalHierarchy(
        line_items=line_items,
        category_subtotals=category_subtotals,
        section_totals=section_totals,
        grand_total=grand_total,
        all_totals=classified,
        verification_status=status,
        verification_notes=notes,
        grand_total_candidate_count=len(candidates),
        grand_total_inferred=inferred,
        section_sum=sections,
    )
