"""
Grand-Total Resolver.

Scores competing grand-total candidates and selects one, or infers a grand
total from the section totals when the bill carries no explicit label.

The scoring weights are a tunable policy, exposed as module constants.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from billguard.auditor.keywords import is_grand_total_label, is_section_total_label
from billguard.auditor.models import ExtractedTotal, TotalLevel
from billguard.utils.money import format_money, round_money

logger = logging.getLogger(__name__)


# =============================================================================
# Scoring Policy
# =============================================================================

GRAND_KEYWORD_BONUS = 100
SECTION_KEYWORD_PENALTY = 50
LARGEST_AMOUNT_BONUS = 30
LAST_POSITION_BONUS = 20
SECTION_SUM_TIGHT_BONUS = 50
SECTION_SUM_LOOSE_BONUS = 25
SMALL_AMOUNT_PENALTY = 40
SMALL_AMOUNT_RATIO = 0.5

# Section-sum tolerances (also used by the hierarchy cross-check)
SECTION_SUM_TIGHT_TOLERANCE = 10.0
SECTION_SUM_LOOSE_TOLERANCE = 100.0
MIN_SECTIONS_FOR_SUM = 2

# Confidence assigned to a last-resort grand total
FALLBACK_CONFIDENCE = 60.0


def section_sum(section_totals: Sequence[ExtractedTotal]) -> Optional[float]:
    """Sum of section totals, or None when too few exist to cross-check."""
    if len(section_totals) < MIN_SECTIONS_FOR_SUM:
        return None
    return round_money(sum(t.amount for t in section_totals))


def score_grand_total_candidate(
    total: ExtractedTotal,
    all_totals: Sequence[ExtractedTotal],
    section_totals: Sequence[ExtractedTotal],
) -> int:
    """
    Score a potential grand total. Higher = more likely the real one.

    Args:
        total: Candidate being scored
        all_totals: Every extracted amount on the bill
        section_totals: Candidates classified as section totals

    Returns:
        Integer score
    """
    score = 0

    if is_grand_total_label(total.label):
        score += GRAND_KEYWORD_BONUS

    if is_section_total_label(total.label):
        score -= SECTION_KEYWORD_PENALTY

    max_amount = max((t.amount for t in all_totals), default=total.amount)
    if total.amount == max_amount:
        score += LARGEST_AMOUNT_BONUS

    if all_totals and total.position == max(t.position for t in all_totals):
        score += LAST_POSITION_BONUS

    sections = section_sum(section_totals)
    if sections is not None:
        diff = abs(total.amount - sections)
        if diff < SECTION_SUM_TIGHT_TOLERANCE:
            score += SECTION_SUM_TIGHT_BONUS
        elif diff < SECTION_SUM_LOOSE_TOLERANCE:
            score += SECTION_SUM_LOOSE_BONUS

    if total.amount < max_amount * SMALL_AMOUNT_RATIO:
        score -= SMALL_AMOUNT_PENALTY

    return score


def select_best_grand_total(
    candidates: Sequence[ExtractedTotal],
    all_totals: Sequence[ExtractedTotal],
    section_totals: Sequence[ExtractedTotal],
) -> Optional[ExtractedTotal]:
    """
    Select the best grand total from the classified candidates.

    Ties go to the candidate that appears first in ``candidates``.

    Returns:
        Selected candidate, or None when there are no candidates
    """
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]

    ranked = rank_candidates(candidates, all_totals, section_totals)
    for score, candidate in ranked:
        logger.debug(f"Grand total candidate '{candidate.label}' ({candidate.amount:.2f}) scored {score}")
    return ranked[0][1]


@dataclass
class InferredGrandTotal:
    """Result of grand-total inference when no explicit label exists."""
    total: ExtractedTotal
    source_index: int         # Index of the promoted candidate in all_totals
    matched_section_sum: bool
    note: str


def infer_grand_total(
    all_totals: Sequence[ExtractedTotal],
    section_totals: Sequence[ExtractedTotal],
) -> Optional[InferredGrandTotal]:
    """
    Promote the largest amount to grand total when no candidate was labeled.

    If at least two section totals exist and the largest amount is within
    the loose tolerance of their sum, the promotion is backed by the sum.
    Otherwise the largest amount is still promoted as a last resort with
    reduced confidence.

    Returns:
        InferredGrandTotal, or None when there are no totals at all
    """
    if not all_totals:
        return None

    largest_index = max(range(len(all_totals)), key=lambda i: all_totals[i].amount)
    largest = all_totals[largest_index]

    sections = section_sum(section_totals)
    if sections is not None and abs(largest.amount - sections) < SECTION_SUM_LOOSE_TOLERANCE:
        logger.info(
            f"Grand total inferred from section sum: '{largest.label}' = {largest.amount:.2f}"
        )
        return InferredGrandTotal(
            total=largest.model_copy(update={"level": TotalLevel.GRAND_TOTAL}),
            source_index=largest_index,
            matched_section_sum=True,
            note=(
                f"Grand total inferred: {format_money(largest.amount)} matches sum of "
                f"{len(section_totals)} section totals"
            ),
        )

    logger.warning(
        f"No explicit grand total found; using largest amount '{largest.label}' = {largest.amount:.2f}"
    )
    return InferredGrandTotal(
        total=largest.model_copy(
            update={"level": TotalLevel.GRAND_TOTAL, "confidence": FALLBACK_CONFIDENCE}
        ),
        source_index=largest_index,
        matched_section_sum=False,
        note=f"⚠️ No explicit grand total found. Using largest amount: {format_money(largest.amount)}",
    )


def rank_candidates(
    candidates: Sequence[ExtractedTotal],
    all_totals: Sequence[ExtractedTotal],
    section_totals: Sequence[ExtractedTotal],
) -> List[Tuple[int, ExtractedTotal]]:
    """(score, candidate) pairs sorted best-first, stable on ties."""
    scored = [
        (score_grand_total_candidate(c, all_totals, section_totals), c)
        for c in candidates
    ]
    return sorted(scored, key=lambda pair: -pair[0])
