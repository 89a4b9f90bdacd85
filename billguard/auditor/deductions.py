"""
Deduction Validator.

Every amount that reduces what the patient owes (discounts, payments,
HMO/PhilHealth coverage) must be backed by visible documentation before it
is accepted. Undocumented deductions are never assumed valid: a single
unverified item of any amount fails validation.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from billguard.auditor.models import (
    COVERAGE_TYPES,
    BillFinancials,
    CoverageStatus,
    DeductionItem,
    DeductionType,
    DeductionValidation,
)
from billguard.utils.money import format_money, round_money

logger = logging.getLogger(__name__)


# Issue attached to deductions synthesized from aggregate amounts
SYNTHESIZED_ISSUES: Dict[DeductionType, str] = {
    DeductionType.DISCOUNT: (
        "No discount authorization or ID reference visible — discount not confirmed"
    ),
    DeductionType.PAYMENT: (
        "No official receipt number visible — payment not confirmed"
    ),
    DeductionType.HMO: (
        "No policy number or LOA visible — coverage not confirmed"
    ),
    DeductionType.PHILHEALTH: (
        "No PhilHealth member ID or claim reference visible — coverage not confirmed"
    ),
}

SYNTHESIZED_DESCRIPTIONS: Dict[DeductionType, str] = {
    DeductionType.DISCOUNT: "Discounts (aggregate)",
    DeductionType.PAYMENT: "Payments (aggregate)",
    DeductionType.HMO: "HMO coverage (aggregate)",
    DeductionType.PHILHEALTH: "PhilHealth coverage (aggregate)",
}

FULL_PAYMENT_WARNING = (
    "Coverage of {amount} is not backed by a visible policy number, LOA or member ID. "
    "Default assumption is full payment by the patient until coverage is proven."
)


def synthesize_deductions(financials: BillFinancials) -> List[DeductionItem]:
    """
    Build one undocumented DeductionItem per non-zero aggregate field.

    Args:
        financials: Bill financials without an itemized breakdown

    Returns:
        Synthesized deduction items (all unverified)
    """
    aggregates = [
        (DeductionType.DISCOUNT, financials.discounts),
        (DeductionType.PAYMENT, financials.payments),
        (DeductionType.HMO, financials.hmo_coverage),
        (DeductionType.PHILHEALTH, financials.philhealth_coverage),
    ]
    return [
        DeductionItem(
            type=deduction_type,
            amount=amount,
            description=SYNTHESIZED_DESCRIPTIONS[deduction_type],
            has_documentation=False,
            verification_issue=SYNTHESIZED_ISSUES[deduction_type],
        )
        for deduction_type, amount in aggregates
        if amount > 0
    ]


def determine_coverage_status(
    financials: BillFinancials,
    items: List[DeductionItem],
) -> CoverageStatus:
    """
    Decide whether third-party coverage is backed by documentation.

    - no_coverage: no HMO/PhilHealth amount and no coverage item
    - confirmed:   every coverage item is verified
    - unconfirmed: at least one coverage item is unverified
    - unknown:     coverage amount stated but no coverage item to back it
    """
    coverage_items = [i for i in items if i.type in COVERAGE_TYPES and i.amount > 0]
    stated_coverage = financials.hmo_coverage + financials.philhealth_coverage

    if stated_coverage == 0 and not coverage_items:
        return CoverageStatus.NO_COVERAGE
    if not coverage_items:
        return CoverageStatus.UNKNOWN
    if all(i.is_verified for i in coverage_items):
        return CoverageStatus.CONFIRMED
    return CoverageStatus.UNCONFIRMED


def validate_deductions(financials: BillFinancials) -> DeductionValidation:
    """
    Validate every deduction applied against the bill's grand total.

    Uses the itemized breakdown when present, otherwise synthesizes
    unverified items from the aggregate amounts.

    Args:
        financials: Bill financials (aggregates and optional breakdown)

    Returns:
        DeductionValidation (never raises)

    Example:
        >>> validation = validate_deductions(BillFinancials(hmo_coverage=12000))
        >>> validation.coverage_status, validation.validation_passed
        (<CoverageStatus.UNCONFIRMED: 'unconfirmed'>, False)
    """
    if financials.deduction_breakdown:
        items = list(financials.deduction_breakdown)
    else:
        items = synthesize_deductions(financials)

    issues: List[str] = []
    verified_amount = 0.0
    unverified_amount = 0.0

    for item in items:
        if item.is_verified:
            verified_amount += item.amount
            continue
        unverified_amount += item.amount
        if item.amount > 0:
            issues.append(
                f"Unverified {item.type.value} deduction of {format_money(item.amount)}"
                f" ({item.description or 'no description'}): {item.verification_issue}"
            )

    coverage_status = determine_coverage_status(financials, items)
    if coverage_status == CoverageStatus.UNCONFIRMED:
        unconfirmed = sum(
            i.amount for i in items if i.type in COVERAGE_TYPES and not i.is_verified
        )
        issues.append(FULL_PAYMENT_WARNING.format(amount=format_money(unconfirmed)))
    elif coverage_status == CoverageStatus.UNKNOWN:
        issues.append(
            "Coverage amount is stated but no itemized coverage entry supports it. "
            "Default assumption is full payment by the patient until coverage is proven."
        )

    verified_amount = round_money(verified_amount)
    unverified_amount = round_money(unverified_amount)
    validation_passed = not issues and unverified_amount == 0

    if not validation_passed:
        logger.warning(
            f"Deduction validation failed: {format_money(unverified_amount)} unverified, "
            f"coverage={coverage_status.value}, {len(issues)} issue(s)"
        )

    return DeductionValidation(
        total_deductions=round_money(verified_amount + unverified_amount),
        verified_deductions=verified_amount,
        unverified_deductions=unverified_amount,
        coverage_status=coverage_status,
        validation_passed=validation_passed,
        issues=issues,
        deduction_breakdown=items,
    )
