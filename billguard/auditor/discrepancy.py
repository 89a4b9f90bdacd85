"""
Discrepancy Calculator.

Compares an independently computed line-items sum against the bill's
resolved grand total and classifies the result:

- calculated > grand total  -> undercharge (hospital under-billed itself)
- calculated < grand total  -> overcharge  (patient charged for value not itemized)

Three checks are always recorded for the audit trail; a fourth, failing
"Large Discrepancy Alert" is added when the gap exceeds 20% of the bill.
"""

from __future__ import annotations

import logging
from typing import List

from billguard.auditor.models import (
    AffectedParty,
    DiscrepancyResult,
    DiscrepancyStatus,
    TotalHierarchy,
    VerificationCheck,
    VerificationStatus,
)
from billguard.utils.money import format_money, round_money, safe_percent

logger = logging.getLogger(__name__)

ROUNDING_TOLERANCE = 1.00
LARGE_DISCREPANCY_PERCENT = 20.0

TRUSTED_STATUSES = (VerificationStatus.VERIFIED, VerificationStatus.LIKELY_CORRECT)


def calculate_discrepancy(
    calculated_total: float,
    bill_grand_total: float,
    hierarchy: TotalHierarchy,
) -> DiscrepancyResult:
    """
    Calculate the discrepancy between the line-items sum and the grand total.

    Args:
        calculated_total: Sum of the bill's line items
        bill_grand_total: Grand total resolved from the bill
        hierarchy: Hierarchy the grand total came from

    Returns:
        DiscrepancyResult (pure, never raises)

    Example:
        >>> result = calculate_discrepancy(20044, 25044, hierarchy)
        >>> result.status, result.affected_party
        (<DiscrepancyStatus.OVERCHARGE: 'overcharge'>, <AffectedParty.PATIENT: 'patient'>)
    """
    checks: List[VerificationCheck] = []
    status_value = hierarchy.verification_status

    # Check 1: the compared total is the grand total, not an intermediate subtotal
    if status_value == VerificationStatus.VERIFIED:
        grand_details = f"Grand total confirmed: {format_money(bill_grand_total)}"
    elif status_value == VerificationStatus.LIKELY_CORRECT:
        grand_details = f"Grand total inferred: {format_money(bill_grand_total)}"
    elif status_value == VerificationStatus.UNCERTAIN:
        grand_details = f"Multiple grand totals found - using {format_money(bill_grand_total)}"
    else:
        grand_details = "Could not verify grand total"
    grand_check = VerificationCheck(
        name="Grand Total Verification",
        passed=status_value in TRUSTED_STATUSES,
        details=grand_details,
    )
    checks.append(grand_check)

    # Check 2: the calculated total includes line items at all
    checks.append(
        VerificationCheck(
            name="Line Items Completeness",
            passed=calculated_total > 0,
            details=(
                f"Calculated from {len(hierarchy.line_items)} line items: {format_money(calculated_total)}"
                if calculated_total > 0
                else "No line items extracted"
            ),
        )
    )

    discrepancy = round_money(abs(calculated_total - bill_grand_total))
    discrepancy_percent = safe_percent(discrepancy, bill_grand_total)

    # Check 3: the gap is not just rounding
    checks.append(
        VerificationCheck(
            name="Rounding Check",
            passed=discrepancy < ROUNDING_TOLERANCE,
            details=(
                f"Difference ({format_money(discrepancy)}) is within rounding tolerance"
                if discrepancy < ROUNDING_TOLERANCE
                else f"Difference ({format_money(discrepancy)}) exceeds rounding tolerance"
            ),
        )
    )

    affected_party = AffectedParty.NONE
    if not grand_check.passed:
        status = DiscrepancyStatus.UNABLE_TO_VERIFY
        should_flag = True
        explanation = (
            "Could not verify grand total from bill. "
            "Please check the extracted totals manually."
        )
    elif discrepancy <= ROUNDING_TOLERANCE:
        status = DiscrepancyStatus.NO_DISCREPANCY
        should_flag = False
        explanation = (
            f"Bill calculations are correct (within {format_money(ROUNDING_TOLERANCE)} tolerance)."
        )
    elif calculated_total > bill_grand_total:
        status = DiscrepancyStatus.UNDERCHARGE
        affected_party = AffectedParty.HOSPITAL
        should_flag = True
        explanation = (
            f"Line items sum to {format_money(calculated_total)} but bill's grand total is only "
            f"{format_money(bill_grand_total)}. Hospital may have missed charges worth "
            f"{format_money(discrepancy)} ({discrepancy_percent:.1f}% of bill)."
        )
    else:
        status = DiscrepancyStatus.OVERCHARGE
        affected_party = AffectedParty.PATIENT
        should_flag = True
        explanation = (
            f"Line items sum to {format_money(calculated_total)} but bill's grand total is "
            f"{format_money(bill_grand_total)}. Patient may be overcharged by "
            f"{format_money(discrepancy)} ({discrepancy_percent:.1f}% of bill)."
        )

    if discrepancy_percent > LARGE_DISCREPANCY_PERCENT and status in (
        DiscrepancyStatus.UNDERCHARGE,
        DiscrepancyStatus.OVERCHARGE,
    ):
        explanation += (
            f"\n\n🚨 CRITICAL: {discrepancy_percent:.1f}% discrepancy is unusually large. "
            "This may indicate a system extraction error. "
            "Please verify totals manually before taking action."
        )
        checks.append(
            VerificationCheck(
                name="Large Discrepancy Alert",
                passed=False,
                details=(
                    f"{discrepancy_percent:.1f}% discrepancy exceeds "
                    f"{LARGE_DISCREPANCY_PERCENT:.0f}% threshold - manual review recommended"
                ),
            )
        )
        logger.warning(f"Large discrepancy: {discrepancy_percent:.1f}% of bill")

    return DiscrepancyResult(
        calculated_total=round_money(calculated_total),
        bill_grand_total=round_money(bill_grand_total),
        discrepancy=discrepancy,
        discrepancy_percent=round(discrepancy_percent, 2),
        status=status,
        affected_party=affected_party,
        should_flag=should_flag,
        explanation=explanation,
        verification_checks=checks,
    )
