"""
Audit orchestrator.

Runs the full financial audit for one bill:

    payload -> normalize -> hierarchy -> discrepancy
                                      -> balance reconciliation
                                      -> deduction validation
            -> AuditReport

Every call owns its own AuditTrail; nothing is shared between requests.
Missing or unusable extraction data yields a degraded report
(``could_verify_math=False``) instead of an exception.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from billguard.auditor.audit_trail import AuditTrail
from billguard.auditor.deductions import validate_deductions
from billguard.auditor.discrepancy import calculate_discrepancy
from billguard.auditor.grand_total_resolver import SECTION_SUM_TIGHT_TOLERANCE
from billguard.auditor.hierarchy import build_total_hierarchy
from billguard.auditor.models import (
    AffectedParty,
    AuditReport,
    BalanceCheck,
    BillFinancials,
    ChargeStatus,
    DeductionValidation,
    DiscrepancyResult,
    SubtotalCheck,
    TotalHierarchy,
    VerificationStatus,
)
from billguard.auditor.reconciler import reconcile_financials
from billguard.extraction.collaborator import ExtractionOutcome
from billguard.extraction.line_items import parse_line_items, sum_line_items
from billguard.extraction.llm_response import (
    ExtractionPayload,
    normalize_candidates,
    normalize_deductions,
)
from billguard.utils.money import format_money, round_money

logger = logging.getLogger(__name__)

CONFIDENCE_BY_STATUS = {
    VerificationStatus.VERIFIED: 95,
    VerificationStatus.LIKELY_CORRECT: 80,
    VerificationStatus.UNCERTAIN: 60,
    VerificationStatus.FAILED: 0,
}

FULL_PAYMENT_RECOMMENDATION = (
    "Deductions could not be verified. The patient should be prepared to pay the "
    "full amount until the deduction is documented (ask for the LOA, policy number "
    "or official receipt)."
)


def compute_line_items_total(
    payload: ExtractionPayload,
    hierarchy: TotalHierarchy,
    trail: AuditTrail,
    ocr_text: Optional[str] = None,
    line_items: Optional[Sequence[float]] = None,
) -> float:
    """
    Independently sum the bill's line items.

    Source priority: explicit line items, parsed OCR text, the payload's
    ``calculatedLineItemsTotal``, then the hierarchy's line-item bucket.
    """
    if line_items:
        total = round_money(sum(float(a) for a in line_items))
        trail.log("line_items", "Summed explicit line items", {"count": len(line_items), "total": total})
        return total

    if ocr_text:
        parsed = parse_line_items(ocr_text)
        if parsed:
            total = sum_line_items(parsed)
            trail.log("line_items", "Summed line items parsed from OCR text",
                      {"count": len(parsed), "total": total})
            return total
        trail.log("line_items", "No line items parsed from OCR text", success=False)

    if payload.calculated_line_items_total is not None:
        total = payload.calculated_line_items_total
        trail.log("line_items", "Using collaborator line-items total", {"total": total})
        return total

    total = round_money(sum(t.amount for t in hierarchy.line_items))
    trail.log("line_items", "Summed hierarchy line items",
              {"count": len(hierarchy.line_items), "total": total},
              success=bool(hierarchy.line_items))
    return total


def build_recommendations(
    could_verify_math: bool,
    hierarchy: TotalHierarchy,
    discrepancy: Optional[DiscrepancyResult],
    charge_status: ChargeStatus,
    errors: List[str],
    deduction_validation: DeductionValidation,
) -> List[str]:
    recommendations: List[str] = []

    if not could_verify_math:
        recommendations.append(
            "Could not verify calculations: no grand total was found. "
            "Try a clearer image of the full bill, including the last page."
        )
    elif hierarchy.verification_status == VerificationStatus.UNCERTAIN:
        recommendations.append(
            "Several amounts are labeled as the grand total. Confirm the final amount "
            "with the billing office."
        )

    if discrepancy is not None and discrepancy.should_flag and could_verify_math:
        recommendations.append(discrepancy.explanation)

    if charge_status == ChargeStatus.OVERCHARGED:
        recommendations.append(
            "Request an itemized statement and ask the billing office to explain the difference."
        )
    elif charge_status == ChargeStatus.UNDERCHARGED:
        recommendations.append(
            "The bill appears to under-charge. Expect a corrected bill from the hospital."
        )
    recommendations.extend(errors)

    if not deduction_validation.validation_passed:
        recommendations.append(FULL_PAYMENT_RECOMMENDATION)

    return recommendations


def cross_check_collaborator(
    payload: ExtractionPayload,
    hierarchy: TotalHierarchy,
    subtotal_check: SubtotalCheck,
    trail: AuditTrail,
) -> List[str]:
    """
    Compare the collaborator's own summary fields with the resolved figures.

    The resolved hierarchy always wins; disagreements are recorded on the
    trail so a reviewer can see where the extraction and the audit differ.

    Returns:
        Recommendation lines for findings the patient should act on
    """
    recommendations: List[str] = []

    reported = payload.reported_grand_total
    if reported is not None:
        resolved = hierarchy.grand_total_amount
        if resolved is None:
            trail.log("cross_check", "Collaborator reported a grand total the hierarchy could not resolve",
                      {"reported": reported}, success=False)
        else:
            agrees = abs(reported - resolved) < SECTION_SUM_TIGHT_TOLERANCE
            trail.log(
                "cross_check",
                "Collaborator grand total agrees" if agrees else "Collaborator grand total differs",
                {"reported": reported, "resolved": resolved},
                success=agrees,
            )

    reported_sections = payload.reported_section_sum
    if reported_sections is not None and hierarchy.section_sum is not None:
        agrees = abs(reported_sections - hierarchy.section_sum) < SECTION_SUM_TIGHT_TOLERANCE
        trail.log(
            "cross_check",
            "Collaborator section totals agree" if agrees else "Collaborator section totals differ",
            {"reported": reported_sections, "resolved": hierarchy.section_sum},
            success=agrees,
        )

    claimed = payload.line_items_match_subtotal
    if claimed is not None and subtotal_check != SubtotalCheck.UNABLE_TO_VERIFY:
        matched = subtotal_check == SubtotalCheck.MATCH
        trail.log(
            "cross_check",
            "Collaborator line-items claim confirmed" if claimed == matched
            else "Collaborator line-items claim contradicted",
            {"claimedMatch": claimed, "subtotalCheck": subtotal_check.value},
            success=claimed == matched,
        )

    if payload.duplicates_detected:
        trail.log("cross_check", "Collaborator detected duplicate charges",
                  {"count": payload.duplicates_detected}, success=False)
        recommendations.append(
            f"{payload.duplicates_detected} possible duplicate charge(s) detected. "
            "Ask the billing office to confirm each repeated item."
        )

    return recommendations


def affected_party_for(charge_status: ChargeStatus) -> AffectedParty:
    if charge_status == ChargeStatus.UNDERCHARGED:
        return AffectedParty.HOSPITAL
    if charge_status == ChargeStatus.OVERCHARGED:
        return AffectedParty.PATIENT
    return AffectedParty.NONE


def audit_bill(
    payload: Union[ExtractionPayload, Dict[str, Any], None],
    ocr_text: Optional[str] = None,
    line_items: Optional[Sequence[float]] = None,
    trail: Optional[AuditTrail] = None,
) -> AuditReport:
    """
    Audit one bill's financial figures.

    Args:
        payload: Extraction payload (model or camelCase dict); None when
            extraction failed. A dict with invalid fields is treated as missing.
        ocr_text: Raw OCR text, used to sum line items independently
        line_items: Explicit line-item amounts (takes precedence over OCR text)
        trail: Existing trail to continue (a new one is created otherwise)

    Returns:
        AuditReport (degraded, never raises, when data is missing)
    """
    trail = trail if trail is not None else AuditTrail()
    payload_missing = payload is None
    if payload is None:
        trail.log("audit", "No extraction payload available", success=False)
        payload = ExtractionPayload()
    elif isinstance(payload, dict):
        try:
            payload = ExtractionPayload.model_validate(payload)
        except ValidationError as e:
            trail.log("audit", "Extraction payload has invalid fields",
                      {"errors": e.error_count()}, success=False)
            payload_missing = True
            payload = ExtractionPayload()

    # Step 1: hierarchy
    totals = normalize_candidates(payload.all_totals, trail)
    hierarchy = build_total_hierarchy(totals)
    trail.log(
        "hierarchy",
        f"Resolved grand total ({hierarchy.verification_status.value})",
        {
            "grandTotal": hierarchy.grand_total_amount,
            "sectionTotals": len(hierarchy.section_totals),
            "candidates": hierarchy.grand_total_candidate_count,
        },
        success=hierarchy.grand_total is not None,
    )

    # Step 2: independent line-items sum
    calculated_total = compute_line_items_total(payload, hierarchy, trail, ocr_text, line_items)

    # Step 3: financial summary (subtotal is the resolved grand total, never the section sum)
    financials = BillFinancials(
        calculated_line_items_total=calculated_total,
        subtotal=hierarchy.grand_total_amount,
        discounts=payload.discounts,
        payments=payload.payments,
        hmo_coverage=payload.hmo_coverage,
        philhealth_coverage=payload.philhealth_coverage,
        balance_due=payload.balance_due,
        deduction_breakdown=normalize_deductions(payload.deduction_breakdown, trail),
        grand_total_label=hierarchy.grand_total.label if hierarchy.grand_total else None,
        verification_status=hierarchy.verification_status,
        section_totals=hierarchy.section_totals,
    )

    could_verify_math = not payload_missing and hierarchy.grand_total is not None

    # Step 4: checks
    discrepancy = None
    if hierarchy.grand_total is not None:
        discrepancy = calculate_discrepancy(calculated_total, hierarchy.grand_total.amount, hierarchy)
        trail.log("discrepancy", f"Discrepancy status: {discrepancy.status.value}",
                  {"discrepancy": discrepancy.discrepancy, "percent": discrepancy.discrepancy_percent},
                  success=not discrepancy.should_flag)

    reconciliation = reconcile_financials(financials)
    trail.log("reconciliation", f"Charge status: {reconciliation.charge_status.value}",
              {"subtotalCheck": reconciliation.subtotal_check.value,
               "balanceCheck": reconciliation.balance_check.value,
               "totalDiscrepancy": reconciliation.total_discrepancy})

    deduction_validation = validate_deductions(financials)
    trail.log("deductions",
              f"Deduction validation {'passed' if deduction_validation.validation_passed else 'failed'}",
              {"verified": deduction_validation.verified_deductions,
               "unverified": deduction_validation.unverified_deductions,
               "coverageStatus": deduction_validation.coverage_status.value},
              success=deduction_validation.validation_passed)

    if could_verify_math:
        charge_status = reconciliation.charge_status
        subtotal_check = reconciliation.subtotal_check
        balance_check = reconciliation.balance_check
    else:
        charge_status = ChargeStatus.UNABLE_TO_VERIFY
        subtotal_check = SubtotalCheck.UNABLE_TO_VERIFY
        balance_check = BalanceCheck.UNABLE_TO_VERIFY

    recommendations = build_recommendations(
        could_verify_math,
        hierarchy,
        discrepancy,
        charge_status,
        [e.breakdown for e in reconciliation.errors] if could_verify_math else [],
        deduction_validation,
    )
    if not payload_missing:
        recommendations.extend(cross_check_collaborator(payload, hierarchy, subtotal_check, trail))

    report = AuditReport(
        could_verify_math=could_verify_math,
        charge_status=charge_status,
        subtotal_check=subtotal_check,
        balance_check=balance_check,
        total_discrepancy=reconciliation.total_discrepancy if could_verify_math else 0.0,
        affected_party=affected_party_for(charge_status),
        confidence=CONFIDENCE_BY_STATUS[hierarchy.verification_status] if could_verify_math else 0,
        financials=financials,
        hierarchy=hierarchy,
        discrepancy=discrepancy,
        reconciliation=reconciliation,
        deduction_validation=deduction_validation,
        recommendations=recommendations,
        audit_trail=list(trail.entries),
    )

    logger.info(
        f"Audit complete: {charge_status.value}, subtotal={format_money(financials.subtotal or 0)}, "
        f"discrepancy={format_money(report.total_discrepancy)}, confidence={report.confidence}"
    )
    return report


def audit_from_outcome(
    outcome: ExtractionOutcome,
    line_items: Optional[Sequence[float]] = None,
) -> AuditReport:
    """Audit a bill from a collaborator outcome; degraded when the payload is absent."""
    trail = AuditTrail()
    for error in outcome.errors:
        trail.log("extraction", error, success=False)
    return audit_bill(outcome.payload, ocr_text=outcome.text, line_items=line_items, trail=trail)
