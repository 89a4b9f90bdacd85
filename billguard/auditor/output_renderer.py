"""
Output Renderer Module

Plain-text views of an AuditReport:
1. Final View - user-facing summary (financials, verdict, deductions)
2. Debug View - final view plus hierarchy buckets and the audit trail
"""

from __future__ import annotations

import json
import logging
from typing import List

from billguard.auditor.models import (
    AuditReport,
    BalanceCheck,
    ChargeStatus,
    ExtractedTotal,
    SubtotalCheck,
)
from billguard.utils.money import format_money

logger = logging.getLogger(__name__)

STATUS_ICONS = {
    ChargeStatus.CORRECTLY_CHARGED: "✅",
    ChargeStatus.UNDERCHARGED: "🟦",
    ChargeStatus.OVERCHARGED: "❌",
    ChargeStatus.UNABLE_TO_VERIFY: "⚠️",
}


def _check_icon(passed: bool) -> str:
    return "✓" if passed else "✗"


def _money_or_na(value) -> str:
    return format_money(value) if value is not None else "N/A"


def render_report(report: AuditReport, debug: bool = False) -> str:
    """
    Render an audit report for the terminal.

    Args:
        report: Audit result
        debug: Append hierarchy buckets and the audit trail

    Returns:
        Formatted string for display
    """
    financials = report.financials
    lines: List[str] = []
    lines.append("=" * 80)
    lines.append("BILL AUDIT RESULTS")
    lines.append("=" * 80)

    if not report.could_verify_math:
        lines.append("")
        lines.append("⚠️  Could not verify calculations: bill totals were not detected.")

    # Financial breakdown
    lines.append("")
    lines.append("Financial Summary:")
    lines.append(f"  Line Items Total (calculated): {format_money(financials.calculated_line_items_total)}")
    label = f' ("{financials.grand_total_label}")' if financials.grand_total_label else ""
    lines.append(f"  Bill Subtotal{label}: {_money_or_na(financials.subtotal)}")
    lines.append(f"  Less Discounts: {format_money(financials.discounts)}")
    lines.append(f"  Less Payments: {format_money(financials.payments)}")
    lines.append(f"  Less HMO Coverage: {format_money(financials.hmo_coverage)}")
    lines.append(f"  Less PhilHealth: {format_money(financials.philhealth_coverage)}")
    lines.append(f"  Expected Balance: {_money_or_na(report.reconciliation.expected_balance)}")
    lines.append(f"  Balance Due (bill): {_money_or_na(financials.balance_due)}")

    # Verdict
    lines.append("")
    lines.append(f"Verdict: {STATUS_ICONS[report.charge_status]} {report.charge_status.value}")
    lines.append(f"  Confidence: {report.confidence}%")
    lines.append(
        f"  {_check_icon(report.subtotal_check == SubtotalCheck.MATCH)} "
        f"Subtotal check: {report.subtotal_check.value}"
    )
    lines.append(
        f"  {_check_icon(report.balance_check == BalanceCheck.MATCH)} "
        f"Balance check: {report.balance_check.value}"
    )
    if report.total_discrepancy:
        lines.append(
            f"  Total Discrepancy: {format_money(report.total_discrepancy)} "
            f"(affects {report.affected_party.value})"
        )
    for error in report.reconciliation.errors:
        lines.append(f"  - [{error.impact.value}] {error.breakdown}")

    if report.discrepancy is not None:
        lines.append("")
        lines.append("Verification Checks:")
        for check in report.discrepancy.verification_checks:
            lines.append(f"  {_check_icon(check.passed)} {check.name}: {check.details}")

    # Deductions
    validation = report.deduction_validation
    lines.append("")
    lines.append("Deductions:")
    lines.append(f"  Coverage Status: {validation.coverage_status.value}")
    lines.append(f"  Verified: {format_money(validation.verified_deductions)}")
    lines.append(f"  Unverified: {format_money(validation.unverified_deductions)}")
    for item in validation.deduction_breakdown:
        if item.is_verified:
            doc = item.documentation_value or item.documentation_type or "documented"
            lines.append(f"  ✓ {item.type.value}: {format_money(item.amount)} ({doc})")
        else:
            lines.append(f"  ⚠️  {item.type.value}: {format_money(item.amount)} - {item.verification_issue}")
    for issue in validation.issues:
        lines.append(f"  ! {issue}")

    # Hierarchy notes
    lines.append("")
    lines.append(f"Grand Total Resolution ({report.hierarchy.verification_status.value}):")
    for note in report.hierarchy.verification_notes:
        lines.append(f"  {note}")

    if report.recommendations:
        lines.append("")
        lines.append("Recommendations:")
        for rec in report.recommendations:
            lines.append(f"  • {rec}")

    if debug:
        lines.extend(_render_debug_sections(report))

    lines.append("")
    lines.append("=" * 80)
    return "\n".join(lines)


def _render_totals(title: str, totals: List[ExtractedTotal]) -> List[str]:
    lines = [f"  {title} ({len(totals)}):"]
    for t in totals:
        lines.append(
            f"    #{t.position} {t.label!r} = {format_money(t.amount)} "
            f"[{t.level.value}, conf {t.confidence:.0f}]"
        )
    return lines


def _render_debug_sections(report: AuditReport) -> List[str]:
    hierarchy = report.hierarchy
    lines = ["", "-" * 80, "DEBUG: Total Hierarchy", "-" * 80]
    grand = hierarchy.grand_total
    lines.append(
        f"  Grand Total: {grand.label!r} = {format_money(grand.amount)}" if grand else "  Grand Total: None"
    )
    lines.append(f"  Candidates: {hierarchy.grand_total_candidate_count}, inferred: {hierarchy.grand_total_inferred}")
    if hierarchy.section_sum is not None:
        lines.append(f"  Section Sum: {format_money(hierarchy.section_sum)}")
    lines.extend(_render_totals("Section Totals", hierarchy.section_totals))
    lines.extend(_render_totals("Category Subtotals", hierarchy.category_subtotals))
    lines.extend(_render_totals("Line Items", hierarchy.line_items))

    lines.extend(["", "-" * 80, "DEBUG: Audit Trail", "-" * 80])
    for entry in report.audit_trail:
        details = f" {json.dumps(entry.details, default=str)}" if entry.details else ""
        lines.append(f"  {entry.timestamp} [{entry.phase}] {_check_icon(entry.success)} {entry.action}{details}")
    return lines
