"""
Balance Reconciler.

Two-step arithmetic check:
  1. Line-items sum vs. the resolved subtotal (grand total)
  2. subtotal - deductions vs. the stated balance due

Both results combine into one charge verdict. Undercharge conditions
take priority over overcharge when the two checks disagree.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from billguard.auditor.models import (
    BalanceCheck,
    BalanceReconciliation,
    BillFinancials,
    ChargeStatus,
    DiscrepancyRecord,
    ImpactParty,
    SubtotalCheck,
)
from billguard.utils.money import format_money, round_money

logger = logging.getLogger(__name__)

# Inclusive match tolerance for both checks
SUBTOTAL_TOLERANCE = 10.0
BALANCE_TOLERANCE = 10.0


def check_subtotal(
    calculated_line_items_total: float,
    subtotal: Optional[float],
) -> SubtotalCheck:
    if subtotal is None or calculated_line_items_total <= 0:
        return SubtotalCheck.UNABLE_TO_VERIFY
    difference = round_money(abs(calculated_line_items_total - subtotal))
    if difference <= SUBTOTAL_TOLERANCE:
        return SubtotalCheck.MATCH
    if calculated_line_items_total > subtotal:
        return SubtotalCheck.UNDERCHARGED_SUBTOTAL
    return SubtotalCheck.OVERCHARGED_SUBTOTAL


def check_balance(
    expected_balance: Optional[float],
    balance_due: Optional[float],
) -> BalanceCheck:
    if expected_balance is None or balance_due is None:
        return BalanceCheck.UNABLE_TO_VERIFY
    difference = round_money(abs(expected_balance - balance_due))
    if difference <= BALANCE_TOLERANCE:
        return BalanceCheck.MATCH
    if expected_balance > balance_due:
        return BalanceCheck.PATIENT_UNDERCHARGED
    return BalanceCheck.PATIENT_OVERCHARGED


def combine_checks(subtotal_check: SubtotalCheck, balance_check: BalanceCheck) -> ChargeStatus:
    """
    Combine both checks into one verdict.

    UNDERCHARGED is evaluated first, then OVERCHARGED. When neither check
    could run the verdict is UNABLE_TO_VERIFY.
    """
    if (
        subtotal_check == SubtotalCheck.UNDERCHARGED_SUBTOTAL
        or balance_check == BalanceCheck.PATIENT_UNDERCHARGED
    ):
        return ChargeStatus.UNDERCHARGED
    if (
        subtotal_check == SubtotalCheck.OVERCHARGED_SUBTOTAL
        or balance_check == BalanceCheck.PATIENT_OVERCHARGED
    ):
        return ChargeStatus.OVERCHARGED
    if (
        subtotal_check == SubtotalCheck.UNABLE_TO_VERIFY
        and balance_check == BalanceCheck.UNABLE_TO_VERIFY
    ):
        return ChargeStatus.UNABLE_TO_VERIFY
    return ChargeStatus.CORRECTLY_CHARGED


def reconcile_balance(
    subtotal: Optional[float],
    calculated_line_items_total: float,
    discounts: float = 0.0,
    payments: float = 0.0,
    hmo_coverage: float = 0.0,
    philhealth_coverage: float = 0.0,
    balance_due: Optional[float] = None,
) -> BalanceReconciliation:
    """
    Run the subtotal and balance checks and produce the charge verdict.

    Args:
        subtotal: Resolved grand total (None when unresolved)
        calculated_line_items_total: Independently summed line items
        discounts, payments, hmo_coverage, philhealth_coverage: Deductions
        balance_due: Stated balance due (None when not printed)

    Returns:
        BalanceReconciliation with one DiscrepancyRecord per failing check

    Example:
        >>> r = reconcile_balance(45000, 43883.98, discounts=1000, balance_due=44500)
        >>> r.charge_status, r.total_discrepancy
        (<ChargeStatus.OVERCHARGED: 'OVERCHARGED'>, 1616.02)
    """
    total_deductions = round_money(discounts + payments + hmo_coverage + philhealth_coverage)
    expected_balance = (
        round_money(subtotal - total_deductions) if subtotal is not None else None
    )

    subtotal_check = check_subtotal(calculated_line_items_total, subtotal)
    balance_check = check_balance(expected_balance, balance_due)
    charge_status = combine_checks(subtotal_check, balance_check)

    errors: List[DiscrepancyRecord] = []
    subtotal_difference = 0.0
    balance_difference = 0.0

    if subtotal_check in (SubtotalCheck.UNDERCHARGED_SUBTOTAL, SubtotalCheck.OVERCHARGED_SUBTOTAL):
        subtotal_difference = round_money(abs(calculated_line_items_total - subtotal))
        undercharged = subtotal_check == SubtotalCheck.UNDERCHARGED_SUBTOTAL
        errors.append(DiscrepancyRecord(
            check="subtotal",
            code=subtotal_check.value,
            amount=subtotal_difference,
            breakdown=(
                f"Line items sum to {format_money(calculated_line_items_total)} but the bill "
                f"states a total of {format_money(subtotal)} "
                f"({'bill is short' if undercharged else 'bill exceeds items'} by "
                f"{format_money(subtotal_difference)})"
            ),
            impact=ImpactParty.HOSPITAL if undercharged else ImpactParty.PATIENT,
        ))

    if balance_check in (BalanceCheck.PATIENT_UNDERCHARGED, BalanceCheck.PATIENT_OVERCHARGED):
        balance_difference = round_money(abs(expected_balance - balance_due))
        undercharged = balance_check == BalanceCheck.PATIENT_UNDERCHARGED
        errors.append(DiscrepancyRecord(
            check="balance",
            code=balance_check.value,
            amount=balance_difference,
            breakdown=(
                f"{format_money(subtotal)} - {format_money(total_deductions)} deductions = "
                f"{format_money(expected_balance)}, but balance due is "
                f"{format_money(balance_due)} (difference {format_money(balance_difference)})"
            ),
            impact=ImpactParty.HOSPITAL if undercharged else ImpactParty.PATIENT,
        ))

    total_discrepancy = round_money(subtotal_difference + balance_difference)

    logger.info(
        f"Reconciliation: subtotal={subtotal_check.value}, balance={balance_check.value}, "
        f"verdict={charge_status.value}, discrepancy={format_money(total_discrepancy)}"
    )

    return BalanceReconciliation(
        subtotal_check=subtotal_check,
        balance_check=balance_check,
        charge_status=charge_status,
        subtotal=subtotal,
        calculated_line_items_total=calculated_line_items_total,
        total_deductions=total_deductions,
        expected_balance=expected_balance,
        balance_due=balance_due,
        subtotal_difference=subtotal_difference,
        balance_difference=balance_difference,
        total_discrepancy=total_discrepancy,
        errors=errors,
    )


def reconcile_financials(financials: BillFinancials) -> BalanceReconciliation:
    """Reconcile using the amounts carried on a BillFinancials summary."""
    return reconcile_balance(
        subtotal=financials.subtotal,
        calculated_line_items_total=financials.calculated_line_items_total,
        discounts=financials.discounts,
        payments=financials.payments,
        hmo_coverage=financials.hmo_coverage,
        philhealth_coverage=financials.philhealth_coverage,
        balance_due=financials.balance_due,
    )
