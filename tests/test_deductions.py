"""
Unit Tests for the Deduction Validator.

Core rule: undocumented deductions are never assumed valid.
"""

from billguard.auditor.deductions import validate_deductions
from billguard.auditor.models import (
    BillFinancials,
    CoverageStatus,
    DeductionItem,
    DeductionType,
)


def conserved(validation):
    return validation.total_deductions == round(
        validation.verified_deductions + validation.unverified_deductions, 2
    )


class TestSynthesizedDeductions:
    """No itemized breakdown: one unverified item per non-zero aggregate."""

    def test_unconfirmed_hmo_coverage(self):
        """
        hmoCoverage = 12,000 with nothing showing an LOA or policy number.

        The patient should assume they owe the full amount.
        """
        validation = validate_deductions(BillFinancials(hmo_coverage=12000))

        assert len(validation.deduction_breakdown) == 1
        item = validation.deduction_breakdown[0]
        assert item.type == DeductionType.HMO
        assert item.has_documentation is False
        assert item.verification_issue == "No policy number or LOA visible — coverage not confirmed"

        assert validation.coverage_status == CoverageStatus.UNCONFIRMED
        assert validation.validation_passed is False
        assert validation.unverified_deductions == 12000
        assert any(
            "default assumption" in issue.lower() and "full payment" in issue.lower()
            for issue in validation.issues
        )
        assert conserved(validation)

    def test_every_aggregate_is_synthesized(self):
        financials = BillFinancials(discounts=1000, payments=5000, philhealth_coverage=3000)
        validation = validate_deductions(financials)

        types = [i.type for i in validation.deduction_breakdown]
        assert types == [DeductionType.DISCOUNT, DeductionType.PAYMENT, DeductionType.PHILHEALTH]
        assert all(i.verification_issue for i in validation.deduction_breakdown)
        assert validation.unverified_deductions == 9000
        assert validation.total_deductions == 9000
        assert conserved(validation)

    def test_discount_only_is_not_coverage(self):
        validation = validate_deductions(BillFinancials(discounts=500))
        assert validation.coverage_status == CoverageStatus.NO_COVERAGE
        assert validation.validation_passed is False


class TestItemizedBreakdown:

    def test_documented_coverage_is_confirmed(self):
        financials = BillFinancials(
            hmo_coverage=12000,
            deduction_breakdown=[
                DeductionItem(
                    type="hmo",
                    amount=12000,
                    description="Maxicare",
                    has_documentation=True,
                    documentation_type="loa",
                    documentation_value="LOA-12345",
                ),
            ],
        )
        validation = validate_deductions(financials)

        assert validation.coverage_status == CoverageStatus.CONFIRMED
        assert validation.verified_deductions == 12000
        assert validation.unverified_deductions == 0
        assert validation.validation_passed is True
        assert validation.issues == []

    def test_one_unverified_item_fails_everything(self):
        """Strict: even ₱50 without a receipt fails validation."""
        financials = BillFinancials(
            philhealth_coverage=3000,
            payments=50,
            deduction_breakdown=[
                DeductionItem(type="philhealth", amount=3000, has_documentation=True,
                              documentation_type="member_id", documentation_value="12-345678901-2"),
                DeductionItem(type="payment", amount=50, description="Cash"),
            ],
        )
        validation = validate_deductions(financials)

        assert validation.coverage_status == CoverageStatus.CONFIRMED
        assert validation.verified_deductions == 3000
        assert validation.unverified_deductions == 50
        assert validation.validation_passed is False
        assert len(validation.issues) == 1
        assert conserved(validation)

    def test_mixed_coverage_is_unconfirmed(self):
        financials = BillFinancials(
            hmo_coverage=10000,
            philhealth_coverage=2000,
            deduction_breakdown=[
                DeductionItem(type="hmo", amount=10000, has_documentation=True,
                              documentation_value="LOA 99"),
                DeductionItem(type="philhealth", amount=2000),
            ],
        )
        validation = validate_deductions(financials)
        assert validation.coverage_status == CoverageStatus.UNCONFIRMED

    def test_coverage_without_matching_item_is_unknown(self):
        financials = BillFinancials(
            hmo_coverage=5000,
            deduction_breakdown=[
                DeductionItem(type="discount", amount=200, has_documentation=True,
                              documentation_value="SC-ID 1234"),
            ],
        )
        validation = validate_deductions(financials)

        assert validation.coverage_status == CoverageStatus.UNKNOWN
        assert validation.validation_passed is False

    def test_itemized_coverage_without_aggregates_is_not_no_coverage(self):
        """Both aggregates are 0 but an itemized HMO entry still counts as coverage."""
        financials = BillFinancials(
            deduction_breakdown=[DeductionItem(type="hmo", amount=3000)],
        )
        validation = validate_deductions(financials)

        assert validation.coverage_status == CoverageStatus.UNCONFIRMED
        assert validation.validation_passed is False


class TestDeductionItemInvariant:

    def test_undocumented_item_always_has_issue(self):
        item = DeductionItem(type="discount", amount=100)
        assert item.is_verified is False
        assert item.verification_issue

    def test_documented_item_has_no_issue(self):
        item = DeductionItem(type="payment", amount=100, has_documentation=True,
                             verification_issue="stale")
        assert item.is_verified is True
        assert item.verification_issue is None

    def test_unknown_type_is_coerced(self):
        assert DeductionItem(type="voucher", amount=10).type == DeductionType.UNKNOWN


class TestNoDeductions:

    def test_nothing_to_validate_passes(self):
        validation = validate_deductions(BillFinancials())

        assert validation.validation_passed is True
        assert validation.total_deductions == 0
        assert validation.coverage_status == CoverageStatus.NO_COVERAGE
        assert validation.deduction_breakdown == []
