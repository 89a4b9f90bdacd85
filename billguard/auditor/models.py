"""
Pydantic models for the BillGuard auditor.

Defines schemas for:
- Input: extracted total candidates and bill financials
- Resolution: total hierarchy with verification notes
- Output: discrepancy, deduction validation and balance reconciliation results

All models serialize with camelCase keys (the produced JSON interface) and
accept either camelCase or snake_case on input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from billguard.utils.money import round_money


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Enums
# =============================================================================

class TotalLevel(str, Enum):
    """Position of an extracted amount in the bill's total hierarchy."""
    LINE_ITEM = "line_item"                  # Individual charge ("Room: 5,000")
    CATEGORY_SUBTOTAL = "category_subtotal"  # "Laboratory Total"
    SECTION_TOTAL = "section_total"          # "Total Hospital Charges"
    GRAND_TOTAL = "grand_total"              # "GRAND TOTAL", "Amount Due"


class VerificationStatus(str, Enum):
    """How confidently the grand total was identified."""
    VERIFIED = "verified"              # Confirmed by label or section sum
    LIKELY_CORRECT = "likely_correct"  # Inferred, not explicitly labeled
    UNCERTAIN = "uncertain"            # Multiple competing grand-total labels
    FAILED = "failed"                  # No grand total could be resolved


class DiscrepancyStatus(str, Enum):
    NO_DISCREPANCY = "no_discrepancy"
    UNDERCHARGE = "undercharge"
    OVERCHARGE = "overcharge"
    UNABLE_TO_VERIFY = "unable_to_verify"


class AffectedParty(str, Enum):
    NONE = "none"
    HOSPITAL = "hospital"
    PATIENT = "patient"


class DeductionType(str, Enum):
    HMO = "hmo"
    PHILHEALTH = "philhealth"
    INSURANCE = "insurance"
    DISCOUNT = "discount"
    DEPOSIT = "deposit"
    PAYMENT = "payment"
    UNKNOWN = "unknown"


COVERAGE_TYPES = (DeductionType.HMO, DeductionType.PHILHEALTH, DeductionType.INSURANCE)


class CoverageStatus(str, Enum):
    CONFIRMED = "confirmed"
    UNCONFIRMED = "unconfirmed"
    NO_COVERAGE = "no_coverage"
    UNKNOWN = "unknown"


class SubtotalCheck(str, Enum):
    """Line-items sum vs. the bill's resolved subtotal (grand total)."""
    MATCH = "MATCH"
    UNDERCHARGED_SUBTOTAL = "UNDERCHARGED_SUBTOTAL"  # Line items exceed stated subtotal
    OVERCHARGED_SUBTOTAL = "OVERCHARGED_SUBTOTAL"    # Stated subtotal exceeds line items
    UNABLE_TO_VERIFY = "UNABLE_TO_VERIFY"


class BalanceCheck(str, Enum):
    """Derived balance (subtotal minus deductions) vs. stated balance due."""
    MATCH = "MATCH"
    PATIENT_UNDERCHARGED = "PATIENT_UNDERCHARGED"  # Patient asked to pay less than derived
    PATIENT_OVERCHARGED = "PATIENT_OVERCHARGED"    # Patient asked to pay more than derived
    UNABLE_TO_VERIFY = "UNABLE_TO_VERIFY"


class ChargeStatus(str, Enum):
    CORRECTLY_CHARGED = "CORRECTLY_CHARGED"
    UNDERCHARGED = "UNDERCHARGED"
    OVERCHARGED = "OVERCHARGED"
    UNABLE_TO_VERIFY = "UNABLE_TO_VERIFY"


class ImpactParty(str, Enum):
    """Who loses money because of a failing reconciliation check."""
    HOSPITAL = "hospital"
    PATIENT = "patient"


# =============================================================================
# Total Hierarchy Models
# =============================================================================

class ExtractedTotal(CamelModel):
    """One candidate total or charge found on the bill.

    Immutable: classification produces a re-tagged copy instead of
    mutating ``level`` in place.
    """
    model_config = ConfigDict(frozen=True)

    label: str
    amount: float = Field(ge=0)
    level: TotalLevel = TotalLevel.LINE_ITEM
    confidence: float = Field(default=90.0, ge=0, le=100)
    position: int = 0

    @field_validator("amount")
    @classmethod
    def round_amount(cls, v: float) -> float:
        return round_money(v)


class TotalHierarchy(CamelModel):
    """Resolved total structure for one bill."""
    line_items: List[ExtractedTotal] = Field(default_factory=list)
    category_subtotals: List[ExtractedTotal] = Field(default_factory=list)
    section_totals: List[ExtractedTotal] = Field(default_factory=list)
    grand_total: Optional[ExtractedTotal] = None
    all_totals: List[ExtractedTotal] = Field(default_factory=list)

    verification_status: VerificationStatus = VerificationStatus.FAILED
    verification_notes: List[str] = Field(default_factory=list)

    # Resolution metadata
    grand_total_candidate_count: int = 0
    grand_total_inferred: bool = False
    section_sum: Optional[float] = None  # Classified section totals only; demoted grand candidates excluded

    @property
    def grand_total_amount(self) -> Optional[float]:
        return self.grand_total.amount if self.grand_total else None


# =============================================================================
# Discrepancy Models
# =============================================================================

class VerificationCheck(CamelModel):
    """A single named check recorded for the audit trail."""
    name: str
    passed: bool
    details: str


class DiscrepancyResult(CamelModel):
    """Line-items sum vs. bill grand total comparison."""
    model_config = ConfigDict(frozen=True)

    calculated_total: float
    bill_grand_total: float
    discrepancy: float
    discrepancy_percent: float
    status: DiscrepancyStatus
    affected_party: AffectedParty = AffectedParty.NONE
    should_flag: bool = False
    explanation: str = ""
    verification_checks: List[VerificationCheck] = Field(default_factory=list)


# =============================================================================
# Deduction Models
# =============================================================================

class DeductionItem(CamelModel):
    """One deduction (discount, payment, or third-party coverage).

    ``is_verified`` is derived from ``has_documentation``. An undocumented
    non-zero deduction always carries a ``verification_issue``.
    """
    type: DeductionType = DeductionType.UNKNOWN
    amount: float = Field(default=0.0, ge=0)
    description: str = ""
    has_documentation: bool = False
    documentation_type: Optional[str] = None
    documentation_value: Optional[str] = None
    authorized_by: Optional[str] = None
    is_verified: bool = False
    verification_issue: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def round_amount(cls, v: float) -> float:
        return round_money(v)

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in {t.value for t in DeductionType}:
                return DeductionType.UNKNOWN
        return v

    @model_validator(mode="after")
    def derive_verification(self) -> "DeductionItem":
        self.is_verified = self.has_documentation
        if self.has_documentation:
            self.verification_issue = None
        else:
            self.documentation_type = None
            self.documentation_value = None
            self.authorized_by = None
            if self.amount > 0 and not (self.verification_issue or "").strip():
                self.verification_issue = (
                    f"No supporting documentation visible for this {self.type.value} deduction"
                )
        return self


class DeductionValidation(CamelModel):
    """Aggregate outcome of deduction validation."""
    total_deductions: float = 0.0
    verified_deductions: float = 0.0
    unverified_deductions: float = 0.0
    coverage_status: CoverageStatus = CoverageStatus.NO_COVERAGE
    validation_passed: bool = True
    issues: List[str] = Field(default_factory=list)
    deduction_breakdown: List[DeductionItem] = Field(default_factory=list)


# =============================================================================
# Financial Summary Models
# =============================================================================

class BillFinancials(CamelModel):
    """Consumer-facing financial summary for one bill."""
    calculated_line_items_total: float = Field(default=0.0, ge=0)
    subtotal: Optional[float] = Field(default=None, ge=0)  # Resolved grand total
    discounts: float = Field(default=0.0, ge=0)
    payments: float = Field(default=0.0, ge=0)
    hmo_coverage: float = Field(default=0.0, ge=0)
    philhealth_coverage: float = Field(default=0.0, ge=0)
    balance_due: Optional[float] = Field(default=None, ge=0)
    deduction_breakdown: List[DeductionItem] = Field(default_factory=list)

    # Hierarchy metadata
    grand_total_label: Optional[str] = None
    verification_status: VerificationStatus = VerificationStatus.FAILED
    section_totals: List[ExtractedTotal] = Field(default_factory=list)

    @field_validator(
        "calculated_line_items_total", "subtotal", "discounts", "payments",
        "hmo_coverage", "philhealth_coverage", "balance_due",
    )
    @classmethod
    def round_amounts(cls, v: Optional[float]) -> Optional[float]:
        if v is None:
            return None
        return round_money(v)

    @property
    def total_deductions(self) -> float:
        return round_money(
            self.discounts + self.payments + self.hmo_coverage + self.philhealth_coverage
        )


# =============================================================================
# Balance Reconciliation Models
# =============================================================================

class DiscrepancyRecord(CamelModel):
    """Structured record for one failing reconciliation check."""
    check: str                 # "subtotal" or "balance"
    code: str                  # SubtotalCheck / BalanceCheck value
    amount: float              # Absolute delta
    breakdown: str
    impact: ImpactParty


class BalanceReconciliation(CamelModel):
    """Two-step arithmetic check and the combined charge verdict."""
    subtotal_check: SubtotalCheck
    balance_check: BalanceCheck
    charge_status: ChargeStatus
    subtotal: Optional[float] = None
    calculated_line_items_total: float = 0.0
    total_deductions: float = 0.0
    expected_balance: Optional[float] = None
    balance_due: Optional[float] = None
    subtotal_difference: float = 0.0
    balance_difference: float = 0.0
    total_discrepancy: float = 0.0
    errors: List[DiscrepancyRecord] = Field(default_factory=list)


# =============================================================================
# Audit Trail & Report Models
# =============================================================================

class ExtractionLogEntry(CamelModel):
    """One step recorded in a request's audit trail."""
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    phase: str
    action: str
    details: Dict[str, Any] = Field(default_factory=dict)
    success: bool = True


class AuditReport(CamelModel):
    """Combined financial-audit result for one bill."""
    could_verify_math: bool
    charge_status: ChargeStatus
    subtotal_check: SubtotalCheck
    balance_check: BalanceCheck
    total_discrepancy: float = 0.0
    affected_party: AffectedParty = AffectedParty.NONE
    confidence: int = 0

    financials: BillFinancials
    hierarchy: TotalHierarchy
    discrepancy: Optional[DiscrepancyResult] = None
    reconciliation: BalanceReconciliation
    deduction_validation: DeductionValidation

    recommendations: List[str] = Field(default_factory=list)
    audit_trail: List[ExtractionLogEntry] = Field(default_factory=list)

    def to_flat_dict(self) -> Dict[str, Any]:
        """Flat JSON object for the presentation layer."""
        financials = self.financials
        return {
            "couldVerifyMath": self.could_verify_math,
            "chargeStatus": self.charge_status.value,
            "subtotalCheck": self.subtotal_check.value,
            "balanceCheck": self.balance_check.value,
            "totalDiscrepancy": self.total_discrepancy,
            "affectedParty": self.affected_party.value,
            "confidence": self.confidence,
            "calculatedLineItemsTotal": financials.calculated_line_items_total,
            "subtotal": financials.subtotal,
            "discounts": financials.discounts,
            "payments": financials.payments,
            "hmoCoverage": financials.hmo_coverage,
            "philhealthCoverage": financials.philhealth_coverage,
            "totalDeductions": financials.total_deductions,
            "balanceDue": financials.balance_due,
            "expectedBalance": self.reconciliation.expected_balance,
            "errors": [e.model_dump(mode="json", by_alias=True) for e in self.reconciliation.errors],
            "deductionValidation": self.deduction_validation.model_dump(mode="json", by_alias=True),
            "discrepancy": (
                self.discrepancy.model_dump(mode="json", by_alias=True)
                if self.discrepancy else None
            ),
            "hierarchy": {
                "grandTotal": (
                    self.hierarchy.grand_total.model_dump(mode="json", by_alias=True)
                    if self.hierarchy.grand_total else None
                ),
                "sectionTotals": [
                    t.model_dump(mode="json", by_alias=True) for t in self.hierarchy.section_totals
                ],
                "verificationStatus": self.hierarchy.verification_status.value,
                "verificationNotes": list(self.hierarchy.verification_notes),
            },
            "recommendations": list(self.recommendations),
            "auditTrail": [e.model_dump(mode="json", by_alias=True) for e in self.audit_trail],
        }
