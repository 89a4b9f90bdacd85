"""
Deduction detection from bill labels.

Maps free-text deduction lines ("Less: Maxicare LOA No. 12345") to a
DeductionType and recognizes visible documentation references (policy
number, LOA, approval code, official receipt, member ID).
"""

import logging
import re
from typing import List, Optional, Tuple

from billguard.auditor.models import DeductionItem, DeductionType
from billguard.extraction.regex_utils import safe_group

logger = logging.getLogger(__name__)


# =============================================================================
# Deduction type detection
# =============================================================================
# Checked in order; first match wins
DEDUCTION_TYPE_PATTERNS: List[Tuple[DeductionType, List[str]]] = [
    (DeductionType.PHILHEALTH, [
        r"\bphil\s*health\b",
        r"\bphic\b",
    ]),
    (DeductionType.HMO, [
        r"\bhmo\b",
        r"\bmaxicare\b",
        r"\bintellicare\b",
        r"\bmedicard\b",
        r"\bvaluc?care\b",
        r"\bpacific\s*cross\b",
        r"\bcocolife\b",
        r"\bavega\b",
        r"\bletter\s+of\s+authori[sz]ation\b",
        r"\bloa\b",
    ]),
    (DeductionType.INSURANCE, [
        r"\binsurance\b",
        r"\binsurer\b",
        r"\bpolicy\b",
    ]),
    (DeductionType.DISCOUNT, [
        r"\bdiscount\b",
        r"\bdisc\.?\b",
        r"\bsenior\s*citizen\b",
        r"\bsc\s*disc",
        r"\bpwd\b",
        r"\bconcession\b",
        r"\bwaiver\b",
    ]),
    (DeductionType.DEPOSIT, [
        r"\bdeposit\b",
        r"\badvance\s*(payment)?\b",
        r"\bdown\s*payment\b",
    ]),
    (DeductionType.PAYMENT, [
        r"\bpayments?\b",
        r"\bpaid\b",
        r"\breceipt\b",
        r"\bo\.?r\.?\s*(no\.?|#)",
        r"\bcash\b",
        r"\b(credit|debit)\s*card\b",
    ]),
]

# Lines that reduce the amount owed; used to keep them out of line-item sums
DEDUCTION_LINE_PATTERNS = [
    r"^\s*less\b",
    r"\bless\s*:",
    r"\bdeduction\b",
] + [p for _, patterns in DEDUCTION_TYPE_PATTERNS for p in patterns]


def classify_deduction_type(label: str) -> DeductionType:
    """Map a deduction label to a DeductionType.

    Examples:
        >>> classify_deduction_type("Less: Maxicare coverage")
        <DeductionType.HMO: 'hmo'>
        >>> classify_deduction_type("Senior Citizen Discount 20%")
        <DeductionType.DISCOUNT: 'discount'>
    """
    text = (label or "").lower()
    for deduction_type, patterns in DEDUCTION_TYPE_PATTERNS:
        if any(re.search(p, text, re.IGNORECASE) for p in patterns):
            return deduction_type
    return DeductionType.UNKNOWN


def is_deduction_line(text: str) -> bool:
    """Check if a bill line describes a deduction, payment, or coverage."""
    if not text:
        return False
    t = text.lower()
    return any(re.search(p, t, re.IGNORECASE) for p in DEDUCTION_LINE_PATTERNS)


# =============================================================================
# Documentation detection
# =============================================================================
# Printed reference: alphanumeric with at least one digit
REFERENCE_VALUE = r"((?=[A-Z0-9-]*\d)[A-Z0-9][A-Z0-9-]{2,})"

# (documentation_type, pattern); group 1 is the reference value when present
DOCUMENTATION_PATTERNS: List[Tuple[str, str]] = [
    ("loa", r"\b(?:loa|letter\s+of\s+authori[sz]ation)\s*(?:no\.?|number|#)?\s*[:#-]?\s*" + REFERENCE_VALUE),
    ("policy_number", r"\bpolicy\s*(?:no\.?|number|#)\s*[:#-]?\s*" + REFERENCE_VALUE),
    ("approval_code", r"\bapproval\s*(?:code|no\.?|number|#)\s*[:#-]?\s*" + REFERENCE_VALUE),
    ("member_id", r"\bphil\s*health\s*(?:id|pin|member\s*(?:id|no\.?))\s*(?:no\.?|#)?\s*[:#-]?\s*(\d{2}-?\d{9}-?\d)"),
    ("member_id", r"\b(?:member|membership)\s*(?:id|no\.?|number)\s*[:#-]?\s*" + REFERENCE_VALUE),
    ("official_receipt", r"\b(?:o\.?r\.?|official\s+receipt)\s*(?:no\.?|number|#)\s*[:#-]?\s*(\d{3,})"),
    ("official_receipt", r"\breceipt\s*(?:no\.?|number|#)\s*[:#-]?\s*" + REFERENCE_VALUE),
    ("senior_citizen_id", r"\b(?:senior\s*citizen|osca)\s*id\s*(?:no\.?|#)?\s*[:#-]?\s*" + REFERENCE_VALUE + "?"),
    ("pwd_id", r"\bpwd\s*id\s*(?:no\.?|#)?\s*[:#-]?\s*" + REFERENCE_VALUE + "?"),
]


def detect_documentation(text: str) -> Tuple[Optional[str], Optional[str]]:
    """Find a documentation reference in text.

    Args:
        text: Deduction line or surrounding bill text

    Returns:
        (documentation_type, documentation_value), or (None, None) when
        no reference is visible. The value may be None for ID mentions
        without a printed number ("Senior Citizen ID").

    Examples:
        >>> detect_documentation("HMO - LOA No. 12345")
        ('loa', '12345')
        >>> detect_documentation("OR# 998877")
        ('official_receipt', '998877')
        >>> detect_documentation("HMO coverage")
        (None, None)
    """
    if not text:
        return None, None

    for doc_type, pattern in DOCUMENTATION_PATTERNS:
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            value = safe_group(match, 1, "").strip() or None
            return doc_type, value
    return None, None


def build_deduction_item(
    label: str,
    amount: float,
    deduction_type: Optional[DeductionType] = None,
    context: str = "",
    authorized_by: Optional[str] = None,
) -> DeductionItem:
    """Assemble a DeductionItem from a bill label.

    Documentation is searched in the label first, then in ``context``.
    An undocumented item receives a type-specific verification issue.

    Args:
        label: Deduction line text
        amount: Deduction amount (absolute value is used)
        deduction_type: Known type; detected from the label when None
        context: Extra text to search for documentation
        authorized_by: Approver name when printed on the bill
    """
    if deduction_type is None:
        deduction_type = classify_deduction_type(label)

    doc_type, doc_value = detect_documentation(label)
    if doc_type is None and context:
        doc_type, doc_value = detect_documentation(context)

    has_documentation = doc_type is not None
    if has_documentation and not doc_value:
        # ID mentioned without a printed number ("Senior Citizen ID")
        doc_value = (label or "").strip()
    issue = None if has_documentation else missing_documentation_issue(deduction_type)

    item = DeductionItem(
        type=deduction_type,
        amount=abs(amount),
        description=(label or "").strip(),
        has_documentation=has_documentation,
        documentation_type=doc_type,
        documentation_value=doc_value,
        authorized_by=authorized_by,
        verification_issue=issue,
    )
    logger.debug(
        f"Deduction '{item.description}' -> {item.type.value}, "
        f"documented={item.has_documentation} ({doc_type}: {doc_value})"
    )
    return item


def missing_documentation_issue(deduction_type: DeductionType) -> str:
    """Type-specific message for an undocumented deduction."""
    if deduction_type == DeductionType.HMO:
        return "No policy number or LOA visible — coverage not confirmed"
    if deduction_type == DeductionType.PHILHEALTH:
        return "No PhilHealth member ID or claim reference visible — coverage not confirmed"
    if deduction_type == DeductionType.INSURANCE:
        return "No insurance policy number or approval code visible — coverage not confirmed"
    if deduction_type == DeductionType.DISCOUNT:
        return "No discount authorization or ID reference visible — discount not confirmed"
    if deduction_type in (DeductionType.PAYMENT, DeductionType.DEPOSIT):
        return "No official receipt number visible — payment not confirmed"
    return "Unidentified deduction with no supporting documentation"
