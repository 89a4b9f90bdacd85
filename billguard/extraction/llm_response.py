"""
Extraction payload parsing and normalization.

The extraction collaborator returns JSON (often wrapped in markdown code
fences). This module parses it into an ExtractionPayload and enforces the
input rules the auditor relies on: every amount entering the core is a
finite number >= 0.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationError, field_validator

from billguard.auditor.audit_trail import AuditTrail
from billguard.auditor.models import (
    CamelModel,
    DeductionItem,
    DeductionType,
    ExtractedTotal,
)
from billguard.exceptions import ExtractionError
from billguard.extraction.deduction_parser import build_deduction_item, classify_deduction_type
from billguard.utils.money import is_valid_amount, round_money

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 90.0


class ExtractionPayload(CamelModel):
    """Financial data reported by the extraction collaborator.

    ``all_totals``, ``section_totals`` and ``deduction_breakdown`` are kept
    raw; ``normalize_candidates`` and ``normalize_deductions`` validate
    them entry by entry.
    """
    all_totals: List[Any] = Field(default_factory=list)
    grand_total: Optional[Dict[str, Any]] = None
    section_totals: List[Any] = Field(default_factory=list)
    calculated_line_items_total: Optional[float] = None
    discounts: float = 0.0
    payments: float = 0.0
    hmo_coverage: float = 0.0
    philhealth_coverage: float = 0.0
    balance_due: Optional[float] = None
    line_items_match_subtotal: Optional[bool] = None
    duplicates_detected: int = 0
    deduction_breakdown: List[Any] = Field(default_factory=list)

    @field_validator("all_totals", "section_totals", "deduction_breakdown", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("discounts", "payments", "hmo_coverage", "philhealth_coverage", mode="before")
    @classmethod
    def deduction_magnitude(cls, v: Any) -> float:
        """Deductions are often printed negative ("(1,000.00)"); keep the magnitude."""
        number = _to_number(v)
        return round_money(abs(number)) if number is not None else 0.0

    @field_validator("calculated_line_items_total", "balance_due", mode="before")
    @classmethod
    def optional_amount(cls, v: Any) -> Optional[float]:
        number = _to_number(v)
        if number is None or number < 0:
            return None
        return round_money(number)

    @field_validator("duplicates_detected", mode="before")
    @classmethod
    def count_or_zero(cls, v: Any) -> int:
        try:
            return max(int(v), 0)
        except (TypeError, ValueError):
            return 0

    @field_validator("grand_total", mode="before")
    @classmethod
    def grand_total_object(cls, v: Any) -> Optional[Dict[str, Any]]:
        return v if isinstance(v, dict) else None

    @field_validator("line_items_match_subtotal", mode="before")
    @classmethod
    def optional_flag(cls, v: Any) -> Optional[bool]:
        return v if isinstance(v, bool) else None

    @property
    def reported_grand_total(self) -> Optional[float]:
        """Collaborator's own grand-total amount, when it reported a valid one."""
        if not self.grand_total:
            return None
        amount = _to_number(self.grand_total.get("amount"))
        return round_money(amount) if is_valid_amount(amount) else None

    @property
    def reported_section_sum(self) -> Optional[float]:
        """Sum of the collaborator's valid section-total amounts (None if none)."""
        amounts = [
            _to_number(entry.get("amount"))
            for entry in self.section_totals
            if isinstance(entry, dict)
        ]
        amounts = [a for a in amounts if is_valid_amount(a)]
        return round_money(sum(amounts)) if amounts else None


def _to_number(value: Any) -> Optional[float]:
    """Coerce a JSON amount (number or numeric string) to float; None if invalid."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        cleaned = re.sub(r"[₱,\s]|PHP", "", value, flags=re.IGNORECASE)
        if cleaned.startswith("(") and cleaned.endswith(")"):
            cleaned = "-" + cleaned[1:-1]
        try:
            value = float(cleaned)
        except ValueError:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def _coerce_deduction_type(value: Any) -> DeductionType:
    text = value.strip().lower() if isinstance(value, str) else ""
    if text in {t.value for t in DeductionType}:
        return DeductionType(text)
    return DeductionType.UNKNOWN


# =============================================================================
# Response parsing
# =============================================================================

def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` markdown fences around a response."""
    text = (text or "").strip()
    text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\s*```$", "", text)
    return text.strip()


def extract_json_object(text: str) -> str:
    """Return the outermost {...} span of text."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ExtractionError("No JSON object found in extraction response")
    return text[start:end + 1]


def parse_llm_response(text: str) -> ExtractionPayload:
    """
    Parse a collaborator's text response into an ExtractionPayload.

    Args:
        text: Raw response, optionally wrapped in markdown code fences

    Returns:
        ExtractionPayload

    Raises:
        ExtractionError: If the response holds no valid JSON object, or a
            field has the wrong shape (e.g. ``allTotals`` is not a list)
    """
    body = extract_json_object(strip_code_fences(text))
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Malformed JSON in extraction response: {e}") from e
    if not isinstance(data, dict):
        raise ExtractionError("Extraction response must be a JSON object")

    try:
        payload = ExtractionPayload.model_validate(data)
    except ValidationError as e:
        raise ExtractionError(f"Extraction response has invalid fields: {e}") from e
    logger.info(
        f"Parsed extraction payload: {len(payload.all_totals)} totals, "
        f"{len(payload.deduction_breakdown)} deduction entries"
    )
    return payload


# =============================================================================
# Candidate normalization
# =============================================================================

def normalize_candidates(
    raw_totals: List[Any],
    trail: Optional[AuditTrail] = None,
) -> List[ExtractedTotal]:
    """
    Validate raw total candidates before they enter the auditor.

    Drops entries with a non-string/empty label or a missing, NaN,
    infinite, negative or zero amount. Positions default to list order;
    collaborator confidence is kept (default 90). Collaborator ``level``
    is ignored: the classifier re-derives it.

    Args:
        raw_totals: Entries from the payload's ``allTotals``
        trail: Optional audit trail to record dropped entries

    Returns:
        Validated ExtractedTotal list in input order
    """
    totals: List[ExtractedTotal] = []
    for idx, raw in enumerate(raw_totals or []):
        reason = None
        label = raw.get("label") if isinstance(raw, dict) else None
        amount = _to_number(raw.get("amount")) if isinstance(raw, dict) else None

        if not isinstance(raw, dict):
            reason = "entry is not an object"
        elif not isinstance(label, str) or not label.strip():
            reason = "missing label"
        elif amount is None or not is_valid_amount(amount):
            reason = f"invalid amount {raw.get('amount')!r}"
        elif amount == 0:
            reason = "zero amount"

        if reason:
            logger.warning(f"Dropping total candidate #{idx}: {reason}")
            if trail is not None:
                trail.log("normalize", f"Dropped total candidate #{idx}", {"reason": reason}, success=False)
            continue

        position = raw.get("position")
        if isinstance(position, bool) or not isinstance(position, (int, float)):
            position = idx
        confidence = _to_number(raw.get("confidence"))
        if confidence is None or not 0 <= confidence <= 100:
            confidence = DEFAULT_CONFIDENCE

        totals.append(ExtractedTotal(
            label=label.strip(),
            amount=amount,
            confidence=confidence,
            position=int(position),
        ))

    if trail is not None:
        trail.log("normalize", f"Accepted {len(totals)} of {len(raw_totals or [])} total candidates")
    return totals


def normalize_deductions(
    raw_items: List[Any],
    trail: Optional[AuditTrail] = None,
) -> List[DeductionItem]:
    """
    Validate a collaborator's deduction breakdown.

    A claimed ``hasDocumentation`` is only honored when a reference is
    actually present (``documentationValue`` or a reference detected in the
    description). Unknown types are re-detected from the description.
    """
    items: List[DeductionItem] = []
    for idx, raw in enumerate(raw_items or []):
        if not isinstance(raw, dict):
            logger.warning(f"Dropping deduction entry #{idx}: not an object")
            continue
        amount = _to_number(raw.get("amount"))
        if amount is None:
            logger.warning(f"Dropping deduction entry #{idx}: invalid amount {raw.get('amount')!r}")
            if trail is not None:
                trail.log("normalize", f"Dropped deduction entry #{idx}", {"reason": "invalid amount"}, success=False)
            continue
        amount = abs(amount)

        description = str(raw.get("description") or "").strip()
        deduction_type = _coerce_deduction_type(raw.get("type"))
        if deduction_type == DeductionType.UNKNOWN:
            deduction_type = classify_deduction_type(description)

        authorized_by = raw.get("authorizedBy") if isinstance(raw.get("authorizedBy"), str) else None
        doc_value = raw.get("documentationValue")
        doc_value = str(doc_value).strip() if doc_value not in (None, "") else None

        if doc_value:
            doc_type = raw.get("documentationType")
            item = DeductionItem(
                type=deduction_type,
                amount=amount,
                description=description,
                has_documentation=True,
                documentation_type=doc_type if isinstance(doc_type, str) else None,
                documentation_value=doc_value,
                authorized_by=authorized_by,
            )
        else:
            # Claimed documentation without a reference falls back to detection
            item = build_deduction_item(description, amount, deduction_type, authorized_by=authorized_by)
            issue = raw.get("verificationIssue")
            if not item.has_documentation and isinstance(issue, str) and issue.strip():
                item = item.model_copy(update={"verification_issue": issue.strip()})
        items.append(item)

    if trail is not None and items:
        documented = sum(1 for i in items if i.has_documentation)
        trail.log("normalize", f"Accepted {len(items)} deduction entries ({documented} documented)")
    return items
