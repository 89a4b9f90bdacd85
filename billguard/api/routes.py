"""
FastAPI Route Definitions for the BillGuard audit API.

Endpoints:
- POST /audit: Full financial audit of one bill
- POST /hierarchy: Resolve the total hierarchy from candidates
- POST /classify: Classify a single labeled amount
- POST /deductions/validate: Validate deductions against documentation
- GET /keywords: Canonical keyword lists used by the classifier

All endpoints are stateless.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import ConfigDict, Field, ValidationError

from billguard.auditor.audit import audit_bill
from billguard.auditor.deductions import validate_deductions
from billguard.auditor.hierarchy import build_total_hierarchy
from billguard.auditor.keywords import keyword_catalog
from billguard.auditor.models import BillFinancials, CamelModel, ExtractedTotal
from billguard.auditor.total_classifier import classify_total
from billguard.exceptions import ExtractionError
from billguard.extraction.llm_response import ExtractionPayload, parse_llm_response

logger = logging.getLogger(__name__)

# ============================================================================
# Router Configuration
# ============================================================================
router = APIRouter(
    tags=["Bill Audit"],
    responses={
        500: {"description": "Internal server error"},
        400: {"description": "Bad request"}
    }
)


# ============================================================================
# Request Models
# ============================================================================
class AuditRequest(CamelModel):
    """Request body for /audit.

    Provide either ``payload`` (parsed extraction JSON) or ``llmResponse``
    (raw collaborator text, possibly fenced).
    """
    payload: Optional[Dict[str, Any]] = Field(None, description="Extraction payload (allTotals, discounts, ...)")
    llm_response: Optional[str] = Field(None, description="Raw extraction response text")
    ocr_text: Optional[str] = Field(None, description="OCR text used to sum line items")
    line_items: Optional[List[float]] = Field(None, description="Explicit line-item amounts")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "payload": {
                    "allTotals": [
                        {"label": "Total Hospital Charges", "amount": 20044, "position": 1},
                        {"label": "Total Professional Fees", "amount": 5000, "position": 2},
                        {"label": "GRAND TOTAL", "amount": 25044, "position": 3},
                    ],
                    "calculatedLineItemsTotal": 25044,
                    "hmoCoverage": 12000,
                    "balanceDue": 13044,
                },
            }
        }
    )


class ClassifyRequest(CamelModel):
    """Request body for /classify."""
    label: str
    amount: float = Field(..., ge=0)
    all_totals: List[ExtractedTotal] = Field(default_factory=list)


# ============================================================================
# POST /audit
# ============================================================================
@router.post("/audit")
async def audit(request: AuditRequest):
    """
    Run the full audit: hierarchy, discrepancy, reconciliation and deductions.

    Returns:
        Flat audit JSON (chargeStatus, subtotalCheck, balanceCheck, ...)

    Raises:
        HTTPException: 400 if neither payload nor a parsable response is given
    """
    if request.payload is None and request.llm_response is None:
        raise HTTPException(status_code=400, detail="Provide either 'payload' or 'llmResponse'")

    try:
        if request.payload is not None:
            payload = ExtractionPayload.model_validate(request.payload)
        else:
            payload = parse_llm_response(request.llm_response)
    except ExtractionError as e:
        logger.warning(f"Rejected extraction response: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except ValidationError as e:
        logger.warning(f"Invalid extraction payload: {e}")
        raise HTTPException(status_code=422, detail=str(e))

    report = audit_bill(payload, ocr_text=request.ocr_text, line_items=request.line_items)
    logger.info(f"Audit request completed: {report.charge_status.value}")
    return report.to_flat_dict()


# ============================================================================
# POST /hierarchy
# ============================================================================
@router.post("/hierarchy")
async def hierarchy(totals: List[ExtractedTotal]):
    """Resolve the grand total and section totals from candidates."""
    result = build_total_hierarchy(totals)
    return result.model_dump(mode="json", by_alias=True)


# ============================================================================
# POST /classify
# ============================================================================
@router.post("/classify")
async def classify(request: ClassifyRequest):
    """Classify one labeled amount into its hierarchy level."""
    level = classify_total(request.label, request.amount, request.all_totals)
    return {"label": request.label, "amount": request.amount, "level": level.value}


# ============================================================================
# POST /deductions/validate
# ============================================================================
@router.post("/deductions/validate")
async def deductions_validate(financials: BillFinancials):
    """Validate every deduction for visible documentation."""
    validation = validate_deductions(financials)
    return validation.model_dump(mode="json", by_alias=True)


# ============================================================================
# GET /keywords
# ============================================================================
@router.get("/keywords")
async def keywords():
    """Canonical grand-total, section-total and indicator keyword lists."""
    return keyword_catalog()
