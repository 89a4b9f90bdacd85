"""
Prompt text for an LLM-backed extraction collaborator.

The prompt defines the JSON contract parsed by ``parse_llm_response``.
Keyword lists are rendered from the auditor's canonical catalog so the
prompt and the classifier never drift apart.
"""

import json

from billguard.auditor.keywords import (
    GRAND_TOTAL_KEYWORDS,
    SECTION_TOTAL_KEYWORDS,
)

EXAMPLE_RESPONSE = {
    "allTotals": [
        {"label": "Total Hospital Charges", "amount": 20044.00, "position": 1},
        {"label": "Total Professional Fees", "amount": 5000.00, "position": 2},
        {"label": "GRAND TOTAL", "amount": 25044.00, "position": 3},
    ],
    "grandTotal": {"label": "GRAND TOTAL", "amount": 25044.00, "confidence": 95},
    "sectionTotals": [
        {"label": "Total Hospital Charges", "amount": 20044.00},
        {"label": "Total Professional Fees", "amount": 5000.00},
    ],
    "calculatedLineItemsTotal": 25044.00,
    "discounts": 0.00,
    "payments": 0.00,
    "hmoCoverage": 0.00,
    "philhealthCoverage": 0.00,
    "balanceDue": 25044.00,
    "lineItemsMatchSubtotal": True,
    "duplicatesDetected": 0,
    "deductionBreakdown": [
        {
            "type": "hmo|philhealth|insurance|discount|deposit|payment",
            "amount": 0.00,
            "description": "exact deduction line from the bill",
            "hasDocumentation": False,
            "documentationType": "loa|policy_number|approval_code|member_id|official_receipt",
            "documentationValue": "reference exactly as printed, or null",
            "authorizedBy": None,
        }
    ],
}


def _bullets(items) -> str:
    return "\n".join(f'- "{item}"' for item in items)


def build_extraction_prompt() -> str:
    """Return the extraction prompt for a hospital bill image or text."""
    return f"""# Hospital Bill Total Extraction

Report every total printed on this hospital bill and every deduction
applied to it. Do not compute or correct anything yourself: copy labels
and amounts exactly as printed.

## Totals
Bills print totals at several levels: individual charges, category
subtotals, section totals (one section of the bill) and a single grand
total covering all sections before deductions.

Grand total labels include:
{_bullets(GRAND_TOTAL_KEYWORDS)}

Section total labels include:
{_bullets(SECTION_TOTAL_KEYWORDS)}

List every total in "allTotals" in the order it appears (position 1 is
the first). The grand total is usually the last major total and equals
the sum of the section totals.

## Deductions
For each discount, payment, deposit, HMO, PhilHealth or insurance line,
add an entry to "deductionBreakdown". Set "hasDocumentation" to true
ONLY when a policy number, LOA number, approval code, member ID or
official receipt number is visibly printed, and copy it into
"documentationValue". Never assume coverage is approved.

## Output
Return ONLY valid JSON with this shape:

```json
{json.dumps(EXAMPLE_RESPONSE, indent=2)}
```
"""
