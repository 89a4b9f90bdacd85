"""
Unit Tests for extraction payload parsing, candidate normalization and
deduction detection.
"""

import json
import math

import pytest

from billguard.auditor.audit_trail import AuditTrail
from billguard.auditor.models import DeductionType
from billguard.exceptions import ExtractionError
from billguard.extraction.deduction_parser import (
    build_deduction_item,
    classify_deduction_type,
    detect_documentation,
    is_deduction_line,
)
from billguard.extraction.llm_response import (
    ExtractionPayload,
    normalize_candidates,
    normalize_deductions,
    parse_llm_response,
    strip_code_fences,
)
from billguard.extraction.prompts import build_extraction_prompt


RESPONSE = {
    "allTotals": [
        {"label": "Total Hospital Charges", "amount": 20044.00, "level": "grand_total", "position": 1},
        {"label": "GRAND TOTAL", "amount": 25044.00, "position": 2, "confidence": 98},
    ],
    "discounts": -1000,
    "hmoCoverage": "12,000.00",
    "balanceDue": 12044,
    "duplicatesDetected": 2,
}


class TestParseLlmResponse:

    def test_fenced_json(self):
        text = "```json\n" + json.dumps(RESPONSE) + "\n```"
        payload = parse_llm_response(text)

        assert len(payload.all_totals) == 2
        assert payload.discounts == 1000
        assert payload.hmo_coverage == 12000
        assert payload.balance_due == 12044
        assert payload.duplicates_detected == 2

    def test_json_with_surrounding_text(self):
        payload = parse_llm_response("Here is the result:\n" + json.dumps(RESPONSE) + "\nDone.")
        assert payload.balance_due == 12044

    def test_malformed_json_raises(self):
        with pytest.raises(ExtractionError):
            parse_llm_response('{"allTotals": [}')

    def test_no_json_raises(self):
        with pytest.raises(ExtractionError):
            parse_llm_response("I could not read this bill.")

    def test_wrong_field_shape_raises(self):
        with pytest.raises(ExtractionError):
            parse_llm_response('{"allTotals": "abc"}')

    def test_reported_summary_fields(self):
        payload = ExtractionPayload.model_validate({
            "grandTotal": {"label": "GRAND TOTAL", "amount": "25,044.00"},
            "sectionTotals": [{"amount": 20044}, {"amount": 5000}, {"amount": "n/a"}, "noise"],
            "lineItemsMatchSubtotal": "maybe",
        })
        assert payload.reported_grand_total == 25044.0
        assert payload.reported_section_sum == 25044.0
        assert payload.line_items_match_subtotal is None

        empty = ExtractionPayload.model_validate({"grandTotal": "25044"})
        assert empty.reported_grand_total is None
        assert empty.reported_section_sum is None

    def test_strip_code_fences(self):
        assert strip_code_fences("```\n{}\n```") == "{}"

    def test_missing_fields_default(self):
        payload = ExtractionPayload.model_validate({"allTotals": None, "balanceDue": None})
        assert payload.all_totals == []
        assert payload.balance_due is None
        assert payload.payments == 0


class TestNormalizeCandidates:

    def test_invalid_entries_dropped(self):
        trail = AuditTrail()
        raw = [
            {"label": "GRAND TOTAL", "amount": 25044},
            {"label": "NaN total", "amount": math.nan},
            {"label": "Inf", "amount": math.inf},
            {"label": "Negative", "amount": -10},
            {"label": "Zero", "amount": 0},
            {"label": None, "amount": 100},
            {"label": "Missing"},
            "not an object",
        ]
        totals = normalize_candidates(raw, trail)

        assert [t.label for t in totals] == ["GRAND TOTAL"]
        assert len(trail.failures()) == 7

    def test_defaults_and_level_ignored(self):
        totals = normalize_candidates(RESPONSE["allTotals"])

        assert totals[0].level.value == "line_item"
        assert totals[0].confidence == 90
        assert totals[1].confidence == 98
        assert [t.position for t in totals] == [1, 2]

    def test_position_defaults_to_order(self):
        totals = normalize_candidates([{"label": "A item", "amount": 1}, {"label": "B item", "amount": "2.50"}])
        assert [t.position for t in totals] == [0, 1]
        assert totals[1].amount == 2.5


class TestNormalizeDeductions:

    def test_claimed_documentation_without_reference_is_rejected(self):
        items = normalize_deductions([
            {"type": "hmo", "amount": 12000, "description": "HMO", "hasDocumentation": True},
        ])
        assert items[0].has_documentation is False
        assert items[0].verification_issue

    def test_reference_in_description_is_detected(self):
        items = normalize_deductions([
            {"amount": -3000, "description": "PhilHealth ID 12-345678901-2"},
        ])
        assert items[0].type == DeductionType.PHILHEALTH
        assert items[0].amount == 3000
        assert items[0].has_documentation is True
        assert items[0].documentation_value == "12-345678901-2"

    def test_id_without_number_keeps_description(self):
        items = normalize_deductions([
            {"type": "discount", "amount": 500, "description": "Senior Citizen ID"},
        ])
        assert items[0].has_documentation is True
        assert items[0].documentation_type == "senior_citizen_id"
        assert items[0].documentation_value == "Senior Citizen ID"

    def test_collaborator_issue_is_kept(self):
        items = normalize_deductions([
            {"type": "payment", "amount": 2000, "description": "Cash",
             "verificationIssue": "Receipt not attached"},
        ])
        assert items[0].is_verified is False
        assert items[0].verification_issue == "Receipt not attached"


class TestDeductionDetection:

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Less: Maxicare coverage", DeductionType.HMO),
            ("PHIC Benefit", DeductionType.PHILHEALTH),
            ("Senior Citizen Discount 20%", DeductionType.DISCOUNT),
            ("PWD", DeductionType.DISCOUNT),
            ("Advance Deposit", DeductionType.DEPOSIT),
            ("Payment - OR No. 5521", DeductionType.PAYMENT),
            ("Insurance claim", DeductionType.INSURANCE),
            ("Adjustment", DeductionType.UNKNOWN),
        ],
    )
    def test_classify_deduction_type(self, label, expected):
        assert classify_deduction_type(label) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("HMO - LOA No. 12345", ("loa", "12345")),
            ("OR# 998877", ("official_receipt", "998877")),
            ("PhilHealth ID 12-345678901-2", ("member_id", "12-345678901-2")),
            ("Policy No. AXA-7781", ("policy_number", "AXA-7781")),
            ("Senior Citizen ID", ("senior_citizen_id", None)),
            ("HMO coverage", (None, None)),
            ("Maxicare LOA approved", (None, None)),
        ],
    )
    def test_detect_documentation(self, text, expected):
        assert detect_documentation(text) == expected

    def test_build_deduction_item_uses_context(self):
        item = build_deduction_item("Maxicare", 12000, context="Approval Code: MX-55120")

        assert item.type == DeductionType.HMO
        assert item.is_verified is True
        assert item.documentation_type == "approval_code"
        assert item.documentation_value == "MX-55120"

    def test_build_deduction_item_undocumented(self):
        item = build_deduction_item("HMO Coverage", -12000)

        assert item.amount == 12000
        assert item.is_verified is False
        assert item.verification_issue == "No policy number or LOA visible — coverage not confirmed"

    def test_is_deduction_line(self):
        assert is_deduction_line("Less: Discount")
        assert not is_deduction_line("Room and Board")


class TestExtractionPrompt:

    def test_prompt_defines_contract(self):
        prompt = build_extraction_prompt()

        for key in ["allTotals", "sectionTotals", "hmoCoverage", "philhealthCoverage",
                    "balanceDue", "deductionBreakdown", "hasDocumentation"]:
            assert key in prompt
        assert '"grand total"' in prompt
        assert '"total hospital charges"' in prompt
