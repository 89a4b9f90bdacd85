"""
Unit Tests for the extraction collaborator runner.

Collaborators are simple fakes; no network or OCR is involved.
"""

import asyncio
import json

from billguard.extraction.collaborator import ExtractionOutcome, run_extractions
from billguard.extraction.llm_response import ExtractionPayload


PAYLOAD_JSON = json.dumps({"allTotals": [{"label": "GRAND TOTAL", "amount": 25044}]})


class FakeCollaborator:
    """Returns canned results; optionally fails the first N financial calls."""

    def __init__(self, financials=PAYLOAD_JSON, fail_times=0, text_delay=0.0):
        self.financials = financials
        self.fail_times = fail_times
        self.text_delay = text_delay
        self.financial_calls = 0

    async def extract_text(self, document):
        await asyncio.sleep(self.text_delay)
        return f"OCR text of {document}"

    async def extract_financials(self, document):
        self.financial_calls += 1
        if self.financial_calls <= self.fail_times:
            raise ConnectionError("service unavailable")
        return self.financials


class TestRunExtractions:

    def test_both_succeed(self):
        outcome = asyncio.run(run_extractions(FakeCollaborator(), "bill.png", timeout=1, retries=0))

        assert isinstance(outcome, ExtractionOutcome)
        assert outcome.text == "OCR text of bill.png"
        assert outcome.has_payload
        assert outcome.payload.all_totals[0]["label"] == "GRAND TOTAL"
        assert outcome.errors == []

    def test_payload_object_passes_through(self):
        payload = ExtractionPayload(balance_due=100)
        outcome = asyncio.run(
            run_extractions(FakeCollaborator(financials=payload), "bill.png", timeout=1, retries=0)
        )
        assert outcome.payload is payload

    def test_retry_recovers(self):
        collaborator = FakeCollaborator(fail_times=1)
        outcome = asyncio.run(run_extractions(collaborator, "bill.png", timeout=1, retries=1))

        assert outcome.has_payload
        assert collaborator.financial_calls == 2

    def test_failures_are_recorded_not_raised(self):
        collaborator = FakeCollaborator(fail_times=5)
        outcome = asyncio.run(run_extractions(collaborator, "bill.png", timeout=1, retries=2))

        assert outcome.payload is None
        assert outcome.text is not None
        assert len(outcome.errors) == 1
        assert "Financial extraction failed after 3 attempt(s)" in outcome.errors[0]

    def test_malformed_response_is_an_error(self):
        outcome = asyncio.run(
            run_extractions(FakeCollaborator(financials="not json"), "bill.png", timeout=1, retries=0)
        )
        assert outcome.payload is None
        assert "No JSON object found" in outcome.errors[0]

    def test_timeout(self):
        collaborator = FakeCollaborator(text_delay=0.5)
        outcome = asyncio.run(run_extractions(collaborator, "bill.png", timeout=0.05, retries=0))

        assert outcome.text is None
        assert outcome.has_payload
        assert "timed out" in outcome.errors[0]
