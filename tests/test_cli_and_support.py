"""
Tests for the audit trail, startup dependency check and the CLI.
"""

import json

import pytest

from billguard.auditor.audit_trail import AuditTrail
from billguard.main import main
from billguard.utils.dependency_check import (
    DependencyError,
    check_all_dependencies,
    check_dependency,
)


class TestAuditTrail:

    def test_entries_are_ordered(self):
        trail = AuditTrail()
        trail.log("hierarchy", "Classified candidates", {"count": 3})
        trail.log("deductions", "Unverified HMO coverage", success=False)

        assert len(trail) == 2
        assert [e.phase for e in trail] == ["hierarchy", "deductions"]
        assert trail.entries[0].details == {"count": 3}

    def test_failures(self):
        trail = AuditTrail()
        trail.log("extraction", "Dropped candidate", success=False)
        trail.log("extraction", "Accepted 1 of 2 candidates")

        failures = trail.failures()
        assert len(failures) == 1
        assert failures[0].action == "Dropped candidate"


class TestDependencyCheck:

    def test_installed_module(self):
        ok, message = check_dependency("json")
        assert ok
        assert message == ""

    def test_missing_module(self):
        ok, message = check_dependency("billguard_missing_module", "billguard-missing")
        assert not ok
        assert "pip install billguard-missing" in message

    def test_all_present(self):
        check_all_dependencies()

    def test_missing_raises(self):
        with pytest.raises(DependencyError) as exc_info:
            check_all_dependencies([("billguard_missing_module", "billguard-missing", "Test")])
        assert "pip install billguard-missing" in str(exc_info.value)


PAYLOAD = {
    "allTotals": [
        {"label": "Total Hospital Charges", "amount": 20044, "position": 1},
        {"label": "Total Professional Fees", "amount": 5000, "position": 2},
        {"label": "GRAND TOTAL", "amount": 25044, "position": 3},
    ],
    "calculatedLineItemsTotal": 25044,
    "hmoCoverage": 12000,
    "balanceDue": 13044,
}


class TestCli:

    def test_json_output(self, tmp_path, capsys):
        bill = tmp_path / "bill.json"
        bill.write_text(json.dumps(PAYLOAD), encoding="utf-8")

        assert main(["--input", str(bill), "--json"]) == 0

        result = json.loads(capsys.readouterr().out)
        assert result["chargeStatus"] == "CORRECTLY_CHARGED"
        assert result["deductionValidation"]["coverageStatus"] == "unconfirmed"

    def test_text_report(self, tmp_path, capsys):
        bill = tmp_path / "bill.json"
        bill.write_text("```json\n" + json.dumps(PAYLOAD) + "\n```", encoding="utf-8")

        assert main(["--input", str(bill), "--debug"]) == 0

        out = capsys.readouterr().out
        assert "BILL AUDIT RESULTS" in out
        assert "DEBUG: Audit Trail" in out

    def test_missing_file(self, tmp_path):
        assert main(["--input", str(tmp_path / "missing.json")]) == 1

    def test_malformed_input(self, tmp_path):
        bill = tmp_path / "bill.txt"
        bill.write_text("no json here", encoding="utf-8")
        assert main(["--input", str(bill)]) == 1

    def test_invalid_field_shape(self, tmp_path):
        bill = tmp_path / "bill.json"
        bill.write_text('{"allTotals": "abc"}', encoding="utf-8")
        assert main(["--input", str(bill)]) == 1
