"""
API Tests for the FastAPI application (TestClient).
"""

import json

import pytest
from fastapi.testclient import TestClient

from billguard.server import app


@pytest.fixture
def client():
    return TestClient(app)


AUDIT_PAYLOAD = {
    "allTotals": [
        {"label": "Total Hospital Charges", "amount": 20044, "position": 1},
        {"label": "Total Professional Fees", "amount": 5000, "position": 2},
        {"label": "GRAND TOTAL", "amount": 25044, "position": 3},
    ],
    "calculatedLineItemsTotal": 25044,
    "hmoCoverage": 12000,
    "balanceDue": 13044,
}


class TestSystemEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "audit" in response.json()["endpoints"]


class TestAuditEndpoint:

    def test_audit_payload(self, client):
        response = client.post("/audit", json={"payload": AUDIT_PAYLOAD})
        assert response.status_code == 200

        body = response.json()
        assert body["chargeStatus"] == "CORRECTLY_CHARGED"
        assert body["subtotal"] == 25044
        assert body["deductionValidation"]["coverageStatus"] == "unconfirmed"
        assert body["deductionValidation"]["validationPassed"] is False

    def test_audit_raw_llm_response(self, client):
        raw = "```json\n" + json.dumps(AUDIT_PAYLOAD) + "\n```"
        response = client.post("/audit", json={"llmResponse": raw})

        assert response.status_code == 200
        assert response.json()["couldVerifyMath"] is True

    def test_audit_requires_input(self, client):
        response = client.post("/audit", json={})
        assert response.status_code == 400

    def test_audit_malformed_response(self, client):
        response = client.post("/audit", json={"llmResponse": "{not json"})
        assert response.status_code == 400


class TestCoreEndpoints:

    def test_hierarchy(self, client):
        response = client.post("/hierarchy", json=AUDIT_PAYLOAD["allTotals"])
        assert response.status_code == 200

        body = response.json()
        assert body["grandTotal"]["amount"] == 25044
        assert body["verificationStatus"] == "verified"
        assert len(body["sectionTotals"]) == 2

    def test_hierarchy_rejects_negative_amount(self, client):
        response = client.post("/hierarchy", json=[{"label": "GRAND TOTAL", "amount": -1}])
        assert response.status_code == 422

    def test_classify(self, client):
        response = client.post("/classify", json={
            "label": "Total",
            "amount": 25000,
            "allTotals": [
                {"label": "Total Hospital Charges", "amount": 20000},
                {"label": "Total", "amount": 25000},
            ],
        })
        assert response.status_code == 200
        assert response.json()["level"] == "grand_total"

    def test_validate_deductions(self, client):
        response = client.post("/deductions/validate", json={"hmoCoverage": 12000})
        assert response.status_code == 200

        body = response.json()
        assert body["coverageStatus"] == "unconfirmed"
        assert body["unverifiedDeductions"] == 12000

    def test_keywords(self, client):
        response = client.get("/keywords")
        assert response.status_code == 200
        assert "balance due" in response.json()["grandTotal"]
