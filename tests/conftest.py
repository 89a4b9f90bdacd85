"""Shared fixtures: bill total sets from real-world bill layouts."""

import pytest

from billguard.auditor.models import ExtractedTotal


def make_totals(rows):
    """Build ExtractedTotal candidates from (label, amount) rows in document order."""
    return [
        ExtractedTotal(label=label, amount=amount, position=i + 1)
        for i, (label, amount) in enumerate(rows)
    ]


@pytest.fixture
def hospital_plus_pf_totals():
    """Hospital charges + professional fees with an explicit GRAND TOTAL."""
    return make_totals([
        ("Room and Board", 8000),
        ("Laboratory", 5044),
        ("Pharmacy", 7000),
        ("Total Hospital Charges", 20044),
        ("Professional Fees", 5000),
        ("Total Professional Fees", 5000),
        ("GRAND TOTAL", 25044),
    ])


@pytest.fixture
def implicit_total_totals():
    """No grand-total keyword; final unlabeled "Total" is the largest amount."""
    return make_totals([
        ("Room Charges", 12000),
        ("Lab Charges", 8000),
        ("Total Hospital", 20000),
        ("PF - Dr. Santos", 5000),
        ("Total PF", 5000),
        ("Total", 25000),
    ])
