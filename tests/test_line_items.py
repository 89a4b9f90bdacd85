"""Unit tests for OCR line-item parsing and amount helpers."""

import re

from billguard.extraction.line_items import is_header_label, parse_line, parse_line_items, sum_line_items
from billguard.extraction.regex_utils import (
    clean_label,
    find_line_amount,
    is_bare_integer,
    parse_amount,
    safe_group,
)

SAMPLE_BILL = """
ST. LUKE'S MEDICAL CENTER
Room and Board          ₱8,000.00
Laboratory - CBC        PHP 1,044.00
Pharmacy                P 4,000.00
- Paracetamol 500mg     120.00
Total Hospital Charges  13,164.00
Professional Fee Dr. Cruz 5,000.00
Total PF                5,000.00
GRAND TOTAL             18,164.00
Less: Senior Citizen Discount 1,000.00
HMO Coverage            10,000.00
Balance Due             7,164.00
"""


class TestParseLineItems:

    def test_sample_bill(self):
        items = parse_line_items(SAMPLE_BILL)
        names = [i.name for i in items]

        assert names == [
            "Room and Board",
            "Laboratory - CBC",
            "Pharmacy",
            "Paracetamol 500mg",
            "Professional Fee Dr. Cruz",
        ]
        assert sum_line_items(items) == 18164.0

    def test_totals_and_deductions_excluded(self):
        assert parse_line("GRAND TOTAL 18,164.00") is None
        assert parse_line("Subtotal 500.00") is None
        assert parse_line("Less: PhilHealth 2,500.00") is None
        assert parse_line("Deposit 5,000.00") is None

    def test_amount_bounds(self):
        assert parse_line("Room 0.00") is None
        assert parse_line("Building 500,000.00") is None
        assert parse_line("Oxygen 499,999.99").amount == 499999.99

    def test_short_name_rejected(self):
        assert parse_line("IV 300.00") is None

    def test_no_placeholder_when_nothing_parses(self):
        assert parse_line_items("no amounts here\n\n") == []
        assert sum_line_items([]) == 0.0

    def test_header_numbers_are_not_charges(self):
        text = (
            "Admission Date: 01/15/2024\n"
            "Hospital No. 123456\n"
            "Patient ID: 40021\n"
            "Tel: 8123 4567\n"
            "Room and Board 5,000.00\n"
            "GRAND TOTAL 5,000.00\n"
        )
        items = parse_line_items(text)

        assert [(i.name, i.amount) for i in items] == [("Room and Board", 5000.0)]
        assert sum_line_items(items) == 5000.0

    def test_identifier_integer_rejected(self):
        assert parse_line("Ref 20240115 Room 305") is None
        assert parse_line("Case No. 88213 Laboratory") is None
        assert parse_line("Room No. 305 Private 5,000.00").amount == 5000.0

    def test_charge_with_date_keeps_amount(self):
        item = parse_line("CBC 01/15/2024 350.00")
        assert item.amount == 350.0
        assert item.name == "CBC 01/15/2024"

    def test_is_header_label(self):
        assert is_header_label("Admission Date")
        assert is_header_label("Hospital No")
        assert is_header_label("Contact Number")
        assert not is_header_label("Room and Board")
        assert not is_header_label("Professional Fee Dr. Cruz")


class TestRegexUtils:

    def test_safe_group_none_match(self):
        m = re.search(r"LOA No\.?\s*(\w+)", "OR# 123")
        assert safe_group(m, 1, "NONE") == "NONE"

    def test_safe_group_missing_index(self):
        m = re.search(r"LOA", "LOA")
        assert safe_group(m, 1, "FALLBACK") == "FALLBACK"

    def test_parse_amount(self):
        assert parse_amount("25,044.00") == 25044.0
        assert parse_amount("") is None
        assert parse_amount("abc") is None

    def test_find_line_amount_takes_last(self):
        amount, start, end = find_line_amount("Paracetamol 500mg  ₱120.00")
        assert amount == 120.0
        assert find_line_amount("no digits") is None

    def test_find_line_amount_skips_dates(self):
        assert find_line_amount("Admission Date: 01/15/2024") is None
        assert find_line_amount("Discharged 2024-01-20 10:30") is None
        amount, _, _ = find_line_amount("X-Ray 01/15/2024 ₱1,200.00")
        assert amount == 1200.0

    def test_is_bare_integer(self):
        assert is_bare_integer(" 123456")
        assert not is_bare_integer("5,000")
        assert not is_bare_integer("₱500")
        assert not is_bare_integer("350.00")
        assert not is_bare_integer("")

    def test_clean_label(self):
        assert clean_label("- Room and Board: ") == "Room and Board"
        assert clean_label("•  CBC ....") == "CBC"
        assert clean_label("") == ""
