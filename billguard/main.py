"""
Command-line entry point for the BillGuard audit engine.

Always run using module execution:
    python -m billguard.main --input bill.json
    python -m billguard.main --input bill.json --ocr-text bill.txt --debug
    python -m billguard.main --input response.txt --json

The input file holds the extraction payload as JSON, or a raw extraction
response (markdown-fenced JSON is accepted).
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from billguard.auditor.audit import audit_bill
from billguard.auditor.output_renderer import render_report
from billguard.config import LOG_FORMAT, LOG_LEVEL
from billguard.exceptions import ExtractionError
from billguard.extraction.llm_response import parse_llm_response
from billguard.utils.dependency_check import DependencyError, check_all_dependencies

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Hospital bill total-hierarchy and deduction audit",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m billguard.main --input bill.json
  python -m billguard.main --input bill.json --ocr-text bill.txt --json
        """
    )
    parser.add_argument(
        "--input",
        type=str,
        required=True,
        help="Path to the extraction payload (JSON or raw extraction response)"
    )
    parser.add_argument(
        "--ocr-text",
        type=str,
        default=None,
        help="Path to OCR text used to sum line items independently"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the flat JSON result instead of the text report"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Include hierarchy buckets and the audit trail in the text report"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level="DEBUG" if args.debug else LOG_LEVEL, format=LOG_FORMAT)

    try:
        check_all_dependencies()
    except DependencyError as e:
        logger.error(f"\n{str(e)}")
        return 1

    input_path = Path(args.input)
    try:
        raw = input_path.read_text(encoding="utf-8")
        payload = parse_llm_response(raw)
        ocr_text = (
            Path(args.ocr_text).read_text(encoding="utf-8") if args.ocr_text else None
        )
    except OSError as e:
        logger.error(f"Could not read input: {e}")
        return 1
    except ExtractionError as e:
        logger.error(f"Invalid extraction payload in {input_path}: {e}")
        return 1

    logger.info(f"Auditing bill payload: {input_path}")
    report = audit_bill(payload, ocr_text=ocr_text)

    if args.json:
        print(json.dumps(report.to_flat_dict(), indent=2, ensure_ascii=False))
    else:
        print(render_report(report, debug=args.debug))
    return 0


if __name__ == "__main__":
    sys.exit(main())
