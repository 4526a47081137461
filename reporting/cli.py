#!/usr/bin/env python3
"""
CLI for generating Daily Inspection Report PDFs.

Usage:
    python -m reporting.cli sample
    python -m reporting.cli generate <selection_json>

Examples:
    # Generate sample report for testing
    python -m reporting.cli sample

    # North Branch, third quarter of 2025
    python -m reporting.cli generate inspections.json --branch "North Branch" --quarter 2025Q3

    # Two specific records, numbered across the selection
    python -m reporting.cli generate inspections.json --records R-1001,R-2001 --scope selection
"""

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

from core.grouping import GroupingContext, NumberingScope, Quarter
from core.models import ProjectRecords

from .assembler import CancellationToken
from .pdf_generator import ReportCancelled, ReportGenerator, ReportRequest
from .schemas import create_sample_selection


EXIT_INPUT_ERROR = 1
EXIT_CANCELLED = 130


def parse_selection_from_json(data: Any) -> Tuple[List[ProjectRecords], dict]:
    """
    Parse a JSON document into (project, records) pairs.

    Accepts either a list of ``{"project": ..., "records": [...]}`` entries
    or an object with a ``projects`` list plus optional ``branch``,
    ``quarter`` and ``record_ids`` defaults.

    Args:
        data: Decoded JSON

    Returns:
        (project records, request defaults)
    """
    defaults: dict = {}
    if isinstance(data, dict):
        entries = data.get("projects", [])
        for key in ("branch", "quarter", "record_ids"):
            if data.get(key):
                defaults[key] = data[key]
    else:
        entries = data

    if not isinstance(entries, list):
        raise ValueError("Expected a list of projects")

    return [ProjectRecords.from_dict(entry) for entry in entries], defaults


def _split_ids(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _print_progress(current: int, total: int) -> None:
    print(f"  detail page {current}/{total}")


def _run(request: ReportRequest) -> int:
    """Generate a report; Ctrl+C cancels at the next page boundary."""
    token = CancellationToken()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())
    try:
        result = ReportGenerator().generate_sync(request, token, _print_progress)
    except ValueError as e:
        # EmptySelectionError, duplicate record ids
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    finally:
        signal.signal(signal.SIGINT, previous)

    if isinstance(result, ReportCancelled):
        print(result.message)
        return EXIT_CANCELLED

    print(f"Report generated: {result.path}")
    print(f"Pages: {result.page_count} ({result.summary_pages} summary, {result.detail_pages} detail)")
    return 0


def cmd_sample(args):
    """Generate a sample Daily Inspection Report for testing."""
    print("Generating sample Daily Inspection Report...")

    request = ReportRequest(
        project_records=create_sample_selection(),
        context=GroupingContext(quarter=Quarter(2025, 3)),
    )
    return _run(request)


def cmd_generate(args):
    """Generate a report from a JSON selection file."""
    input_path = Path(args.selection_file)

    if not input_path.exists():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    print(f"Loading inspections from: {input_path}")

    try:
        with open(input_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    try:
        project_records, defaults = parse_selection_from_json(data)
        quarter_text = args.quarter or defaults.get("quarter")
        context = GroupingContext(
            branch_name=args.branch or defaults.get("branch"),
            quarter=Quarter.parse(quarter_text) if quarter_text else None,
        )
    except (KeyError, ValueError) as e:
        # InvalidRecordError is a ValueError
        print(f"Error: Invalid inspection data: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    request = ReportRequest(
        project_records=project_records,
        record_ids=_split_ids(args.records) or defaults.get("record_ids"),
        context=context,
        file_name=args.output,
        scope=NumberingScope(args.scope),
        include_summary=not args.no_summary,
    )
    return _run(request)


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Daily Inspection Report Generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m reporting.cli sample
    python -m reporting.cli generate inspections.json --quarter 2025Q3

Output:
    Reports are saved to: $REPORT_OUTPUT_DIR (default ./reports)
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress details")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Sample command
    sample_parser = subparsers.add_parser(
        "sample",
        help="Generate a sample report with mock data",
    )
    sample_parser.set_defaults(func=cmd_sample)

    # Generate command
    gen_parser = subparsers.add_parser(
        "generate",
        help="Generate a report from a JSON selection file",
    )
    gen_parser.add_argument("selection_file", help="Path to JSON file with projects and records")
    gen_parser.add_argument("--branch", help="Only this branch")
    gen_parser.add_argument("--quarter", help="Only this quarter, e.g. 2025Q3")
    gen_parser.add_argument("--records", help="Comma-separated record ids")
    gen_parser.add_argument("--output", help="Output file name")
    gen_parser.add_argument(
        "--scope",
        choices=[s.value for s in NumberingScope],
        default=NumberingScope.GROUP.value,
        help="Restart numbering per group or number across the selection",
    )
    gen_parser.add_argument("--no-summary", action="store_true", help="Only emit detail pages")
    gen_parser.set_defaults(func=cmd_generate)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
