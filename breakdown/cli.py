"""
Breakdown CLI
=============

Runs the breakdown pipeline over a JSON input document.

INPUT DOCUMENT:
    {"root_spans": [...], "intervals": [...], "states": [...]}

USAGE:
    python -m breakdown.cli INPUT.json [--workers N] [--no-fill-gaps]
                                       [--summary] [--output PATH]
"""
import argparse
import json
import sys
from typing import List, Optional

from .contracts.base import InputShapeError
from .engine import BreakdownEngine, BreakdownConfig
from .ingestion import load_document
from .summary import summarize_causes


EXIT_INPUT_SHAPE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Decompose root spans into exclusive, cause-attributed ranges"
    )
    parser.add_argument("input", help="Path to the JSON input document")
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=4,
        help="Maximum contexts processed concurrently"
    )
    parser.add_argument(
        "--no-fill-gaps",
        action="store_true",
        help="Leave time without thread state uncovered instead of 'unknown'"
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Include per-root cause totals"
    )
    parser.add_argument("--output", "-o", help="Write JSON here instead of stdout")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    engine = BreakdownEngine(BreakdownConfig(
        max_workers=args.workers,
        fill_state_gaps=not args.no_fill_gaps
    ))

    try:
        document = load_document(args.input)
        result = engine.run_rows(
            document['root_spans'],
            document['intervals'],
            document['states']
        )
    except InputShapeError as exc:
        print(f"[!] Invalid input: {exc}", file=sys.stderr)
        return EXIT_INPUT_SHAPE

    payload = {
        'records': result.to_dicts(),
        'failed_contexts': [str(c) for c in result.failed_contexts],
    }
    if args.summary:
        payload['summary'] = [s.to_dict() for s in summarize_causes(result.records)]

    text = json.dumps(payload, indent=2)
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as handle:
            handle.write(text + "\n")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
