"""
Command line entry point.
"""

import argparse
import json
import sys
from typing import List, Optional

from .exceptions import ConfigurationError, DataLoadError
from .loader import load_dataset
from .pipeline import process_dataset
from .settings import configure_logging, settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jupiter", description="Jupiter document engine")
    parser.add_argument("--log-level", default=None, help=f"Logging level (default: {settings.LOG_LEVEL})")
    commands = parser.add_subparsers(dest="command", required=True)

    process = commands.add_parser("process", help="Compute schedules and QC flags for a data directory")
    process.add_argument("--data-dir", default=None, help=f"Collaborator JSON files (default: {settings.DATA_DIR})")
    process.add_argument("--output", default=None, help="Write computed documents to this JSON file")
    process.add_argument("--doc-id", default=None, help="Only report this document")
    process.add_argument("--fact-map", default=None, help="Fact map YAML override")
    process.add_argument("--qc-rules", default=None, help="QC rules JSON override")
    return parser


def _print_summary(docs) -> None:
    print("=" * 60)
    print("Jupiter - Processed Documents")
    print("=" * 60)
    for doc in docs:
        print(f"\n{doc.name or doc.id} [{doc.document_type or 'Unknown type'}]")
        print(f"  Terms: {len(doc.agreement_terms)}  Final term end: {doc.final_term_end_date or '-'}")
        print(f"  Term payments: {len(doc.term_payments)}  Date payments: {len(doc.date_payments)}")
        if doc.amendments:
            print(f"  Amendments merged: {len(doc.amendments)}")
        if doc.deed_count:
            print(f"  Deeds: {doc.deed_count}  Purchased acres: {doc.purchased_acres}")
        for flag in doc.qc_flags:
            print(f"  ! {flag}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        dataset = load_dataset(args.data_dir)
        docs = process_dataset(dataset, args.fact_map, args.qc_rules)
    except DataLoadError as e:
        print(f"\nDATA LOAD ERROR: {e}", file=sys.stderr)
        return 2
    except ConfigurationError as e:
        print(f"\nCONFIGURATION ERROR: {e}", file=sys.stderr)
        return 3

    if args.doc_id:
        docs = [d for d in docs if d.id == args.doc_id]
        if not docs:
            print(f"\nDocument '{args.doc_id}' not found", file=sys.stderr)
            return 1

    _print_summary(docs)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump([d.to_dict() for d in docs], f, indent=2)
        print(f"\nWrote {len(docs)} document(s) to {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
