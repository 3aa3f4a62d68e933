#!/usr/bin/env python3
"""
Ledger operations utility - submit, list and maintain the advice ledger
from the command line.
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from advice_ledger.core.config import validate_config
from advice_ledger.core.errors import (
    BackendUnavailable,
    DecodeError,
    IndexAppendFailure,
    RecordWriteFailure,
    ValidationError
)
from advice_ledger.core.identity import StaticIdentityProvider
from advice_ledger.core.ledger import AdviceLedger
from advice_ledger.core.schema import CATEGORIES
from util.logging import logger


def submit_command(ledger: AdviceLedger, args) -> int:
    """Submit a new question."""
    try:
        record = ledger.submit(args.question, args.category, args.owner)
    except ValidationError as e:
        print(f"❌ Invalid input: {e}")
        return 2
    except BackendUnavailable as e:
        print(f"❌ Store unavailable: {e}")
        return 1
    except RecordWriteFailure as e:
        print(f"❌ Submission failed, nothing was stored: {e}")
        return 1
    except IndexAppendFailure as e:
        print(f"⚠️  Question stored as {e.record_key} but not listed: {e}")
        print("   Run 'ledger_ctl.py repair' to re-index it.")
        return 3

    print(f"✅ Submitted {record.id} ({record.category})")
    return 0


def list_command(ledger: AdviceLedger, args) -> int:
    """Print the ledger newest first."""
    view = ledger.refresh()
    items = view.filter(args.search)

    if not items:
        print("No questions found.")
        return 0

    for record in items:
        day = datetime.fromtimestamp(record.timestamp).strftime("%Y-%m-%d")
        line = f"{record.id}  {day}  {record.category:<20}  {record.owner}"
        if args.reveal:
            try:
                question, _ = ledger.reveal(record)
                line += f"\n    {question}"
            except DecodeError as e:
                line += f"\n    <undecodable: {e.reason}>"
        print(line)

    print(f"\n{len(items)} of {len(view)} question(s)")
    return 0


def stats_command(ledger: AdviceLedger, args) -> int:
    """Print per-category counts."""
    view = ledger.refresh()
    print(f"Total questions: {len(view)}")
    for category, count in view.category_counts().items():
        print(f"  {category:<20} {count}")
    return 0


def orphans_command(ledger: AdviceLedger, args) -> int:
    """List records stored without an index entry."""
    if not ledger.store.supports_enumeration():
        print("⚠️  This store cannot enumerate keys; orphans are undetectable.")
        return 1

    orphans = ledger.find_orphans()
    if not orphans:
        print("✅ No orphaned records")
        return 0

    for advice_id in orphans:
        print(advice_id)
    print(f"\n{len(orphans)} orphaned record(s)")
    return 0


def repair_command(ledger: AdviceLedger, args) -> int:
    """Re-index orphaned records."""
    try:
        added = ledger.repair_index()
    except IndexAppendFailure as e:
        print(f"❌ Repair stopped at {e.advice_id}: {e}")
        if e.added:
            print(f"   Re-indexed before the failure: {', '.join(e.added)}")
        logger.error(f"CLI repair failed: {e}")
        return 1

    print(f"✅ Re-indexed {len(added)} record(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Advice ledger operations")
    parser.add_argument(
        "--owner",
        default=None,
        help="Owner address for new records (default: LEDGER_OWNER_ADDRESS)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    submit = subparsers.add_parser("submit", help="Submit a new question")
    submit.add_argument("question", help="Question text")
    submit.add_argument(
        "--category",
        required=True,
        help=f"One of: {', '.join(CATEGORIES)}"
    )
    submit.set_defaults(func=submit_command)

    list_parser = subparsers.add_parser("list", help="List questions newest first")
    list_parser.add_argument("--search", default="", help="Filter by category or encoded question")
    list_parser.add_argument("--reveal", action="store_true", help="Decode and print each question")
    list_parser.set_defaults(func=list_command)

    stats = subparsers.add_parser("stats", help="Show per-category counts")
    stats.set_defaults(func=stats_command)

    orphans = subparsers.add_parser("orphans", help="List stored but unindexed records")
    orphans.set_defaults(func=orphans_command)

    repair = subparsers.add_parser("repair", help="Re-index orphaned records")
    repair.set_defaults(func=repair_command)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    issues = validate_config()
    for issue in issues:
        print(f"⚠️  Config: {issue}")

    identity = StaticIdentityProvider(args.owner) if args.owner else None
    ledger = AdviceLedger(identity=identity)
    return args.func(ledger, args)


if __name__ == "__main__":
    sys.exit(main())
