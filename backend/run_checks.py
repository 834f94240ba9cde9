#!/usr/bin/env python3
"""CLI tool to resolve and check a saved land record.

Usage:
    python run_checks.py <record_id_or_file>            # Resolve + run checks
    python run_checks.py <record_id_or_file> --trace    # Run with LRMS_TRACE
    python run_checks.py --list                         # List stored land records
    python run_checks.py <record_id> --json             # Output raw JSON

A file may be a saved snapshot or a legacy upload payload (it is imported
on the fly).

Examples:
    python run_checks.py 0973f73e
    python run_checks.py temp/snapshots/0973f73e.json --trace
    python run_checks.py upload.json --json
"""

import argparse
import json
import os
import sys
from pathlib import Path

# Ensure the backend package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent))

from lrms.config import SNAPSHOTS_DIR


def list_records():
    """List all stored land records with summary info."""
    files = sorted(SNAPSHOTS_DIR.glob("*.json"))
    if not files:
        print("No land records found.")
        return

    print(f"\n{'Land record':<38} {'Rev':>4} {'Nondhs':>7} {'Radd':>5}")
    print("─" * 60)

    for f in files:
        try:
            data = json.loads(f.read_text(encoding="utf-8"))
            details = data.get("details", [])
            radd = sum(1 for d in details if d.get("status") == "invalid")
            print(f"{f.stem:<38} {data.get('revision', 0):>4} {len(data.get('nondhs', [])):>7} {radd:>5}")
        except (json.JSONDecodeError, OSError) as e:
            print(f"{f.stem:<38}  ERROR: {e}")

    print()


def load_record(record_ref: str) -> dict:
    """Load a land record by ID (prefix) or full path."""
    path = Path(record_ref)
    if path.exists():
        return json.loads(path.read_text(encoding="utf-8"))

    matches = list(SNAPSHOTS_DIR.glob(f"{record_ref}*.json"))
    if len(matches) == 1:
        return json.loads(matches[0].read_text(encoding="utf-8"))
    elif len(matches) > 1:
        print(f"Ambiguous ID '{record_ref}' — matches: {[m.stem for m in matches]}")
        sys.exit(1)
    else:
        print(f"Land record '{record_ref}' not found.")
        sys.exit(1)


def run_checks(record_data: dict, trace: bool = False, output_json: bool = False):
    """Resolve the validity chain and run snapshot checks on a record."""
    if trace:
        os.environ["LRMS_TRACE"] = "1"
        import importlib
        import lrms.config
        importlib.reload(lrms.config)

    import logging
    if trace:
        logging.basicConfig(level=logging.DEBUG, format="%(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    from lrms.engine.area import format_area
    from lrms.engine.checks import run_snapshot_checks
    from lrms.engine.importer import import_land_record
    from lrms.engine.models import Snapshot, changed_detail_ids
    from lrms.engine.ordering import canonical_order
    from lrms.engine.validity import resolve, derived_validity

    skipped: list[str] = []
    if "nondhDetails" in record_data:
        result = import_land_record(record_data)
        snapshot, skipped = result.snapshot, result.skipped
    else:
        snapshot = Snapshot.from_dict(record_data)

    order = canonical_order(snapshot.nondhs)
    resolved = resolve(order, snapshot.details)
    stale = changed_detail_ids(snapshot.details, resolved)
    checks = run_snapshot_checks(order, resolved)
    validity = derived_validity(order, resolved)

    if output_json:
        output = {
            "land_record_id": snapshot.land_record_id,
            "order": [n.number for n in order],
            "validity": {n.number: validity[n.id] for n in order},
            "stale_detail_ids": stale,
            "skipped": skipped,
            "checks": checks,
        }
        print(json.dumps(output, indent=2, default=str, ensure_ascii=False))
        return

    by_nondh = {d.nondh_id: d for d in resolved}
    print(f"\n{'═' * 70}")
    print(f"  LRMS Check Runner — land record {snapshot.land_record_id} ({len(order)} nondh(s))")
    print(f"{'═' * 70}\n")

    print("  NONDH CHAIN")
    print(f"  {'─' * 60}")
    for n in order:
        d = by_nondh[n.id]
        held = sum(r.area for r in d.owner_relations)
        mark = "✓" if validity[n.id] else "✗"
        print(f"  {mark} {n.number:<8} {d.amendment_kind:<18} {d.status:<10} {format_area(held)}")
    print()

    if skipped:
        print(f"  SKIPPED ROWS ({len(skipped)})")
        print(f"  {'─' * 60}")
        for msg in skipped:
            print(f"  - {msg}")
        print()

    if checks:
        print(f"  SNAPSHOT CHECKS ({len(checks)} results)")
        print(f"  {'─' * 60}")
        for c in checks:
            status_icon = {"FAIL": "✗", "WARNING": "⚠", "INFO": "ℹ", "PASS": "✓"}.get(c["status"], "?")
            sev_color = {"CRITICAL": "🔴", "HIGH": "🟠", "MEDIUM": "🟡", "LOW": "🟢"}.get(c["severity"], "⚪")
            print(f"  {status_icon} {sev_color} [{c['rule_code']}] {c['rule_name']}")
            print(f"    {c['explanation'][:120]}")
            if c.get("evidence"):
                print(f"    Evidence: {c['evidence'][:100]}")
            print()
    else:
        print("  No snapshot check issues found.\n")

    fail_count = sum(1 for c in checks if c["status"] == "FAIL")
    warn_count = sum(1 for c in checks if c["status"] == "WARNING")
    print(f"{'═' * 70}")
    print(f"  Summary: {fail_count} FAIL, {warn_count} WARNING, {len(stale)} stale detail(s)")
    print(f"{'═' * 70}\n")


def main():
    parser = argparse.ArgumentParser(
        description="LRMS CLI — Resolve and check saved land records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("record", nargs="?", help="Land record ID (prefix) or JSON file path")
    parser.add_argument("--list", action="store_true", help="List stored land records")
    parser.add_argument("--trace", action="store_true", help="Enable LRMS_TRACE debug output")
    parser.add_argument("--json", action="store_true", help="Output raw JSON instead of pretty print")

    args = parser.parse_args()

    if args.list:
        list_records()
        return

    if not args.record:
        parser.print_help()
        return

    record_data = load_record(args.record)
    run_checks(record_data, trace=args.trace, output_json=args.json)


if __name__ == "__main__":
    main()
