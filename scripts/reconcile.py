#!/usr/bin/env python3
"""Curtailment ledger CLI -- reconcile, reprocess and verify settlement dates.

Every command is parameterized by date; there are no per-date scripts.

Commands:
- ``process-day DATE``: reconcile one date, recalculate mining, log the run.
- ``process-range START END``: the same for each date, with bounded concurrency.
- ``reprocess-day DATE``: delete the date's records, then ingest it from scratch.
- ``verify DATE``: integrity checks for the date, its month and its year.
- ``verify-bitcoin DATE``: mining calculation audit, optionally fixing gaps.

Usage::

    python scripts/reconcile.py process-day 2025-03-04
    python scripts/reconcile.py process-range 2025-03-01 2025-03-31 --concurrency 3
    python scripts/reconcile.py reprocess-day 2025-03-04
    python scripts/reconcile.py verify 2025-03-04
    python scripts/reconcile.py verify-bitcoin 2025-03-04 --fix
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from datetime import date
from pathlib import Path
from typing import Any

# Ensure project root is on sys.path so ``curtailment.*`` imports work when
# this script is executed directly.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from curtailment.core.exceptions import CurtailmentError
from curtailment.core.utils.parsing import parse_iso_date


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string into a date object."""
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}' (expected YYYY-MM-DD)") from exc


def _format_seconds(s: float) -> str:
    """Return seconds as a human-friendly string."""
    if s < 60:
        return f"{s:.1f}s"
    minutes = int(s // 60)
    secs = s % 60
    return f"{minutes}m{secs:.0f}s"


def _print_issues(title: str, issues: list[dict[str, Any]]) -> None:
    marker = "✓" if not issues else "✗"
    print(f"  {marker} {title + ':':<22} {len(issues)} issue(s)")
    for issue in issues:
        print(f"      - [{issue['key']}] {issue['message']}")


def _build_service(echo: bool = True) -> Any:
    from curtailment.service import CurtailmentService

    return CurtailmentService(echo=echo)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
async def process_day(settlement_date: date) -> int:
    service = _build_service()
    outcome = await service.reconcile_date(settlement_date)
    return 0 if outcome["complete"] else 1


async def process_range(start: date, end: date, concurrency: int | None) -> int:
    service = _build_service(echo=False)
    t0 = time.monotonic()
    results = await service.process_range(start, end, concurrency=concurrency)
    elapsed = time.monotonic() - t0

    print()
    print("=" * 56)
    print(f" PROCESS RANGE {start} to {end}")
    print("=" * 56)
    header = f" {'Date':<12} | {'Records':>7} | {'Missing':>7} | {'Time':>7} | Status"
    print(header)
    print(" " + "-" * (len(header) - 1))
    for result in results:
        rec = result.reconciliation
        records = rec.records_upserted if rec else 0
        missing = len(rec.missing_periods) if rec else 0
        status = result.status if result.status == "SUCCESS" else f"\033[91m{result.status}\033[0m"
        print(
            f" {result.settlement_date.isoformat():<12} | {records:>7} | {missing:>7} | "
            f"{_format_seconds(result.duration_seconds):>7} | {status}"
        )
    print(" " + "-" * (len(header) - 1))
    all_ok = all(r.status == "SUCCESS" for r in results)
    print(f" {'TOTAL':<12} | {len(results):>7} dates | {_format_seconds(elapsed)} | "
          f"{'ALL OK' if all_ok else 'SOME INCOMPLETE OR FAILED'}")
    print("=" * 56)
    return 0 if all_ok else 1


async def reprocess_day(settlement_date: date) -> int:
    service = _build_service()
    outcome = await service.reprocess_date(settlement_date)
    return 0 if outcome["complete"] else 1


def verify(settlement_date: date) -> int:
    from curtailment.quality.checks import IntegrityChecker

    report = IntegrityChecker().run_for_date(settlement_date, include_mining=False)
    print(f"\nIntegrity checks for {settlement_date}: {report['status']}")
    _print_issues("daily", report["daily"])
    _print_issues("monthly", report["monthly"])
    _print_issues("yearly", report["yearly"])
    return 0 if report["status"] == "PASS" else 1


async def verify_bitcoin(settlement_date: date, models: list[str] | None, fix: bool) -> int:
    from curtailment.quality.checks import IntegrityChecker

    service = _build_service(echo=False)
    audit = await service.mining_service.audit_date(settlement_date, models, fix=fix)
    print(f"\nMining audit for {settlement_date}: {audit['expected']} curtailment records")
    for model, count in audit["counts"].items():
        marker = "✗" if model in audit["mismatched"] else "✓"
        fixed = "  (recalculated)" if model in audit["fixed"] else ""
        print(f"  {marker} {model + ':':<10} {count} calculations{fixed}")

    checker = IntegrityChecker()
    remaining = 0
    for model in audit["counts"]:
        issues = checker.check_mining(settlement_date, model)
        remaining += len(issues)
        _print_issues(f"summary {model}", issues)
    return 0 if remaining == 0 else 1


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Wind curtailment ledger -- reconciliation and verification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python scripts/reconcile.py process-day 2025-03-04\n"
            "  python scripts/reconcile.py process-range 2025-03-01 2025-03-31\n"
            "  python scripts/reconcile.py verify-bitcoin 2025-03-04 --fix\n"
        ),
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("process-day", help="Reconcile one settlement date")
    p.add_argument("date", type=_parse_date)

    p = sub.add_parser("process-range", help="Reconcile every date in a range")
    p.add_argument("start", type=_parse_date)
    p.add_argument("end", type=_parse_date)
    p.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Dates processed at once (default: settings.max_concurrent_dates)",
    )

    p = sub.add_parser("reprocess-day", help="Delete and re-ingest one date")
    p.add_argument("date", type=_parse_date)

    p = sub.add_parser("verify", help="Check summaries against records")
    p.add_argument("date", type=_parse_date)

    p = sub.add_parser("verify-bitcoin", help="Audit mining calculations for a date")
    p.add_argument("date", type=_parse_date)
    p.add_argument(
        "--model",
        action="append",
        dest="models",
        default=None,
        help="Miner model to audit (repeatable; default: all configured models)",
    )
    p.add_argument(
        "--fix",
        action="store_true",
        default=False,
        help="Recalculate models whose calculations are incomplete",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Entry point: parse arguments and run the selected command.

    Returns:
        Exit code: 0 on success, 1 on incomplete or failed work.
    """
    args = parse_args(argv)

    if args.command == "process-range" and args.start > args.end:
        print(f"Error: start ({args.start}) is after end ({args.end})", file=sys.stderr)
        return 1

    try:
        if args.command == "process-day":
            return asyncio.run(process_day(args.date))
        if args.command == "process-range":
            return asyncio.run(process_range(args.start, args.end, args.concurrency))
        if args.command == "reprocess-day":
            return asyncio.run(reprocess_day(args.date))
        if args.command == "verify":
            return verify(args.date)
        return asyncio.run(verify_bitcoin(args.date, args.models, args.fix))
    except CurtailmentError as exc:
        print(f"\n{args.command} failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
