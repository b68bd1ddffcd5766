#!/usr/bin/env python3
"""
Replay the stock journal and compare it with the materialized balances.

Usage:
    python3 scripts/reconcile_balances.py [--config PATH] [--verbose]

Exit status:
    0  balances match the journal
    1  drift found (mismatched balances or container overages)
    2  could not connect / configuration error

Drift is reported, never repaired.
"""

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 100


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile balances against the stock journal")
    parser.add_argument("--config", help="Path to inventory YAML config (default: INVENTORY_CONFIG or packaged default)")
    parser.add_argument("--verbose", action="store_true", help="Emit structured JSON logs to stderr")
    args = parser.parse_args(argv)

    from inventory_config import get_active_config
    from inventory_config.bridges import init_engine_from_config
    from inventory_kernel.db.engine import session_scope
    from inventory_kernel.logging_config import configure_logging
    from inventory_kernel.services.reconciliation_service import ReconciliationService

    if args.verbose:
        configure_logging(level=logging.DEBUG)
    else:
        logging.disable(logging.CRITICAL)

    try:
        config = get_active_config(args.config)
        init_engine_from_config(config)
    except (OSError, ValueError, KeyError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2

    with session_scope() as session:
        report = ReconciliationService(session).reconcile()

    print()
    print("=" * W)
    print("BALANCE RECONCILIATION".center(W))
    print("=" * W)
    print(f"  Journal entries replayed: {report.transactions_replayed}")
    print(f"  Last sequence:            {report.last_seq}")
    print(f"  Balance rows checked:     {report.balances_checked}")
    print()

    if report.mismatches:
        print(f"  {'Location':<38} {'Item':<38} {'Lot':<38}")
        for m in report.mismatches:
            print(f"  {m.key.location_id:<38} {m.key.item_id:<38} {m.key.lot_key or '-':<38}")
            print(f"      on hand:  expected {m.expected_on_hand}  actual {m.actual_on_hand}")
            print(f"      reserved: expected {m.expected_reserved}  actual {m.actual_reserved}")
        print()

    for o in report.container_overages:
        print(
            f"  CONTAINER OVERAGE  location {o.location_id}  lot {o.lot_id}: "
            f"containers {o.container_total} > balance {o.lot_balance}"
        )

    if report.is_consistent:
        print("  OK: balances match the journal.")
        return 0
    print(
        f"  DRIFT: {len(report.mismatches)} balance mismatch(es), "
        f"{len(report.container_overages)} container overage(s)."
    )
    return 1


if __name__ == "__main__":
    sys.exit(main())
