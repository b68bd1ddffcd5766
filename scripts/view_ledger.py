#!/usr/bin/env python3
"""
Print one page of the stock journal, newest first.

Usage:
    python3 scripts/view_ledger.py [--location ID] [--item ID] [--lot ID]
        [--from YYYY-MM-DD] [--to YYYY-MM-DD] [--type CONSUME]
        [--page N] [--page-size N] [--config PATH]
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 120


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="View the stock journal")
    parser.add_argument("--location", type=UUID)
    parser.add_argument("--item", type=UUID)
    parser.add_argument("--lot", type=UUID)
    parser.add_argument("--from", dest="date_from", type=date.fromisoformat)
    parser.add_argument("--to", dest="date_to", type=date.fromisoformat)
    parser.add_argument("--type", dest="tx_type")
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--page-size", type=int, default=50)
    parser.add_argument("--config")
    args = parser.parse_args(argv)

    logging.disable(logging.CRITICAL)

    from inventory_config import get_active_config
    from inventory_config.bridges import init_engine_from_config
    from inventory_kernel.db.engine import session_scope
    from inventory_kernel.exceptions import ValidationError
    from inventory_kernel.selectors.ledger_selector import LedgerSelector

    try:
        init_engine_from_config(get_active_config(args.config))
    except (OSError, ValueError, KeyError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2

    with session_scope() as session:
        try:
            page = LedgerSelector(session).find_entries(
                location_id=args.location,
                item_id=args.item,
                lot_id=args.lot,
                date_from=args.date_from,
                date_to=args.date_to,
                tx_type=args.tx_type,
                page=args.page,
                page_size=args.page_size,
            )
        except ValidationError as exc:
            print(f"  ERROR: {exc}", file=sys.stderr)
            return 2

    if not page.items:
        print("  No journal entries found.")
        return 0

    print()
    print("=" * W)
    print("STOCK JOURNAL".center(W))
    print("=" * W)
    print(f"  {'Seq':>6}  {'Occurred':<20} {'Type':<16} {'Qty (base)':>18} {'Entered':>18}  From -> To")
    print(f"  {'-'*6}  {'-'*20} {'-'*16} {'-'*18} {'-'*18}  {'-'*30}")
    for e in page.items:
        entered = f"{e.entered_qty} {e.entered_unit}"
        route = f"{str(e.from_location_id or '-')[:8]} -> {str(e.to_location_id or '-')[:8]}"
        print(
            f"  {e.seq:>6}  {e.occurred_at:%Y-%m-%d %H:%M:%S}  {e.transaction_type.value:<16} "
            f"{e.qty_base:>18} {entered:>18}  {route}"
        )
        if e.reason_code or e.reference:
            print(f"          reason={e.reason_code or '-'} ref={e.reference or '-'}")

    print()
    print(f"  Page {page.page} ({len(page.items)} of {page.total} entries)"
          + ("  -- more with --page" if page.has_next else ""))
    return 0


if __name__ == "__main__":
    sys.exit(main())
