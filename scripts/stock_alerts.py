#!/usr/bin/env python3
"""
Print expiring lots and low-stock alerts.

Usage:
    python3 scripts/stock_alerts.py [--days N] [--location ID] [--config PATH]

--days defaults to monitor.expiry_window_days from the configuration.
"""

import argparse
import logging
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 100


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Expiry and low-stock alerts")
    parser.add_argument("--days", type=int)
    parser.add_argument("--location", type=UUID)
    parser.add_argument("--config")
    args = parser.parse_args(argv)

    logging.disable(logging.CRITICAL)

    from inventory_config import get_active_config
    from inventory_config.bridges import init_engine_from_config
    from inventory_kernel.db.engine import session_scope
    from inventory_kernel.selectors.monitor_selector import MonitorSelector

    try:
        config = get_active_config(args.config)
        init_engine_from_config(config)
    except (OSError, ValueError, KeyError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2

    days = args.days if args.days is not None else config.monitor.expiry_window_days

    with session_scope() as session:
        monitor = MonitorSelector(session)
        expiring = monitor.expiring_lots(days=days, location_id=args.location)
        low = monitor.low_stock(location_id=args.location)

    print()
    print("=" * W)
    print(f"LOTS EXPIRING WITHIN {days} DAYS".center(W))
    print("=" * W)
    if not expiring:
        print("  None.")
    for lot in expiring:
        state = "EXPIRED" if lot.is_expired else f"{lot.days_until_expiry}d"
        print(
            f"  {lot.expiry_date}  {state:>8}  lot {lot.lot_number:<20} "
            f"location {str(lot.location_id)[:8]}  on hand {lot.qty_on_hand_base}"
        )

    print()
    print("=" * W)
    print("LOW STOCK".center(W))
    print("=" * W)
    if not low:
        print("  None.")
    for alert in low:
        flags = ", ".join(
            name for name, hit in (("below min", alert.below_min), ("below reorder", alert.below_reorder)) if hit
        )
        print(
            f"  item {str(alert.item_id)[:8]}  location {str(alert.location_id)[:8]}  "
            f"on hand {alert.qty_on_hand_base}  ({flags})"
        )
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
