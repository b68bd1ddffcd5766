#!/usr/bin/env python3
"""
Create the inventory schema and immutability triggers.

With --reset all tables are dropped first (journal included).  The
configured return location (ledger.return_location_code) is created as a
STORE when it does not exist yet, so RETURN entries have a destination.

Usage:
    python3 scripts/init_db.py [--config PATH] [--reset] [--yes]
"""

import argparse
import logging
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Initialize the inventory database")
    parser.add_argument("--config", help="Path to inventory YAML config")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before creating them")
    parser.add_argument("--yes", action="store_true", help="Do not ask before --reset")
    args = parser.parse_args(argv)

    logging.disable(logging.CRITICAL)

    from inventory_config import get_active_config
    from inventory_config.bridges import build_unit_table, init_engine_from_config
    from inventory_kernel.db.engine import create_tables, drop_tables, session_scope
    from inventory_kernel.db.immutability import register_immutability_listeners
    from inventory_kernel.exceptions import LocationNotFoundError
    from inventory_kernel.models.location import LocationType
    from inventory_kernel.services.catalog_service import CatalogService

    try:
        config = get_active_config(args.config)
        engine = init_engine_from_config(config)
    except (OSError, ValueError, KeyError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2

    print(f"  Database: {engine.url.render_as_string(hide_password=True)}")
    if args.reset:
        if not args.yes:
            answer = input("  Drop ALL inventory tables, journal included? [y/N] ")
            if answer.strip().lower() != "y":
                print("  Aborted.")
                return 1
        drop_tables()
        print("  Dropped existing tables")

    create_tables()
    register_immutability_listeners()
    print("  Tables and triggers created")

    code = config.ledger.return_location_code
    if code:
        with session_scope() as session:
            catalog = CatalogService(session, build_unit_table(config, session))
            try:
                catalog.location_by_code(code)
                print(f"  Return location {code} already present")
            except LocationNotFoundError:
                catalog.create_location(
                    code, "Central store", SYSTEM_ACTOR_ID,
                    location_type=LocationType.STORE, supports_chemicals=True,
                )
                print(f"  Created return location {code}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
