"""
Module: inventory_kernel.db.triggers
Responsibility: Installing and removing database-level immutability triggers
    (Layer 2 of 2).  This is the database-level complement to the ORM-level
    listeners in db/immutability.py.
Architecture position: Kernel > DB.  MUST NOT import from models/,
    services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - stock_transactions rows: no UPDATE, no DELETE.
    - stock_balances rows: no DELETE.

Failure modes:
    - PostgreSQL RAISE EXCEPTION / SQLite RAISE(ABORT) on any violation,
      surfacing as a sqlalchemy DBAPIError subclass.

Audit relevance:
    Raw SQL, bulk statements and direct database access bypass the ORM
    listeners; these triggers still refuse to rewrite the journal.
"""

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine

from inventory_kernel.logging_config import get_logger

logger = get_logger("db.triggers")

TRIGGER_NAMES = (
    "trg_stock_transaction_no_update",
    "trg_stock_transaction_no_delete",
    "trg_stock_balance_no_delete",
)

_POSTGRES_INSTALL = (
    """
    CREATE OR REPLACE FUNCTION inventory_block_mutation() RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION '% on % is not permitted: rows are append-only',
            TG_OP, TG_TABLE_NAME;
    END;
    $$ LANGUAGE plpgsql
    """,
    "DROP TRIGGER IF EXISTS trg_stock_transaction_no_update ON stock_transactions",
    """
    CREATE TRIGGER trg_stock_transaction_no_update
    BEFORE UPDATE ON stock_transactions
    FOR EACH ROW EXECUTE FUNCTION inventory_block_mutation()
    """,
    "DROP TRIGGER IF EXISTS trg_stock_transaction_no_delete ON stock_transactions",
    """
    CREATE TRIGGER trg_stock_transaction_no_delete
    BEFORE DELETE ON stock_transactions
    FOR EACH ROW EXECUTE FUNCTION inventory_block_mutation()
    """,
    "DROP TRIGGER IF EXISTS trg_stock_balance_no_delete ON stock_balances",
    """
    CREATE TRIGGER trg_stock_balance_no_delete
    BEFORE DELETE ON stock_balances
    FOR EACH ROW EXECUTE FUNCTION inventory_block_mutation()
    """,
)

_POSTGRES_DROP = (
    "DROP TRIGGER IF EXISTS trg_stock_transaction_no_update ON stock_transactions",
    "DROP TRIGGER IF EXISTS trg_stock_transaction_no_delete ON stock_transactions",
    "DROP TRIGGER IF EXISTS trg_stock_balance_no_delete ON stock_balances",
    "DROP FUNCTION IF EXISTS inventory_block_mutation()",
)

_SQLITE_INSTALL = (
    """
    CREATE TRIGGER IF NOT EXISTS trg_stock_transaction_no_update
    BEFORE UPDATE ON stock_transactions
    BEGIN
        SELECT RAISE(ABORT, 'UPDATE on stock_transactions is not permitted: rows are append-only');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_stock_transaction_no_delete
    BEFORE DELETE ON stock_transactions
    BEGIN
        SELECT RAISE(ABORT, 'DELETE on stock_transactions is not permitted: rows are append-only');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_stock_balance_no_delete
    BEFORE DELETE ON stock_balances
    BEGIN
        SELECT RAISE(ABORT, 'DELETE on stock_balances is not permitted: rows are never deleted');
    END
    """,
)

_SQLITE_DROP = tuple(f"DROP TRIGGER IF EXISTS {name}" for name in TRIGGER_NAMES)


def _statements(dialect_name: str, install: bool) -> tuple[str, ...]:
    if dialect_name == "postgresql":
        return _POSTGRES_INSTALL if install else _POSTGRES_DROP
    if dialect_name == "sqlite":
        return _SQLITE_INSTALL if install else _SQLITE_DROP
    raise ValueError(f"Unsupported dialect for immutability triggers: {dialect_name}")


def install_on_connection(connection: Connection) -> None:
    """Install all triggers using an existing connection (caller commits)."""
    for statement in _statements(connection.dialect.name, install=True):
        connection.execute(text(statement))


def uninstall_on_connection(connection: Connection) -> None:
    """Drop all triggers using an existing connection (caller commits)."""
    if not inspect(connection).has_table("stock_transactions"):
        return
    for statement in _statements(connection.dialect.name, install=False):
        connection.execute(text(statement))


def install_immutability_triggers(engine: Engine) -> None:
    """Install all immutability triggers in their own transaction."""
    with engine.begin() as conn:
        install_on_connection(conn)
    logger.info(
        "immutability_triggers_installed",
        extra={"dialect": engine.dialect.name, "triggers": list(TRIGGER_NAMES)},
    )


def uninstall_immutability_triggers(engine: Engine) -> None:
    """Drop all immutability triggers.  FOR TESTING AND MIGRATIONS ONLY."""
    with engine.begin() as conn:
        uninstall_on_connection(conn)
    logger.info(
        "immutability_triggers_uninstalled",
        extra={"dialect": engine.dialect.name},
    )
