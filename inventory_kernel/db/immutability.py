"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The stock journal is the source of truth.  Every balance can be rebuilt by
replaying it, which only holds if no journal row is ever rewritten.  Mistakes
are corrected by appending ADJUST entries, never by editing history.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/triggers.py (database triggers)
    - Catches raw SQL, bulk UPDATE statements, direct database access

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | Rule
------------------|-----------------------------------------------------------
StockTransaction  | Never updated, never deleted
StockBalance      | Never deleted (quantities change only via the journal)
Container         | Status only moves forward: IN_STOCK -> EMPTY -> DISPOSED/LOST
                  | Terminal statuses (DISPOSED, LOST) never change again

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY - never in production):

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str) -> ImmutabilityViolationError:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _check_transaction_update(mapper, connection, target):
    """Journal entries are append-only."""
    raise _blocked(
        "StockTransaction",
        str(target.id),
        "UPDATE",
        "Journal entries are immutable; append an ADJUST entry instead",
    )


def _check_transaction_delete(mapper, connection, target):
    raise _blocked(
        "StockTransaction",
        str(target.id),
        "DELETE",
        "Journal entries are immutable and cannot be deleted",
    )


def _check_balance_delete(mapper, connection, target):
    raise _blocked(
        "StockBalance",
        str(target.id),
        "DELETE",
        "Balance rows are never deleted",
    )


def _check_container_status_transition(mapper, connection, target):
    """
    Block backward or terminal-to-terminal container status changes.

    Uses attribute history: history.deleted holds the value loaded from the
    database, history.added the value being written.
    """
    from inventory_kernel.models.container import ContainerStatus

    history = get_history(target, "status")
    if not history.deleted or not history.added:
        return

    old = ContainerStatus(history.deleted[0])
    new = ContainerStatus(history.added[0])
    if old == new:
        return
    if not old.can_transition_to(new):
        raise _blocked(
            "Container",
            str(target.id),
            "UPDATE",
            f"Container status cannot move from {old.value} to {new.value}",
        )


_LISTENERS = (
    ("StockTransaction", "before_update", _check_transaction_update),
    ("StockTransaction", "before_delete", _check_transaction_delete),
    ("StockBalance", "before_delete", _check_balance_delete),
    ("Container", "before_update", _check_container_status_transition),
)


def _targets() -> dict:
    from inventory_kernel.models.balance import StockBalance
    from inventory_kernel.models.container import Container
    from inventory_kernel.models.transaction import StockTransaction

    return {
        "StockTransaction": StockTransaction,
        "StockBalance": StockBalance,
        "Container": Container,
    }


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are left alone.
    """
    targets = _targets()
    for name, event_name, listener_fn in _LISTENERS:
        target = targets[name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    targets = _targets()
    for name, event_name, listener_fn in _LISTENERS:
        target = targets[name]
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
