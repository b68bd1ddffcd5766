"""
Projection -- the signed contribution of one journal entry to balances.

This is the single definition of what a journal entry means for balance
rows.  The incremental projection (services/balance_projection.py) and the
full replay (services/reconciliation_service.py) both call
``balance_deltas``, so the materialized table and the replayed state can
only diverge through a bug in persistence, never through two competing
interpretations of the journal.

Sign conventions (``qty_base`` is always positive on the journal row):

    RECEIPT / OPENING_BALANCE   +qty on_hand at to_location
    TRANSFER / RETURN           -qty on_hand at from_location, +qty at to_location
    CONSUME / DISPOSE           -qty on_hand at from_location
    ADJUST                      +qty at to_location (increase) or
                                -qty at from_location (decrease)
    RESERVE                     +qty reserved at from_location
    RELEASE                     -qty reserved at from_location

A debit flagged ``from_reservation`` also lowers ``reserved`` at the
debited location by the same amount.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from inventory_kernel.domain.dtos import BalanceDelta, BalanceKey, TransactionType
from inventory_kernel.domain.quantities import ZERO


def balance_deltas(
    transaction_type: TransactionType,
    item_id: UUID,
    lot_id: UUID | None,
    from_location_id: UUID | None,
    to_location_id: UUID | None,
    qty_base: Decimal,
    from_reservation: bool = False,
) -> list[BalanceDelta]:
    """
    Signed balance changes produced by one journal entry.

    Raises:
        ValueError: If the location columns do not fit the transaction type.
    """
    tx_type = TransactionType(transaction_type)
    deltas: list[BalanceDelta] = []

    if tx_type.is_reservation:
        if from_location_id is None:
            raise ValueError(f"{tx_type.value} requires from_location_id")
        sign = 1 if tx_type == TransactionType.RESERVE else -1
        deltas.append(
            BalanceDelta(BalanceKey.of(from_location_id, item_id, lot_id), ZERO, sign * qty_base)
        )
        return deltas

    if from_location_id is not None:
        reserved = -qty_base if from_reservation else ZERO
        deltas.append(
            BalanceDelta(BalanceKey.of(from_location_id, item_id, lot_id), -qty_base, reserved)
        )
    if to_location_id is not None:
        deltas.append(
            BalanceDelta(BalanceKey.of(to_location_id, item_id, lot_id), qty_base, ZERO)
        )

    _check_shape(tx_type, from_location_id, to_location_id)
    return deltas


def _check_shape(
    tx_type: TransactionType,
    from_location_id: UUID | None,
    to_location_id: UUID | None,
) -> None:
    has_from = from_location_id is not None
    has_to = to_location_id is not None
    if tx_type.is_credit_only and (has_from or not has_to):
        raise ValueError(f"{tx_type.value} credits exactly one location")
    if tx_type.is_debit_only and (not has_from or has_to):
        raise ValueError(f"{tx_type.value} debits exactly one location")
    if tx_type.is_movement and not (has_from and has_to):
        raise ValueError(f"{tx_type.value} needs both source and destination")
    if tx_type == TransactionType.ADJUST and has_from == has_to:
        raise ValueError("ADJUST touches exactly one location")


def fold_deltas(
    deltas: Iterable[BalanceDelta],
    into: dict[BalanceKey, tuple[Decimal, Decimal]] | None = None,
) -> dict[BalanceKey, tuple[Decimal, Decimal]]:
    """
    Sum deltas per key into (on_hand, reserved) totals.  Passing ``into``
    adds to running totals in place, so a long journal can be folded one
    entry at a time.
    """
    totals = into if into is not None else {}
    for delta in deltas:
        on_hand, reserved = totals.get(delta.key, (ZERO, ZERO))
        totals[delta.key] = (on_hand + delta.on_hand, reserved + delta.reserved)
    return totals
