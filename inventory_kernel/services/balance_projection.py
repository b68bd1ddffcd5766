"""
BalanceProjection -- incremental maintenance of the materialized balances.

Responsibility:
    Locks the balance rows a journal entry touches, checks that the entry
    keeps every row within its invariants, and applies the signed deltas
    produced by ``domain.projection.balance_deltas``.

Architecture position:
    Kernel > Services.  Called by StockLedgerService between journal
    validation and the journal append.

Invariants enforced:
    - Rows are locked in ascending BalanceKey order, so two operations
      touching overlapping rows can never hold locks in opposite orders.
    - Nothing is written until every touched row has been checked: a
      rejected operation leaves no partial balance change.
    - After apply: 0 <= qty_reserved_base <= qty_on_hand_base on every
      touched row.

Failure modes:
    - InsufficientStockError: on-hand would go negative, or below the
      quantity still reserved.
    - ReservationError: a release or reservation draw exceeds the reserved
      quantity.
    - ConcurrencyConflictError: the row lock could not be acquired
      (timeout, deadlock, database locked).

Audit relevance:
    ``last_seq`` on each row names the journal entry that produced its
    current state.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError

from inventory_kernel.db.engine import is_lock_conflict
from inventory_kernel.domain.dtos import BalanceDelta, BalanceKey, BalanceSnapshot
from inventory_kernel.domain.quantities import ZERO, round_qty
from inventory_kernel.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    ReservationError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.balance import StockBalance
from inventory_kernel.services.base import BaseService

logger = get_logger("services.balance_projection")


def snapshot_of(row: StockBalance) -> BalanceSnapshot:
    return BalanceSnapshot(
        location_id=row.location_id,
        item_id=row.item_id,
        lot_id=row.lot_id,
        qty_on_hand_base=row.qty_on_hand_base,
        qty_reserved_base=row.qty_reserved_base,
    )


class BalanceProjection(BaseService[StockBalance]):
    """
    Lock, check and update balance rows for one journal entry.

    Contract:
        ``lock_rows`` -> ``check`` -> (journal append) -> ``apply``, all in
        the caller's transaction.  Rows stay locked until it ends.

    Non-goals:
        - Does NOT write the journal (JournalWriter).
        - Does NOT touch containers (LotRegistry).
    """

    def _select_locked(self, key: BalanceKey) -> StockBalance | None:
        return self.session.execute(
            select(StockBalance)
            .where(
                StockBalance.location_id == key.location_id,
                StockBalance.item_id == key.item_id,
                StockBalance.lot_key == key.lot_key,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _get_or_create_locked(self, key: BalanceKey) -> StockBalance:
        row = self._select_locked(key)
        if row is not None:
            return row

        # Zero row; a concurrent writer may be inserting the same key.
        savepoint = self.session.begin_nested()
        try:
            row = StockBalance(
                location_id=UUID(key.location_id),
                item_id=UUID(key.item_id),
                lot_id=key.lot_id,
                lot_key=key.lot_key,
                qty_on_hand_base=ZERO,
                qty_reserved_base=ZERO,
            )
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
            logger.debug(
                "balance_row_created",
                extra={"location_id": key.location_id, "item_id": key.item_id, "lot_key": key.lot_key},
            )
            return row
        except IntegrityError:
            savepoint.rollback()
            row = self._select_locked(key)
            if row is None:
                raise
            return row

    def lock_rows(self, keys: Iterable[BalanceKey]) -> dict[BalanceKey, StockBalance]:
        """
        Lock (creating at zero where missing) every row in ``keys``.

        Postconditions:
            Returned mapping holds one locked row per distinct key.

        Raises:
            ConcurrencyConflictError: a lock could not be acquired.
        """
        rows: dict[BalanceKey, StockBalance] = {}
        for key in sorted(set(keys)):
            try:
                rows[key] = self._get_or_create_locked(key)
            except DBAPIError as exc:
                if is_lock_conflict(exc):
                    raise ConcurrencyConflictError(
                        f"Could not lock balance {key.location_id}/{key.item_id}/{key.lot_key}: {exc.orig}"
                    ) from exc
                raise
        return rows

    def check(self, deltas: Iterable[BalanceDelta], rows: dict[BalanceKey, StockBalance]) -> None:
        """
        Verify the deltas keep every row valid.  Writes nothing.

        Raises:
            ReservationError: reserved would go negative.
            InsufficientStockError: on-hand would go negative or below
                the reserved quantity.
        """
        for delta in deltas:
            row = rows[delta.key]
            new_on_hand = row.qty_on_hand_base + delta.on_hand
            new_reserved = row.qty_reserved_base + delta.reserved

            if new_reserved < 0:
                raise ReservationError(
                    location_id=str(row.location_id),
                    item_id=str(row.item_id),
                    lot_id=str(row.lot_id) if row.lot_id else None,
                    requested=-delta.reserved,
                    reserved=row.qty_reserved_base,
                )
            if new_on_hand < 0 or new_reserved > new_on_hand:
                # Debits drawn from a reservation may use reserved stock
                requested = -delta.on_hand if delta.on_hand < 0 else delta.reserved
                available = (
                    row.qty_on_hand_base if delta.reserved < 0 else row.qty_available_base
                )
                raise InsufficientStockError(
                    location_id=str(row.location_id),
                    item_id=str(row.item_id),
                    lot_id=str(row.lot_id) if row.lot_id else None,
                    requested=requested,
                    available=available,
                )

    def apply(
        self,
        deltas: Iterable[BalanceDelta],
        rows: dict[BalanceKey, StockBalance],
        seq: int,
    ) -> dict[BalanceKey, BalanceSnapshot]:
        """
        Apply checked deltas and stamp ``last_seq``.

        Returns:
            Post-update snapshot per touched key.
        """
        touched: list[BalanceKey] = []
        for delta in deltas:
            row = rows[delta.key]
            row.qty_on_hand_base = round_qty(row.qty_on_hand_base + delta.on_hand)
            row.qty_reserved_base = round_qty(row.qty_reserved_base + delta.reserved)
            row.last_seq = seq
            if delta.key not in touched:
                touched.append(delta.key)
        self.session.flush()
        return {key: snapshot_of(rows[key]) for key in touched}
