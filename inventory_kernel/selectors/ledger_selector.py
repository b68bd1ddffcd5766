"""
Module: inventory_kernel.selectors.ledger_selector
Responsibility: Read-only queries over the stock journal.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Entries are returned in ``seq`` order (newest first for listings,
      oldest first for iteration), never by timestamp alone.
    - A location filter matches entries on either side of a movement.
"""

from collections.abc import Iterator
from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID

from sqlalchemy import or_, select

from inventory_kernel.domain.dtos import Page, TransactionType, TransactionView
from inventory_kernel.exceptions import ValidationError
from inventory_kernel.models.transaction import StockTransaction
from inventory_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 200
MAX_PAGE_SIZE = 1000


def to_transaction_view(entry: StockTransaction) -> TransactionView:
    return TransactionView(
        id=entry.id,
        seq=entry.seq,
        transaction_type=TransactionType(entry.transaction_type),
        occurred_at=entry.occurred_at,
        actor_id=entry.actor_id,
        item_id=entry.item_id,
        lot_id=entry.lot_id,
        container_id=entry.container_id,
        from_location_id=entry.from_location_id,
        to_location_id=entry.to_location_id,
        qty_base=entry.qty_base,
        entered_qty=entry.entered_qty,
        entered_unit=entry.entered_unit,
        reason_code=entry.reason_code,
        reference=entry.reference,
        notes=entry.notes,
        from_reservation=entry.from_reservation,
        correlation_id=entry.correlation_id,
    )


def _start_of(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class LedgerSelector(BaseSelector[StockTransaction]):
    """
    Journal listings and iteration.

    Non-goals:
        - Does NOT compute balances; see BalanceSelector or
          ReconciliationService.replay().
    """

    def _filtered(
        self,
        location_id: UUID | None = None,
        item_id: UUID | None = None,
        lot_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        tx_type: TransactionType | str | None = None,
    ):
        stmt = select(StockTransaction)
        if location_id is not None:
            stmt = stmt.where(
                or_(
                    StockTransaction.from_location_id == location_id,
                    StockTransaction.to_location_id == location_id,
                )
            )
        if item_id is not None:
            stmt = stmt.where(StockTransaction.item_id == item_id)
        if lot_id is not None:
            stmt = stmt.where(StockTransaction.lot_id == lot_id)
        if date_from is not None:
            stmt = stmt.where(StockTransaction.occurred_at >= _start_of(date_from))
        if date_to is not None:
            # inclusive of the whole day
            stmt = stmt.where(StockTransaction.occurred_at < _start_of(date_to + timedelta(days=1)))
        if tx_type is not None:
            try:
                stmt = stmt.where(
                    StockTransaction.transaction_type == TransactionType(tx_type).value
                )
            except ValueError as exc:
                raise ValidationError(f"Unknown transaction type: {tx_type!r}", field="tx_type") from exc
        return stmt

    def find_entries(
        self,
        location_id: UUID | None = None,
        item_id: UUID | None = None,
        lot_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        tx_type: TransactionType | str | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[TransactionView]:
        """Journal entries matching every given filter, newest first."""
        if date_from is not None and date_to is not None and date_from > date_to:
            raise ValidationError("date_from is after date_to", field="date_from")
        stmt = self._filtered(location_id, item_id, lot_id, date_from, date_to, tx_type)
        stmt = stmt.order_by(StockTransaction.seq.desc())
        rows, total = self._paginate(stmt, page, page_size, MAX_PAGE_SIZE)
        return Page(
            items=tuple(to_transaction_view(row[0]) for row in rows),
            total=total,
            page=page,
            page_size=page_size,
        )

    def get_entry(self, transaction_id: UUID) -> TransactionView | None:
        entry = self.session.get(StockTransaction, transaction_id)
        return to_transaction_view(entry) if entry is not None else None

    def iter_entries(self, after_seq: int | None = None, batch_size: int = 1000) -> Iterator[TransactionView]:
        """Every entry in ascending seq order, streamed."""
        stmt = select(StockTransaction).order_by(StockTransaction.seq)
        if after_seq is not None:
            stmt = stmt.where(StockTransaction.seq > after_seq)
        for entry in self.session.execute(stmt.execution_options(yield_per=batch_size)).scalars():
            yield to_transaction_view(entry)

    def entries_for_correlation(self, correlation_id: str) -> list[TransactionView]:
        entries = self.session.execute(
            select(StockTransaction)
            .where(StockTransaction.correlation_id == correlation_id)
            .order_by(StockTransaction.seq)
        ).scalars()
        return [to_transaction_view(e) for e in entries]
