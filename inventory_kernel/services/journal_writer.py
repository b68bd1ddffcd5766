"""
JournalWriter -- append-only writer for the stock journal.

Responsibility:
    Allocates the next journal sequence number and persists one
    StockTransaction row.  This is the only code path that inserts into
    ``stock_transactions``.

Architecture position:
    Kernel > Services.  Called by StockLedgerService after the affected
    balance rows are locked and checked; delegates sequence allocation to
    SequenceService.

Invariants enforced:
    - Append-only: rows are inserted, never updated (ORM listener + trigger
      back this up).
    - seq comes from SequenceService, never from max(seq) + 1.
    - qty_base is positive; direction lives in the location columns.

Non-goals:
    - Does NOT manage the transaction boundary (caller's responsibility).
    - Does NOT touch balances or containers.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import TransactionType
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.transaction import StockTransaction
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal_writer")


class JournalWriter(BaseService[StockTransaction]):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequences = sequence_service or SequenceService(session)

    def append(
        self,
        transaction_type: TransactionType,
        actor_id: UUID,
        item_id: UUID,
        qty_base: Decimal,
        entered_qty: Decimal,
        entered_unit: str,
        *,
        lot_id: UUID | None = None,
        container_id: UUID | None = None,
        from_location_id: UUID | None = None,
        to_location_id: UUID | None = None,
        from_reservation: bool = False,
        reason_code: str | None = None,
        reference: str | None = None,
        notes: str | None = None,
        occurred_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> StockTransaction:
        """
        Persist one journal entry with the next sequence number.

        Preconditions:
            Every balance row the entry affects is already locked by the
            caller; the entry has passed validation.

        Postconditions:
            The row is flushed and carries its ``seq``.

        Raises:
            ValueError: qty_base is not positive.
        """
        if qty_base <= 0:
            raise ValueError(f"Journal quantity must be positive, got {qty_base}")

        seq = self._sequences.next_value(SequenceService.STOCK_TRANSACTION)
        now = self._clock.now()

        entry = StockTransaction(
            seq=seq,
            transaction_type=TransactionType(transaction_type).value,
            occurred_at=occurred_at or now,
            recorded_at=now,
            actor_id=actor_id,
            item_id=item_id,
            lot_id=lot_id,
            container_id=container_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            qty_base=qty_base,
            entered_qty=entered_qty,
            entered_unit=entered_unit,
            from_reservation=from_reservation,
            reason_code=reason_code,
            reference=reference,
            notes=notes,
            correlation_id=LogContext.get_all().get("correlation_id"),
            entry_metadata=metadata or None,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "journal_entry_appended",
            extra={
                "seq": seq,
                "transaction_type": entry.transaction_type,
                "qty_base": qty_base,
                "from_location_id": str(from_location_id) if from_location_id else None,
                "to_location_id": str(to_location_id) if to_location_id else None,
                "lot_id": str(lot_id) if lot_id else None,
            },
        )
        return entry
