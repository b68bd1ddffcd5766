"""
Module: inventory_kernel.models.transaction
Responsibility: ORM persistence for the stock journal -- the single source of
    truth for every quantity in the system.
Architecture position: Kernel > Models.  May import from db/ and the pure
    domain enums only.

Invariants enforced:
    - Append-only: no UPDATE, no DELETE (ORM listeners + DB triggers).
    - seq is strictly monotonic and unique (uq_stock_transaction_seq),
      allocated by SequenceService.
    - qty_base > 0; the direction of the movement is carried by which of
      from_location_id / to_location_id is set (see domain/projection.py).
    - Exactly one row per balance-affecting operation.  A TRANSFER is one
      row carrying both the debited and the credited location.

Audit relevance:
    Every row keeps the quantity exactly as entered (entered_qty,
    entered_unit) next to the normalized base-unit quantity.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.domain.dtos import TransactionType


class StockTransaction(Base):
    """
    One immutable journal entry.

    Contract:
        Written once by JournalWriter inside the same database transaction
        as the balance rows it affects.  Never modified afterwards;
        corrections are new ADJUST rows.
    """

    __tablename__ = "stock_transactions"
    __table_args__ = (
        UniqueConstraint("seq", name="uq_stock_transaction_seq"),
        CheckConstraint("qty_base > 0", name="ck_stock_transaction_qty_positive"),
        Index("idx_stock_tx_occurred_at", "occurred_at"),
        Index("idx_stock_tx_item", "item_id"),
        Index("idx_stock_tx_from_location", "from_location_id"),
        Index("idx_stock_tx_to_location", "to_location_id"),
        Index("idx_stock_tx_lot", "lot_id"),
        Index("idx_stock_tx_correlation", "correlation_id"),
    )

    seq: Mapped[int] = mapped_column(nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(String(20), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("consumable_items.id"),
        nullable=False,
    )
    lot_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("lots.id"),
        nullable=True,
    )
    container_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("containers.id"),
        nullable=True,
    )
    from_location_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("locations.id"),
        nullable=True,
    )
    to_location_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("locations.id"),
        nullable=True,
    )

    qty_base: Mapped[Decimal] = mapped_column(nullable=False)
    entered_qty: Mapped[Decimal] = mapped_column(nullable=False)
    entered_unit: Mapped[str] = mapped_column(String(20), nullable=False)

    # Debit drew down an existing reservation at the source location
    from_reservation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    reason_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    correlation_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    entry_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<StockTransaction #{self.seq} {self.transaction_type} {self.qty_base} "
            f"{self.from_location_id} -> {self.to_location_id}>"
        )
