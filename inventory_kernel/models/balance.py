"""
Module: inventory_kernel.models.balance
Responsibility: Materialized stock balance per (location, item, lot-or-null).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One row per (location_id, item_id, lot_key): uq_balance_key.  lot_key
      is the lot id as text, or "" for lot-less stock, so the uniqueness
      constraint also covers the no-lot case (NULLs never collide).
    - 0 <= qty_reserved_base <= qty_on_hand_base (CHECK constraints, and
      verified by BalanceProjection before any write).
    - Rows are created lazily and never deleted (db/immutability.py,
      db/triggers.py).

Audit relevance:
    This table is a cache.  The authoritative balance is the signed sum of
    the journal; ReconciliationService proves the two agree.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString


class StockBalance(Base):
    __tablename__ = "stock_balances"
    __table_args__ = (
        UniqueConstraint("location_id", "item_id", "lot_key", name="uq_balance_key"),
        CheckConstraint("qty_on_hand_base >= 0", name="ck_balance_on_hand_non_negative"),
        CheckConstraint("qty_reserved_base >= 0", name="ck_balance_reserved_non_negative"),
        CheckConstraint(
            "qty_reserved_base <= qty_on_hand_base",
            name="ck_balance_reserved_within_on_hand",
        ),
        Index("idx_balance_item", "item_id"),
        Index("idx_balance_lot", "lot_id"),
    )

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("locations.id"),
        nullable=False,
    )
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
    lot_key: Mapped[str] = mapped_column(String(36), nullable=False, default="")

    qty_on_hand_base: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    qty_reserved_base: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # seq of the last journal entry applied to this row
    last_seq: Mapped[int | None] = mapped_column(nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @property
    def qty_available_base(self) -> Decimal:
        return self.qty_on_hand_base - self.qty_reserved_base

    def __repr__(self) -> str:
        return (
            f"<StockBalance loc={self.location_id} item={self.item_id} lot={self.lot_id} "
            f"on_hand={self.qty_on_hand_base} reserved={self.qty_reserved_base}>"
        )
