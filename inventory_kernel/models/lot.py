"""
Module: inventory_kernel.models.lot
Responsibility: ORM persistence for lots -- a batch of one item received
    together, carrying supplier, expiry and document provenance.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Lot number is unique per item (uq_lot_item_number).
"""

from datetime import date
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString


class Lot(TrackedBase):
    __tablename__ = "lots"
    __table_args__ = (
        UniqueConstraint("item_id", "lot_number", name="uq_lot_item_number"),
        Index("idx_lot_expiry", "expiry_date"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("consumable_items.id"),
        nullable=False,
    )
    lot_number: Mapped[str] = mapped_column(String(100), nullable=False)
    supplier_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    received_date: Mapped[date | None] = mapped_column(nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(nullable=True)

    # SDS / COA / invoice references, keyed by document kind
    documents: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Lot {self.lot_number} item={self.item_id} expires={self.expiry_date}>"
