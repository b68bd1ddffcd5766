"""
Module: inventory_kernel.models.container
Responsibility: ORM persistence for physical containers (bottles, vials,
    boxes) that subdivide a lot's quantity at one location.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Status moves forward only: IN_STOCK -> EMPTY -> DISPOSED / LOST
      (ORM listener in db/immutability.py).
    - For every (location, lot): sum of current_qty_base of IN_STOCK
      containers <= lot balance at that location (checked by LotRegistry
      on every mutation).
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString


class ContainerStatus(str, Enum):
    """
    Container lifecycle.

    Guarantees: No backward transitions; DISPOSED and LOST are terminal.
    """

    IN_STOCK = "IN_STOCK"
    EMPTY = "EMPTY"
    DISPOSED = "DISPOSED"
    LOST = "LOST"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (ContainerStatus.DISPOSED, ContainerStatus.LOST)

    def can_transition_to(self, new: "ContainerStatus") -> bool:
        if self == new:
            return True
        if self.is_terminal:
            return False
        return new.rank > self.rank


_STATUS_RANK = {
    ContainerStatus.IN_STOCK: 0,
    ContainerStatus.EMPTY: 1,
    ContainerStatus.DISPOSED: 2,
    ContainerStatus.LOST: 2,
}


class Container(TrackedBase):
    __tablename__ = "containers"
    __table_args__ = (
        UniqueConstraint("container_code", name="uq_container_code"),
        Index("idx_container_lot_location", "lot_id", "current_location_id"),
    )

    lot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("lots.id"),
        nullable=False,
    )
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("consumable_items.id"),
        nullable=False,
    )
    container_code: Mapped[str] = mapped_column(String(100), nullable=False)
    current_location_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("locations.id"),
        nullable=False,
    )
    initial_qty_base: Mapped[Decimal] = mapped_column(nullable=False)
    current_qty_base: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[ContainerStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ContainerStatus.IN_STOCK,
    )
    opened_date: Mapped[date | None] = mapped_column(nullable=True)

    @property
    def is_in_stock(self) -> bool:
        return self.status == ContainerStatus.IN_STOCK

    def __repr__(self) -> str:
        return (
            f"<Container {self.container_code} {self.status} "
            f"{self.current_qty_base}/{self.initial_qty_base}>"
        )
