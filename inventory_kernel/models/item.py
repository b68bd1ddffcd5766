"""
Module: inventory_kernel.models.item
Responsibility: ORM persistence for consumable items (master data).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Every item has exactly one base unit; all of its stored quantities
      (journal, balances, containers, thresholds) are in that unit.
    - is_controlled implies container tracking (see tracks_containers).
"""

from decimal import Decimal

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class ConsumableItem(TrackedBase):
    """
    A stockable consumable (chemical, reagent, general supply).

    Contract:
        Tracking flags decide what a stock request must identify:
        requires_lot_tracking -> lot on every movement;
        requires_container_tracking / is_controlled -> container on every
        debit and on receipt.
    """

    __tablename__ = "consumable_items"
    __table_args__ = (
        Index("idx_item_name", "name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)
    base_unit: Mapped[str] = mapped_column(String(20), nullable=False)

    requires_lot_tracking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    requires_container_tracking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_controlled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_chemical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    default_min_stock: Mapped[Decimal | None] = mapped_column(nullable=True)
    default_reorder_point: Mapped[Decimal | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def tracks_containers(self) -> bool:
        """Controlled substances are always tracked per container."""
        return bool(self.requires_container_tracking or self.is_controlled)

    def __repr__(self) -> str:
        return f"<ConsumableItem {self.name} [{self.base_unit}]>"
