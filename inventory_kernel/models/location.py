"""
Module: inventory_kernel.models.location
Responsibility: ORM persistence for stock-holding locations (central store,
    offices, labs).
Architecture position: Kernel > Models.  May import from db/ only.
"""

from enum import Enum

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class LocationType(str, Enum):
    STORE = "STORE"
    OFFICE = "OFFICE"
    LAB = "LAB"


class Location(TrackedBase):
    """
    A physical place that holds stock.

    Labs can always hold chemicals; other location types only when
    ``supports_chemicals`` is set.
    """

    __tablename__ = "locations"
    __table_args__ = (
        UniqueConstraint("code", name="uq_location_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location_type: Mapped[LocationType] = mapped_column(
        String(20),
        nullable=False,
        default=LocationType.OFFICE,
    )
    supports_chemicals: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def can_hold_chemicals(self) -> bool:
        return bool(self.supports_chemicals or self.location_type == LocationType.LAB)

    def __repr__(self) -> str:
        return f"<Location {self.code} ({self.location_type})>"
