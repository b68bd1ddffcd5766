"""
Module: inventory_kernel.models.unit
Responsibility: Organization-defined units of measure.  Rows here override
    the built-in defaults (matched by code or alias, case-insensitive) when
    the UnitTable is built at startup.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from decimal import Decimal

from sqlalchemy import JSON, Boolean, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class UnitOfMeasure(TrackedBase):
    """Persisted unit definition; ``group`` holds a UnitGroup value."""

    __tablename__ = "units"
    __table_args__ = (
        UniqueConstraint("code", name="uq_unit_code"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    group: Mapped[str] = mapped_column("unit_group", String(20), nullable=False)
    to_base: Mapped[Decimal] = mapped_column(Numeric(38, 12), nullable=False)
    aliases: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<UnitOfMeasure {self.code} {self.group} x{self.to_base}>"
