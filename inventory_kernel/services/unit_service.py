"""
UnitService -- builds the process-wide UnitTable from persisted units.

Responsibility:
    Reads organization-defined units from the ``units`` table and layers
    them over the built-in defaults (and any configured overrides) to
    produce the immutable UnitTable injected into the stock services.

Architecture position:
    Kernel > Services.  Called once at startup; the resulting table is
    never mutated.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.units import DEFAULT_UNITS, UnitDefinition, UnitGroup, UnitTable
from inventory_kernel.exceptions import ValidationError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.unit import UnitOfMeasure
from inventory_kernel.services.base import BaseService

logger = get_logger("services.units")


def definition_from_row(row: UnitOfMeasure) -> UnitDefinition:
    return UnitDefinition(
        code=row.code,
        group=UnitGroup(row.group),
        to_base=Decimal(row.to_base),
        name=row.name or "",
        aliases=tuple(row.aliases or ()),
        active=bool(row.is_active),
    )


class UnitService(BaseService[UnitOfMeasure]):
    """Persists organization units and assembles the UnitTable."""

    def register_unit(
        self,
        code: str,
        group: UnitGroup | str,
        to_base: Decimal,
        actor_id: UUID,
        name: str = "",
        aliases: Iterable[str] = (),
    ) -> UnitOfMeasure:
        """
        Persist an organization unit.  Takes effect the next time the
        UnitTable is built.

        Raises:
            ValidationError: Bad group or non-positive factor.
        """
        try:
            unit_group = UnitGroup(group)
        except ValueError as exc:
            raise ValidationError(f"Unknown unit group: {group!r}", field="group") from exc
        if Decimal(to_base) <= 0:
            raise ValidationError("to_base must be positive", field="to_base")

        row = UnitOfMeasure(
            code=code.strip(),
            name=name,
            group=unit_group.value,
            to_base=Decimal(to_base),
            aliases=[a.strip() for a in aliases if a.strip()],
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "unit_registered",
            extra={"code": row.code, "group": row.group, "to_base": row.to_base},
        )
        return row

    def load_unit_table(
        self,
        configured: Iterable[UnitDefinition] = (),
        base: Iterable[UnitDefinition] = DEFAULT_UNITS,
    ) -> UnitTable:
        """
        Defaults, then configured overrides, then database rows.  Each later
        definition replaces any earlier one sharing a code or alias.
        """
        rows = self.session.execute(
            select(UnitOfMeasure).order_by(UnitOfMeasure.code)
        ).scalars().all()
        overrides = [*configured, *(definition_from_row(r) for r in rows)]
        table = UnitTable.with_overrides(overrides, base=base)
        logger.info(
            "unit_table_built",
            extra={
                "default_units": len(tuple(base)),
                "override_units": len(overrides),
                "active_units": len({d.code for d in table.definitions if d.active}),
            },
        )
        return table
