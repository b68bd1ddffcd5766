"""
CatalogService -- registration of items and locations.

Master-data screens live outside the kernel; this service is the narrow
write path they (and tests, and seeding scripts) use, so that every item is
created with a base unit the UnitTable can resolve.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.quantities import round_qty, to_decimal
from inventory_kernel.domain.units import UnitTable
from inventory_kernel.exceptions import ItemNotFoundError, LocationNotFoundError, ValidationError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.item import ConsumableItem
from inventory_kernel.models.location import Location, LocationType
from inventory_kernel.services.base import BaseService

logger = get_logger("services.catalog")


class CatalogService(BaseService[ConsumableItem]):
    def __init__(self, session, units: UnitTable):
        super().__init__(session)
        self._units = units

    def create_item(
        self,
        name: str,
        base_unit: str,
        actor_id: UUID,
        *,
        sku: str | None = None,
        requires_lot_tracking: bool = True,
        requires_container_tracking: bool = False,
        is_controlled: bool = False,
        is_chemical: bool = False,
        default_min_stock: Decimal | None = None,
        default_reorder_point: Decimal | None = None,
    ) -> ConsumableItem:
        """
        Register a consumable.  ``base_unit`` is stored as the canonical code
        of whatever it resolves to; thresholds are in that unit.

        Raises:
            UnknownUnitError: base_unit is not in the unit table.
            ValidationError: empty name or negative threshold.
        """
        if not name or not name.strip():
            raise ValidationError("Item name is required", field="name")
        unit = self._units.resolve(base_unit)

        thresholds = {}
        for field_name, value in (
            ("default_min_stock", default_min_stock),
            ("default_reorder_point", default_reorder_point),
        ):
            if value is None:
                thresholds[field_name] = None
                continue
            qty = round_qty(to_decimal(value))
            if qty < 0:
                raise ValidationError(f"{field_name} cannot be negative", field=field_name)
            thresholds[field_name] = qty

        item = ConsumableItem(
            name=name.strip(),
            sku=sku,
            base_unit=unit.code,
            requires_lot_tracking=requires_lot_tracking,
            requires_container_tracking=requires_container_tracking,
            is_controlled=is_controlled,
            is_chemical=is_chemical,
            created_by_id=actor_id,
            **thresholds,
        )
        self.session.add(item)
        self.session.flush()
        logger.info(
            "item_created",
            extra={
                "item_id": str(item.id),
                "base_unit": item.base_unit,
                "lot_tracked": requires_lot_tracking,
                "container_tracked": item.tracks_containers,
            },
        )
        return item

    def create_location(
        self,
        code: str,
        name: str,
        actor_id: UUID,
        *,
        location_type: LocationType | str = LocationType.OFFICE,
        supports_chemicals: bool = False,
    ) -> Location:
        if not code or not code.strip():
            raise ValidationError("Location code is required", field="code")
        location = Location(
            code=code.strip(),
            name=name,
            location_type=LocationType(location_type),
            supports_chemicals=supports_chemicals,
            created_by_id=actor_id,
        )
        self.session.add(location)
        self.session.flush()
        logger.info(
            "location_created",
            extra={"location_id": str(location.id), "code": location.code},
        )
        return location

    def set_location_active(self, location_id: UUID, active: bool, actor_id: UUID) -> Location:
        location = self.session.get(Location, location_id)
        if location is None:
            raise LocationNotFoundError(str(location_id))
        location.is_active = active
        location.updated_by_id = actor_id
        self.session.flush()
        return location

    def set_thresholds(
        self,
        item_id: UUID,
        actor_id: UUID,
        *,
        min_stock: Decimal | None = None,
        reorder_point: Decimal | None = None,
    ) -> ConsumableItem:
        item = self.session.get(ConsumableItem, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        item.default_min_stock = round_qty(to_decimal(min_stock)) if min_stock is not None else None
        item.default_reorder_point = (
            round_qty(to_decimal(reorder_point)) if reorder_point is not None else None
        )
        item.updated_by_id = actor_id
        self.session.flush()
        return item

    def location_by_code(self, code: str) -> Location:
        location = self.session.execute(
            select(Location).where(Location.code == code)
        ).scalar_one_or_none()
        if location is None:
            raise LocationNotFoundError(code)
        return location
