"""
Module: inventory_kernel.selectors.lot_selector
Responsibility: Read-only lookups of lots and containers.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import ContainerView, LotView
from inventory_kernel.models.container import Container, ContainerStatus
from inventory_kernel.models.lot import Lot
from inventory_kernel.selectors.base import BaseSelector


def to_lot_view(lot: Lot) -> LotView:
    return LotView(
        id=lot.id,
        item_id=lot.item_id,
        lot_number=lot.lot_number,
        supplier_ref=lot.supplier_ref,
        received_date=lot.received_date,
        expiry_date=lot.expiry_date,
        documents=dict(lot.documents or {}),
    )


def to_container_view(container: Container) -> ContainerView:
    return ContainerView(
        id=container.id,
        container_code=container.container_code,
        lot_id=container.lot_id,
        item_id=container.item_id,
        current_location_id=container.current_location_id,
        initial_qty_base=container.initial_qty_base,
        current_qty_base=container.current_qty_base,
        status=container.status,
        opened_date=container.opened_date,
    )


class LotSelector(BaseSelector[Lot]):
    def get_lot(self, lot_id: UUID) -> LotView | None:
        lot = self.session.get(Lot, lot_id)
        return to_lot_view(lot) if lot is not None else None

    def find_lots(self, item_id: UUID) -> list[LotView]:
        """Lots of an item, soonest expiry first (no expiry last)."""
        lots = self.session.execute(
            select(Lot)
            .where(Lot.item_id == item_id)
            .order_by(Lot.expiry_date.is_(None), Lot.expiry_date, Lot.lot_number)
        ).scalars()
        return [to_lot_view(lot) for lot in lots]

    def get_container(self, container_id: UUID) -> ContainerView | None:
        container = self.session.get(Container, container_id)
        return to_container_view(container) if container is not None else None

    def get_container_by_code(self, container_code: str) -> ContainerView | None:
        container = self.session.execute(
            select(Container).where(Container.container_code == container_code)
        ).scalar_one_or_none()
        return to_container_view(container) if container is not None else None

    def find_containers(
        self,
        lot_id: UUID | None = None,
        location_id: UUID | None = None,
        item_id: UUID | None = None,
        status: ContainerStatus | str | None = ContainerStatus.IN_STOCK,
    ) -> list[ContainerView]:
        """Containers matching the filters; IN_STOCK only unless ``status`` says otherwise."""
        stmt = select(Container)
        if lot_id is not None:
            stmt = stmt.where(Container.lot_id == lot_id)
        if location_id is not None:
            stmt = stmt.where(Container.current_location_id == location_id)
        if item_id is not None:
            stmt = stmt.where(Container.item_id == item_id)
        if status is not None:
            stmt = stmt.where(Container.status == ContainerStatus(status).value)
        stmt = stmt.order_by(Container.container_code)
        return [to_container_view(c) for c in self.session.execute(stmt).scalars()]
