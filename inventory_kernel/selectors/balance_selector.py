"""
Module: inventory_kernel.selectors.balance_selector
Responsibility: Read-only queries over the materialized balances: filtered,
    paginated balance listings, single-row lookups and per-item rollups.
Architecture position: Kernel > Selectors.

Audit relevance:
    These reads serve the materialized cache.  The journal remains the
    authority; ReconciliationService proves the two agree.
"""

from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.dtos import BalanceView, ItemRollup, LocationTotal, Page
from inventory_kernel.domain.quantities import ZERO
from inventory_kernel.models.balance import StockBalance
from inventory_kernel.models.item import ConsumableItem
from inventory_kernel.models.lot import Lot
from inventory_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 500
MAX_PAGE_SIZE = 2000


def _to_view(balance: StockBalance, base_unit: str, lot_number, expiry_date) -> BalanceView:
    return BalanceView(
        location_id=balance.location_id,
        item_id=balance.item_id,
        lot_id=balance.lot_id,
        qty_on_hand_base=balance.qty_on_hand_base,
        qty_reserved_base=balance.qty_reserved_base,
        base_unit=base_unit,
        lot_number=lot_number,
        expiry_date=expiry_date,
    )


class BalanceSelector(BaseSelector[StockBalance]):
    def _base_query(self):
        return (
            select(StockBalance, ConsumableItem.base_unit, Lot.lot_number, Lot.expiry_date)
            .join(ConsumableItem, ConsumableItem.id == StockBalance.item_id)
            .outerjoin(Lot, Lot.id == StockBalance.lot_id)
        )

    def find_balances(
        self,
        location_id: UUID | None = None,
        item_id: UUID | None = None,
        lot_id: UUID | None = None,
        include_zero: bool = True,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[BalanceView]:
        """
        Balances matching every given filter, ordered by location, item, lot.

        Zero rows are kept unless ``include_zero`` is False (rows are never
        deleted, so a location that once held an item keeps its row).
        """
        stmt = self._base_query()
        if location_id is not None:
            stmt = stmt.where(StockBalance.location_id == location_id)
        if item_id is not None:
            stmt = stmt.where(StockBalance.item_id == item_id)
        if lot_id is not None:
            stmt = stmt.where(StockBalance.lot_id == lot_id)
        if not include_zero:
            stmt = stmt.where(
                (StockBalance.qty_on_hand_base > 0) | (StockBalance.qty_reserved_base > 0)
            )
        stmt = stmt.order_by(
            StockBalance.location_id, StockBalance.item_id, StockBalance.lot_key
        )

        rows, total = self._paginate(stmt, page, page_size, MAX_PAGE_SIZE)
        return Page(
            items=tuple(_to_view(*row) for row in rows),
            total=total,
            page=page,
            page_size=page_size,
        )

    def get_balance(
        self,
        location_id: UUID,
        item_id: UUID,
        lot_id: UUID | None = None,
    ) -> BalanceView | None:
        """The balance row for one tuple, or None if it was never referenced."""
        row = self.session.execute(
            self._base_query().where(
                StockBalance.location_id == location_id,
                StockBalance.item_id == item_id,
                StockBalance.lot_key == (str(lot_id) if lot_id else ""),
            )
        ).one_or_none()
        return _to_view(*row) if row is not None else None

    def on_hand(self, location_id: UUID, item_id: UUID, lot_id: UUID | None = None) -> Decimal:
        """On-hand quantity in base unit; zero when no row exists."""
        view = self.get_balance(location_id, item_id, lot_id)
        return view.qty_on_hand_base if view is not None else ZERO

    def item_rollup(
        self,
        item_id: UUID | None = None,
        location_id: UUID | None = None,
    ) -> list[ItemRollup]:
        """Totals per item (summed over lots) with a per-location breakdown."""
        stmt = (
            select(
                StockBalance.item_id,
                ConsumableItem.name,
                ConsumableItem.base_unit,
                StockBalance.location_id,
                func.sum(StockBalance.qty_on_hand_base),
                func.sum(StockBalance.qty_reserved_base),
            )
            .join(ConsumableItem, ConsumableItem.id == StockBalance.item_id)
            .group_by(
                StockBalance.item_id,
                ConsumableItem.name,
                ConsumableItem.base_unit,
                StockBalance.location_id,
            )
            .order_by(ConsumableItem.name, StockBalance.item_id, StockBalance.location_id)
        )
        if item_id is not None:
            stmt = stmt.where(StockBalance.item_id == item_id)
        if location_id is not None:
            stmt = stmt.where(StockBalance.location_id == location_id)

        headers: dict[UUID, tuple[str, str]] = {}
        per_location: dict[UUID, list[LocationTotal]] = defaultdict(list)
        for row_item_id, name, base_unit, row_location_id, on_hand, reserved in self.session.execute(stmt):
            headers[row_item_id] = (name, base_unit)
            per_location[row_item_id].append(
                LocationTotal(
                    location_id=row_location_id,
                    qty_on_hand_base=Decimal(on_hand or 0),
                    qty_reserved_base=Decimal(reserved or 0),
                )
            )

        rollups = []
        for row_item_id, (name, base_unit) in headers.items():
            totals = tuple(per_location[row_item_id])
            rollups.append(
                ItemRollup(
                    item_id=row_item_id,
                    item_name=name,
                    base_unit=base_unit,
                    total_on_hand_base=sum((t.qty_on_hand_base for t in totals), ZERO),
                    total_reserved_base=sum((t.qty_reserved_base for t in totals), ZERO),
                    by_location=totals,
                )
            )
        return rollups
