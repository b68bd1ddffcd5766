"""
Module: inventory_kernel.selectors.monitor_selector
Responsibility: Expiry and threshold monitoring -- pure derived queries over
    the balance projection and the lot registry.
Architecture position: Kernel > Selectors.  No state of its own; every
    answer is computed from stock_balances / lots / consumable_items at query
    time, so it cannot drift from the projection.

Invariants enforced:
    - expiring_lots only reports (lot, location) pairs with positive on-hand.
    - low_stock compares the on-hand total of an item at a location, summed
      over lots, against the item's thresholds; each threshold is flagged
      independently.
    - suggest_lots_fefo is advisory: it never reserves or moves stock.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import ExpiringLot, FefoSuggestion, LotAllocation, LowStockAlert
from inventory_kernel.domain.quantities import ZERO, round_qty, to_decimal
from inventory_kernel.exceptions import ValidationError
from inventory_kernel.models.balance import StockBalance
from inventory_kernel.models.item import ConsumableItem
from inventory_kernel.models.lot import Lot
from inventory_kernel.selectors.base import BaseSelector

DEFAULT_EXPIRY_WINDOW_DAYS = 30


class MonitorSelector(BaseSelector[StockBalance]):
    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def expiring_lots(
        self,
        days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
        location_id: UUID | None = None,
        as_of: date | None = None,
    ) -> list[ExpiringLot]:
        """
        Lots with stock whose expiry falls on or before ``as_of + days``,
        soonest first.  Already-expired lots are included (negative
        ``days_until_expiry``); lots without an expiry date never are.
        """
        if days < 0:
            raise ValidationError(f"days must be >= 0, got {days}", field="days")
        today = as_of or self._clock.today()
        cutoff = today + timedelta(days=days)

        stmt = (
            select(
                Lot.id,
                Lot.lot_number,
                Lot.item_id,
                StockBalance.location_id,
                Lot.expiry_date,
                StockBalance.qty_on_hand_base,
            )
            .join(StockBalance, StockBalance.lot_id == Lot.id)
            .where(
                Lot.expiry_date.is_not(None),
                Lot.expiry_date <= cutoff,
                StockBalance.qty_on_hand_base > 0,
            )
            .order_by(Lot.expiry_date, Lot.lot_number, StockBalance.location_id)
        )
        if location_id is not None:
            stmt = stmt.where(StockBalance.location_id == location_id)

        return [
            ExpiringLot(
                lot_id=lot_id,
                lot_number=lot_number,
                item_id=item_id,
                location_id=row_location_id,
                expiry_date=expiry_date,
                qty_on_hand_base=on_hand,
                days_until_expiry=(expiry_date - today).days,
            )
            for lot_id, lot_number, item_id, row_location_id, expiry_date, on_hand in self.session.execute(stmt)
        ]

    def low_stock(self, location_id: UUID | None = None) -> list[LowStockAlert]:
        """(location, item) pairs whose on-hand total is under a threshold."""
        stmt = (
            select(
                StockBalance.location_id,
                StockBalance.item_id,
                func.sum(StockBalance.qty_on_hand_base),
                ConsumableItem.default_min_stock,
                ConsumableItem.default_reorder_point,
            )
            .join(ConsumableItem, ConsumableItem.id == StockBalance.item_id)
            .where(
                (ConsumableItem.default_min_stock.is_not(None))
                | (ConsumableItem.default_reorder_point.is_not(None))
            )
            .group_by(
                StockBalance.location_id,
                StockBalance.item_id,
                ConsumableItem.default_min_stock,
                ConsumableItem.default_reorder_point,
            )
            .order_by(StockBalance.location_id, StockBalance.item_id)
        )
        if location_id is not None:
            stmt = stmt.where(StockBalance.location_id == location_id)

        alerts = []
        for row_location_id, item_id, on_hand, min_stock, reorder_point in self.session.execute(stmt):
            total = Decimal(on_hand or 0)
            below_min = min_stock is not None and total < min_stock
            below_reorder = reorder_point is not None and total < reorder_point
            if below_min or below_reorder:
                alerts.append(
                    LowStockAlert(
                        location_id=row_location_id,
                        item_id=item_id,
                        qty_on_hand_base=total,
                        min_stock=min_stock,
                        reorder_point=reorder_point,
                        below_min=below_min,
                        below_reorder=below_reorder,
                    )
                )
        return alerts

    def suggest_lots_fefo(
        self,
        location_id: UUID,
        item_id: UUID,
        qty_base: Decimal,
        as_of: date | None = None,
    ) -> FefoSuggestion:
        """
        First-expiry-first-out pick list for ``qty_base`` (base unit) from
        available stock.  Expired lots are skipped; lots without an expiry
        date are used last.
        """
        wanted = round_qty(to_decimal(qty_base))
        if wanted <= 0:
            raise ValidationError("Quantity must be positive", field="qty_base")
        today = as_of or self._clock.today()

        stmt = (
            select(
                Lot.id,
                Lot.lot_number,
                Lot.expiry_date,
                StockBalance.qty_on_hand_base,
                StockBalance.qty_reserved_base,
            )
            .join(StockBalance, StockBalance.lot_id == Lot.id)
            .where(
                StockBalance.location_id == location_id,
                StockBalance.item_id == item_id,
                StockBalance.qty_on_hand_base > StockBalance.qty_reserved_base,
                (Lot.expiry_date.is_(None)) | (Lot.expiry_date >= today),
            )
            .order_by(Lot.expiry_date.is_(None), Lot.expiry_date, Lot.received_date, Lot.lot_number)
        )

        allocations = []
        remaining = wanted
        for lot_id, lot_number, expiry_date, on_hand, reserved in self.session.execute(stmt):
            if remaining <= 0:
                break
            take = min(on_hand - reserved, remaining)
            allocations.append(
                LotAllocation(lot_id=lot_id, lot_number=lot_number, expiry_date=expiry_date, qty_base=take)
            )
            remaining -= take

        return FefoSuggestion(allocations=tuple(allocations), shortfall_base=max(remaining, ZERO))

