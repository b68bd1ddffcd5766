"""
Expiry and low-stock monitoring, and FEFO pick suggestions.

The clock is fixed at 2024-06-01.
"""

from datetime import date
from decimal import Decimal

import pytest

from inventory_kernel.domain.dtos import LotDetails
from inventory_kernel.exceptions import ValidationError
from inventory_kernel.selectors.balance_selector import BalanceSelector
from inventory_kernel.selectors.monitor_selector import MonitorSelector


@pytest.fixture
def monitor(session, deterministic_clock) -> MonitorSelector:
    return MonitorSelector(session, deterministic_clock)


@pytest.fixture
def salt_lots(orchestrator, store, lot_item, test_actor_id):
    """Four lots at the store: expired, expiring soon, later, and undated."""

    def receive(number, expiry, qty):
        return orchestrator.receive(
            lot_item.id, store.id, Decimal(qty), "g", test_actor_id,
            lot=LotDetails(number, expiry_date=expiry),
        ).lot_id

    return {
        "expired": receive("OLD", date(2024, 5, 20), "10"),
        "soon": receive("SOON", date(2024, 6, 10), "30"),
        "later": receive("LATER", date(2024, 7, 15), "40"),
        "undated": receive("FOREVER", None, "100"),
    }


class TestExpiringLots:
    def test_window(self, monitor, salt_lots):
        lots = monitor.expiring_lots(days=30)
        assert [lot.lot_number for lot in lots] == ["OLD", "SOON"]
        assert [lot.days_until_expiry for lot in lots] == [-12, 9]
        assert lots[0].is_expired and not lots[1].is_expired

    def test_wider_window(self, monitor, salt_lots):
        assert [lot.lot_number for lot in monitor.expiring_lots(days=60)] == ["OLD", "SOON", "LATER"]

    def test_window_edge_is_inclusive(self, monitor, salt_lots):
        assert [lot.lot_number for lot in monitor.expiring_lots(days=9)] == ["OLD", "SOON"]
        assert [lot.lot_number for lot in monitor.expiring_lots(days=8)] == ["OLD"]

    def test_as_of(self, monitor, salt_lots):
        lots = monitor.expiring_lots(days=0, as_of=date(2024, 6, 10))
        assert [lot.days_until_expiry for lot in lots] == [-21, 0]

    def test_empty_lots_not_reported(self, monitor, orchestrator, salt_lots, store, lot_item, test_actor_id):
        orchestrator.dispose(lot_item.id, store.id, Decimal("10"), "g", test_actor_id, lot_id=salt_lots["expired"])
        assert [lot.lot_number for lot in monitor.expiring_lots(days=30)] == ["SOON"]

    def test_location_filter(self, monitor, salt_lots, office):
        assert monitor.expiring_lots(days=30, location_id=office.id) == []

    def test_negative_window(self, monitor):
        with pytest.raises(ValidationError):
            monitor.expiring_lots(days=-1)


class TestLowStock:
    def test_thresholds_flagged_independently(self, monitor, catalog, orchestrator, store, test_actor_id):
        item = catalog.create_item(
            "Swabs", "ea", test_actor_id, requires_lot_tracking=False,
            default_min_stock=Decimal("10"), default_reorder_point=Decimal("25"),
        )
        orchestrator.receive(item.id, store.id, Decimal("20"), "ea", test_actor_id)

        (alert,) = monitor.low_stock()
        assert alert.item_id == item.id
        assert alert.qty_on_hand_base == Decimal("20")
        assert alert.below_reorder and not alert.below_min

        orchestrator.consume(item.id, store.id, Decimal("12"), "ea", test_actor_id)
        (alert,) = monitor.low_stock(location_id=store.id)
        assert alert.below_min and alert.below_reorder

    def test_at_threshold_is_not_low(self, monitor, catalog, orchestrator, store, test_actor_id):
        item = catalog.create_item(
            "Masks", "ea", test_actor_id, requires_lot_tracking=False, default_min_stock=Decimal("5")
        )
        orchestrator.receive(item.id, store.id, Decimal("5"), "ea", test_actor_id)
        assert monitor.low_stock() == []

    def test_sums_across_lots(self, monitor, catalog, salt_lots, lot_item, test_actor_id):
        catalog.set_thresholds(lot_item.id, test_actor_id, min_stock=Decimal("200"))
        (alert,) = monitor.low_stock()
        # the expired lot still counts as on hand
        assert alert.qty_on_hand_base == Decimal("180")
        assert alert.below_min
        assert alert.reorder_point is None and not alert.below_reorder

    def test_items_without_thresholds_ignored(self, monitor, salt_lots):
        assert monitor.low_stock() == []


class TestFefo:
    def test_soonest_first_skipping_expired(self, monitor, salt_lots, store, lot_item):
        suggestion = monitor.suggest_lots_fefo(store.id, lot_item.id, Decimal("50"))
        assert [(a.lot_number, a.qty_base) for a in suggestion.allocations] == [
            ("SOON", Decimal("30")),
            ("LATER", Decimal("20")),
        ]
        assert suggestion.is_satisfiable

    def test_undated_lots_last(self, monitor, salt_lots, store, lot_item):
        suggestion = monitor.suggest_lots_fefo(store.id, lot_item.id, Decimal("100"))
        assert [a.lot_number for a in suggestion.allocations] == ["SOON", "LATER", "FOREVER"]
        assert suggestion.allocations[-1].qty_base == Decimal("30")

    def test_shortfall(self, monitor, salt_lots, store, lot_item):
        suggestion = monitor.suggest_lots_fefo(store.id, lot_item.id, Decimal("200"))
        assert suggestion.shortfall_base == Decimal("30")
        assert not suggestion.is_satisfiable

    def test_reserved_stock_excluded(self, monitor, orchestrator, salt_lots, store, lot_item, test_actor_id):
        orchestrator.reserve(lot_item.id, store.id, Decimal("30"), "g", test_actor_id, lot_id=salt_lots["soon"])
        suggestion = monitor.suggest_lots_fefo(store.id, lot_item.id, Decimal("10"))
        assert [a.lot_number for a in suggestion.allocations] == ["LATER"]

    def test_advisory_only(self, session, monitor, salt_lots, store, lot_item):
        monitor.suggest_lots_fefo(store.id, lot_item.id, Decimal("50"))
        assert BalanceSelector(session).on_hand(store.id, lot_item.id, salt_lots["soon"]) == Decimal("30")

    def test_quantity_must_be_positive(self, monitor, store, lot_item):
        with pytest.raises(ValidationError):
            monitor.suggest_lots_fefo(store.id, lot_item.id, Decimal("0"))
