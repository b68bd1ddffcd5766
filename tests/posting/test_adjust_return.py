"""
Adjustments (signed corrections with a reason) and returns to the store.
"""

from decimal import Decimal

import pytest

from inventory_kernel.domain.dtos import TransactionType
from inventory_kernel.exceptions import InsufficientStockError, LocationNotFoundError, ValidationError
from inventory_kernel.selectors.balance_selector import BalanceSelector
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.inventory_orchestrator import InventoryOrchestrator


class TestAdjust:
    def test_positive_adjustment_credits(self, session, orchestrator, stocked_store, plain_item, test_actor_id):
        result = orchestrator.adjust(
            plain_item.id, stocked_store.id, Decimal("5"), "ea", test_actor_id, "COUNT_CORRECTION"
        )
        assert result.transaction_type == TransactionType.ADJUST
        assert result.resulting_balance.qty_on_hand_base == Decimal("105")

        entry = LedgerSelector(session).get_entry(result.transaction_id)
        assert entry.qty_base == Decimal("5")
        assert entry.to_location_id == stocked_store.id
        assert entry.from_location_id is None
        assert entry.reason_code == "COUNT_CORRECTION"

    def test_negative_adjustment_debits(self, session, orchestrator, stocked_store, plain_item, test_actor_id):
        result = orchestrator.adjust(
            plain_item.id, stocked_store.id, Decimal("-7"), "ea", test_actor_id, "SHRINKAGE"
        )
        assert result.resulting_balance.qty_on_hand_base == Decimal("93")

        entry = LedgerSelector(session).get_entry(result.transaction_id)
        # Journal quantities stay positive; direction is the location column
        assert entry.qty_base == Decimal("7")
        assert entry.from_location_id == stocked_store.id
        assert entry.to_location_id is None
        assert entry.entered_qty == Decimal("-7")

    def test_adjustment_into_empty_location(self, orchestrator, office, plain_item, test_actor_id):
        result = orchestrator.adjust(plain_item.id, office.id, Decimal("3"), "ea", test_actor_id, "FOUND")
        assert result.resulting_balance.qty_on_hand_base == Decimal("3")

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_reason_required(self, orchestrator, stocked_store, plain_item, test_actor_id, reason):
        with pytest.raises(ValidationError) as exc_info:
            orchestrator.adjust(plain_item.id, stocked_store.id, Decimal("1"), "ea", test_actor_id, reason)
        assert exc_info.value.field == "reason_code"

    def test_zero_delta_rejected(self, orchestrator, stocked_store, plain_item, test_actor_id):
        with pytest.raises(ValidationError):
            orchestrator.adjust(plain_item.id, stocked_store.id, Decimal("0"), "ea", test_actor_id, "NOOP")

    def test_cannot_adjust_below_zero(self, session, orchestrator, stocked_store, plain_item, test_actor_id):
        with pytest.raises(InsufficientStockError):
            orchestrator.adjust(plain_item.id, stocked_store.id, Decimal("-101"), "ea", test_actor_id, "WRITE_OFF")
        assert BalanceSelector(session).on_hand(stocked_store.id, plain_item.id) == Decimal("100")

    def test_adjust_in_other_unit(self, orchestrator, store, make_item, test_actor_id):
        item = make_item("Glycerol", "mL", requires_lot_tracking=False)
        orchestrator.receive(item.id, store.id, Decimal("2"), "L", test_actor_id)
        result = orchestrator.adjust(item.id, store.id, Decimal("-0.5"), "L", test_actor_id, "SPILL")
        assert result.qty_base == Decimal("500")
        assert result.resulting_balance.qty_on_hand_base == Decimal("1500")


class TestReturn:
    def test_return_defaults_to_store(self, session, orchestrator, store, office, plain_item, test_actor_id):
        orchestrator.receive(plain_item.id, store.id, Decimal("50"), "ea", test_actor_id)
        orchestrator.transfer(plain_item.id, store.id, office.id, Decimal("20"), "ea", test_actor_id)

        result = orchestrator.return_stock(plain_item.id, office.id, Decimal("8"), "ea", test_actor_id)

        assert result.transaction_type == TransactionType.RETURN
        assert result.resulting_balance.qty_on_hand_base == Decimal("12")
        assert result.counterpart_balance.location_id == store.id
        assert result.counterpart_balance.qty_on_hand_base == Decimal("38")

        entry = LedgerSelector(session).get_entry(result.transaction_id)
        assert entry.from_location_id == office.id
        assert entry.to_location_id == store.id

    def test_explicit_destination(self, orchestrator, store, office, lab, plain_item, test_actor_id):
        orchestrator.receive(plain_item.id, office.id, Decimal("5"), "ea", test_actor_id)
        result = orchestrator.return_stock(
            plain_item.id, office.id, Decimal("5"), "ea", test_actor_id, to_location_id=lab.id
        )
        assert result.counterpart_balance.location_id == lab.id

    def test_return_more_than_held(self, orchestrator, store, office, plain_item, test_actor_id):
        orchestrator.receive(plain_item.id, office.id, Decimal("2"), "ea", test_actor_id)
        with pytest.raises(InsufficientStockError):
            orchestrator.return_stock(plain_item.id, office.id, Decimal("3"), "ea", test_actor_id)

    def test_no_default_destination(self, session, units, deterministic_clock, office, plain_item, test_actor_id):
        orchestrator = InventoryOrchestrator(
            session, units, clock=deterministic_clock, return_location_code=None, auto_commit=False
        )
        orchestrator.receive(plain_item.id, office.id, Decimal("2"), "ea", test_actor_id)
        with pytest.raises(ValidationError):
            orchestrator.return_stock(plain_item.id, office.id, Decimal("1"), "ea", test_actor_id)

    def test_configured_store_missing(self, orchestrator, office, plain_item, test_actor_id):
        # No STORE-MAIN location exists in this test
        orchestrator.receive(plain_item.id, office.id, Decimal("2"), "ea", test_actor_id)
        with pytest.raises(LocationNotFoundError):
            orchestrator.return_stock(plain_item.id, office.id, Decimal("1"), "ea", test_actor_id)
