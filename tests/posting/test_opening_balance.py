"""
Opening balances load pre-existing stock as one atomic batch.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import LotDetails, StockRequest, TransactionType
from inventory_kernel.exceptions import UnknownUnitError, ValidationError
from inventory_kernel.selectors.balance_selector import BalanceSelector
from inventory_kernel.selectors.ledger_selector import LedgerSelector


def _opening(item_id, location_id, quantity, unit, actor_id, **kwargs) -> StockRequest:
    return StockRequest(
        operation=TransactionType.OPENING_BALANCE,
        item_id=item_id,
        location_id=location_id,
        quantity=Decimal(quantity),
        unit=unit,
        actor_id=actor_id,
        **kwargs,
    )


class TestOpeningBalance:
    def test_batch_posts_each_line(self, session, orchestrator, store, office, plain_item, lot_item, test_actor_id):
        results = orchestrator.opening_balance([
            _opening(plain_item.id, store.id, "250", "ea", test_actor_id),
            _opening(plain_item.id, office.id, "12", "ea", test_actor_id),
            _opening(lot_item.id, store.id, "3", "kg", test_actor_id,
                     lot=LotDetails("OB-1", expiry_date=date(2025, 3, 1))),
        ])

        assert [r.transaction_type for r in results] == [TransactionType.OPENING_BALANCE] * 3
        assert [r.seq for r in results] == sorted(r.seq for r in results)

        selector = BalanceSelector(session)
        assert selector.on_hand(store.id, plain_item.id) == Decimal("250")
        assert selector.on_hand(office.id, plain_item.id) == Decimal("12")
        assert selector.on_hand(store.id, lot_item.id, results[2].lot_id) == Decimal("3000")

    def test_batch_is_atomic(self, session, orchestrator, store, plain_item, test_actor_id):
        with pytest.raises(UnknownUnitError):
            orchestrator.opening_balance([
                _opening(plain_item.id, store.id, "10", "ea", test_actor_id),
                _opening(plain_item.id, store.id, "10", "gross", test_actor_id),
            ])
        assert LedgerSelector(session).find_entries(item_id=plain_item.id).total == 0
        assert BalanceSelector(session).get_balance(store.id, plain_item.id) is None

    def test_shares_one_correlation_id(self, session, orchestrator, store, office, plain_item, test_actor_id):
        results = orchestrator.opening_balance([
            _opening(plain_item.id, store.id, "1", "ea", test_actor_id),
            _opening(plain_item.id, office.id, "1", "ea", test_actor_id),
        ])
        assert results[0].correlation_id == results[1].correlation_id
        entries = LedgerSelector(session).entries_for_correlation(results[0].correlation_id)
        assert len(entries) == 2

    def test_empty_batch_rejected(self, orchestrator):
        with pytest.raises(ValidationError):
            orchestrator.opening_balance([])

    def test_mixed_actors_rejected(self, orchestrator, store, plain_item, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            orchestrator.opening_balance([
                _opening(plain_item.id, store.id, "1", "ea", test_actor_id),
                _opening(plain_item.id, store.id, "1", "ea", uuid4()),
            ])
        assert exc_info.value.field == "actor_id"

    def test_other_operation_rejected(self, orchestrator, store, plain_item, test_actor_id):
        receipt = StockRequest(
            operation=TransactionType.RECEIPT,
            item_id=plain_item.id,
            location_id=store.id,
            quantity=Decimal("1"),
            unit="ea",
            actor_id=test_actor_id,
        )
        with pytest.raises(ValidationError):
            orchestrator.opening_balance([_opening(plain_item.id, store.id, "1", "ea", test_actor_id), receipt])

    def test_unknown_operation_rejected(self, session, orchestrator, store, plain_item, test_actor_id):
        bogus = StockRequest(
            operation="BOGUS",
            item_id=plain_item.id,
            location_id=store.id,
            quantity=Decimal("1"),
            unit="ea",
            actor_id=test_actor_id,
        )
        with pytest.raises(ValidationError) as exc_info:
            orchestrator.opening_balance([_opening(plain_item.id, store.id, "1", "ea", test_actor_id), bogus])
        assert exc_info.value.field == "operation"
        assert BalanceSelector(session).on_hand(store.id, plain_item.id) == Decimal("0")
