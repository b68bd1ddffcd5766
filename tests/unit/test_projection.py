"""
Unit tests for the journal -> balance projection.

Every entry type is checked against its sign convention, and the shape
checks reject location columns that do not fit the type.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import BalanceKey, TransactionType
from inventory_kernel.domain.projection import balance_deltas, fold_deltas

ITEM = uuid4()
LOT = uuid4()
A = uuid4()
B = uuid4()
TEN = Decimal("10")


def _by_location(deltas):
    return {d.key.location_id: (d.on_hand, d.reserved) for d in deltas}


class TestSignConventions:
    @pytest.mark.parametrize("tx_type", [TransactionType.RECEIPT, TransactionType.OPENING_BALANCE])
    def test_credit_only(self, tx_type):
        deltas = balance_deltas(tx_type, ITEM, LOT, None, A, TEN)
        assert _by_location(deltas) == {str(A): (TEN, 0)}

    @pytest.mark.parametrize("tx_type", [TransactionType.TRANSFER, TransactionType.RETURN])
    def test_movement_debits_source_and_credits_destination(self, tx_type):
        deltas = balance_deltas(tx_type, ITEM, LOT, A, B, TEN)
        assert _by_location(deltas) == {str(A): (-TEN, 0), str(B): (TEN, 0)}

    @pytest.mark.parametrize("tx_type", [TransactionType.CONSUME, TransactionType.DISPOSE])
    def test_debit_only(self, tx_type):
        deltas = balance_deltas(tx_type, ITEM, None, A, None, TEN)
        assert _by_location(deltas) == {str(A): (-TEN, 0)}

    def test_adjust_up_credits_to_location(self):
        deltas = balance_deltas(TransactionType.ADJUST, ITEM, LOT, None, A, TEN)
        assert _by_location(deltas) == {str(A): (TEN, 0)}

    def test_adjust_down_debits_from_location(self):
        deltas = balance_deltas(TransactionType.ADJUST, ITEM, LOT, A, None, TEN)
        assert _by_location(deltas) == {str(A): (-TEN, 0)}

    def test_reserve_and_release_touch_only_reserved(self):
        reserve = balance_deltas(TransactionType.RESERVE, ITEM, LOT, A, None, TEN)
        release = balance_deltas(TransactionType.RELEASE, ITEM, LOT, A, None, TEN)
        assert _by_location(reserve) == {str(A): (0, TEN)}
        assert _by_location(release) == {str(A): (0, -TEN)}

    def test_debit_from_reservation_lowers_reserved_too(self):
        deltas = balance_deltas(TransactionType.CONSUME, ITEM, LOT, A, None, TEN, from_reservation=True)
        assert _by_location(deltas) == {str(A): (-TEN, -TEN)}

    def test_lot_less_key(self):
        (delta,) = balance_deltas(TransactionType.RECEIPT, ITEM, None, None, A, TEN)
        assert delta.key.lot_key == ""
        assert delta.key.lot_id is None


class TestShape:
    def test_receipt_with_source_rejected(self):
        with pytest.raises(ValueError):
            balance_deltas(TransactionType.RECEIPT, ITEM, LOT, A, B, TEN)

    def test_consume_without_source_rejected(self):
        with pytest.raises(ValueError):
            balance_deltas(TransactionType.CONSUME, ITEM, LOT, None, A, TEN)

    def test_transfer_needs_both_sides(self):
        with pytest.raises(ValueError):
            balance_deltas(TransactionType.TRANSFER, ITEM, LOT, A, None, TEN)

    def test_adjust_touches_one_location(self):
        with pytest.raises(ValueError):
            balance_deltas(TransactionType.ADJUST, ITEM, LOT, A, B, TEN)

    def test_reservation_needs_location(self):
        with pytest.raises(ValueError):
            balance_deltas(TransactionType.RESERVE, ITEM, LOT, None, None, TEN)


class TestFold:
    def test_fold_sums_per_key(self):
        deltas = [
            *balance_deltas(TransactionType.RECEIPT, ITEM, LOT, None, A, Decimal("50")),
            *balance_deltas(TransactionType.TRANSFER, ITEM, LOT, A, B, Decimal("20")),
            *balance_deltas(TransactionType.RESERVE, ITEM, LOT, B, None, Decimal("5")),
            *balance_deltas(TransactionType.CONSUME, ITEM, LOT, B, None, Decimal("5"), True),
        ]
        folded = fold_deltas(deltas)
        assert folded[BalanceKey.of(A, ITEM, LOT)] == (Decimal("30"), Decimal("0"))
        assert folded[BalanceKey.of(B, ITEM, LOT)] == (Decimal("15"), Decimal("0"))

    def test_fold_into_running_totals(self):
        totals = {}
        fold_deltas(balance_deltas(TransactionType.RECEIPT, ITEM, LOT, None, A, Decimal("50")), into=totals)
        returned = fold_deltas(
            balance_deltas(TransactionType.TRANSFER, ITEM, LOT, A, B, Decimal("20")), into=totals
        )
        assert returned is totals
        assert totals == {
            BalanceKey.of(A, ITEM, LOT): (Decimal("30"), Decimal("0")),
            BalanceKey.of(B, ITEM, LOT): (Decimal("20"), Decimal("0")),
        }

    def test_balance_key_ordering_puts_lotless_first(self):
        lotless = BalanceKey.of(A, ITEM, None)
        with_lot = BalanceKey.of(A, ITEM, LOT)
        assert sorted([with_lot, lotless]) == [lotless, with_lot]
