"""
ReconciliationService -- replay the journal and compare with the balances.

Responsibility:
    Rebuilds every balance from an empty state by folding the signed
    contribution of each journal entry in ``seq`` order, then compares the
    result with the materialized ``stock_balances`` table and with the
    container sub-quantities.

Architecture position:
    Kernel > Services.  Read-only: never flushes, never writes.  Used by
    scripts/reconcile_balances.py and the replay tests.

Invariants verified:
    - Materialized balance == signed sum of the journal, per
      (location, item, lot), for both on-hand and reserved.
    - IN_STOCK container totals never exceed the lot balance at their
      location.

Audit relevance:
    Drift is reported, never healed.  Each mismatch is logged at WARNING
    and the summary at INFO (consistent) or WARNING (drift).
"""

from decimal import Decimal

from sqlalchemy import func, select

from inventory_kernel.domain.dtos import (
    BalanceKey,
    BalanceMismatch,
    ContainerOverage,
    ReconciliationReport,
)
from inventory_kernel.domain.projection import balance_deltas, fold_deltas
from inventory_kernel.domain.quantities import ZERO, round_qty
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.balance import StockBalance
from inventory_kernel.models.container import Container, ContainerStatus
from inventory_kernel.models.transaction import StockTransaction
from inventory_kernel.services.base import BaseService

logger = get_logger("services.reconciliation")

_BATCH_SIZE = 1000


class ReconciliationService(BaseService[StockBalance]):
    def replay(self) -> tuple[dict[BalanceKey, tuple[Decimal, Decimal]], int, int | None]:
        """
        Fold the whole journal from empty state.

        Returns:
            (balances by key, entries replayed, last seq replayed)
        """
        stmt = (
            select(StockTransaction)
            .order_by(StockTransaction.seq)
            .execution_options(yield_per=_BATCH_SIZE)
        )
        totals: dict[BalanceKey, tuple[Decimal, Decimal]] = {}
        count = 0
        last_seq = None
        for entry in self.session.execute(stmt).scalars():
            fold_deltas(
                balance_deltas(
                    entry.transaction_type,
                    entry.item_id,
                    entry.lot_id,
                    entry.from_location_id,
                    entry.to_location_id,
                    entry.qty_base,
                    entry.from_reservation,
                ),
                into=totals,
            )
            count += 1
            last_seq = entry.seq
        folded = {
            key: (round_qty(on_hand), round_qty(reserved))
            for key, (on_hand, reserved) in totals.items()
        }
        return folded, count, last_seq

    def reconcile(self) -> ReconciliationReport:
        """Compare the replayed journal with materialized state."""
        expected, replayed, last_seq = self.replay()

        actual: dict[BalanceKey, tuple[Decimal, Decimal]] = {}
        for row in self.session.execute(select(StockBalance)).scalars():
            key = BalanceKey.of(row.location_id, row.item_id, row.lot_id)
            actual[key] = (row.qty_on_hand_base, row.qty_reserved_base)

        mismatches = []
        for key in sorted(set(expected) | set(actual)):
            exp_on_hand, exp_reserved = expected.get(key, (ZERO, ZERO))
            act = actual.get(key)
            act_on_hand, act_reserved = act if act is not None else (None, None)
            # A missing row is only drift when the journal says it holds stock
            if act is None and exp_on_hand == 0 and exp_reserved == 0:
                continue
            if act is not None and act_on_hand == exp_on_hand and act_reserved == exp_reserved:
                continue
            mismatch = BalanceMismatch(
                key=key,
                expected_on_hand=exp_on_hand,
                actual_on_hand=act_on_hand,
                expected_reserved=exp_reserved,
                actual_reserved=act_reserved,
            )
            mismatches.append(mismatch)
            logger.warning(
                "balance_mismatch",
                extra={
                    "location_id": key.location_id,
                    "item_id": key.item_id,
                    "lot_key": key.lot_key,
                    "expected_on_hand": exp_on_hand,
                    "actual_on_hand": act_on_hand,
                    "expected_reserved": exp_reserved,
                    "actual_reserved": act_reserved,
                },
            )

        overages = self.container_overages(actual)

        report = ReconciliationReport(
            transactions_replayed=replayed,
            balances_checked=len(actual),
            mismatches=tuple(mismatches),
            container_overages=tuple(overages),
            last_seq=last_seq,
        )
        log = logger.info if report.is_consistent else logger.warning
        log(
            "reconciliation_completed",
            extra={
                "transactions_replayed": replayed,
                "balances_checked": len(actual),
                "mismatch_count": len(mismatches),
                "container_overage_count": len(overages),
                "last_seq": last_seq,
            },
        )
        return report

    def container_overages(
        self, actual: dict[BalanceKey, tuple[Decimal, Decimal]]
    ) -> list[ContainerOverage]:
        stmt = (
            select(
                Container.current_location_id,
                Container.item_id,
                Container.lot_id,
                func.sum(Container.current_qty_base),
            )
            .where(Container.status == ContainerStatus.IN_STOCK.value)
            .group_by(Container.current_location_id, Container.item_id, Container.lot_id)
        )
        overages = []
        for location_id, item_id, lot_id, total in self.session.execute(stmt):
            total = Decimal(total)
            on_hand, _ = actual.get(BalanceKey.of(location_id, item_id, lot_id), (ZERO, ZERO))
            if total > on_hand:
                overages.append(
                    ContainerOverage(
                        location_id=location_id,
                        lot_id=lot_id,
                        container_total=total,
                        lot_balance=on_hand,
                    )
                )
                logger.warning(
                    "container_overage",
                    extra={
                        "location_id": str(location_id),
                        "lot_id": str(lot_id),
                        "container_total": total,
                        "lot_balance": on_hand,
                    },
                )
        return overages
