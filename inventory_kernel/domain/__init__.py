"""
Pure domain layer.

Data transfer objects, the unit table and the journal-to-balance projection,
with NO dependencies on the ORM, the database, the clock or any I/O.
"""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    BalanceDelta,
    BalanceKey,
    BalanceSnapshot,
    ContainerSpec,
    LotDetails,
    Page,
    RetryPolicy,
    StockRequest,
    StockResult,
    TransactionType,
)
from inventory_kernel.domain.projection import balance_deltas, fold_deltas
from inventory_kernel.domain.quantities import QTY_DECIMAL_PLACES, round_qty, to_decimal
from inventory_kernel.domain.units import DEFAULT_UNITS, UnitDefinition, UnitGroup, UnitTable

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "BalanceDelta",
    "BalanceKey",
    "BalanceSnapshot",
    "ContainerSpec",
    "LotDetails",
    "Page",
    "RetryPolicy",
    "StockRequest",
    "StockResult",
    "TransactionType",
    "balance_deltas",
    "fold_deltas",
    "QTY_DECIMAL_PLACES",
    "round_qty",
    "to_decimal",
    "DEFAULT_UNITS",
    "UnitDefinition",
    "UnitGroup",
    "UnitTable",
]
