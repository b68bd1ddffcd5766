"""Selectors for the inventory kernel (read side)."""

from inventory_kernel.selectors.balance_selector import BalanceSelector
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.selectors.lot_selector import LotSelector
from inventory_kernel.selectors.monitor_selector import MonitorSelector

__all__ = [
    "BalanceSelector",
    "BaseSelector",
    "LedgerSelector",
    "LotSelector",
    "MonitorSelector",
]
