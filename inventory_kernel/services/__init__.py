"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.balance_projection import BalanceProjection
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.inventory_orchestrator import InventoryOrchestrator
from inventory_kernel.services.journal_writer import JournalWriter
from inventory_kernel.services.lot_registry import LotRegistry
from inventory_kernel.services.reconciliation_service import ReconciliationService
from inventory_kernel.services.sequence_service import SequenceService
from inventory_kernel.services.stock_ledger_service import StockLedgerService
from inventory_kernel.services.unit_service import UnitService

__all__ = [
    "BalanceProjection",
    "CatalogService",
    "InventoryOrchestrator",
    "JournalWriter",
    "LotRegistry",
    "ReconciliationService",
    "SequenceService",
    "StockLedgerService",
    "UnitService",
]
