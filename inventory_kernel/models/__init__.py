"""ORM models for the inventory kernel."""

from inventory_kernel.models.balance import StockBalance
from inventory_kernel.models.container import Container, ContainerStatus
from inventory_kernel.models.item import ConsumableItem
from inventory_kernel.models.location import Location, LocationType
from inventory_kernel.models.lot import Lot
from inventory_kernel.models.sequence import SequenceCounter
from inventory_kernel.models.transaction import StockTransaction, TransactionType
from inventory_kernel.models.unit import UnitOfMeasure

__all__ = [
    "StockBalance",
    "Container",
    "ContainerStatus",
    "ConsumableItem",
    "Location",
    "LocationType",
    "Lot",
    "SequenceCounter",
    "StockTransaction",
    "TransactionType",
    "UnitOfMeasure",
]
