"""
Data Transfer Objects for the inventory kernel.

Responsibility:
    Immutable value objects passed between the operation layer, services and
    selectors: stock requests and results, balance keys and snapshots, and
    the read-side views returned by selectors.

Architecture position:
    Kernel > Domain -- pure, zero I/O, no ORM imports.

Invariants enforced:
    - Every DTO is a frozen dataclass.
    - Quantities are Decimal; ``*_base`` fields are in the item's base unit.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID

T = TypeVar("T")


class TransactionType(str, Enum):
    """
    Kind of journal entry.

    RESERVE and RELEASE move quantity between "available" and "reserved"
    without changing on-hand stock.
    """

    RECEIPT = "RECEIPT"
    OPENING_BALANCE = "OPENING_BALANCE"
    TRANSFER = "TRANSFER"
    CONSUME = "CONSUME"
    DISPOSE = "DISPOSE"
    RETURN = "RETURN"
    ADJUST = "ADJUST"
    RESERVE = "RESERVE"
    RELEASE = "RELEASE"

    @property
    def is_credit_only(self) -> bool:
        return self in (TransactionType.RECEIPT, TransactionType.OPENING_BALANCE)

    @property
    def is_movement(self) -> bool:
        """Debits one location and credits another."""
        return self in (TransactionType.TRANSFER, TransactionType.RETURN)

    @property
    def is_debit_only(self) -> bool:
        return self in (TransactionType.CONSUME, TransactionType.DISPOSE)

    @property
    def is_reservation(self) -> bool:
        return self in (TransactionType.RESERVE, TransactionType.RELEASE)


@dataclass(frozen=True)
class LotDetails:
    """New-lot information supplied with a receipt or opening balance."""

    lot_number: str
    expiry_date: date | None = None
    received_date: date | None = None
    supplier_ref: str | None = None
    documents: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ContainerSpec:
    """One physical container created at receipt, quantity in the entered unit."""

    quantity: Decimal
    container_code: str | None = None


@dataclass(frozen=True)
class StockRequest:
    """
    A single balance-affecting request.

    ``location_id`` is the location acted on: the destination of a
    RECEIPT / OPENING_BALANCE, the source of TRANSFER / CONSUME / DISPOSE /
    RETURN, and the adjusted or reserved location for ADJUST / RESERVE /
    RELEASE.  ``to_location_id`` is the TRANSFER destination (RETURN falls
    back to the configured return location).

    ``quantity`` is in ``unit``.  It must be positive except for ADJUST,
    where it is a non-zero signed delta.
    """

    operation: TransactionType
    item_id: UUID
    location_id: UUID
    quantity: Decimal
    unit: str
    actor_id: UUID
    to_location_id: UUID | None = None
    lot_id: UUID | None = None
    container_id: UUID | None = None
    lot: LotDetails | None = None
    containers: tuple[ContainerSpec, ...] = ()
    reason_code: str | None = None
    reference: str | None = None
    notes: str | None = None
    from_reservation: bool = False
    occurred_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, order=True)
class BalanceKey:
    """
    Identity of a balance row.

    Ordering is the global lock order: (location, item, lot) compared as
    strings, lot-less rows first.
    """

    location_id: str
    item_id: str
    lot_key: str

    @classmethod
    def of(cls, location_id: UUID, item_id: UUID, lot_id: UUID | None) -> "BalanceKey":
        return cls(str(location_id), str(item_id), str(lot_id) if lot_id else "")

    @property
    def lot_id(self) -> UUID | None:
        return UUID(self.lot_key) if self.lot_key else None


@dataclass(frozen=True)
class BalanceDelta:
    """Signed change one journal entry makes to one balance row."""

    key: BalanceKey
    on_hand: Decimal
    reserved: Decimal


@dataclass(frozen=True)
class BalanceSnapshot:
    """Balance row state after an operation."""

    location_id: UUID
    item_id: UUID
    lot_id: UUID | None
    qty_on_hand_base: Decimal
    qty_reserved_base: Decimal

    @property
    def qty_available_base(self) -> Decimal:
        return self.qty_on_hand_base - self.qty_reserved_base


@dataclass(frozen=True)
class StockResult:
    """Outcome of a successful stock operation."""

    transaction_id: UUID
    seq: int
    transaction_type: TransactionType
    item_id: UUID
    lot_id: UUID | None
    qty_base: Decimal
    resulting_balance: BalanceSnapshot
    counterpart_balance: BalanceSnapshot | None = None
    container_ids: tuple[UUID, ...] = ()
    correlation_id: str | None = None


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a paginated query (pages are 1-based)."""

    items: tuple[T, ...]
    total: int
    page: int
    page_size: int

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry of ConcurrencyConflictError with linear backoff."""

    max_retries: int = 3
    backoff_seconds: float = 0.05

    def delay_for(self, attempt: int) -> float:
        return self.backoff_seconds * attempt


# ---------------------------------------------------------------------------
# Read-side views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceView:
    location_id: UUID
    item_id: UUID
    lot_id: UUID | None
    qty_on_hand_base: Decimal
    qty_reserved_base: Decimal
    base_unit: str
    lot_number: str | None = None
    expiry_date: date | None = None

    @property
    def qty_available_base(self) -> Decimal:
        return self.qty_on_hand_base - self.qty_reserved_base


@dataclass(frozen=True)
class TransactionView:
    id: UUID
    seq: int
    transaction_type: TransactionType
    occurred_at: datetime
    actor_id: UUID
    item_id: UUID
    lot_id: UUID | None
    container_id: UUID | None
    from_location_id: UUID | None
    to_location_id: UUID | None
    qty_base: Decimal
    entered_qty: Decimal
    entered_unit: str
    reason_code: str | None
    reference: str | None
    notes: str | None
    from_reservation: bool
    correlation_id: str | None


@dataclass(frozen=True)
class LotView:
    id: UUID
    item_id: UUID
    lot_number: str
    supplier_ref: str | None
    received_date: date | None
    expiry_date: date | None
    documents: dict[str, str]


@dataclass(frozen=True)
class ContainerView:
    id: UUID
    container_code: str
    lot_id: UUID
    item_id: UUID
    current_location_id: UUID
    initial_qty_base: Decimal
    current_qty_base: Decimal
    status: str
    opened_date: date | None


@dataclass(frozen=True)
class LocationTotal:
    location_id: UUID
    qty_on_hand_base: Decimal
    qty_reserved_base: Decimal


@dataclass(frozen=True)
class ItemRollup:
    """Per-item totals with a per-location breakdown."""

    item_id: UUID
    item_name: str
    base_unit: str
    total_on_hand_base: Decimal
    total_reserved_base: Decimal
    by_location: tuple[LocationTotal, ...]


@dataclass(frozen=True)
class ExpiringLot:
    lot_id: UUID
    lot_number: str
    item_id: UUID
    location_id: UUID
    expiry_date: date
    qty_on_hand_base: Decimal
    days_until_expiry: int

    @property
    def is_expired(self) -> bool:
        return self.days_until_expiry < 0


@dataclass(frozen=True)
class LowStockAlert:
    """
    (location, item) whose on-hand total is under a threshold.

    ``below_min`` and ``below_reorder`` are flagged independently.
    """

    location_id: UUID
    item_id: UUID
    qty_on_hand_base: Decimal
    min_stock: Decimal | None
    reorder_point: Decimal | None
    below_min: bool
    below_reorder: bool


@dataclass(frozen=True)
class LotAllocation:
    lot_id: UUID
    lot_number: str
    expiry_date: date | None
    qty_base: Decimal


@dataclass(frozen=True)
class FefoSuggestion:
    """First-expiry-first-out pick list; ``shortfall_base`` > 0 when stock runs out."""

    allocations: tuple[LotAllocation, ...]
    shortfall_base: Decimal

    @property
    def is_satisfiable(self) -> bool:
        return self.shortfall_base == 0


@dataclass(frozen=True)
class BalanceMismatch:
    key: BalanceKey
    expected_on_hand: Decimal
    actual_on_hand: Decimal | None
    expected_reserved: Decimal
    actual_reserved: Decimal | None


@dataclass(frozen=True)
class ContainerOverage:
    """Containers at a location claim more of a lot than the lot balance holds."""

    location_id: UUID
    lot_id: UUID
    container_total: Decimal
    lot_balance: Decimal


@dataclass(frozen=True)
class ReconciliationReport:
    """Result of replaying the journal against the materialized balances."""

    transactions_replayed: int
    balances_checked: int
    mismatches: tuple[BalanceMismatch, ...]
    container_overages: tuple[ContainerOverage, ...] = ()
    last_seq: int | None = None

    @property
    def is_consistent(self) -> bool:
        return not self.mismatches and not self.container_overages
