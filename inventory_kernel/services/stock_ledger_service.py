"""
StockLedgerService -- validation and atomic posting of stock operations.

Responsibility:
    Turns one StockRequest into exactly one journal entry plus the balance
    and lot/container changes it implies, or rejects it with a typed error
    before anything is written.

Architecture position:
    Kernel > Services.  Called by InventoryOrchestrator (which owns the
    transaction boundary and retries).  Delegates to:
        UnitTable          -- quantity normalization
        LotRegistry        -- lot / container resolution and updates
        BalanceProjection  -- row locking, sufficiency, balance updates
        JournalWriter      -- sequence allocation and journal append

Posting flow:
    1. Load the item; normalize the quantity into its base unit
    2. Resolve debited / credited locations and check capability
    3. Resolve the lot (create it on receipt) and the container
    4. Compute balance deltas; lock rows in BalanceKey order
    5. Check sufficiency (no write yet)
    6. Create receipt containers; append the journal entry
    7. Apply balance deltas; move / draw containers
    8. Re-check container consistency for the touched lot

Invariants enforced:
    - One journal entry per operation, in the same transaction as its
      balance changes.  A TRANSFER is one entry with both locations.
    - No balance row goes negative; reserved never exceeds on-hand.
    - Lot-tracked items never move without a lot of that item.
    - Container-tracked items are never debited without a container, and
      containers never hold more than the lot balance at their location.
    - Conversion stays within one unit group.

Failure modes:
    ValidationError (and subclasses), UnitIncompatibleError,
    InsufficientStockError, ReservationError, LotRequiredError,
    ContainerConsistencyViolationError, ConcurrencyConflictError.
    The caller must roll back on any of them; nothing is committed here.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    BalanceKey,
    StockRequest,
    StockResult,
    TransactionType,
)
from inventory_kernel.domain.projection import balance_deltas
from inventory_kernel.domain.quantities import ZERO, round_qty, to_decimal
from inventory_kernel.domain.units import UnitTable
from inventory_kernel.exceptions import (
    ContainerRequiredError,
    InactiveLocationError,
    ItemNotFoundError,
    LocationCapabilityError,
    LocationNotFoundError,
    LotRequiredError,
    ValidationError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.container import Container, ContainerStatus
from inventory_kernel.models.item import ConsumableItem
from inventory_kernel.models.location import Location
from inventory_kernel.models.lot import Lot
from inventory_kernel.models.transaction import StockTransaction
from inventory_kernel.services.balance_projection import BalanceProjection
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.journal_writer import JournalWriter
from inventory_kernel.services.lot_registry import LotRegistry
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.stock_ledger")


def parse_transaction_type(operation: TransactionType | str) -> TransactionType:
    """
    Raises:
        ValidationError: ``operation`` names no transaction type.
    """
    try:
        return TransactionType(operation)
    except ValueError as exc:
        raise ValidationError(f"Unknown operation: {operation!r}", field="operation") from exc


@dataclass
class _Plan:
    """Resolved form of a request, built before any row is locked."""

    tx_type: TransactionType
    item: ConsumableItem
    entered_qty: Decimal
    qty_base: Decimal
    from_location_id: UUID | None = None
    to_location_id: UUID | None = None
    lot: Lot | None = None
    container: Container | None = None
    new_containers: list[tuple[Decimal, str | None]] = field(default_factory=list)
    from_reservation: bool = False

    @property
    def lot_id(self) -> UUID | None:
        return self.lot.id if self.lot is not None else None

    @property
    def is_debit(self) -> bool:
        return self.from_location_id is not None and not self.tx_type.is_reservation


class StockLedgerService(BaseService[StockTransaction]):
    """
    Posts validated stock operations.

    Contract:
        ``post`` either returns a StockResult with everything flushed, or
        raises before the journal is touched (validation, sufficiency) or
        during the flush (database conflicts).  Either way the caller
        decides commit / rollback.

    Non-goals:
        - Does NOT commit, roll back or retry (InventoryOrchestrator).
    """

    def __init__(
        self,
        session: Session,
        units: UnitTable,
        clock: Clock | None = None,
        return_location_code: str | None = None,
    ):
        super().__init__(session)
        self._units = units
        self._clock = clock or SystemClock()
        self._return_location_code = return_location_code
        sequences = SequenceService(session)
        self._journal = JournalWriter(session, self._clock, sequences)
        self._balances = BalanceProjection(session)
        self._lots = LotRegistry(session, self._clock)

    @property
    def lots(self) -> LotRegistry:
        return self._lots

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def post(self, request: StockRequest) -> StockResult:
        """
        Validate and post one request.

        Postconditions:
            Exactly one StockTransaction flushed; affected balance rows
            updated and still locked.
        """
        plan = self._plan(request)

        deltas = balance_deltas(
            plan.tx_type,
            plan.item.id,
            plan.lot_id,
            plan.from_location_id,
            plan.to_location_id,
            plan.qty_base,
            plan.from_reservation,
        )
        rows = self._balances.lock_rows(d.key for d in deltas)
        self._balances.check(deltas, rows)

        created: list[Container] = []
        if plan.new_containers:
            created = self._lots.create_containers(
                plan.item.id, plan.lot_id, plan.to_location_id, plan.new_containers, request.actor_id
            )

        metadata = dict(request.metadata)
        if len(created) > 1:
            metadata["container_ids"] = [str(c.id) for c in created]

        container_id = plan.container.id if plan.container is not None else None
        if container_id is None and len(created) == 1:
            container_id = created[0].id

        entry = self._journal.append(
            plan.tx_type,
            request.actor_id,
            plan.item.id,
            plan.qty_base,
            plan.entered_qty,
            request.unit,
            lot_id=plan.lot_id,
            container_id=container_id,
            from_location_id=plan.from_location_id,
            to_location_id=plan.to_location_id,
            from_reservation=plan.from_reservation,
            reason_code=request.reason_code,
            reference=request.reference,
            notes=request.notes,
            occurred_at=request.occurred_at,
            metadata=metadata,
        )
        snapshots = self._balances.apply(deltas, rows, entry.seq)

        self._update_container(plan, request.actor_id)
        self._check_containers(plan)

        primary_location = plan.from_location_id or plan.to_location_id
        primary = snapshots[BalanceKey.of(primary_location, plan.item.id, plan.lot_id)]
        counterpart = None
        if plan.from_location_id is not None and plan.to_location_id is not None:
            counterpart = snapshots[BalanceKey.of(plan.to_location_id, plan.item.id, plan.lot_id)]

        container_ids = tuple(c.id for c in created)
        if plan.container is not None:
            container_ids = (plan.container.id,)

        logger.debug(
            "stock_posted",
            extra={
                "seq": entry.seq,
                "transaction_type": plan.tx_type.value,
                "qty_base": plan.qty_base,
            },
        )
        return StockResult(
            transaction_id=entry.id,
            seq=entry.seq,
            transaction_type=plan.tx_type,
            item_id=plan.item.id,
            lot_id=plan.lot_id,
            qty_base=plan.qty_base,
            resulting_balance=primary,
            counterpart_balance=counterpart,
            container_ids=container_ids,
            correlation_id=entry.correlation_id,
        )

    def post_batch(self, requests: list[StockRequest]) -> list[StockResult]:
        """Post several requests in the caller's transaction, in order."""
        return [self.post(request) for request in requests]

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _plan(self, request: StockRequest) -> _Plan:
        tx_type = parse_transaction_type(request.operation)

        item = self.session.get(ConsumableItem, request.item_id)
        if item is None:
            raise ItemNotFoundError(str(request.item_id))
        if not item.is_active:
            raise ValidationError(f"Item {item.id} is inactive", field="item_id")

        entered_qty, qty_base = self._normalize(request, tx_type, item)
        plan = _Plan(tx_type=tx_type, item=item, entered_qty=entered_qty, qty_base=abs(qty_base))

        self._resolve_locations(plan, request, qty_base)
        self._resolve_reservation_flag(plan, request)
        self._resolve_lot(plan, request)
        self._resolve_containers(plan, request)
        return plan

    def _normalize(
        self, request: StockRequest, tx_type: TransactionType, item: ConsumableItem
    ) -> tuple[Decimal, Decimal]:
        try:
            entered = to_decimal(request.quantity)
        except (TypeError, InvalidOperation) as exc:
            raise ValidationError(f"Invalid quantity: {request.quantity!r}", field="quantity") from exc
        if not entered.is_finite():
            raise ValidationError(f"Invalid quantity: {request.quantity!r}", field="quantity")

        qty_base = self._units.convert(entered, request.unit, item.base_unit)

        if tx_type == TransactionType.ADJUST:
            if qty_base == 0:
                raise ValidationError("Adjustment delta must be non-zero", field="quantity")
        elif qty_base <= 0:
            raise ValidationError(
                f"Quantity must be positive, got {entered} {request.unit}", field="quantity"
            )
        return entered, qty_base

    def _resolve_locations(self, plan: _Plan, request: StockRequest, signed_qty: Decimal) -> None:
        tx_type = plan.tx_type
        location = self._load_location(request.location_id)

        if tx_type.is_credit_only:
            plan.to_location_id = location.id
        elif tx_type == TransactionType.TRANSFER:
            if request.to_location_id is None:
                raise ValidationError("Transfer requires a destination", field="to_location_id")
            plan.from_location_id = location.id
            plan.to_location_id = self._load_location(request.to_location_id).id
        elif tx_type == TransactionType.RETURN:
            plan.from_location_id = location.id
            plan.to_location_id = self._return_destination(request).id
        elif tx_type == TransactionType.ADJUST:
            if not (request.reason_code and request.reason_code.strip()):
                raise ValidationError("Adjustments require a reason code", field="reason_code")
            if signed_qty > 0:
                plan.to_location_id = location.id
            else:
                plan.from_location_id = location.id
        else:
            # CONSUME, DISPOSE, RESERVE, RELEASE act on the stated location
            plan.from_location_id = location.id

        if plan.from_location_id is not None and plan.from_location_id == plan.to_location_id:
            raise ValidationError(
                "Source and destination must differ", field="to_location_id"
            )

        if plan.item.is_chemical and plan.to_location_id is not None:
            destination = self.session.get(Location, plan.to_location_id)
            if not destination.can_hold_chemicals:
                raise LocationCapabilityError(
                    str(plan.item.id), str(destination.id), "chemicals"
                )

    def _return_destination(self, request: StockRequest) -> Location:
        if request.to_location_id is not None:
            return self._load_location(request.to_location_id)
        if not self._return_location_code:
            raise ValidationError(
                "Return requires a destination and no default return location is configured",
                field="to_location_id",
            )
        location = self.session.execute(
            select(Location).where(Location.code == self._return_location_code)
        ).scalar_one_or_none()
        if location is None:
            raise LocationNotFoundError(self._return_location_code)
        return self._load_location(location.id)

    def _load_location(self, location_id: UUID) -> Location:
        location = self.session.get(Location, location_id)
        if location is None:
            raise LocationNotFoundError(str(location_id))
        if not location.is_active:
            raise InactiveLocationError(str(location_id))
        return location

    def _resolve_reservation_flag(self, plan: _Plan, request: StockRequest) -> None:
        if not request.from_reservation:
            return
        if not plan.is_debit:
            raise ValidationError(
                f"{plan.tx_type.value} cannot draw from a reservation", field="from_reservation"
            )
        plan.from_reservation = True

    def _resolve_lot(self, plan: _Plan, request: StockRequest) -> None:
        item = plan.item
        if request.lot_id is not None:
            plan.lot = self._lots.resolve_lot(item.id, request.lot_id)
        elif request.lot is not None:
            if not plan.tx_type.is_credit_only:
                raise ValidationError(
                    "New lot details are only accepted on receipt", field="lot"
                )
            plan.lot = self._lots.get_or_create_lot(item.id, request.lot, request.actor_id)
        elif request.container_id is not None and item.tracks_containers:
            # A container identifies its lot
            plan.lot = self._lots.get_lot(self._lots.get_container(request.container_id).lot_id)

        if plan.lot is None and item.requires_lot_tracking:
            raise LotRequiredError(str(item.id), plan.tx_type.value)
        if plan.lot is None and item.tracks_containers and not plan.tx_type.is_reservation:
            raise LotRequiredError(
                str(item.id),
                plan.tx_type.value,
                message=f"Item {item.id} is container-tracked; containers belong to a lot",
            )

    def _resolve_containers(self, plan: _Plan, request: StockRequest) -> None:
        item = plan.item
        if not item.tracks_containers:
            if request.container_id is not None or request.containers:
                raise ValidationError(
                    f"Item {item.id} is not container-tracked", field="container_id"
                )
            return
        if plan.tx_type.is_reservation:
            return

        if plan.tx_type.is_credit_only:
            if not request.containers:
                raise ContainerRequiredError(str(item.id), plan.tx_type.value)
            self._plan_new_containers(plan, request)
            return
        if request.containers:
            raise ValidationError(
                "New containers are only accepted on receipt", field="containers"
            )

        if plan.is_debit:
            if request.container_id is None:
                raise ContainerRequiredError(str(item.id), plan.tx_type.value)
            # Stock left in a LOST or DISPOSED container can only be written off
            write_off = plan.tx_type in (TransactionType.ADJUST, TransactionType.DISPOSE)
            plan.container = self._lots.resolve_container(
                request.container_id,
                item.id,
                plan.lot_id,
                plan.from_location_id,
                allow_terminal=write_off,
            )
            self._lots.check_draw(plan.container, plan.qty_base, whole=plan.tx_type.is_movement)
        elif request.container_id is not None:
            # Upward adjustment into an existing container
            plan.container = self._lots.resolve_container(
                request.container_id, item.id, plan.lot_id, plan.to_location_id
            )

    def _plan_new_containers(self, plan: _Plan, request: StockRequest) -> None:
        entered_total = ZERO
        converted: list[tuple[Decimal, str | None]] = []
        for spec in request.containers:
            try:
                quantity = to_decimal(spec.quantity)
            except (TypeError, InvalidOperation) as exc:
                raise ValidationError(
                    f"Invalid container quantity: {spec.quantity!r}", field="containers"
                ) from exc
            entered_total += quantity
            converted.append(
                (self._units.convert(quantity, request.unit, plan.item.base_unit), spec.container_code)
            )

        base_total = round_qty(sum((q for q, _ in converted), ZERO))
        if entered_total != plan.entered_qty or base_total != plan.qty_base:
            raise ValidationError(
                f"Container quantities sum to {entered_total} {request.unit}, "
                f"received {plan.entered_qty} {request.unit}",
                field="containers",
            )
        plan.new_containers = converted

    # ------------------------------------------------------------------
    # Container follow-up
    # ------------------------------------------------------------------

    def _update_container(self, plan: _Plan, actor_id: UUID) -> None:
        container = plan.container
        if container is None:
            return
        tx_type = plan.tx_type
        if tx_type.is_movement:
            self._lots.move(container, plan.qty_base, plan.to_location_id, actor_id)
        elif tx_type == TransactionType.DISPOSE:
            self._lots.draw(container, plan.qty_base, actor_id, ContainerStatus.DISPOSED)
        elif plan.is_debit:
            self._lots.draw(container, plan.qty_base, actor_id, ContainerStatus.EMPTY)
        else:
            self._lots.top_up(container, plan.qty_base, actor_id)

    def _check_containers(self, plan: _Plan) -> None:
        if not plan.item.tracks_containers or plan.lot_id is None:
            return
        for location_id in (plan.from_location_id, plan.to_location_id):
            if location_id is not None:
                self._lots.check_consistency(location_id, plan.item.id, plan.lot_id)
