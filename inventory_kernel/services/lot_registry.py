"""
LotRegistry -- lot provenance and container sub-quantities.

Responsibility:
    Resolves and creates lots, creates containers at receipt, moves and
    draws down containers in lock-step with the journal, and verifies that
    the containers of a lot at a location never claim more than the lot
    balance there.

Architecture position:
    Kernel > Services.  Called by StockLedgerService inside the same
    transaction as the journal append and balance update, and by
    InventoryOrchestrator for the explicit terminal container actions.

Invariants enforced:
    - A lot belongs to exactly one item; requests naming a lot of another
      item fail with LotItemMismatchError.
    - Container status is monotonic: IN_STOCK -> EMPTY (quantity reaches
      zero) -> DISPOSED / LOST.  No operation revives a container.
    - For every (location, lot): sum of current_qty_base over IN_STOCK
      containers <= lot balance at that location.

Failure modes:
    - LotNotFoundError / ContainerNotFoundError: unknown ids.
    - ContainerStatusError: container not IN_STOCK (or already terminal).
    - ContainerLocationError: container is elsewhere.
    - ContainerConsistencyViolationError: draw exceeds container quantity,
      or containers would exceed the lot balance.
"""

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import LotDetails
from inventory_kernel.domain.quantities import ZERO, round_qty
from inventory_kernel.exceptions import (
    ContainerConsistencyViolationError,
    ContainerLocationError,
    ContainerNotFoundError,
    ContainerStatusError,
    LotItemMismatchError,
    LotNotFoundError,
    ValidationError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.balance import StockBalance
from inventory_kernel.models.container import Container, ContainerStatus
from inventory_kernel.models.lot import Lot
from inventory_kernel.services.base import BaseService

logger = get_logger("services.lot_registry")


def generate_container_code() -> str:
    return f"C-{uuid4().hex[:12].upper()}"


class LotRegistry(BaseService[Lot]):
    """
    Lot and container state, mutated only inside a stock operation.

    Non-goals:
        - Does NOT write the journal or balances.
        - Does NOT commit.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # -- lots -------------------------------------------------------------

    def get_lot(self, lot_id: UUID) -> Lot:
        lot = self.session.get(Lot, lot_id)
        if lot is None:
            raise LotNotFoundError(str(lot_id))
        return lot

    def resolve_lot(self, item_id: UUID, lot_id: UUID) -> Lot:
        """Load a lot and verify it belongs to ``item_id``."""
        lot = self.get_lot(lot_id)
        if lot.item_id != item_id:
            raise LotItemMismatchError(str(lot_id), str(item_id), str(lot.item_id))
        return lot

    def find_lot(self, item_id: UUID, lot_number: str) -> Lot | None:
        return self.session.execute(
            select(Lot).where(Lot.item_id == item_id, Lot.lot_number == lot_number)
        ).scalar_one_or_none()

    def get_or_create_lot(self, item_id: UUID, details: LotDetails, actor_id: UUID) -> Lot:
        """
        Return the item's lot with ``details.lot_number``, creating it when
        absent.  An existing lot keeps its recorded provenance.
        """
        lot_number = (details.lot_number or "").strip()
        if not lot_number:
            raise ValidationError("Lot number is required", field="lot_number")

        existing = self.find_lot(item_id, lot_number)
        if existing is not None:
            if details.expiry_date is not None and existing.expiry_date != details.expiry_date:
                logger.warning(
                    "lot_expiry_differs",
                    extra={
                        "lot_id": str(existing.id),
                        "recorded_expiry": existing.expiry_date,
                        "supplied_expiry": details.expiry_date,
                    },
                )
            return existing

        savepoint = self.session.begin_nested()
        try:
            lot = Lot(
                item_id=item_id,
                lot_number=lot_number,
                supplier_ref=details.supplier_ref,
                received_date=details.received_date or self._clock.today(),
                expiry_date=details.expiry_date,
                documents=dict(details.documents),
                created_by_id=actor_id,
            )
            self.session.add(lot)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            lot = self.find_lot(item_id, lot_number)
            if lot is None:
                raise
            return lot

        logger.info(
            "lot_created",
            extra={
                "lot_id": str(lot.id),
                "lot_number": lot_number,
                "expiry_date": lot.expiry_date,
            },
        )
        return lot

    # -- containers -------------------------------------------------------

    def get_container(self, container_id: UUID) -> Container:
        container = self.session.get(Container, container_id)
        if container is None:
            raise ContainerNotFoundError(str(container_id))
        return container

    def resolve_container(
        self,
        container_id: UUID,
        item_id: UUID,
        lot_id: UUID | None,
        location_id: UUID,
        allow_terminal: bool = False,
    ) -> Container:
        """
        Load an IN_STOCK container of ``item_id`` held at ``location_id``.

        When ``lot_id`` is given the container must belong to that lot.
        ``allow_terminal`` also accepts a LOST or DISPOSED container, so the
        stock still attributed to it can be written off.
        """
        container = self.get_container(container_id)
        if container.item_id != item_id:
            raise ValidationError(
                f"Container {container_id} holds item {container.item_id}, not {item_id}",
                field="container_id",
            )
        if lot_id is not None and container.lot_id != lot_id:
            raise ValidationError(
                f"Container {container_id} belongs to lot {container.lot_id}, not {lot_id}",
                field="container_id",
            )
        if container.current_location_id != location_id:
            raise ContainerLocationError(
                str(container_id), str(location_id), str(container.current_location_id)
            )
        status = ContainerStatus(container.status)
        if status == ContainerStatus.IN_STOCK or (allow_terminal and status.is_terminal):
            return container
        raise ContainerStatusError(str(container_id), container.status, "move stock")

    def create_containers(
        self,
        item_id: UUID,
        lot_id: UUID,
        location_id: UUID,
        quantities: list[tuple[Decimal, str | None]],
        actor_id: UUID,
    ) -> list[Container]:
        """Create IN_STOCK containers from (qty_base, code-or-None) pairs."""
        created = []
        for qty_base, code in quantities:
            if qty_base <= 0:
                raise ValidationError("Container quantity must be positive", field="containers")
            container = Container(
                lot_id=lot_id,
                item_id=item_id,
                container_code=code or generate_container_code(),
                current_location_id=location_id,
                initial_qty_base=qty_base,
                current_qty_base=qty_base,
                status=ContainerStatus.IN_STOCK.value,
                created_by_id=actor_id,
            )
            self.session.add(container)
            created.append(container)
        self.session.flush()
        logger.info(
            "containers_created",
            extra={
                "lot_id": str(lot_id),
                "location_id": str(location_id),
                "count": len(created),
            },
        )
        return created

    def check_draw(self, container: Container, qty_base: Decimal, whole: bool = False) -> None:
        """
        Verify ``qty_base`` can leave the container.  ``whole`` requires the
        full current quantity (containers move between locations intact).

        Raises:
            ValidationError: partial quantity for a whole-container move.
            ContainerConsistencyViolationError: draw exceeds the contents.
        """
        if whole and qty_base != container.current_qty_base:
            raise ValidationError(
                f"Container {container.container_code} holds {container.current_qty_base}; "
                f"a container moves whole, not {qty_base}",
                field="quantity",
            )
        if qty_base > container.current_qty_base:
            raise ContainerConsistencyViolationError(
                f"Container {container.container_code} holds {container.current_qty_base}, "
                f"cannot draw {qty_base}",
                location_id=str(container.current_location_id),
                lot_id=str(container.lot_id),
                container_total=container.current_qty_base,
            )

    def draw(
        self,
        container: Container,
        qty_base: Decimal,
        actor_id: UUID,
        status_at_zero: ContainerStatus = ContainerStatus.EMPTY,
    ) -> Container:
        """
        Take ``qty_base`` out of a container.  The first draw stamps
        ``opened_date``; reaching zero moves it to ``status_at_zero``.
        A LOST or DISPOSED container keeps its status.
        """
        self.check_draw(container, qty_base)
        container.current_qty_base = round_qty(container.current_qty_base - qty_base)
        if container.opened_date is None:
            container.opened_date = self._clock.today()
        if container.current_qty_base == 0 and not ContainerStatus(container.status).is_terminal:
            container.status = status_at_zero.value
        container.updated_by_id = actor_id
        self.session.flush()
        logger.debug(
            "container_drawn",
            extra={
                "container_id": str(container.id),
                "qty_base": qty_base,
                "remaining": container.current_qty_base,
                "status": container.status,
            },
        )
        return container

    def top_up(self, container: Container, qty_base: Decimal, actor_id: UUID) -> Container:
        """Add found stock to an IN_STOCK container (upward adjustment)."""
        container.current_qty_base = round_qty(container.current_qty_base + qty_base)
        container.updated_by_id = actor_id
        self.session.flush()
        return container

    def move(
        self,
        container: Container,
        qty_base: Decimal,
        to_location_id: UUID,
        actor_id: UUID,
    ) -> Container:
        """Relocate a whole container.  Partial moves are rejected."""
        self.check_draw(container, qty_base, whole=True)
        from_location_id = container.current_location_id
        container.current_location_id = to_location_id
        container.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "container_moved",
            extra={
                "container_id": str(container.id),
                "from_location_id": str(from_location_id),
                "to_location_id": str(to_location_id),
            },
        )
        return container

    def mark_terminal(
        self,
        container_id: UUID,
        status: ContainerStatus,
        actor_id: UUID,
    ) -> Container:
        """
        Explicit operator action: DISPOSED or LOST.

        Only the status changes; any stock still attributed to the container
        stays on the balance until written off by a DISPOSE or a decreasing
        ADJUST naming the container.
        """
        if not status.is_terminal:
            raise ValidationError(f"{status.value} is not a terminal status", field="status")
        container = self.get_container(container_id)
        current = ContainerStatus(container.status)
        if current.is_terminal and current != status:
            raise ContainerStatusError(str(container_id), current.value, f"mark {status.value}")
        if current == status:
            return container
        container.status = status.value
        container.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "container_status_changed",
            extra={
                "container_id": str(container_id),
                "from_status": current.value,
                "to_status": status.value,
            },
        )
        return container

    # -- consistency ------------------------------------------------------

    def container_total(self, location_id: UUID, lot_id: UUID) -> Decimal:
        total = self.session.execute(
            select(func.coalesce(func.sum(Container.current_qty_base), 0)).where(
                Container.current_location_id == location_id,
                Container.lot_id == lot_id,
                Container.status == ContainerStatus.IN_STOCK.value,
            )
        ).scalar_one()
        return Decimal(total)

    def check_consistency(self, location_id: UUID, item_id: UUID, lot_id: UUID) -> None:
        """
        Raises:
            ContainerConsistencyViolationError: IN_STOCK containers of the
                lot at the location claim more than the lot balance.
        """
        balance = self.session.execute(
            select(StockBalance.qty_on_hand_base).where(
                StockBalance.location_id == location_id,
                StockBalance.item_id == item_id,
                StockBalance.lot_key == str(lot_id),
            )
        ).scalar_one_or_none()
        lot_balance = Decimal(balance) if balance is not None else ZERO
        total = self.container_total(location_id, lot_id)
        if total > lot_balance:
            logger.warning(
                "container_consistency_violation",
                extra={
                    "location_id": str(location_id),
                    "lot_id": str(lot_id),
                    "container_total": total,
                    "lot_balance": lot_balance,
                },
            )
            raise ContainerConsistencyViolationError(
                f"Containers of lot {lot_id} at {location_id} hold {total}, "
                f"lot balance is {lot_balance}",
                location_id=str(location_id),
                lot_id=str(lot_id),
                container_total=total,
                lot_balance=lot_balance,
            )

