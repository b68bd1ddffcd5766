"""
InventoryOrchestrator -- the operation layer for stock movements.

Responsibility:
    Public entry point for every balance-affecting operation.  Binds the
    log context, owns the transaction boundary, and retries operations that
    lost a lock race.

Architecture position:
    Kernel > Services -- imperative shell, owns transaction boundaries.
    Sits above StockLedgerService; callers (API handlers, scripts, tests)
    never talk to the ledger service directly.

Operation flow:
    receive / transfer / consume / dispose / return_stock / adjust /
    reserve / release / opening_balance / execute
      1. Bind correlation_id, actor and operation to the log context
      2. Run the ledger post inside a transaction (auto_commit) or a
         savepoint (caller-managed transaction)
      3. Commit on success; roll back on any failure
      4. On ConcurrencyConflictError: roll back, wait, retry (bounded)

Invariants enforced:
    - A rejected operation leaves journal, balances, lots and containers
      exactly as they were.
    - A retried operation is re-validated from scratch against the state
      committed by whoever won the race.

Failure modes:
    - Typed InventoryKernelError subclasses from the ledger service.
    - ConcurrencyConflictError after ``max_retries`` failed attempts
      (``attempts`` attribute set).

Audit relevance:
    Every invocation logs stock_operation_started and one of
    stock_operation_completed / stock_operation_rejected /
    stock_operation_failed with duration_ms; the correlation_id is written
    onto the journal entry.
"""

import time
from collections.abc import Callable
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from inventory_kernel.db.engine import is_lock_conflict
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    RetryPolicy,
    StockRequest,
    StockResult,
    TransactionType,
)
from inventory_kernel.domain.units import UnitTable
from inventory_kernel.exceptions import (
    ConcurrencyConflictError,
    InventoryKernelError,
    ValidationError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.container import Container, ContainerStatus
from inventory_kernel.services.stock_ledger_service import StockLedgerService, parse_transaction_type

logger = get_logger("services.inventory_orchestrator")

R = TypeVar("R")


class InventoryOrchestrator:
    """
    Runs stock operations as atomic, retried units of work.

    Contract:
        With ``auto_commit=True`` each call is its own database transaction:
        committed on success, rolled back on failure, retried on
        ConcurrencyConflictError.  With ``auto_commit=False`` each call runs
        in a savepoint of the caller's transaction and is never retried
        (the caller owns the transaction and must retry it as a whole).

    Guarantees:
        - At most ``retry_policy.max_retries`` retries per call.
        - Non-retryable errors are raised on the first attempt.
    """

    def __init__(
        self,
        session: Session,
        units: UnitTable,
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
        return_location_code: str | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._retry = retry_policy or RetryPolicy()
        self._auto_commit = auto_commit
        self._ledger = StockLedgerService(
            session,
            units,
            clock=self._clock,
            return_location_code=return_location_code,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def execute(self, request: StockRequest) -> StockResult:
        """Run any StockRequest."""
        return self._run(
            parse_transaction_type(request.operation).value,
            request.actor_id,
            lambda: self._ledger.post(request),
            item_id=request.item_id,
            location_id=request.location_id,
            quantity=request.quantity,
            unit=request.unit,
        )

    def receive(
        self,
        item_id: UUID,
        location_id: UUID,
        quantity: Decimal,
        unit: str,
        actor_id: UUID,
        **options: Any,
    ) -> StockResult:
        """
        Credit stock at ``location_id``.  Pass ``lot=LotDetails(...)`` to
        create the lot, or ``lot_id`` for an existing one; container-tracked
        items also need ``containers``.
        """
        return self.execute(
            self._request(TransactionType.RECEIPT, item_id, location_id, quantity, unit, actor_id, options)
        )

    def transfer(
        self,
        item_id: UUID,
        from_location_id: UUID,
        to_location_id: UUID,
        quantity: Decimal,
        unit: str,
        actor_id: UUID,
        **options: Any,
    ) -> StockResult:
        options["to_location_id"] = to_location_id
        return self.execute(
            self._request(TransactionType.TRANSFER, item_id, from_location_id, quantity, unit, actor_id, options)
        )

    def consume(
        self,
        item_id: UUID,
        location_id: UUID,
        quantity: Decimal,
        unit: str,
        actor_id: UUID,
        **options: Any,
    ) -> StockResult:
        return self.execute(
            self._request(TransactionType.CONSUME, item_id, location_id, quantity, unit, actor_id, options)
        )

    def dispose(
        self,
        item_id: UUID,
        location_id: UUID,
        quantity: Decimal,
        unit: str,
        actor_id: UUID,
        **options: Any,
    ) -> StockResult:
        return self.execute(
            self._request(TransactionType.DISPOSE, item_id, location_id, quantity, unit, actor_id, options)
        )

    def return_stock(
        self,
        item_id: UUID,
        location_id: UUID,
        quantity: Decimal,
        unit: str,
        actor_id: UUID,
        **options: Any,
    ) -> StockResult:
        """Move stock back to ``to_location_id`` or the configured return location."""
        return self.execute(
            self._request(TransactionType.RETURN, item_id, location_id, quantity, unit, actor_id, options)
        )

    def adjust(
        self,
        item_id: UUID,
        location_id: UUID,
        delta: Decimal,
        unit: str,
        actor_id: UUID,
        reason_code: str | None,
        **options: Any,
    ) -> StockResult:
        """Signed correction; positive ``delta`` adds stock, negative removes it."""
        options["reason_code"] = reason_code
        return self.execute(
            self._request(TransactionType.ADJUST, item_id, location_id, delta, unit, actor_id, options)
        )

    def reserve(
        self,
        item_id: UUID,
        location_id: UUID,
        quantity: Decimal,
        unit: str,
        actor_id: UUID,
        **options: Any,
    ) -> StockResult:
        return self.execute(
            self._request(TransactionType.RESERVE, item_id, location_id, quantity, unit, actor_id, options)
        )

    def release(
        self,
        item_id: UUID,
        location_id: UUID,
        quantity: Decimal,
        unit: str,
        actor_id: UUID,
        **options: Any,
    ) -> StockResult:
        return self.execute(
            self._request(TransactionType.RELEASE, item_id, location_id, quantity, unit, actor_id, options)
        )

    def opening_balance(self, requests: list[StockRequest]) -> list[StockResult]:
        """
        Load initial stock as one atomic batch of OPENING_BALANCE entries.

        Raises:
            ValidationError: empty batch, mixed actors, or a non-opening request.
        """
        if not requests:
            raise ValidationError("Opening balance batch is empty", field="requests")
        actors = {r.actor_id for r in requests}
        if len(actors) != 1:
            raise ValidationError("Opening balance batch must have a single actor", field="actor_id")
        for request in requests:
            if parse_transaction_type(request.operation) != TransactionType.OPENING_BALANCE:
                raise ValidationError(
                    f"Opening balance batch contains {request.operation}", field="operation"
                )
        return self._run(
            TransactionType.OPENING_BALANCE.value,
            actors.pop(),
            lambda: self._ledger.post_batch(requests),
            entry_count=len(requests),
        )

    def mark_container_lost(self, container_id: UUID, actor_id: UUID) -> Container:
        return self._run(
            "MARK_CONTAINER_LOST",
            actor_id,
            lambda: self._ledger.lots.mark_terminal(container_id, ContainerStatus.LOST, actor_id),
            container_id=str(container_id),
        )

    def mark_container_disposed(self, container_id: UUID, actor_id: UUID) -> Container:
        return self._run(
            "MARK_CONTAINER_DISPOSED",
            actor_id,
            lambda: self._ledger.lots.mark_terminal(container_id, ContainerStatus.DISPOSED, actor_id),
            container_id=str(container_id),
        )

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @staticmethod
    def _request(
        operation: TransactionType,
        item_id: UUID,
        location_id: UUID,
        quantity: Decimal,
        unit: str,
        actor_id: UUID,
        options: dict[str, Any],
    ) -> StockRequest:
        try:
            return StockRequest(
                operation=operation,
                item_id=item_id,
                location_id=location_id,
                quantity=quantity,
                unit=unit,
                actor_id=actor_id,
                **options,
            )
        except TypeError as exc:
            raise ValidationError(f"Invalid {operation.value} options: {exc}") from exc

    def _run(
        self,
        operation: str,
        actor_id: UUID,
        work: Callable[[], R],
        item_id: UUID | None = None,
        location_id: UUID | None = None,
        **log_fields: Any,
    ) -> R:
        correlation_id = str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=str(actor_id),
            operation=operation,
            item_id=str(item_id) if item_id else None,
            location_id=str(location_id) if location_id else None,
        ):
            logger.info("stock_operation_started", extra=log_fields)
            t0 = time.monotonic()
            attempt = 0

            while True:
                attempt += 1
                try:
                    result = self._attempt(work)
                except InventoryKernelError as exc:
                    duration_ms = round((time.monotonic() - t0) * 1000, 2)
                    if exc.retryable and self._auto_commit and attempt <= self._retry.max_retries:
                        delay = self._retry.delay_for(attempt)
                        logger.warning(
                            "concurrency_conflict_retry",
                            extra={
                                "attempt": attempt,
                                "max_retries": self._retry.max_retries,
                                "delay_seconds": delay,
                                "error": str(exc),
                            },
                        )
                        time.sleep(delay)
                        continue
                    if isinstance(exc, ConcurrencyConflictError):
                        exc.attempts = attempt
                    logger.info(
                        "stock_operation_rejected",
                        extra={
                            "error_code": exc.code,
                            "error": str(exc),
                            "attempts": attempt,
                            "duration_ms": duration_ms,
                        },
                    )
                    raise
                except Exception:
                    duration_ms = round((time.monotonic() - t0) * 1000, 2)
                    logger.error(
                        "stock_operation_failed",
                        extra={"duration_ms": duration_ms, "attempts": attempt},
                        exc_info=True,
                    )
                    raise

                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.info(
                    "stock_operation_completed",
                    extra={"duration_ms": duration_ms, "attempts": attempt},
                )
                return result

    def _attempt(self, work: Callable[[], R]) -> R:
        """One try: commit (or release the savepoint) on success, undo on failure."""
        if self._auto_commit:
            try:
                result = work()
                self._session.commit()
                return result
            except DBAPIError as exc:
                self._session.rollback()
                if is_lock_conflict(exc):
                    raise ConcurrencyConflictError(f"Lock conflict: {exc.orig}") from exc
                raise
            except Exception:
                self._session.rollback()
                raise

        savepoint = self._session.begin_nested()
        try:
            result = work()
            savepoint.commit()
            return result
        except DBAPIError as exc:
            if savepoint.is_active:
                savepoint.rollback()
            if is_lock_conflict(exc):
                raise ConcurrencyConflictError(f"Lock conflict: {exc.orig}") from exc
            raise
        except Exception:
            if savepoint.is_active:
                savepoint.rollback()
            raise
