"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock accounting must reject bad requests precisely.  Callers (HTTP handlers,
batch importers, operator scripts) decide what to do based on the exception
TYPE and its machine-readable ``code``, never on the message text.

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        ledger.execute(request)
    except Exception as e:
        if "insufficient" in str(e):     # FRAGILE - message might change
            ...

Example - RIGHT way:
    try:
        ledger.execute(request)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- ValidationError
    |   +-- ReferenceNotFoundError
    |   |   +-- ItemNotFoundError
    |   |   +-- LocationNotFoundError
    |   |   +-- LotNotFoundError
    |   |   +-- ContainerNotFoundError
    |   +-- LocationCapabilityError
    |   +-- InactiveLocationError
    |
    +-- UnitIncompatibleError
    |   +-- UnknownUnitError
    |
    +-- InsufficientStockError
    |
    +-- ReservationError
    |
    +-- LotRequiredError
    |   +-- LotItemMismatchError
    |
    +-- ContainerConsistencyViolationError
    |   +-- ContainerRequiredError
    |   +-- ContainerStatusError
    |   +-- ContainerLocationError
    |
    +-- ConcurrencyConflictError          (retryable)
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                            | When Raised
--------------------------------|---------------------------------------------
VALIDATION_ERROR                | Malformed request (qty <= 0, missing reason)
REFERENCE_NOT_FOUND             | Item / location / lot / container id unknown
LOCATION_CAPABILITY             | Chemical item sent to non-chemical location
LOCATION_INACTIVE               | Stock movement touches a deactivated location
UNIT_INCOMPATIBLE               | Conversion across unit groups
UNKNOWN_UNIT                    | Unit code or alias not in the unit table
INSUFFICIENT_STOCK              | Debit exceeds available balance
RESERVATION_INVALID             | Release/draw exceeds reserved quantity
LOT_REQUIRED                    | Lot-tracked item moved without a lot
LOT_ITEM_MISMATCH               | Lot belongs to a different item
CONTAINER_CONSISTENCY_VIOLATION | Container sum would exceed lot balance
CONTAINER_REQUIRED              | Container-tracked item moved without container
CONTAINER_STATUS                | Container is EMPTY/DISPOSED/LOST or moved back
CONTAINER_LOCATION              | Container is not at the source location
CONCURRENCY_CONFLICT            | Lock timeout / deadlock / serialization failure
IMMUTABILITY_VIOLATION          | UPDATE/DELETE of a journal row or balance row

===============================================================================
HANDLING PATTERNS
===============================================================================

1. A rejected operation has NO effect.  The operation layer rolls the
   session back, so neither the journal nor any balance row changed.

2. ConcurrencyConflictError is the only retryable error.  The operation
   layer retries it a bounded number of times before surfacing it:

    except ConcurrencyConflictError as e:
        if e.retryable and attempt < max_retries:
            ...

3. ImmutabilityViolationError indicates a programming error or tampering,
   never a user mistake.  Log and alert.

===============================================================================
"""

from decimal import Decimal


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"
    retryable: bool = False


# Validation


class ValidationError(InventoryKernelError):
    """Request failed structural or business validation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ReferenceNotFoundError(ValidationError):
    """A referenced master-data record does not exist."""

    code: str = "REFERENCE_NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class ItemNotFoundError(ReferenceNotFoundError):
    entity_type = "ConsumableItem"


class LocationNotFoundError(ReferenceNotFoundError):
    entity_type = "Location"


class LotNotFoundError(ReferenceNotFoundError):
    entity_type = "Lot"


class ContainerNotFoundError(ReferenceNotFoundError):
    entity_type = "Container"


class LocationCapabilityError(ValidationError):
    """Item cannot be held at the location (e.g. chemical at an office)."""

    code: str = "LOCATION_CAPABILITY"

    def __init__(self, item_id: str, location_id: str, capability: str):
        self.item_id = item_id
        self.location_id = location_id
        self.capability = capability
        super().__init__(
            f"Location {location_id} lacks capability '{capability}' "
            f"required by item {item_id}"
        )


class InactiveLocationError(ValidationError):
    """Location has been deactivated."""

    code: str = "LOCATION_INACTIVE"

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Location is inactive: {location_id}")


# Units


class UnitIncompatibleError(InventoryKernelError):
    """Conversion between units of different groups was requested."""

    code: str = "UNIT_INCOMPATIBLE"

    def __init__(
        self,
        from_unit: str,
        to_unit: str,
        from_group: str | None = None,
        to_group: str | None = None,
        message: str | None = None,
    ):
        self.from_unit = from_unit
        self.to_unit = to_unit
        self.from_group = from_group
        self.to_group = to_group
        super().__init__(
            message
            or f"Cannot convert {from_unit} ({from_group}) to {to_unit} ({to_group})"
        )


class UnknownUnitError(UnitIncompatibleError):
    """Unit code or alias is not present in the unit table."""

    code: str = "UNKNOWN_UNIT"

    def __init__(self, unit: str):
        self.unit = unit
        super().__init__(unit, None, message=f"Unknown unit: {unit!r}")


# Stock sufficiency


class InsufficientStockError(InventoryKernelError):
    """Debit would drive the available balance below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        location_id: str,
        item_id: str,
        lot_id: str | None,
        requested: Decimal,
        available: Decimal,
    ):
        self.location_id = location_id
        self.item_id = item_id
        self.lot_id = lot_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock of item {item_id} (lot {lot_id}) at {location_id}: "
            f"requested {requested}, available {available}"
        )


class ReservationError(InventoryKernelError):
    """Release or reservation draw exceeds the reserved quantity."""

    code: str = "RESERVATION_INVALID"

    def __init__(
        self,
        location_id: str,
        item_id: str,
        lot_id: str | None,
        requested: Decimal,
        reserved: Decimal,
    ):
        self.location_id = location_id
        self.item_id = item_id
        self.lot_id = lot_id
        self.requested = requested
        self.reserved = reserved
        super().__init__(
            f"Reservation of item {item_id} (lot {lot_id}) at {location_id} "
            f"is {reserved}, cannot draw {requested}"
        )


# Lots


class LotRequiredError(InventoryKernelError):
    """Lot-tracked item was moved without identifying a lot."""

    code: str = "LOT_REQUIRED"

    def __init__(self, item_id: str, operation: str | None, message: str | None = None):
        self.item_id = item_id
        self.operation = operation
        super().__init__(
            message or f"Item {item_id} is lot-tracked; {operation} requires a lot"
        )


class LotItemMismatchError(LotRequiredError):
    """The supplied lot belongs to another item."""

    code: str = "LOT_ITEM_MISMATCH"

    def __init__(self, lot_id: str, item_id: str, lot_item_id: str):
        self.lot_id = lot_id
        self.lot_item_id = lot_item_id
        super().__init__(
            item_id,
            None,
            message=f"Lot {lot_id} belongs to item {lot_item_id}, not {item_id}",
        )


# Containers


class ContainerConsistencyViolationError(InventoryKernelError):
    """Sum of container quantities would exceed the lot balance at a location."""

    code: str = "CONTAINER_CONSISTENCY_VIOLATION"

    def __init__(
        self,
        message: str,
        location_id: str | None = None,
        lot_id: str | None = None,
        container_total: Decimal | None = None,
        lot_balance: Decimal | None = None,
    ):
        self.location_id = location_id
        self.lot_id = lot_id
        self.container_total = container_total
        self.lot_balance = lot_balance
        super().__init__(message)


class ContainerRequiredError(ContainerConsistencyViolationError):
    """Container-tracked item was moved without a container."""

    code: str = "CONTAINER_REQUIRED"

    def __init__(self, item_id: str, operation: str):
        self.item_id = item_id
        self.operation = operation
        super().__init__(
            f"Item {item_id} is container-tracked; {operation} requires a container"
        )


class ContainerStatusError(ContainerConsistencyViolationError):
    """Container is not in a state that allows the requested change."""

    code: str = "CONTAINER_STATUS"

    def __init__(self, container_id: str, current_status: str, requested: str):
        self.container_id = container_id
        self.current_status = current_status
        self.requested = requested
        super().__init__(
            f"Container {container_id} is {current_status}; cannot {requested}"
        )


class ContainerLocationError(ContainerConsistencyViolationError):
    """Container is not where the request says it is."""

    code: str = "CONTAINER_LOCATION"

    def __init__(self, container_id: str, expected_location_id: str, actual_location_id: str):
        self.container_id = container_id
        self.expected_location_id = expected_location_id
        self.actual_location_id = actual_location_id
        super().__init__(
            f"Container {container_id} is at {actual_location_id}, "
            f"not {expected_location_id}",
            location_id=actual_location_id,
        )


# Concurrency


class ConcurrencyConflictError(InventoryKernelError):
    """
    Lock could not be acquired in time, or the database aborted the
    transaction (deadlock / serialization failure / database locked).
    """

    code: str = "CONCURRENCY_CONFLICT"
    retryable: bool = True

    def __init__(self, message: str, attempts: int | None = None):
        self.attempts = attempts
        super().__init__(message)


# Immutability


class ImmutabilityViolationError(InventoryKernelError):
    """Attempted to modify or delete an append-only / never-delete record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
