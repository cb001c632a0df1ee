"""
Typed exception hierarchy for the stock kernel.

Every error carries a machine-readable ``code`` class attribute and the
structured data a caller needs to react to it, so that callers catch by type
instead of parsing messages:

    try:
        transfers.create(request, actor)
    except InsufficientStockError as e:
        respond(code=e.code, item=e.item, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- ValidationError
    |   +-- WarehouseMismatchError
    |   +-- DuplicateReferenceError
    |
    +-- NotFoundError
    |   +-- InventoryItemNotFoundError
    |   +-- WarehouseNotFoundError
    |   +-- ProductNotFoundError
    |   +-- MovementNotFoundError
    |   +-- TransferNotFoundError
    |   +-- PurchaseNotFoundError
    |   +-- ProductionBatchNotFoundError
    |
    +-- InsufficientStockError
    +-- InvalidStateTransitionError
    +-- CapacityExceededError

===============================================================================
CODES
===============================================================================

    VALIDATION_ERROR            malformed input, rejected before any mutation
    WAREHOUSE_MISMATCH          inventory item is not held in the named warehouse
    DUPLICATE_REFERENCE         business reference number already used
    NOT_FOUND                   referenced entity does not exist
    INSUFFICIENT_STOCK          requested quantity exceeds available stock
    INVALID_STATE_TRANSITION    workflow action not allowed from current status
    CAPACITY_EXCEEDED           inbound quantity exceeds warehouse capacity

Negative stock is NOT an error anywhere in the kernel: subtractions that
would go below zero clamp to zero and log a warning.

Partial failures (a purchase line that could not be posted while the
purchase header committed) are returned, not raised.  See
``stock_kernel.domain.results``.
"""

from decimal import Decimal


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses have a ``code`` class attribute.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Validation


class ValidationError(StockKernelError):
    """Input failed structural validation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class WarehouseMismatchError(ValidationError):
    """Inventory item is not stored in the warehouse the caller named."""

    code: str = "WAREHOUSE_MISMATCH"

    def __init__(self, item: str, expected_warehouse_id, actual_warehouse_id):
        self.item = item
        self.expected_warehouse_id = expected_warehouse_id
        self.actual_warehouse_id = actual_warehouse_id
        super().__init__(
            "inventory_item_id",
            f"{item} is not stored in warehouse {expected_warehouse_id}",
        )


class DuplicateReferenceError(ValidationError):
    """Business reference number is already in use."""

    code: str = "DUPLICATE_REFERENCE"

    def __init__(self, reference_number: str):
        self.reference_number = reference_number
        super().__init__(
            "reference_number",
            f"{reference_number} already exists",
        )


# Lookups


class NotFoundError(StockKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class InventoryItemNotFoundError(NotFoundError):
    entity_type = "Inventory item"


class WarehouseNotFoundError(NotFoundError):
    entity_type = "Warehouse"


class ProductNotFoundError(NotFoundError):
    entity_type = "Product"


class MovementNotFoundError(NotFoundError):
    entity_type = "Stock movement"


class TransferNotFoundError(NotFoundError):
    entity_type = "Stock transfer"


class PurchaseNotFoundError(NotFoundError):
    entity_type = "Purchase"


class ProductionBatchNotFoundError(NotFoundError):
    entity_type = "Production batch"


# Stock


class InsufficientStockError(StockKernelError):
    """Requested quantity exceeds the stock available in the source warehouse."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, item: str, available: Decimal, requested: Decimal):
        self.item = item
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {item}. "
            f"Available: {available}, Requested: {requested}"
        )


class CapacityExceededError(StockKernelError):
    """Inbound quantity would exceed the warehouse's declared capacity."""

    code: str = "CAPACITY_EXCEEDED"

    def __init__(
        self,
        warehouse: str,
        available_capacity: Decimal,
        requested: Decimal,
    ):
        self.warehouse = warehouse
        self.available_capacity = available_capacity
        self.requested = requested
        super().__init__(
            f"Warehouse capacity exceeded for {warehouse}. "
            f"Available capacity: {available_capacity}, Requested: {requested}"
        )


# Workflow


class InvalidStateTransitionError(StockKernelError):
    """Workflow action is not permitted from the entity's current status."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity: str,
        current_state: str,
        action: str,
        allowed_from: tuple[str, ...] = (),
    ):
        self.entity = entity
        self.current_state = current_state
        self.action = action
        self.allowed_from = allowed_from
        allowed = ", ".join(allowed_from) if allowed_from else "none"
        super().__init__(
            f"Cannot {action} {entity} in status '{current_state}' "
            f"(allowed from: {allowed})"
        )
