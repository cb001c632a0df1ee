"""
Stock Transfer Domain Models (``stock_modules.transfers.models``).

Frozen request objects callers hand to ``StockTransferService`` and frozen
DTOs it returns.  No database identity, no I/O.

Invariants
----------
- ``StockTransfer.total_value == sum(actual_quantity * unit_price)``.
- ``TransferDiscrepancy.difference == received_quantity - expected_quantity``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_kernel.logging_config import get_logger

logger = get_logger("modules.transfers.models")


class TransferStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    IN_TRANSIT = "In Transit"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"


class TransferType(str, Enum):
    WAREHOUSE_TO_WAREHOUSE = "Warehouse to Warehouse"
    PRODUCTION_TO_WAREHOUSE = "Production to Warehouse"
    WAREHOUSE_TO_PRODUCTION = "Warehouse to Production"
    RETURN = "Return Transfer"
    ADJUSTMENT = "Adjustment"


class TransferPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class ItemCondition(str, Enum):
    GOOD = "Good"
    DAMAGED = "Damaged"
    EXPIRED = "Expired"
    NEAR_EXPIRY = "Near Expiry"


DEFAULT_DISCREPANCY_REASON = "Quantity mismatch"
NOT_RECEIVED_REASON = "Not received"


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TransferItemRequest:
    """One line of a new transfer.  Blank display fields default from the aggregate."""
    inventory_item_id: UUID
    requested_quantity: Decimal
    unit_price: Decimal | None = None
    batch_number: str | None = None
    condition: ItemCondition = ItemCondition.GOOD
    notes: str | None = None


@dataclass(frozen=True)
class TransferRequest:
    from_warehouse_id: UUID
    to_warehouse_id: UUID
    items: tuple[TransferItemRequest, ...]
    transfer_type: TransferType = TransferType.WAREHOUSE_TO_WAREHOUSE
    reason: str | None = None
    priority: TransferPriority = TransferPriority.MEDIUM
    transport_method: str | None = None
    expected_delivery_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ReceivedItem:
    """Quantity actually counted at the destination for one transfer line."""
    inventory_item_id: UUID
    actual_quantity: Decimal
    reason: str | None = None
    condition: ItemCondition | None = None


# -----------------------------------------------------------------------------
# DTOs
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TransferItem:
    id: UUID
    line_number: int
    inventory_item_id: UUID
    product_name: str
    product_code: str | None
    unit: str
    requested_quantity: Decimal
    actual_quantity: Decimal
    unit_price: Decimal
    batch_number: str | None = None
    condition: ItemCondition = ItemCondition.GOOD
    destination_item_id: UUID | None = None

    @property
    def total_value(self) -> Decimal:
        return self.actual_quantity * self.unit_price


@dataclass(frozen=True)
class TransferDiscrepancy:
    inventory_item_id: UUID
    product_name: str
    expected_quantity: Decimal
    received_quantity: Decimal
    difference: Decimal
    reason: str


@dataclass(frozen=True)
class StageStamp:
    """Who did a workflow step, when, and any note or reason they gave."""
    actor_id: UUID
    at: datetime
    notes: str | None = None


@dataclass(frozen=True)
class StockTransfer:
    id: UUID
    transfer_number: str
    transfer_type: TransferType
    from_warehouse_id: UUID
    to_warehouse_id: UUID
    status: TransferStatus
    priority: TransferPriority
    items: tuple[TransferItem, ...]
    total_value: Decimal
    reason: str | None = None
    transport_method: str | None = None
    transfer_date: datetime | None = None
    expected_delivery_date: date | None = None
    actual_delivery_date: datetime | None = None
    notes: str | None = None
    requested_by: UUID | None = None
    approval: StageStamp | None = None
    dispatch: StageStamp | None = None
    receipt: StageStamp | None = None
    completion: StageStamp | None = None
    cancellation: StageStamp | None = None
    rejection: StageStamp | None = None
    discrepancies: tuple[TransferDiscrepancy, ...] = field(default_factory=tuple)

    def item_for(self, inventory_item_id: UUID) -> TransferItem | None:
        for item in self.items:
            if item.inventory_item_id == inventory_item_id:
                return item
        return None

    @property
    def total_requested(self) -> Decimal:
        return sum((i.requested_quantity for i in self.items), Decimal("0"))
