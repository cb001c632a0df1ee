"""
Value types for the stock ledger.

Pure enums and small frozen objects shared by models, services and modules.
ZERO I/O.  Enum values are the strings persisted in the database.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

# A movement with this reason re-seeds the running balance to its own
# quantity instead of adding to it.
INITIAL_STOCK_REASON = "Initial Stock"

ZERO = Decimal("0")


class MovementDirection(str, Enum):
    """Direction of a stock movement."""

    IN = "in"
    OUT = "out"


class InventoryStatus(str, Enum):
    """Derived status of an inventory aggregate."""

    ACTIVE = "Active"
    LOW_STOCK = "Low Stock"
    OUT_OF_STOCK = "Out of Stock"
    DISCONTINUED = "Discontinued"


class WarehouseStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


@dataclass(frozen=True)
class Actor:
    """
    Identity supplied by the caller's authentication layer.

    Trusted as given.  Only ``actor_id`` is persisted on records; ``role``
    travels with log context.
    """

    actor_id: UUID
    role: str = "Employee"


def derive_status(
    current_stock: Decimal,
    minimum_stock: Decimal,
    existing: InventoryStatus | None = None,
    preserve_discontinued: bool = True,
) -> InventoryStatus:
    """
    Status as a pure function of stock against the reorder threshold.

    0 -> Out of Stock, 0 < stock <= minimum -> Low Stock, otherwise Active.
    A Discontinued aggregate keeps its status while ``preserve_discontinued``
    is set.
    """
    if preserve_discontinued and existing == InventoryStatus.DISCONTINUED:
        return InventoryStatus.DISCONTINUED
    if current_stock <= ZERO:
        return InventoryStatus.OUT_OF_STOCK
    if current_stock <= minimum_stock:
        return InventoryStatus.LOW_STOCK
    return InventoryStatus.ACTIVE
