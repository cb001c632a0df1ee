"""
Purchasing Domain Models (``stock_modules.purchasing.models``).

Purchases arrive with an explicit, ordered list of lines.  Each line names a
product by free-text key; the processor resolves it to a catalog product
and an inventory aggregate when it posts the stock.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from stock_kernel.domain.results import PartialFailure


@dataclass(frozen=True)
class PurchaseLineRequest:
    product_key: str
    quantity: Decimal
    unit: str = "kg"
    unit_price: Decimal = Decimal("0")
    total_price: Decimal | None = None


@dataclass(frozen=True)
class PurchaseRequest:
    supplier_name: str
    lines: tuple[PurchaseLineRequest, ...]
    warehouse_id: UUID | None = None
    purchase_number: str | None = None
    purchase_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PurchaseLine:
    line_number: int
    product_key: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    total_price: Decimal
    inventory_item_id: UUID | None = None

    @property
    def posted(self) -> bool:
        return self.inventory_item_id is not None


@dataclass(frozen=True)
class Purchase:
    id: UUID
    purchase_number: str
    supplier_name: str
    warehouse_id: UUID
    purchase_date: date
    lines: tuple[PurchaseLine, ...]
    total_amount: Decimal
    notes: str | None = None


@dataclass(frozen=True)
class PurchaseResult:
    """Committed purchase header plus any lines whose stock could not be posted."""
    header: Purchase
    stock_errors: PartialFailure = field(default_factory=PartialFailure)

    @property
    def fully_posted(self) -> bool:
        return not self.stock_errors

