"""
Production Domain Models (``stock_modules.production.models``).

A production batch consumes raw material from a source warehouse and yields
one or more output products into a destination warehouse.  Wastage is
recorded for reporting only; it posts no movement.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from stock_kernel.domain.results import PartialFailure

DEFAULT_WASTAGE_REASON = "Processing Loss"


@dataclass(frozen=True)
class ProductionOutputRequest:
    product_key: str
    quantity: Decimal
    unit: str = "bags"
    weight: Decimal | None = None


@dataclass(frozen=True)
class ProductionRequest:
    source_warehouse_id: UUID
    destination_warehouse_id: UUID
    raw_material_item_id: UUID
    raw_material_quantity: Decimal
    outputs: tuple[ProductionOutputRequest, ...]
    wastage_quantity: Decimal = Decimal("0")
    wastage_reason: str = DEFAULT_WASTAGE_REASON
    batch_number: str | None = None
    production_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ProductionOutput:
    line_number: int
    product_key: str
    quantity: Decimal
    unit: str
    weight: Decimal | None = None
    inventory_item_id: UUID | None = None


@dataclass(frozen=True)
class ProductionBatch:
    id: UUID
    batch_number: str
    reference_number: str
    source_warehouse_id: UUID
    destination_warehouse_id: UUID
    raw_material_item_id: UUID
    raw_material_quantity: Decimal
    outputs: tuple[ProductionOutput, ...]
    wastage_quantity: Decimal
    wastage_reason: str
    production_date: date
    notes: str | None = None

    @property
    def wastage_percentage(self) -> Decimal:
        if self.raw_material_quantity <= 0:
            return Decimal("0")
        return self.wastage_quantity / self.raw_material_quantity * 100


@dataclass(frozen=True)
class ProductionResult:
    """Committed batch plus the lines whose stock could not be posted."""
    batch: ProductionBatch
    stock_errors: PartialFailure = field(default_factory=PartialFailure)

    @property
    def fully_posted(self) -> bool:
        return not self.stock_errors
