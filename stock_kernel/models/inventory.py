"""
Module: stock_kernel.models.inventory
Responsibility: ORM persistence for inventory aggregates -- the cached,
    per-warehouse stock level of one product (or one named item without a
    catalog link).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - current_stock >= 0 at all times.
    - current_stock is a materialised view of the stock ledger: after a
      reconciliation it equals the ledger replay for this aggregate.
    - status is derived from current_stock vs minimum_stock, except that
      Discontinued is an explicit override.
    - One aggregate per (product, warehouse) when product_id is set.
    - Never deleted while movements reference it.

Failure modes:
    - IntegrityError on a second aggregate for the same (product, warehouse).
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.values import ZERO, InventoryStatus

if TYPE_CHECKING:
    from stock_kernel.models.product import Product
    from stock_kernel.models.warehouse import Warehouse


class InventoryItem(TrackedBase):
    """Cached stock level of one item in one warehouse."""

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_product_warehouse"),
        Index("idx_inventory_warehouse", "warehouse_id"),
        Index("idx_inventory_status", "status"),
        Index("idx_inventory_name", "name"),
    )

    product_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=True,
    )
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    # Denormalised from the catalog at creation
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="kg")
    unit_price: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    current_stock: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    minimum_stock: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=InventoryStatus.OUT_OF_STOCK.value,
    )
    last_updated: Mapped[datetime | None] = mapped_column(nullable=True)

    product: Mapped["Product | None"] = relationship()
    warehouse: Mapped["Warehouse"] = relationship()

    def __repr__(self) -> str:
        return f"<InventoryItem {self.name} @ {self.warehouse_id}: {self.current_stock}>"
