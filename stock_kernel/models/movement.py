"""
Module: stock_kernel.models.movement
Responsibility: ORM persistence for stock movements -- the append-only ledger
    that is the source of truth for every stock level.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - quantity > 0 (CHECK constraint); direction in {in, out}.
    - seq is strictly monotonic in insertion order (UNIQUE, allocated by
      SequenceService).  Replay orders by seq.
    - Rows are never updated.  The only destructive operation is deletion
      during a cascade reversal by reference_number.

Failure modes:
    - IntegrityError on a duplicate seq or a non-positive quantity.
"""

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from stock_kernel.models.inventory import InventoryItem


class StockMovement(TrackedBase):
    """One signed quantity change for one aggregate."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_stock_movement_seq"),
        CheckConstraint("quantity > 0", name="ck_stock_movement_quantity_positive"),
        CheckConstraint("direction IN ('in', 'out')", name="ck_stock_movement_direction"),
        Index("idx_movement_item_seq", "inventory_item_id", "seq"),
        Index("idx_movement_reference", "reference_number"),
        Index("idx_movement_warehouse", "warehouse_id"),
    )

    seq: Mapped[int] = mapped_column(nullable=False)

    inventory_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    direction: Mapped[str] = mapped_column(String(3), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(200), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    inventory_item: Mapped["InventoryItem"] = relationship()

    def __repr__(self) -> str:
        return (
            f"<StockMovement #{self.seq} {self.direction} {self.quantity} "
            f"ref={self.reference_number}>"
        )
