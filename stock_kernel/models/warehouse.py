"""
Module: stock_kernel.models.warehouse
Responsibility: ORM persistence for warehouses and their capacity counter.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - current_usage >= 0.  It is a derived counter maintained by the
      capacity tracker and rebuildable from the stock ledger.
    - total_capacity is optional; a warehouse without it is unbounded.

Failure modes:
    - IntegrityError on a duplicate warehouse_number.
"""

from decimal import Decimal

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase
from stock_kernel.domain.values import ZERO, WarehouseStatus


class Warehouse(TrackedBase):
    """A physical stock location."""

    __tablename__ = "warehouses"

    __table_args__ = (
        UniqueConstraint("warehouse_number", name="uq_warehouse_number"),
        Index("idx_warehouse_status", "status"),
    )

    warehouse_number: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=WarehouseStatus.ACTIVE.value,
    )

    total_capacity: Mapped[Decimal | None] = mapped_column(nullable=True)
    capacity_unit: Mapped[str] = mapped_column(String(20), nullable=False, default="kg")
    current_usage: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    @property
    def is_active(self) -> bool:
        return self.status == WarehouseStatus.ACTIVE.value

    @property
    def available_capacity(self) -> Decimal | None:
        if self.total_capacity is None:
            return None
        return max(ZERO, self.total_capacity - (self.current_usage or ZERO))

    def __repr__(self) -> str:
        return f"<Warehouse {self.warehouse_number}: {self.name}>"
