"""
Module: stock_modules.purchasing.orm
Responsibility: SQLAlchemy ORM persistence for purchase headers and their
    ordered lines.
Architecture position: Modules > Purchasing > ORM.  Inherits from TrackedBase.

Invariants enforced:
    - purchase_number is unique; it is also the stock ledger reference for
      every movement the purchase posts.
    - Lines keep their submitted order (line_number).
    - inventory_item_id on a line is set only once its stock is posted.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.values import ZERO


class PurchaseModel(TrackedBase):
    """Maps to: stock_modules.purchasing.models.Purchase."""

    __tablename__ = "purchases"

    __table_args__ = (
        UniqueConstraint("purchase_number", name="uq_purchase_number"),
        Index("idx_purchase_warehouse", "warehouse_id"),
        Index("idx_purchase_date", "purchase_date"),
    )

    purchase_number: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier_name: Mapped[str] = mapped_column(String(200), nullable=False)
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False,
    )
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["PurchaseLineModel"]] = relationship(
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseLineModel.line_number",
        lazy="selectin",
    )

    def to_dto(self):
        from stock_modules.purchasing.models import Purchase
        return Purchase(
            id=self.id,
            purchase_number=self.purchase_number,
            supplier_name=self.supplier_name,
            warehouse_id=self.warehouse_id,
            purchase_date=self.purchase_date,
            lines=tuple(line.to_dto() for line in self.lines),
            total_amount=self.total_amount,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<PurchaseModel {self.purchase_number}>"


class PurchaseLineModel(TrackedBase):
    __tablename__ = "purchase_lines"

    __table_args__ = (
        UniqueConstraint("purchase_id", "line_number", name="uq_purchase_line_number"),
        CheckConstraint("quantity > 0", name="ck_purchase_line_quantity"),
    )

    purchase_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("purchases.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_key: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_price: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    inventory_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=True,
    )

    purchase: Mapped[PurchaseModel] = relationship(back_populates="lines")

    def to_dto(self):
        from stock_modules.purchasing.models import PurchaseLine
        return PurchaseLine(
            line_number=self.line_number,
            product_key=self.product_key,
            quantity=self.quantity,
            unit=self.unit,
            unit_price=self.unit_price,
            total_price=self.total_price,
            inventory_item_id=self.inventory_item_id,
        )
