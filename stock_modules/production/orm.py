"""
Module: stock_modules.production.orm
Responsibility: SQLAlchemy ORM persistence for production batches and their
    ordered outputs.
Architecture position: Modules > Production > ORM.  Inherits from TrackedBase.

Invariants enforced:
    - batch_number is unique.  The ledger reference of every movement the
      batch posts is ``<production_reference_prefix>-<batch_number>``, stored
      in reference_number.
    - raw_material_quantity > 0, wastage_quantity >= 0.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.values import ZERO


class ProductionBatchModel(TrackedBase):
    """Maps to: stock_modules.production.models.ProductionBatch."""

    __tablename__ = "production_batches"

    __table_args__ = (
        UniqueConstraint("batch_number", name="uq_production_batch_number"),
        CheckConstraint("raw_material_quantity > 0", name="ck_production_raw_quantity"),
        CheckConstraint("wastage_quantity >= 0", name="ck_production_wastage"),
    )

    batch_number: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_number: Mapped[str] = mapped_column(String(60), nullable=False, index=True)
    source_warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False,
    )
    destination_warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False,
    )
    raw_material_item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=False,
    )
    raw_material_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    wastage_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    wastage_reason: Mapped[str] = mapped_column(String(200), nullable=False)
    production_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    outputs: Mapped[list["ProductionOutputModel"]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="ProductionOutputModel.line_number",
        lazy="selectin",
    )

    def to_dto(self):
        from stock_modules.production.models import ProductionBatch
        return ProductionBatch(
            id=self.id,
            batch_number=self.batch_number,
            reference_number=self.reference_number,
            source_warehouse_id=self.source_warehouse_id,
            destination_warehouse_id=self.destination_warehouse_id,
            raw_material_item_id=self.raw_material_item_id,
            raw_material_quantity=self.raw_material_quantity,
            outputs=tuple(output.to_dto() for output in self.outputs),
            wastage_quantity=self.wastage_quantity,
            wastage_reason=self.wastage_reason,
            production_date=self.production_date,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<ProductionBatchModel {self.batch_number}>"


class ProductionOutputModel(TrackedBase):
    __tablename__ = "production_outputs"

    __table_args__ = (
        UniqueConstraint("batch_id", "line_number", name="uq_production_output_line"),
        CheckConstraint("quantity > 0", name="ck_production_output_quantity"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("production_batches.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_key: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    weight: Mapped[Decimal | None] = mapped_column(nullable=True)
    inventory_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=True,
    )

    batch: Mapped[ProductionBatchModel] = relationship(back_populates="outputs")

    def to_dto(self):
        from stock_modules.production.models import ProductionOutput
        return ProductionOutput(
            line_number=self.line_number,
            product_key=self.product_key,
            quantity=self.quantity,
            unit=self.unit,
            weight=self.weight,
            inventory_item_id=self.inventory_item_id,
        )
