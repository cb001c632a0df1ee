"""
Module: stock_modules.transfers.orm
Responsibility: SQLAlchemy ORM persistence for stock transfers, their item
    lines and receipt discrepancies.
Architecture position: Modules > Transfers > ORM.  Inherits from TrackedBase
    (stock_kernel.db.base).

Invariants enforced:
    - transfer_number is unique.
    - from_warehouse_id != to_warehouse_id (CHECK constraint).
    - Quantities and prices use Decimal (Numeric(38,9)).
    - Enum fields are stored as their string values.
    - Each workflow stage keeps its own actor / timestamp / note columns;
      a stage's columns are written once, when the stage happens.

Failure modes:
    - IntegrityError on a duplicate transfer_number.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.values import ZERO


class StockTransferModel(TrackedBase):
    """
    ORM model for a stock transfer between two warehouses.

    Maps to: stock_modules.transfers.models.StockTransfer (frozen dataclass).
    """

    __tablename__ = "stock_transfers"

    __table_args__ = (
        UniqueConstraint("transfer_number", name="uq_stock_transfer_number"),
        CheckConstraint(
            "from_warehouse_id <> to_warehouse_id",
            name="ck_stock_transfer_distinct_warehouses",
        ),
        Index("idx_stock_transfer_status", "status"),
        Index("idx_stock_transfer_from", "from_warehouse_id"),
        Index("idx_stock_transfer_to", "to_warehouse_id"),
    )

    transfer_number: Mapped[str] = mapped_column(String(30), nullable=False)
    transfer_type: Mapped[str] = mapped_column(String(50), nullable=False)

    from_warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False,
    )
    to_warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False,
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    total_value: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Transfer details
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    transport_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    transfer_date: Mapped[datetime] = mapped_column(nullable=False)
    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_delivery_date: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Approval
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Dispatch
    dispatched_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    dispatched_at: Mapped[datetime | None] = mapped_column(nullable=True)
    dispatch_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Receipt
    received_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(nullable=True)
    receipt_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Completion
    completed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Cancellation / rejection
    cancelled_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejected_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["StockTransferItemModel"]] = relationship(
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="StockTransferItemModel.line_number",
        lazy="selectin",
    )
    discrepancies: Mapped[list["StockTransferDiscrepancyModel"]] = relationship(
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="StockTransferDiscrepancyModel.line_number",
        lazy="selectin",
    )

    def recompute_total_value(self) -> Decimal:
        self.total_value = sum(
            (item.actual_quantity * item.unit_price for item in self.items),
            ZERO,
        )
        return self.total_value

    def to_dto(self):
        """Convert ORM model to frozen StockTransfer DTO."""
        from stock_modules.transfers.models import (
            StageStamp,
            StockTransfer,
            TransferPriority,
            TransferStatus,
            TransferType,
        )

        def stamp(actor_id, at, notes=None):
            if actor_id is None or at is None:
                return None
            return StageStamp(actor_id=actor_id, at=at, notes=notes)

        return StockTransfer(
            id=self.id,
            transfer_number=self.transfer_number,
            transfer_type=TransferType(self.transfer_type),
            from_warehouse_id=self.from_warehouse_id,
            to_warehouse_id=self.to_warehouse_id,
            status=TransferStatus(self.status),
            priority=TransferPriority(self.priority),
            items=tuple(item.to_dto() for item in self.items),
            total_value=self.total_value,
            reason=self.reason,
            transport_method=self.transport_method,
            transfer_date=self.transfer_date,
            expected_delivery_date=self.expected_delivery_date,
            actual_delivery_date=self.actual_delivery_date,
            notes=self.notes,
            requested_by=self.created_by_id,
            approval=stamp(self.approved_by_id, self.approved_at, self.approval_notes),
            dispatch=stamp(self.dispatched_by_id, self.dispatched_at, self.dispatch_notes),
            receipt=stamp(self.received_by_id, self.received_at, self.receipt_notes),
            completion=stamp(self.completed_by_id, self.actual_delivery_date),
            cancellation=stamp(self.cancelled_by_id, self.cancelled_at, self.cancellation_reason),
            rejection=stamp(self.rejected_by_id, self.rejected_at, self.rejection_reason),
            discrepancies=tuple(d.to_dto() for d in self.discrepancies),
        )

    def __repr__(self) -> str:
        return f"<StockTransferModel {self.transfer_number} [{self.status}]>"


class StockTransferItemModel(TrackedBase):
    """One line of a stock transfer."""

    __tablename__ = "stock_transfer_items"

    __table_args__ = (
        UniqueConstraint("transfer_id", "line_number", name="uq_stock_transfer_item_line"),
        CheckConstraint("requested_quantity > 0", name="ck_stock_transfer_item_requested"),
        CheckConstraint("actual_quantity >= 0", name="ck_stock_transfer_item_actual"),
        Index("idx_stock_transfer_item_inventory", "inventory_item_id"),
    )

    transfer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stock_transfers.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    inventory_item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=False,
    )
    # Destination aggregate, set when the transfer completes
    destination_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=True,
    )

    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    product_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    requested_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    actual_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    condition: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    transfer: Mapped[StockTransferModel] = relationship(back_populates="items")

    def to_dto(self):
        from stock_modules.transfers.models import ItemCondition, TransferItem
        return TransferItem(
            id=self.id,
            line_number=self.line_number,
            inventory_item_id=self.inventory_item_id,
            product_name=self.product_name,
            product_code=self.product_code,
            unit=self.unit,
            requested_quantity=self.requested_quantity,
            actual_quantity=self.actual_quantity,
            unit_price=self.unit_price,
            batch_number=self.batch_number,
            condition=ItemCondition(self.condition),
            destination_item_id=self.destination_item_id,
        )


class StockTransferDiscrepancyModel(TrackedBase):
    """Mismatch between requested and received quantity on one line."""

    __tablename__ = "stock_transfer_discrepancies"

    __table_args__ = (
        Index("idx_stock_transfer_discrepancy_transfer", "transfer_id"),
    )

    transfer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stock_transfers.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    inventory_item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    expected_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    received_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    difference: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)

    transfer: Mapped[StockTransferModel] = relationship(back_populates="discrepancies")

    def to_dto(self):
        from stock_modules.transfers.models import TransferDiscrepancy
        return TransferDiscrepancy(
            inventory_item_id=self.inventory_item_id,
            product_name=self.product_name,
            expected_quantity=self.expected_quantity,
            received_quantity=self.received_quantity,
            difference=self.difference,
            reason=self.reason,
        )
