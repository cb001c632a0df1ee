"""
StockSelector -- read-only stock queries for reporting consumers.

Movement history per item or reference, stock listings per warehouse, and
the low-stock / out-of-stock lists that drive reorder alerts.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.values import InventoryStatus, MovementDirection
from stock_kernel.models.inventory import InventoryItem
from stock_kernel.models.movement import StockMovement
from stock_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class InventoryItemDTO:
    id: UUID
    name: str
    code: str | None
    warehouse_id: UUID
    product_id: UUID | None
    unit: str
    current_stock: Decimal
    minimum_stock: Decimal
    status: InventoryStatus
    last_updated: datetime | None


@dataclass(frozen=True)
class MovementDTO:
    id: UUID
    seq: int
    inventory_item_id: UUID
    warehouse_id: UUID
    direction: MovementDirection
    quantity: Decimal
    reason: str
    reference_number: str | None
    created_at: datetime
    created_by_id: UUID


class StockSelector(BaseSelector[InventoryItem]):
    """Read-only queries over aggregates and movements."""

    def __init__(self, session: Session):
        super().__init__(session)

    @staticmethod
    def _item_dto(item: InventoryItem) -> InventoryItemDTO:
        return InventoryItemDTO(
            id=item.id,
            name=item.name,
            code=item.code,
            warehouse_id=item.warehouse_id,
            product_id=item.product_id,
            unit=item.unit,
            current_stock=item.current_stock,
            minimum_stock=item.minimum_stock,
            status=InventoryStatus(item.status),
            last_updated=item.last_updated,
        )

    @staticmethod
    def _movement_dto(movement: StockMovement) -> MovementDTO:
        return MovementDTO(
            id=movement.id,
            seq=movement.seq,
            inventory_item_id=movement.inventory_item_id,
            warehouse_id=movement.warehouse_id,
            direction=MovementDirection(movement.direction),
            quantity=movement.quantity,
            reason=movement.reason,
            reference_number=movement.reference_number,
            created_at=movement.created_at,
            created_by_id=movement.created_by_id,
        )

    def get_item(self, inventory_item_id: UUID) -> InventoryItemDTO | None:
        item = self.session.get(InventoryItem, inventory_item_id)
        return self._item_dto(item) if item is not None else None

    def warehouse_stock(self, warehouse_id: UUID) -> list[InventoryItemDTO]:
        items = self.session.execute(
            select(InventoryItem)
            .where(InventoryItem.warehouse_id == warehouse_id)
            .order_by(InventoryItem.name)
        ).scalars()
        return [self._item_dto(i) for i in items]

    def items_with_status(
        self,
        status: InventoryStatus,
        warehouse_id: UUID | None = None,
    ) -> list[InventoryItemDTO]:
        stmt = (
            select(InventoryItem)
            .where(InventoryItem.status == status.value)
            .order_by(InventoryItem.name)
        )
        if warehouse_id is not None:
            stmt = stmt.where(InventoryItem.warehouse_id == warehouse_id)
        return [self._item_dto(i) for i in self.session.execute(stmt).scalars()]

    def low_stock(self, warehouse_id: UUID | None = None) -> list[InventoryItemDTO]:
        return self.items_with_status(InventoryStatus.LOW_STOCK, warehouse_id)

    def out_of_stock(self, warehouse_id: UUID | None = None) -> list[InventoryItemDTO]:
        return self.items_with_status(InventoryStatus.OUT_OF_STOCK, warehouse_id)

    def movement_history(
        self,
        inventory_item_id: UUID,
        limit: int | None = None,
    ) -> list[MovementDTO]:
        """Movements for one item, newest first."""
        stmt = (
            select(StockMovement)
            .where(StockMovement.inventory_item_id == inventory_item_id)
            .order_by(StockMovement.seq.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [self._movement_dto(m) for m in self.session.execute(stmt).scalars()]

    def movements_by_reference(self, reference_number: str) -> list[MovementDTO]:
        movements = self.session.execute(
            select(StockMovement)
            .where(StockMovement.reference_number == reference_number)
            .order_by(StockMovement.seq)
        ).scalars()
        return [self._movement_dto(m) for m in movements]
