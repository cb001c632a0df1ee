"""
WarehouseCapacityTracker -- per-warehouse usage counter.

Responsibility:
    Keeps ``Warehouse.current_usage`` in step with the stock ledger:
    incremented on inbound movements, decremented on outbound movements and
    reversals.  Optionally refuses inbound quantities that would exceed a
    warehouse's declared ``total_capacity``.

Architecture position:
    Kernel > Services.  Called by cascade processors and the transfer
    workflow right after the ledger append/reverse.  Flushes, never commits.

Invariants enforced:
    - current_usage >= 0; decrements past zero clamp and log a warning.
    - The counter is derived data and can be rebuilt from the ledger
      (see ReconciliationService.recalculate_warehouse_usage).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.values import ZERO, MovementDirection
from stock_kernel.exceptions import CapacityExceededError, WarehouseNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.warehouse import Warehouse

logger = get_logger("services.capacity")


class WarehouseCapacityTracker:
    """Maintains warehouse usage counters."""

    def __init__(self, session: Session, enforce_capacity: bool = False):
        self._session = session
        self._enforce_capacity = enforce_capacity

    def _locked(self, warehouse_id: UUID) -> Warehouse:
        warehouse = self._session.execute(
            select(Warehouse)
            .where(Warehouse.id == warehouse_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if warehouse is None:
            raise WarehouseNotFoundError(warehouse_id)
        return warehouse

    def ensure_capacity(self, warehouse_id: UUID, quantity: Decimal) -> None:
        """
        Raise CapacityExceededError if ``quantity`` does not fit.

        No-op unless enforcement is enabled and the warehouse declares a
        total capacity.
        """
        if not self._enforce_capacity:
            return
        warehouse = self._session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(warehouse_id)
        available = warehouse.available_capacity
        if available is not None and quantity > available:
            raise CapacityExceededError(
                warehouse=warehouse.name,
                available_capacity=available,
                requested=quantity,
            )

    def increment(self, warehouse_id: UUID, quantity: Decimal) -> Decimal:
        warehouse = self._locked(warehouse_id)
        warehouse.current_usage = (warehouse.current_usage or ZERO) + quantity
        self._session.flush()
        logger.debug(
            "warehouse_usage_incremented",
            extra={
                "warehouse_id": str(warehouse_id),
                "quantity": str(quantity),
                "current_usage": str(warehouse.current_usage),
            },
        )
        return warehouse.current_usage

    def decrement(self, warehouse_id: UUID, quantity: Decimal) -> Decimal:
        warehouse = self._locked(warehouse_id)
        remaining = (warehouse.current_usage or ZERO) - quantity
        if remaining < ZERO:
            logger.warning(
                "warehouse_usage_clamped",
                extra={
                    "warehouse_id": str(warehouse_id),
                    "quantity": str(quantity),
                    "current_usage": str(warehouse.current_usage),
                },
            )
            remaining = ZERO
        warehouse.current_usage = remaining
        self._session.flush()
        logger.debug(
            "warehouse_usage_decremented",
            extra={
                "warehouse_id": str(warehouse_id),
                "quantity": str(quantity),
                "current_usage": str(warehouse.current_usage),
            },
        )
        return warehouse.current_usage

    def record(
        self,
        warehouse_id: UUID,
        direction: MovementDirection,
        quantity: Decimal,
    ) -> Decimal:
        """Apply a ledger movement's effect on usage."""
        if MovementDirection(direction) == MovementDirection.IN:
            return self.increment(warehouse_id, quantity)
        return self.decrement(warehouse_id, quantity)

    def release(
        self,
        warehouse_id: UUID,
        direction: MovementDirection,
        quantity: Decimal,
    ) -> Decimal:
        """Undo a movement's effect on usage, as part of a reversal."""
        if MovementDirection(direction) == MovementDirection.IN:
            return self.decrement(warehouse_id, quantity)
        return self.increment(warehouse_id, quantity)

    def set_usage(self, warehouse_id: UUID, usage: Decimal) -> Decimal:
        warehouse = self._locked(warehouse_id)
        warehouse.current_usage = max(ZERO, usage)
        self._session.flush()
        return warehouse.current_usage
