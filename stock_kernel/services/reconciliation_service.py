"""
ReconciliationService -- rebuild cached aggregates from the stock ledger.

Responsibility:
    Treats every inventory aggregate (and every warehouse usage counter) as a
    materialised view of the movement ledger and overwrites it with a fresh
    replay.  Used for drift repair, migrations and the one-shot
    ``scripts/reconcile_stock.py`` command.

Architecture position:
    Kernel > Services.  Consumes StockLedger, InventoryStore and
    WarehouseCapacityTracker.  Flushes, never commits.

Invariants enforced:
    - Idempotent and overwrite-only: running it twice is a no-op the second
      time.
    - An aggregate with no movements keeps its current_stock untouched
      (legacy rows seeded outside the ledger); only its status is re-derived.
    - Discontinued is preserved unless ``override_discontinued`` is set.
    - Batch runs isolate each aggregate in a SAVEPOINT; a failure is
      recorded and the batch moves on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.results import FailureDetail, PartialFailure
from stock_kernel.domain.values import ZERO
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import InventoryItem
from stock_kernel.models.warehouse import Warehouse
from stock_kernel.services.capacity_service import WarehouseCapacityTracker
from stock_kernel.services.inventory_store import InventoryStore
from stock_kernel.services.ledger_service import StockLedger

logger = get_logger("services.reconciliation")


@dataclass(frozen=True)
class ReconciliationSummary:
    """Outcome of a batch rebuild."""

    total: int
    updated: int
    failures: PartialFailure = field(default_factory=PartialFailure)

    @property
    def errors(self) -> int:
        return len(self.failures)

    @property
    def success(self) -> bool:
        return not self.failures


class ReconciliationService:
    """
    Rebuilds aggregates and warehouse usage from the ledger.

    Usage:
        with session_scope() as session:
            summary = ReconciliationService(session).recalculate_all()
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        override_discontinued: bool = False,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._override_discontinued = override_discontinued
        self._store = InventoryStore(session, self._clock)
        self._ledger = StockLedger(session, self._clock, self._store)
        self._capacity = WarehouseCapacityTracker(session)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def recalculate_one(self, inventory_item_id: UUID) -> InventoryItem:
        """Overwrite one aggregate with its ledger replay and re-derive status."""
        item = self._store.get_for_update(inventory_item_id)
        previous = item.current_stock

        if self._ledger.has_movements(item.id):
            balance = self._ledger.compute_balance(item.id)
        else:
            balance = item.current_stock

        self._store.set_stock(
            item,
            balance,
            preserve_discontinued=not self._override_discontinued,
        )

        if previous != item.current_stock:
            logger.info(
                "inventory_item_reconciled",
                extra={
                    "inventory_item_id": str(item.id),
                    "previous_stock": str(previous),
                    "current_stock": str(item.current_stock),
                    "status": item.status,
                },
            )
        return item

    def recalculate_all(self) -> ReconciliationSummary:
        """Rebuild every aggregate; failures are collected, never fatal."""
        rows = self._session.execute(
            select(InventoryItem.id, InventoryItem.name)
            .order_by(InventoryItem.name, InventoryItem.id)
        ).all()

        logger.info("reconciliation_started", extra={"total": len(rows)})

        updated = 0
        failures: list[FailureDetail] = []
        for item_id, item_name in rows:
            try:
                with self._session.begin_nested():
                    self.recalculate_one(item_id)
                updated += 1
            except Exception as exc:
                logger.warning(
                    "inventory_item_reconciliation_failed",
                    extra={"inventory_item_id": str(item_id), "item_name": item_name},
                    exc_info=True,
                )
                failures.append(
                    FailureDetail.from_exception(item_name, exc, subject_id=item_id)
                )

        summary = ReconciliationSummary(
            total=len(rows),
            updated=updated,
            failures=PartialFailure(tuple(failures)),
        )
        logger.info(
            "reconciliation_completed",
            extra={
                "total": summary.total,
                "updated": summary.updated,
                "errors": summary.errors,
            },
        )
        return summary

    # ------------------------------------------------------------------
    # Warehouse usage
    # ------------------------------------------------------------------

    def _ledger_usage(self, warehouse_id: UUID) -> Decimal:
        item_ids = self._session.execute(
            select(InventoryItem.id).where(InventoryItem.warehouse_id == warehouse_id)
        ).scalars().all()

        usage = ZERO
        for item_id in item_ids:
            if self._ledger.has_movements(item_id):
                usage += self._ledger.compute_balance(item_id)
            else:
                usage += self._store.get(item_id).current_stock
        return usage

    def recalculate_warehouse_usage(self, warehouse_id: UUID) -> Decimal:
        """Overwrite a warehouse's usage counter with the sum of its item balances."""
        usage = self._capacity.set_usage(warehouse_id, self._ledger_usage(warehouse_id))
        logger.info(
            "warehouse_usage_reconciled",
            extra={"warehouse_id": str(warehouse_id), "current_usage": str(usage)},
        )
        return usage

    def recalculate_all_warehouse_usage(self) -> ReconciliationSummary:
        rows = self._session.execute(
            select(Warehouse.id, Warehouse.name).order_by(Warehouse.warehouse_number)
        ).all()

        updated = 0
        failures: list[FailureDetail] = []
        for warehouse_id, warehouse_name in rows:
            try:
                with self._session.begin_nested():
                    self.recalculate_warehouse_usage(warehouse_id)
                updated += 1
            except Exception as exc:
                logger.warning(
                    "warehouse_usage_reconciliation_failed",
                    extra={"warehouse_id": str(warehouse_id)},
                    exc_info=True,
                )
                failures.append(
                    FailureDetail.from_exception(warehouse_name, exc, subject_id=warehouse_id)
                )

        return ReconciliationSummary(
            total=len(rows),
            updated=updated,
            failures=PartialFailure(tuple(failures)),
        )
