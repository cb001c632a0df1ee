"""
StockPostingService -- ledger + capacity posting shared by cascade processors.

Responsibility:
    The steps every document-driven processor (purchases, production,
    manual adjustments) repeats: resolve the aggregate an inbound line lands
    on, check and update warehouse capacity, append the movement, and on
    deletion reverse everything posted under a reference number while
    isolating per-movement failures.

Architecture position:
    Kernel > Services.  Composes InventoryStore, StockLedger,
    WarehouseCapacityTracker and a CatalogLookup.  Flushes, never commits.

Invariants enforced:
    - Capacity is checked before the movement is appended and updated right
      after it, in the same unit of work.
    - ``reverse_reference`` corrects each movement in its own SAVEPOINT: one
      failing correction is recorded and the rest still run.
    - Reversed movement rows are always deleted, corrected or not.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.resolution import ResolutionSource
from stock_kernel.domain.results import FailureDetail, PartialFailure
from stock_kernel.domain.values import MovementDirection
from stock_kernel.exceptions import StockKernelError
from stock_kernel.logging_config import get_logger
from stock_kernel.services.capacity_service import WarehouseCapacityTracker
from stock_kernel.services.catalog_service import CatalogLookup, ProductCatalog
from stock_kernel.services.inventory_store import InventoryStore
from stock_kernel.services.ledger_service import (
    AppendResult,
    MovementSpec,
    ReversedMovement,
    StockLedger,
)

logger = get_logger("services.posting")


@dataclass(frozen=True)
class InboundPosting:
    append: AppendResult
    resolution: ResolutionSource
    product_id: UUID | None


@dataclass(frozen=True)
class CascadeReversal:
    """Everything undone for one reference number, plus what could not be."""
    reference_number: str
    reversed: tuple[ReversedMovement, ...] = field(default_factory=tuple)
    reversal_errors: PartialFailure = field(default_factory=PartialFailure)

    @property
    def discrepancies(self) -> tuple[ReversedMovement, ...]:
        """Reversals that found the stock already consumed downstream."""
        return tuple(r for r in self.reversed if r.stock_already_consumed)


class StockPostingService:
    """Posts and reverses document-driven stock movements."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        catalog: CatalogLookup | None = None,
        enforce_capacity: bool = False,
        default_minimum_stock: Decimal = Decimal("10"),
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._catalog = catalog or ProductCatalog(session)
        self.store = InventoryStore(session, self._clock, default_minimum_stock)
        self.ledger = StockLedger(session, self._clock, self.store)
        self.capacity = WarehouseCapacityTracker(session, enforce_capacity)

    def post_inbound(
        self,
        *,
        warehouse_id: UUID,
        product_key: str,
        quantity: Decimal,
        reason: str,
        reference_number: str,
        actor_id: UUID,
        unit: str | None = None,
        unit_price: Decimal | None = None,
    ) -> InboundPosting:
        """Resolve (or create) the aggregate for ``product_key`` and post an ``in``."""
        self.capacity.ensure_capacity(warehouse_id, quantity)

        product = self._catalog.find_by_name(product_key)
        item, resolution = self.store.resolve_for_inbound(
            warehouse_id=warehouse_id,
            name=product_key,
            actor_id=actor_id,
            product=product,
            unit=unit,
            unit_price=unit_price,
        )
        result = self.ledger.append(
            MovementSpec(
                inventory_item_id=item.id,
                direction=MovementDirection.IN,
                quantity=quantity,
                reason=reason,
                reference_number=reference_number,
                warehouse_id=warehouse_id,
            ),
            actor_id,
        )
        self.capacity.increment(warehouse_id, quantity)
        return InboundPosting(
            append=result,
            resolution=resolution,
            product_id=product.id if product is not None else None,
        )

    def post_outbound(
        self,
        *,
        inventory_item_id: UUID,
        quantity: Decimal,
        reason: str,
        reference_number: str,
        actor_id: UUID,
        warehouse_id: UUID | None = None,
    ) -> AppendResult:
        result = self.ledger.append(
            MovementSpec(
                inventory_item_id=inventory_item_id,
                direction=MovementDirection.OUT,
                quantity=quantity,
                reason=reason,
                reference_number=reference_number,
                warehouse_id=warehouse_id,
            ),
            actor_id,
        )
        self.capacity.decrement(result.warehouse_id, quantity)
        return result

    def reverse_reference(
        self,
        reference_number: str,
        actor_id: UUID,
        directions: tuple[MovementDirection, ...] = (MovementDirection.IN,),
    ) -> CascadeReversal:
        """
        Reverse every movement under ``reference_number``.

        Each movement's aggregate and capacity correction runs in its own
        savepoint.  A failed correction is rolled back and recorded, and the
        movement row is deleted anyway so that reconciliation rebuilds the
        aggregate without it.
        """
        targets = [
            (m.id, m.inventory_item_id)
            for direction in directions
            for m in self.ledger.movements_for_reference(reference_number, direction)
        ]

        reversed_: list[ReversedMovement] = []
        failures: list[FailureDetail] = []
        for movement_id, item_id in targets:
            try:
                with self._session.begin_nested():
                    outcome = self.ledger.undo_movement_effect(movement_id, actor_id)
                    self.capacity.release(
                        outcome.warehouse_id, outcome.direction, outcome.quantity,
                    )
                reversed_.append(outcome)
            except (StockKernelError, SQLAlchemyError) as exc:
                logger.warning(
                    "movement_correction_failed",
                    extra={
                        "movement_id": str(movement_id),
                        "reference_number": reference_number,
                    },
                    exc_info=True,
                )
                failures.append(
                    FailureDetail.from_exception(str(item_id), exc, subject_id=movement_id)
                )

            try:
                with self._session.begin_nested():
                    self.ledger.delete_movement(movement_id)
            except (StockKernelError, SQLAlchemyError) as exc:
                logger.error(
                    "movement_delete_failed",
                    extra={
                        "movement_id": str(movement_id),
                        "reference_number": reference_number,
                    },
                    exc_info=True,
                )
                failures.append(
                    FailureDetail.from_exception(str(item_id), exc, subject_id=movement_id)
                )

        cascade = CascadeReversal(
            reference_number=reference_number,
            reversed=tuple(reversed_),
            reversal_errors=PartialFailure(tuple(failures)),
        )
        logger.info(
            "cascade_reversal_completed",
            extra={
                "reference_number": reference_number,
                "reversed_count": len(cascade.reversed),
                "discrepancy_count": len(cascade.discrepancies),
                "error_count": len(cascade.reversal_errors),
            },
        )
        return cascade
