"""
Production Cascade Processor (``stock_modules.production.service``).

Responsibility
--------------
Records a production batch and its stock effect: one ``out`` movement of
the raw material at the source warehouse, then one ``in`` movement per
output product at the destination warehouse.  Deleting a batch reverses
both directions and restores both warehouses' usage counters.

Invariants
----------
- Every movement carries reference ``<production_reference_prefix>-<batch>``.
- The batch header commits even when individual stock lines fail; each
  line posts in its own SAVEPOINT and failures come back in
  ``stock_errors``.
- The raw material aggregate must live in the source warehouse.
  Consuming more than is on hand clamps at zero (warning, not an error).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_config import StockSettings
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.results import FailureDetail, PartialFailure
from stock_kernel.domain.values import ZERO, Actor, MovementDirection
from stock_kernel.exceptions import (
    DuplicateReferenceError,
    ProductionBatchNotFoundError,
    StockKernelError,
    ValidationError,
    WarehouseMismatchError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.services.catalog_service import CatalogLookup
from stock_kernel.services.posting_service import CascadeReversal, StockPostingService
from stock_kernel.services.sequence_service import SequenceService, format_sequence_number
from stock_modules.production.models import (
    DEFAULT_WASTAGE_REASON,
    ProductionBatch,
    ProductionRequest,
    ProductionResult,
)
from stock_modules.production.orm import ProductionBatchModel, ProductionOutputModel

logger = get_logger("modules.production.service")


def _decimal(field: str, value, allow_zero: bool = False) -> Decimal:
    try:
        number = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(field, f"not a number: {value!r}") from None
    if not number.is_finite() or number < ZERO or (number == ZERO and not allow_zero):
        bound = "cannot be negative" if allow_zero else "must be greater than zero"
        raise ValidationError(field, f"{bound}, got {value}")
    return number


class ProductionService:
    """Production batch create / delete with stock cascade."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: StockSettings | None = None,
        catalog: CatalogLookup | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or StockSettings.with_defaults()
        self._posting = StockPostingService(
            session,
            self._clock,
            catalog=catalog,
            enforce_capacity=self._settings.enforce_warehouse_capacity,
            default_minimum_stock=self._settings.default_minimum_stock,
        )
        self._sequences = SequenceService(session)

    def reference_for(self, batch_number: str) -> str:
        return f"{self._settings.production_reference_prefix}-{batch_number}"

    def _generate_batch_number(self, production_date: date) -> str:
        value = self._sequences.next_value(SequenceService.PRODUCTION_BATCH)
        return format_sequence_number(
            f"{self._settings.production_batch_prefix}-{production_date:%Y%m%d}-", value, 4,
        )

    def _validate(self, request: ProductionRequest) -> tuple[Decimal, Decimal, list[Decimal]]:
        if request.source_warehouse_id is None or request.destination_warehouse_id is None:
            raise ValidationError(
                "warehouse", "source and destination warehouse are required",
            )
        raw_quantity = _decimal("raw_material_quantity", request.raw_material_quantity)
        wastage = _decimal("wastage_quantity", request.wastage_quantity, allow_zero=True)
        if not request.outputs:
            raise ValidationError("outputs", "at least one output product is required")
        quantities = []
        for index, output in enumerate(request.outputs):
            if not output.product_key or not output.product_key.strip():
                raise ValidationError(f"outputs[{index}].product_key", "is required")
            quantities.append(_decimal(f"outputs[{index}].quantity", output.quantity))
        return raw_quantity, wastage, quantities

    # =========================================================================
    # Record
    # =========================================================================

    def record_production(self, request: ProductionRequest, actor: Actor) -> ProductionResult:
        """Persist the batch, consume the raw material and receive the outputs."""
        raw_quantity, wastage, quantities = self._validate(request)

        try:
            store = self._posting.store
            store.get_warehouse(request.source_warehouse_id)
            store.get_warehouse(request.destination_warehouse_id)
            raw_item = store.get(request.raw_material_item_id)
            if raw_item.warehouse_id != request.source_warehouse_id:
                raise WarehouseMismatchError(
                    raw_item.name, request.source_warehouse_id, raw_item.warehouse_id,
                )

            production_date = request.production_date or self._clock.now().date()
            batch_number = request.batch_number or self._generate_batch_number(production_date)
            reference = self.reference_for(batch_number)
            taken = self._session.execute(
                select(ProductionBatchModel.id)
                .where(ProductionBatchModel.batch_number == batch_number)
            ).first()
            if taken is not None:
                raise DuplicateReferenceError(batch_number)

            batch = ProductionBatchModel(
                batch_number=batch_number,
                reference_number=reference,
                source_warehouse_id=request.source_warehouse_id,
                destination_warehouse_id=request.destination_warehouse_id,
                raw_material_item_id=raw_item.id,
                raw_material_quantity=raw_quantity,
                wastage_quantity=wastage,
                wastage_reason=request.wastage_reason or DEFAULT_WASTAGE_REASON,
                production_date=production_date,
                notes=request.notes,
                created_by_id=actor.actor_id,
                outputs=[
                    ProductionOutputModel(
                        line_number=i,
                        product_key=output.product_key.strip(),
                        quantity=quantity,
                        unit=output.unit,
                        weight=output.weight,
                        created_by_id=actor.actor_id,
                    )
                    for i, (output, quantity) in enumerate(
                        zip(request.outputs, quantities), start=1,
                    )
                ],
            )
            self._session.add(batch)
            self._session.flush()

            with LogContext.bind(actor_id=actor.actor_id, reference_number=reference):
                logger.info(
                    "production_batch_recorded",
                    extra={
                        "batch_number": batch_number,
                        "raw_material_quantity": str(raw_quantity),
                        "output_count": len(batch.outputs),
                    },
                )
                failures = self._post_stock(batch, actor)

            self._session.commit()
            return ProductionResult(
                batch=batch.to_dto(),
                stock_errors=PartialFailure(tuple(failures)),
            )
        except Exception:
            self._session.rollback()
            raise

    def _post_stock(self, batch: ProductionBatchModel, actor: Actor) -> list[FailureDetail]:
        reason = f"Production - {batch.batch_number}"
        failures: list[FailureDetail] = []

        try:
            with self._session.begin_nested():
                self._posting.post_outbound(
                    inventory_item_id=batch.raw_material_item_id,
                    quantity=batch.raw_material_quantity,
                    reason=reason,
                    reference_number=batch.reference_number,
                    actor_id=actor.actor_id,
                    warehouse_id=batch.source_warehouse_id,
                )
        except (StockKernelError, SQLAlchemyError) as exc:
            logger.warning(
                "production_raw_material_failed",
                extra={"raw_material_item_id": str(batch.raw_material_item_id)},
                exc_info=True,
            )
            failures.append(
                FailureDetail.from_exception(
                    "raw_material", exc, subject_id=batch.raw_material_item_id,
                )
            )

        for output in batch.outputs:
            try:
                with self._session.begin_nested():
                    posting = self._posting.post_inbound(
                        warehouse_id=batch.destination_warehouse_id,
                        product_key=output.product_key,
                        quantity=output.quantity,
                        reason=reason,
                        reference_number=batch.reference_number,
                        actor_id=actor.actor_id,
                        unit=output.unit,
                    )
                    output.inventory_item_id = posting.append.inventory_item_id
                    self._session.flush()
            except (StockKernelError, SQLAlchemyError) as exc:
                logger.warning(
                    "production_output_failed",
                    extra={
                        "line_number": output.line_number,
                        "product_key": output.product_key,
                    },
                    exc_info=True,
                )
                failures.append(FailureDetail.from_exception(output.product_key, exc))

        return failures

    # =========================================================================
    # Delete
    # =========================================================================

    def delete_production(self, batch_id: UUID, actor: Actor) -> CascadeReversal:
        """Reverse the batch's outputs and raw-material consumption, then delete it."""
        try:
            batch = self._session.get(ProductionBatchModel, batch_id)
            if batch is None:
                raise ProductionBatchNotFoundError(batch_id)

            with LogContext.bind(
                actor_id=actor.actor_id, reference_number=batch.reference_number,
            ):
                reversal = self._posting.reverse_reference(
                    batch.reference_number,
                    actor.actor_id,
                    directions=(MovementDirection.IN, MovementDirection.OUT),
                )
                self._session.delete(batch)
                self._session.flush()
                logger.info(
                    "production_batch_deleted",
                    extra={
                        "batch_id": str(batch_id),
                        "reversed_count": len(reversal.reversed),
                        "error_count": len(reversal.reversal_errors),
                    },
                )

            self._session.commit()
            return reversal
        except Exception:
            self._session.rollback()
            raise

    def get_batch(self, batch_id: UUID) -> ProductionBatch:
        batch = self._session.get(ProductionBatchModel, batch_id)
        if batch is None:
            raise ProductionBatchNotFoundError(batch_id)
        return batch.to_dto()
