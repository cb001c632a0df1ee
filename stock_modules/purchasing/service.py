"""
Purchase Cascade Processor (``stock_modules.purchasing.service``).

Responsibility
--------------
Turns a purchase document into stock: the header is persisted first, then
each line posts an ``in`` movement onto the aggregate the resolution policy
picks (created on first receipt).  Deleting a purchase reverses every
movement it posted and then deletes the header.

Invariants
----------
- Structural validation (lines present, quantities positive, warehouse
  resolvable, purchase number unused) runs before any write and raises.
- Per-line stock failures never roll back the header: each line posts in
  its own SAVEPOINT and failures are returned in ``stock_errors``.
- The purchase number is the ledger reference of every movement posted.
- Each public method owns its transaction: commit on success, rollback on
  failure.

Failure Modes
-------------
- ``ValidationError`` / ``DuplicateReferenceError`` / ``WarehouseNotFoundError``
  abort before any write.
- ``PurchaseNotFoundError`` on delete of an unknown purchase.
- Per-line ``CapacityExceededError`` and database errors are collected.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import NamedTuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_config import StockSettings
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.resolution import resolve_warehouse
from stock_kernel.domain.results import FailureDetail, PartialFailure
from stock_kernel.domain.values import ZERO, Actor
from stock_kernel.exceptions import (
    DuplicateReferenceError,
    PurchaseNotFoundError,
    StockKernelError,
    ValidationError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.services.catalog_service import CatalogLookup
from stock_kernel.services.posting_service import CascadeReversal, StockPostingService
from stock_kernel.services.sequence_service import SequenceService
from stock_modules.purchasing.models import (
    PurchaseLineRequest,
    PurchaseRequest,
    PurchaseResult,
)
from stock_modules.purchasing.orm import PurchaseLineModel, PurchaseModel

logger = get_logger("modules.purchasing.service")


class _ValidLine(NamedTuple):
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal


def _as_decimal(field: str, value) -> Decimal:
    try:
        # str() keeps floats at their printed value (2.5, not a binary expansion)
        number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(field, f"not a number: {value!r}") from None
    if not number.is_finite():
        raise ValidationError(field, f"not a finite number: {value!r}")
    return number


def _validate_line(index: int, line: PurchaseLineRequest) -> _ValidLine:
    prefix = f"lines[{index}]"
    if not line.product_key or not line.product_key.strip():
        raise ValidationError(f"{prefix}.product_key", "is required")
    quantity = _as_decimal(f"{prefix}.quantity", line.quantity)
    if quantity <= ZERO:
        raise ValidationError(
            f"{prefix}.quantity", f"must be greater than zero, got {line.quantity}",
        )
    unit_price = _as_decimal(f"{prefix}.unit_price", line.unit_price)
    if unit_price < ZERO:
        raise ValidationError(f"{prefix}.unit_price", "cannot be negative")
    if line.total_price is not None:
        total_price = _as_decimal(f"{prefix}.total_price", line.total_price)
    else:
        total_price = quantity * unit_price
    return _ValidLine(quantity, unit_price, total_price)


class PurchaseService:
    """
    Purchase create / delete with stock cascade.

    Usage::

        service = PurchaseService(session, clock=clock, settings=settings)
        result = service.create_purchase(request, actor)
        if result.stock_errors:
            notify(result.stock_errors)
    """

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

    def _generate_number(self, purchase_date: date) -> str:
        value = self._sequences.next_value(SequenceService.PURCHASE)
        return (
            f"{self._settings.purchase_number_prefix}-"
            f"{purchase_date:%Y%m%d}-{value:04d}"
        )

    def _number_taken(self, purchase_number: str) -> bool:
        return self._session.execute(
            select(PurchaseModel.id)
            .where(PurchaseModel.purchase_number == purchase_number)
        ).first() is not None

    # =========================================================================
    # Create
    # =========================================================================

    def create_purchase(self, request: PurchaseRequest, actor: Actor) -> PurchaseResult:
        """Persist the purchase, then post stock for each line."""
        if not request.lines:
            raise ValidationError("lines", "at least one line is required")
        if not request.supplier_name or not request.supplier_name.strip():
            raise ValidationError("supplier_name", "is required")
        validated = [_validate_line(i, line) for i, line in enumerate(request.lines)]

        try:
            warehouse_id = resolve_warehouse(
                request.warehouse_id, self._settings.default_warehouse_id,
            )
            self._posting.store.get_warehouse(warehouse_id)

            purchase_date = request.purchase_date or self._clock.now().date()
            number = request.purchase_number or self._generate_number(purchase_date)
            if self._number_taken(number):
                raise DuplicateReferenceError(number)

            header = PurchaseModel(
                purchase_number=number,
                supplier_name=request.supplier_name.strip(),
                warehouse_id=warehouse_id,
                purchase_date=purchase_date,
                notes=request.notes,
                created_by_id=actor.actor_id,
                lines=[
                    PurchaseLineModel(
                        line_number=i,
                        product_key=line.product_key.strip(),
                        quantity=valid.quantity,
                        unit=line.unit,
                        unit_price=valid.unit_price,
                        total_price=valid.total_price,
                        created_by_id=actor.actor_id,
                    )
                    for i, (line, valid) in enumerate(
                        zip(request.lines, validated), start=1,
                    )
                ],
            )
            header.total_amount = sum((line.total_price for line in header.lines), ZERO)
            self._session.add(header)
            self._session.flush()

            with LogContext.bind(actor_id=actor.actor_id, reference_number=number):
                logger.info(
                    "purchase_created",
                    extra={
                        "purchase_id": str(header.id),
                        "warehouse_id": str(warehouse_id),
                        "line_count": len(header.lines),
                    },
                )
                failures = self._post_lines(header, actor)

            self._session.commit()
            return PurchaseResult(
                header=header.to_dto(),
                stock_errors=PartialFailure(tuple(failures)),
            )
        except Exception:
            self._session.rollback()
            raise

    def _post_lines(self, header: PurchaseModel, actor: Actor) -> list[FailureDetail]:
        failures: list[FailureDetail] = []
        for line in header.lines:
            try:
                with self._session.begin_nested():
                    posting = self._posting.post_inbound(
                        warehouse_id=header.warehouse_id,
                        product_key=line.product_key,
                        quantity=line.quantity,
                        reason=f"Purchase - {header.purchase_number}",
                        reference_number=header.purchase_number,
                        actor_id=actor.actor_id,
                        unit=line.unit,
                        unit_price=line.unit_price,
                    )
                    line.inventory_item_id = posting.append.inventory_item_id
                    self._session.flush()
            except (StockKernelError, SQLAlchemyError) as exc:
                logger.warning(
                    "purchase_line_stock_failed",
                    extra={
                        "line_number": line.line_number,
                        "product_key": line.product_key,
                    },
                    exc_info=True,
                )
                failures.append(FailureDetail.from_exception(line.product_key, exc))

        if failures:
            logger.warning(
                "purchase_partially_posted",
                extra={
                    "failed_lines": len(failures),
                    "line_count": len(header.lines),
                },
            )
        return failures

    # =========================================================================
    # Delete
    # =========================================================================

    def delete_purchase(self, purchase_id: UUID, actor: Actor) -> CascadeReversal:
        """Reverse the purchase's stock, then delete the header."""
        try:
            header = self._session.get(PurchaseModel, purchase_id)
            if header is None:
                raise PurchaseNotFoundError(purchase_id)
            number = header.purchase_number

            with LogContext.bind(actor_id=actor.actor_id, reference_number=number):
                reversal = self._posting.reverse_reference(number, actor.actor_id)
                self._session.delete(header)
                self._session.flush()
                logger.info(
                    "purchase_deleted",
                    extra={
                        "purchase_id": str(purchase_id),
                        "reversed_count": len(reversal.reversed),
                        "error_count": len(reversal.reversal_errors),
                    },
                )

            self._session.commit()
            return reversal
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_purchase(self, purchase_id: UUID):
        header = self._session.get(PurchaseModel, purchase_id)
        if header is None:
            raise PurchaseNotFoundError(purchase_id)
        return header.to_dto()
