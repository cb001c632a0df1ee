"""
Stock Transfer Service (``stock_modules.transfers.service``).

Responsibility
--------------
Drives a transfer through Pending -> Approved -> In Transit -> Delivered ->
Completed (or Cancelled / Rejected), validating stock availability against
the ledger and posting the ledger movements the transfer implies.

Ledger effects
--------------
- ``dispatch`` posts an ``out`` movement per line at the source warehouse
  for the requested quantity, under reference = transfer number.  When
  revalidation is off and less is on hand, only the on-hand quantity is
  posted (nothing when the item is empty).
- ``complete`` posts an ``in`` movement per line at the destination for the
  actual (received) quantity, onto the destination aggregate chosen by the
  resolution policy (created if absent).
- ``cancel`` from In Transit reverses the dispatch movements, restoring
  source stock.  Cancelling earlier has no ledger effect.

Invariants
----------
- Every action looks up its transition in ``TRANSFER_WORKFLOW`` and raises
  ``InvalidStateTransitionError`` before any mutation.
- Availability is the live ledger balance when the aggregate has
  movements, else its cached stock.  It is checked at create and again at
  approve and dispatch (configurable).
- ``total_value`` is recomputed whenever actual quantities change.
- Each public method owns its transaction: commit on success, rollback on
  failure.

Failure Modes
-------------
- ``ValidationError`` for malformed requests, a missing cancel/reject
  reason, or receipt lines that are not on the transfer.
- ``NotFoundError`` subclasses for unknown transfers, warehouses or items.
- ``WarehouseMismatchError`` when an item is not held in the source.
- ``InsufficientStockError`` when a line exceeds available stock.
- ``CapacityExceededError`` at completion when capacity is enforced.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_config import StockSettings
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.values import ZERO, Actor, MovementDirection
from stock_kernel.exceptions import (
    InsufficientStockError,
    TransferNotFoundError,
    ValidationError,
    WarehouseMismatchError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.inventory import InventoryItem
from stock_kernel.services.capacity_service import WarehouseCapacityTracker
from stock_kernel.services.inventory_store import InventoryStore
from stock_kernel.services.ledger_service import MovementSpec, StockLedger
from stock_kernel.services.sequence_service import SequenceService
from stock_modules.transfers.models import (
    DEFAULT_DISCREPANCY_REASON,
    NOT_RECEIVED_REASON,
    ReceivedItem,
    StockTransfer,
    TransferRequest,
    TransferStatus,
)
from stock_modules.transfers.orm import (
    StockTransferDiscrepancyModel,
    StockTransferItemModel,
    StockTransferModel,
)
from stock_modules.transfers.selectors import TransferSelector
from stock_modules.transfers.workflows import (
    APPROVE,
    CANCEL,
    COMPLETE,
    DISPATCH,
    RECEIVE,
    REJECT,
    TRANSFER_WORKFLOW,
)

logger = get_logger("modules.transfers.service")


def _positive(field: str, value) -> Decimal:
    try:
        quantity = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(field, f"not a number: {value!r}") from None
    if not quantity.is_finite() or quantity <= ZERO:
        raise ValidationError(field, f"must be greater than zero, got {value}")
    return quantity


def _required_text(field: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise ValidationError(field, "is required")
    return value.strip()


class StockTransferService:
    """
    Transfer workflow over the stock ledger.

    Usage::

        service = StockTransferService(session, clock=clock)
        transfer = service.create(request, actor)
        service.approve(transfer.id, manager)
        service.dispatch(transfer.id, manager)
        service.receive(transfer.id, clerk, [ReceivedItem(item_id, Decimal("18"))])
        service.complete(transfer.id, clerk)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: StockSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or StockSettings.with_defaults()
        self._store = InventoryStore(
            session, self._clock, self._settings.default_minimum_stock,
        )
        self._ledger = StockLedger(session, self._clock, self._store)
        self._capacity = WarehouseCapacityTracker(
            session, self._settings.enforce_warehouse_capacity,
        )
        self._sequences = SequenceService(session)
        self._selector = TransferSelector(session)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, transfer_id: UUID) -> StockTransferModel:
        transfer = self._session.execute(
            select(StockTransferModel)
            .where(StockTransferModel.id == transfer_id)
            .with_for_update()
        ).scalar_one_or_none()
        if transfer is None:
            raise TransferNotFoundError(transfer_id)
        return transfer

    def _transition(self, transfer: StockTransferModel, action: str):
        return TRANSFER_WORKFLOW.transition_for(
            transfer.status, action, entity=f"transfer {transfer.transfer_number}",
        )

    def _ensure_available(self, item: InventoryItem, requested: Decimal) -> Decimal:
        available = self._ledger.available_quantity(item)
        if requested > available:
            raise InsufficientStockError(item.name, available, requested)
        return available

    def _revalidate(self, transfer: StockTransferModel) -> None:
        for line in transfer.items:
            item = self._store.get_for_update(line.inventory_item_id)
            self._ensure_available(item, line.requested_quantity)

    def _validate_request(self, request: TransferRequest) -> list[Decimal]:
        if request.from_warehouse_id == request.to_warehouse_id:
            raise ValidationError(
                "to_warehouse_id", "source and destination warehouse must differ",
            )
        if not request.items:
            raise ValidationError("items", "at least one item is required")

        seen: set[UUID] = set()
        quantities = []
        for line in request.items:
            if line.inventory_item_id in seen:
                raise ValidationError(
                    "items", f"inventory item {line.inventory_item_id} listed twice",
                )
            seen.add(line.inventory_item_id)
            quantities.append(_positive("requested_quantity", line.requested_quantity))
        return quantities

    # =========================================================================
    # Create
    # =========================================================================

    def create(self, request: TransferRequest, actor: Actor) -> StockTransfer:
        """Validate availability and open a Pending transfer."""
        quantities = self._validate_request(request)

        with LogContext.bind(actor_id=actor.actor_id):
            try:
                source = self._store.get_warehouse(request.from_warehouse_id)
                self._store.get_warehouse(request.to_warehouse_id)

                lines = []
                for line_number, (line, quantity) in enumerate(
                    zip(request.items, quantities), start=1,
                ):
                    item = self._store.get_for_update(line.inventory_item_id)
                    if item.warehouse_id != source.id:
                        raise WarehouseMismatchError(item.name, source.id, item.warehouse_id)
                    self._ensure_available(item, quantity)
                    lines.append(
                        StockTransferItemModel(
                            line_number=line_number,
                            inventory_item_id=item.id,
                            product_name=item.name,
                            product_code=item.code,
                            unit=item.unit,
                            requested_quantity=quantity,
                            actual_quantity=ZERO,
                            unit_price=(
                                line.unit_price if line.unit_price is not None
                                else item.unit_price
                            ),
                            batch_number=line.batch_number,
                            condition=line.condition.value,
                            notes=line.notes,
                            created_by_id=actor.actor_id,
                        )
                    )

                number = self._sequences.next_formatted(
                    SequenceService.STOCK_TRANSFER,
                    self._settings.transfer_number_prefix,
                    self._settings.transfer_number_width,
                )
                transfer = StockTransferModel(
                    transfer_number=number,
                    transfer_type=request.transfer_type.value,
                    from_warehouse_id=request.from_warehouse_id,
                    to_warehouse_id=request.to_warehouse_id,
                    status=TRANSFER_WORKFLOW.initial_state,
                    priority=request.priority.value,
                    reason=request.reason,
                    transport_method=request.transport_method,
                    transfer_date=self._clock.now(),
                    expected_delivery_date=request.expected_delivery_date,
                    notes=request.notes,
                    items=lines,
                    created_by_id=actor.actor_id,
                )
                transfer.recompute_total_value()
                self._session.add(transfer)
                self._session.flush()

                logger.info(
                    "transfer_created",
                    extra={
                        "transfer_id": str(transfer.id),
                        "transfer_number": number,
                        "from_warehouse_id": str(request.from_warehouse_id),
                        "to_warehouse_id": str(request.to_warehouse_id),
                        "line_count": len(lines),
                    },
                )
                self._session.commit()
                return transfer.to_dto()
            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Approve / reject
    # =========================================================================

    def approve(
        self,
        transfer_id: UUID,
        actor: Actor,
        notes: str | None = None,
    ) -> StockTransfer:
        """Pending -> Approved, re-checking availability."""
        try:
            transfer = self._load(transfer_id)
            self._transition(transfer, APPROVE)
            with LogContext.bind(
                actor_id=actor.actor_id, transfer_number=transfer.transfer_number,
            ):
                if self._settings.revalidate_on_approve:
                    self._revalidate(transfer)

                transfer.status = TransferStatus.APPROVED.value
                transfer.approved_by_id = actor.actor_id
                transfer.approved_at = self._clock.now()
                transfer.approval_notes = notes
                transfer.updated_by_id = actor.actor_id
                self._session.flush()

                logger.info("transfer_approved", extra={"approver_role": actor.role})
            self._session.commit()
            return transfer.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def reject(self, transfer_id: UUID, actor: Actor, reason: str) -> StockTransfer:
        """Pending -> Rejected.  No ledger effect."""
        try:
            transfer = self._load(transfer_id)
            self._transition(transfer, REJECT)
            reason = _required_text("reason", reason)

            transfer.status = TransferStatus.REJECTED.value
            transfer.rejected_by_id = actor.actor_id
            transfer.rejected_at = self._clock.now()
            transfer.rejection_reason = reason
            transfer.updated_by_id = actor.actor_id
            self._session.flush()

            logger.info(
                "transfer_rejected",
                extra={"transfer_number": transfer.transfer_number, "reason": reason},
            )
            self._session.commit()
            return transfer.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Dispatch
    # =========================================================================

    def dispatch(
        self,
        transfer_id: UUID,
        actor: Actor,
        notes: str | None = None,
    ) -> StockTransfer:
        """Approved -> In Transit, posting source ``out`` movements."""
        try:
            transfer = self._load(transfer_id)
            self._transition(transfer, DISPATCH)
            with LogContext.bind(
                actor_id=actor.actor_id,
                transfer_number=transfer.transfer_number,
                reference_number=transfer.transfer_number,
            ):
                if self._settings.revalidate_on_dispatch:
                    self._revalidate(transfer)

                for line in transfer.items:
                    self._post_dispatch(transfer, line, actor)

                transfer.status = TransferStatus.IN_TRANSIT.value
                transfer.dispatched_by_id = actor.actor_id
                transfer.dispatched_at = self._clock.now()
                transfer.dispatch_notes = notes
                transfer.updated_by_id = actor.actor_id
                self._session.flush()

                logger.info(
                    "transfer_dispatched",
                    extra={"line_count": len(transfer.items)},
                )
            self._session.commit()
            return transfer.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def _post_dispatch(
        self,
        transfer: StockTransferModel,
        line: StockTransferItemModel,
        actor: Actor,
    ) -> None:
        # Post only what is on hand so a cancel restores exactly what left.
        on_hand = self._store.get_for_update(line.inventory_item_id).current_stock
        quantity = min(line.requested_quantity, on_hand)
        if quantity < line.requested_quantity:
            logger.warning(
                "transfer_dispatched_short",
                extra={
                    "inventory_item_id": str(line.inventory_item_id),
                    "requested": str(line.requested_quantity),
                    "dispatched": str(quantity),
                },
            )
        if quantity <= ZERO:
            return
        self._ledger.append(
            MovementSpec(
                inventory_item_id=line.inventory_item_id,
                direction=MovementDirection.OUT,
                quantity=quantity,
                reason=f"Transfer Out - {transfer.transfer_number}",
                reference_number=transfer.transfer_number,
                warehouse_id=transfer.from_warehouse_id,
            ),
            actor.actor_id,
        )
        self._capacity.decrement(transfer.from_warehouse_id, quantity)

    # =========================================================================
    # Receive
    # =========================================================================

    def receive(
        self,
        transfer_id: UUID,
        actor: Actor,
        received_items: list[ReceivedItem] | tuple[ReceivedItem, ...],
        notes: str | None = None,
    ) -> StockTransfer:
        """
        In Transit -> Delivered, recording actual quantities.

        Lines missing from ``received_items`` are recorded as received 0.
        Every line whose actual quantity differs from the requested one gets
        a discrepancy record.
        """
        try:
            transfer = self._load(transfer_id)
            self._transition(transfer, RECEIVE)

            on_transfer = {line.inventory_item_id for line in transfer.items}
            by_item: dict[UUID, ReceivedItem] = {}
            for received in received_items:
                if received.inventory_item_id not in on_transfer:
                    raise ValidationError(
                        "received_items",
                        f"inventory item {received.inventory_item_id} is not on "
                        f"transfer {transfer.transfer_number}",
                    )
                if received.inventory_item_id in by_item:
                    raise ValidationError(
                        "received_items",
                        f"inventory item {received.inventory_item_id} listed twice",
                    )
                if Decimal(received.actual_quantity) < ZERO:
                    raise ValidationError(
                        "actual_quantity",
                        f"cannot be negative, got {received.actual_quantity}",
                    )
                by_item[received.inventory_item_id] = received

            for line in transfer.items:
                received = by_item.get(line.inventory_item_id)
                if received is None:
                    actual = ZERO
                    reason = NOT_RECEIVED_REASON
                else:
                    actual = Decimal(received.actual_quantity)
                    reason = received.reason or DEFAULT_DISCREPANCY_REASON
                    if received.condition is not None:
                        line.condition = received.condition.value

                line.actual_quantity = actual
                line.updated_by_id = actor.actor_id
                if actual != line.requested_quantity:
                    transfer.discrepancies.append(
                        StockTransferDiscrepancyModel(
                            line_number=line.line_number,
                            inventory_item_id=line.inventory_item_id,
                            product_name=line.product_name,
                            expected_quantity=line.requested_quantity,
                            received_quantity=actual,
                            difference=actual - line.requested_quantity,
                            reason=reason,
                            created_by_id=actor.actor_id,
                        )
                    )

            transfer.recompute_total_value()
            transfer.status = TransferStatus.DELIVERED.value
            transfer.received_by_id = actor.actor_id
            transfer.received_at = self._clock.now()
            transfer.receipt_notes = notes
            transfer.updated_by_id = actor.actor_id
            self._session.flush()

            if transfer.discrepancies:
                logger.warning(
                    "transfer_received_with_discrepancies",
                    extra={
                        "transfer_number": transfer.transfer_number,
                        "discrepancy_count": len(transfer.discrepancies),
                    },
                )
            logger.info(
                "transfer_received",
                extra={
                    "transfer_number": transfer.transfer_number,
                    "total_value": str(transfer.total_value),
                },
            )
            self._session.commit()
            return transfer.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Complete
    # =========================================================================

    def complete(self, transfer_id: UUID, actor: Actor) -> StockTransfer:
        """Delivered -> Completed, posting destination ``in`` movements."""
        try:
            transfer = self._load(transfer_id)
            self._transition(transfer, COMPLETE)
            with LogContext.bind(
                actor_id=actor.actor_id,
                transfer_number=transfer.transfer_number,
                reference_number=transfer.transfer_number,
            ):
                inbound = [line for line in transfer.items if line.actual_quantity > ZERO]
                self._capacity.ensure_capacity(
                    transfer.to_warehouse_id,
                    sum((line.actual_quantity for line in inbound), ZERO),
                )

                for line in inbound:
                    source_item = self._store.get(line.inventory_item_id)
                    destination, source_of_match = self._store.resolve_for_inbound(
                        warehouse_id=transfer.to_warehouse_id,
                        name=line.product_name,
                        actor_id=actor.actor_id,
                        product=source_item.product,
                        unit=line.unit,
                        unit_price=line.unit_price,
                    )
                    self._ledger.append(
                        MovementSpec(
                            inventory_item_id=destination.id,
                            direction=MovementDirection.IN,
                            quantity=line.actual_quantity,
                            reason=f"Transfer In - {transfer.transfer_number}",
                            reference_number=transfer.transfer_number,
                            warehouse_id=transfer.to_warehouse_id,
                        ),
                        actor.actor_id,
                    )
                    self._capacity.increment(transfer.to_warehouse_id, line.actual_quantity)
                    line.destination_item_id = destination.id
                    logger.debug(
                        "transfer_line_received_into",
                        extra={
                            "line_number": line.line_number,
                            "destination_item_id": str(destination.id),
                            "resolution": source_of_match.value,
                        },
                    )

                transfer.status = TransferStatus.COMPLETED.value
                transfer.completed_by_id = actor.actor_id
                transfer.actual_delivery_date = self._clock.now()
                transfer.updated_by_id = actor.actor_id
                self._session.flush()

                logger.info(
                    "transfer_completed",
                    extra={"posted_lines": len(inbound)},
                )
            self._session.commit()
            return transfer.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Cancel
    # =========================================================================

    def cancel(self, transfer_id: UUID, actor: Actor, reason: str) -> StockTransfer:
        """
        Pending / Approved / In Transit -> Cancelled.

        From In Transit the dispatch movements are reversed and the source
        warehouse's usage restored.
        """
        try:
            transfer = self._load(transfer_id)
            transition = self._transition(transfer, CANCEL)
            reason = _required_text("reason", reason)

            with LogContext.bind(
                actor_id=actor.actor_id, transfer_number=transfer.transfer_number,
            ):
                restored = 0
                if transition.posts_movements:
                    result = self._ledger.reverse(
                        transfer.transfer_number,
                        actor.actor_id,
                        direction=MovementDirection.OUT,
                    )
                    for reversed_movement in result.reversed:
                        self._capacity.release(
                            reversed_movement.warehouse_id,
                            reversed_movement.direction,
                            reversed_movement.quantity,
                        )
                    restored = result.count

                previous_status = transfer.status
                transfer.status = TransferStatus.CANCELLED.value
                transfer.cancelled_by_id = actor.actor_id
                transfer.cancelled_at = self._clock.now()
                transfer.cancellation_reason = reason
                transfer.updated_by_id = actor.actor_id
                self._session.flush()

                logger.info(
                    "transfer_cancelled",
                    extra={
                        "previous_status": previous_status,
                        "restored_movements": restored,
                        "reason": reason,
                    },
                )
            self._session.commit()
            return transfer.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, transfer_id: UUID) -> StockTransfer:
        return self._selector.get(transfer_id)

    def get_by_number(self, transfer_number: str) -> StockTransfer:
        return self._selector.get_by_number(transfer_number)

    def list_transfers(
        self,
        status: TransferStatus | None = None,
        warehouse_id: UUID | None = None,
    ) -> list[StockTransfer]:
        return self._selector.list_transfers(status, warehouse_id)
