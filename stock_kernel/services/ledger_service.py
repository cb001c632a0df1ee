"""
StockLedger -- append, replay and reverse stock movements.

Responsibility:
    The single write path for stock movements.  Appending a movement updates
    the matching inventory aggregate in the same unit of work; reversing a
    reference number undoes every movement it posted and deletes the rows.

Architecture position:
    Kernel > Services -- imperative shell around the pure balance functions
    in ``stock_kernel.domain.balance``.  Consumed by every cascade processor,
    the transfer workflow and reconciliation.

Invariants enforced:
    - quantity > 0 and direction in {in, out}, checked before any write.
    - Movements are ordered by a ``seq`` allocated from SequenceService.
    - Aggregate stock never goes below zero.  A subtraction past zero is
      clamped and logged as ``negative_stock_clamped``; it is never an error.
    - An ``Initial Stock`` movement sets the aggregate to its quantity, the
      same rule replay applies.
    - Movements are never updated.  Deletion happens only through
      ``reverse`` / ``reverse_movement``.

Failure modes:
    - ValidationError: non-positive quantity, unknown direction, or a
      movement into a warehouse other than the aggregate's.
    - InventoryItemNotFoundError / MovementNotFoundError.

Non-goals:
    - Does NOT commit.  Does NOT touch warehouse capacity counters; the
      calling processor does that alongside.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.balance import apply_delta, invert, replay_balance
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.values import ZERO, MovementDirection
from stock_kernel.exceptions import MovementNotFoundError, ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import InventoryItem
from stock_kernel.models.movement import StockMovement
from stock_kernel.services.inventory_store import InventoryStore
from stock_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger")


@dataclass(frozen=True)
class MovementSpec:
    """Input for ``StockLedger.append``."""

    inventory_item_id: UUID
    direction: MovementDirection
    quantity: Decimal
    reason: str
    reference_number: str | None = None
    warehouse_id: UUID | None = None


@dataclass(frozen=True)
class AppendResult:
    movement_id: UUID
    inventory_item_id: UUID
    warehouse_id: UUID
    direction: MovementDirection
    quantity: Decimal
    balance_after: Decimal
    shortfall: Decimal = ZERO

    @property
    def clamped(self) -> bool:
        return self.shortfall > ZERO


@dataclass(frozen=True)
class ReversedMovement:
    """One movement undone by a reversal."""

    movement_id: UUID
    inventory_item_id: UUID
    warehouse_id: UUID
    direction: MovementDirection
    quantity: Decimal
    balance_after: Decimal
    shortfall: Decimal = ZERO

    @property
    def stock_already_consumed(self) -> bool:
        return self.shortfall > ZERO


@dataclass(frozen=True)
class ReversalResult:
    reference_number: str
    reversed: tuple[ReversedMovement, ...] = field(default_factory=tuple)

    @property
    def count(self) -> int:
        return len(self.reversed)

    @property
    def discrepancies(self) -> tuple[ReversedMovement, ...]:
        return tuple(r for r in self.reversed if r.stock_already_consumed)


def _validate_quantity(quantity) -> Decimal:
    try:
        value = Decimal(quantity)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("quantity", f"not a number: {quantity!r}") from None
    if not value.is_finite() or value <= ZERO:
        raise ValidationError("quantity", f"must be greater than zero, got {quantity}")
    return value


def _validate_direction(direction) -> MovementDirection:
    try:
        return MovementDirection(direction)
    except ValueError:
        raise ValidationError(
            "direction", f"must be 'in' or 'out', got {direction!r}"
        ) from None


class StockLedger:
    """
    Append-only movement ledger with a synchronously maintained aggregate.

    Usage:
        ledger = StockLedger(session, clock)
        result = ledger.append(
            MovementSpec(item.id, MovementDirection.IN, Decimal("100"),
                         reason="Purchase - BP-20240101-0001",
                         reference_number="BP-20240101-0001"),
            actor_id,
        )
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        store: InventoryStore | None = None,
        preserve_discontinued: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._store = store or InventoryStore(session, self._clock)
        self._sequences = SequenceService(session)
        self._preserve_discontinued = preserve_discontinued

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def append(self, spec: MovementSpec, actor_id: UUID) -> AppendResult:
        """Record one movement and apply it to its aggregate."""
        quantity = _validate_quantity(spec.quantity)
        direction = _validate_direction(spec.direction)
        if not spec.reason or not spec.reason.strip():
            raise ValidationError("reason", "must not be empty")

        item = self._store.get_for_update(spec.inventory_item_id)
        if spec.warehouse_id is not None and spec.warehouse_id != item.warehouse_id:
            raise ValidationError(
                "warehouse_id",
                f"movement for {item.name} targets warehouse {spec.warehouse_id} "
                f"but the item is stored in {item.warehouse_id}",
            )

        movement = StockMovement(
            id=uuid4(),
            seq=self._sequences.next_value(SequenceService.STOCK_MOVEMENT),
            inventory_item_id=item.id,
            warehouse_id=item.warehouse_id,
            direction=direction.value,
            quantity=quantity,
            reason=spec.reason.strip(),
            reference_number=spec.reference_number,
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self._session.add(movement)

        delta = apply_delta(item.current_stock, direction, quantity, movement.reason)
        if delta.clamped:
            logger.warning(
                "negative_stock_clamped",
                extra={
                    "inventory_item_id": str(item.id),
                    "item_name": item.name,
                    "requested": str(quantity),
                    "available": str(item.current_stock),
                    "shortfall": str(delta.shortfall),
                    "reference_number": spec.reference_number,
                },
            )
        self._store.set_stock(
            item,
            delta.new_balance,
            actor_id=actor_id,
            preserve_discontinued=self._preserve_discontinued,
        )

        logger.info(
            "movement_appended",
            extra={
                "movement_id": str(movement.id),
                "seq": movement.seq,
                "inventory_item_id": str(item.id),
                "direction": direction.value,
                "quantity": str(quantity),
                "balance_after": str(item.current_stock),
                "reference_number": spec.reference_number,
            },
        )

        return AppendResult(
            movement_id=movement.id,
            inventory_item_id=item.id,
            warehouse_id=item.warehouse_id,
            direction=direction,
            quantity=quantity,
            balance_after=item.current_stock,
            shortfall=delta.shortfall,
        )

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def movements_for_item(self, inventory_item_id: UUID) -> list[StockMovement]:
        return list(
            self._session.execute(
                select(StockMovement)
                .where(StockMovement.inventory_item_id == inventory_item_id)
                .order_by(StockMovement.seq)
            ).scalars()
        )

    def movements_for_reference(
        self,
        reference_number: str,
        direction: MovementDirection | None = None,
    ) -> list[StockMovement]:
        stmt = (
            select(StockMovement)
            .where(StockMovement.reference_number == reference_number)
            .order_by(StockMovement.seq)
        )
        if direction is not None:
            stmt = stmt.where(StockMovement.direction == direction.value)
        return list(self._session.execute(stmt).scalars())

    def has_movements(self, inventory_item_id: UUID) -> bool:
        return self._session.execute(
            select(StockMovement.id)
            .where(StockMovement.inventory_item_id == inventory_item_id)
            .limit(1)
        ).first() is not None

    def compute_balance(self, inventory_item_id: UUID) -> Decimal:
        """Replay every movement of the item in insertion order."""
        return replay_balance(self.movements_for_item(inventory_item_id))

    def available_quantity(self, item: InventoryItem) -> Decimal:
        """Live ledger balance when the item has movements, else the cached value."""
        if self.has_movements(item.id):
            return self.compute_balance(item.id)
        return item.current_stock

    # ------------------------------------------------------------------
    # Reverse
    # ------------------------------------------------------------------

    def _get_movement(self, movement_id: UUID) -> StockMovement:
        movement = self._session.get(StockMovement, movement_id)
        if movement is None:
            raise MovementNotFoundError(movement_id)
        return movement

    def reverse_movement(self, movement_id: UUID, actor_id: UUID) -> ReversedMovement:
        """Undo one movement's aggregate effect and delete it."""
        movement = self._get_movement(movement_id)
        result = self._undo_effect(movement, actor_id)
        self._delete(movement)
        return result

    def undo_movement_effect(self, movement_id: UUID, actor_id: UUID) -> ReversedMovement:
        """
        Undo one movement's aggregate effect, leaving the row in place.

        Pair with ``delete_movement`` when the correction and the deletion
        must succeed or fail independently.
        """
        return self._undo_effect(self._get_movement(movement_id), actor_id)

    def delete_movement(self, movement_id: UUID) -> None:
        """Delete a movement row without touching its aggregate."""
        self._delete(self._get_movement(movement_id))

    def reverse(
        self,
        reference_number: str,
        actor_id: UUID,
        direction: MovementDirection = MovementDirection.IN,
    ) -> ReversalResult:
        """
        Undo every movement posted under ``reference_number`` in ``direction``.

        ``in`` movements are subtracted back out (clamped at zero with a
        discrepancy warning when the stock was already consumed); ``out``
        movements are added back.
        """
        movements = self.movements_for_reference(reference_number, direction)
        reversed_ = []
        for movement in movements:
            reversed_.append(self._undo_effect(movement, actor_id))
            self._delete(movement)
        reversed_ = tuple(reversed_)
        logger.info(
            "reference_reversed",
            extra={
                "reference_number": reference_number,
                "direction": direction.value,
                "movement_count": len(reversed_),
            },
        )
        return ReversalResult(reference_number=reference_number, reversed=reversed_)

    def _undo_effect(self, movement: StockMovement, actor_id: UUID) -> ReversedMovement:
        item = self._store.get_for_update(movement.inventory_item_id)
        direction = MovementDirection(movement.direction)

        delta = apply_delta(item.current_stock, invert(direction), movement.quantity)
        if delta.clamped:
            logger.warning(
                "reversal_stock_already_consumed",
                extra={
                    "inventory_item_id": str(item.id),
                    "item_name": item.name,
                    "reference_number": movement.reference_number,
                    "quantity": str(movement.quantity),
                    "available": str(item.current_stock),
                    "shortfall": str(delta.shortfall),
                },
            )
        self._store.set_stock(
            item,
            delta.new_balance,
            actor_id=actor_id,
            preserve_discontinued=self._preserve_discontinued,
        )

        result = ReversedMovement(
            movement_id=movement.id,
            inventory_item_id=item.id,
            warehouse_id=movement.warehouse_id,
            direction=direction,
            quantity=movement.quantity,
            balance_after=item.current_stock,
            shortfall=delta.shortfall,
        )
        logger.debug(
            "movement_effect_undone",
            extra={
                "movement_id": str(result.movement_id),
                "inventory_item_id": str(item.id),
                "direction": direction.value,
                "quantity": str(result.quantity),
                "balance_after": str(result.balance_after),
            },
        )
        return result

    def _delete(self, movement: StockMovement) -> None:
        movement_id = movement.id
        self._session.delete(movement)
        self._session.flush()
        logger.debug("movement_deleted", extra={"movement_id": str(movement_id)})
