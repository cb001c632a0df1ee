"""
Manual stock adjustments (``stock_modules.adjustments.service``).

Direct stock-in / stock-out entries, stock counts that set an item to an
absolute level, opening balances and the Discontinued override.  Every
change still goes through the ledger; nothing writes ``current_stock``
directly.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy.orm import Session

from stock_config import StockSettings
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.values import INITIAL_STOCK_REASON, ZERO, Actor, MovementDirection
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.selectors.stock_selector import InventoryItemDTO, StockSelector
from stock_kernel.services.capacity_service import WarehouseCapacityTracker
from stock_kernel.services.inventory_store import InventoryStore
from stock_kernel.services.ledger_service import AppendResult, MovementSpec, StockLedger
from stock_kernel.services.sequence_service import SequenceService

logger = get_logger("modules.adjustments.service")

MANUAL_UPDATE_REASON = "Manual Stock Update"
MANUAL_REFERENCE_WIDTH = 6


class StockAdjustmentService:
    """
    Manual stock entries against a single inventory item.

    Warehouse usage follows the change actually applied to the item's
    balance, so a clamped stock-out or an opening balance that lowers the
    stock moves the counter by the real difference.
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
        self._selector = StockSelector(session)

    def _manual_reference(self) -> str:
        return self._sequences.next_formatted(
            SequenceService.MANUAL_ADJUSTMENT,
            f"{self._settings.manual_reference_prefix}-",
            MANUAL_REFERENCE_WIDTH,
        )

    def _post(
        self,
        inventory_item_id: UUID,
        direction: MovementDirection,
        quantity: Decimal,
        reason: str,
        reference_number: str | None,
        actor: Actor,
    ) -> AppendResult:
        item = self._store.get_for_update(inventory_item_id)
        before = item.current_stock

        if direction == MovementDirection.IN:
            seeds = (reason or "").strip() == INITIAL_STOCK_REASON
            growth = quantity - before if seeds else quantity
            if growth > ZERO:
                self._capacity.ensure_capacity(item.warehouse_id, growth)

        reference = reference_number or self._manual_reference()
        result = self._ledger.append(
            MovementSpec(
                inventory_item_id=item.id,
                direction=direction,
                quantity=quantity,
                reason=reason,
                reference_number=reference,
                warehouse_id=item.warehouse_id,
            ),
            actor.actor_id,
        )

        change = result.balance_after - before
        if change > ZERO:
            self._capacity.increment(item.warehouse_id, change)
        elif change < ZERO:
            self._capacity.decrement(item.warehouse_id, -change)
        return result

    # =========================================================================
    # Operations
    # =========================================================================

    def post_movement(
        self,
        inventory_item_id: UUID,
        direction: MovementDirection,
        quantity: Decimal,
        reason: str,
        actor: Actor,
        reference_number: str | None = None,
    ) -> AppendResult:
        """Record a manual stock-in or stock-out."""
        try:
            direction = MovementDirection(direction)
        except ValueError:
            raise ValidationError(
                "direction", f"must be 'in' or 'out', got {direction!r}",
            ) from None

        try:
            with LogContext.bind(
                actor_id=actor.actor_id, inventory_item_id=inventory_item_id,
            ):
                result = self._post(
                    inventory_item_id, direction, quantity,
                    reason, reference_number, actor,
                )
                logger.info(
                    "manual_movement_posted",
                    extra={
                        "direction": result.direction.value,
                        "quantity": str(result.quantity),
                        "balance_after": str(result.balance_after),
                    },
                )
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def set_stock_level(
        self,
        inventory_item_id: UUID,
        new_level: Decimal,
        actor: Actor,
        reason: str = MANUAL_UPDATE_REASON,
    ) -> AppendResult | None:
        """
        Bring the item to ``new_level`` by posting the difference.

        Returns None when the level is unchanged; no movement is written.
        """
        try:
            target = Decimal(new_level)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError("new_level", f"not a number: {new_level!r}") from None
        if not target.is_finite() or target < ZERO:
            raise ValidationError("new_level", f"cannot be negative, got {new_level}")

        try:
            item = self._store.get_for_update(inventory_item_id)
            difference = target - item.current_stock
            if difference == ZERO:
                self._session.commit()
                return None

            direction = MovementDirection.IN if difference > ZERO else MovementDirection.OUT
            with LogContext.bind(
                actor_id=actor.actor_id, inventory_item_id=inventory_item_id,
            ):
                result = self._post(
                    inventory_item_id, direction, abs(difference), reason, None, actor,
                )
                logger.info(
                    "stock_level_set",
                    extra={
                        "previous_level": str(target - difference),
                        "new_level": str(result.balance_after),
                    },
                )
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def seed_initial_stock(
        self,
        inventory_item_id: UUID,
        quantity: Decimal,
        actor: Actor,
    ) -> AppendResult:
        """Post an opening balance; the item's stock becomes ``quantity``."""
        return self.post_movement(
            inventory_item_id,
            MovementDirection.IN,
            quantity,
            INITIAL_STOCK_REASON,
            actor,
        )

    def set_discontinued(
        self,
        inventory_item_id: UUID,
        discontinued: bool,
        actor: Actor,
    ) -> InventoryItemDTO:
        try:
            item = self._store.get_for_update(inventory_item_id)
            self._store.set_discontinued(item, discontinued, actor.actor_id)
            self._session.commit()
            return self._selector.get_item(inventory_item_id)
        except Exception:
            self._session.rollback()
            raise
