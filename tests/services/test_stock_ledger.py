"""
Tests for StockLedger.

Appends keep the aggregate in step with the ledger; subtractions past zero
clamp with a warning; reversals undo a reference number's movements.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.domain.values import (
    INITIAL_STOCK_REASON,
    InventoryStatus,
    MovementDirection,
)
from stock_kernel.exceptions import (
    InventoryItemNotFoundError,
    MovementNotFoundError,
    ValidationError,
)
from stock_kernel.models.movement import StockMovement
from stock_kernel.services.ledger_service import MovementSpec, StockLedger

IN = MovementDirection.IN
OUT = MovementDirection.OUT


@pytest.fixture
def ledger(session, deterministic_clock) -> StockLedger:
    return StockLedger(session, deterministic_clock)


@pytest.fixture
def warehouse(create_warehouse):
    return create_warehouse(name="Main Store")


def _spec(item, direction, quantity, reason="Test", reference_number=None, warehouse_id=None):
    return MovementSpec(
        inventory_item_id=item.id,
        direction=direction,
        quantity=Decimal(quantity),
        reason=reason,
        reference_number=reference_number,
        warehouse_id=warehouse_id,
    )


class TestAppend:

    def test_inbound_increases_stock(self, ledger, warehouse, create_item, test_actor_id):
        item = create_item(warehouse)

        result = ledger.append(_spec(item, IN, "100"), test_actor_id)

        assert result.balance_after == Decimal("100")
        assert item.current_stock == Decimal("100")
        assert item.status == InventoryStatus.ACTIVE.value
        assert not result.clamped

    def test_outbound_decreases_stock(self, ledger, warehouse, create_item, test_actor_id):
        item = create_item(warehouse)
        ledger.append(_spec(item, IN, "100"), test_actor_id)

        result = ledger.append(_spec(item, OUT, "95"), test_actor_id)

        assert result.balance_after == Decimal("5")
        assert item.status == InventoryStatus.LOW_STOCK.value

    def test_movement_row_is_written(self, session, ledger, warehouse, create_item, test_actor_id):
        item = create_item(warehouse)

        result = ledger.append(
            _spec(item, IN, "12.5", reason="  Purchase - BP-1  ", reference_number="BP-1"),
            test_actor_id,
        )

        movement = session.get(StockMovement, result.movement_id)
        assert movement.direction == "in"
        assert movement.quantity == Decimal("12.5")
        assert movement.reason == "Purchase - BP-1"
        assert movement.reference_number == "BP-1"
        assert movement.warehouse_id == warehouse.id
        assert movement.created_by_id == test_actor_id

    def test_movements_are_ordered_by_sequence(self, ledger, warehouse, create_item, test_actor_id):
        item = create_item(warehouse)
        ledger.append(_spec(item, IN, "10"), test_actor_id)
        ledger.append(_spec(item, OUT, "3"), test_actor_id)
        ledger.append(_spec(item, IN, "1"), test_actor_id)

        seqs = [m.seq for m in ledger.movements_for_item(item.id)]
        assert seqs == sorted(seqs)
        assert len(set(seqs)) == 3

    def test_outbound_past_zero_clamps_and_warns(
        self, ledger, warehouse, create_item, test_actor_id, captured_logs,
    ):
        item = create_item(warehouse, name="Rice")
        ledger.append(_spec(item, IN, "10"), test_actor_id)

        result = ledger.append(_spec(item, OUT, "25", reference_number="X-1"), test_actor_id)

        assert item.current_stock == Decimal("0")
        assert item.status == InventoryStatus.OUT_OF_STOCK.value
        assert result.shortfall == Decimal("15")
        warnings = [r for r in captured_logs() if r["message"] == "negative_stock_clamped"]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"
        assert warnings[0]["item_name"] == "Rice"
        assert warnings[0]["reference_number"] == "X-1"

    def test_initial_stock_sets_balance(self, ledger, warehouse, create_item, test_actor_id):
        item = create_item(warehouse)
        ledger.append(_spec(item, IN, "70"), test_actor_id)

        ledger.append(_spec(item, IN, "20", reason=INITIAL_STOCK_REASON), test_actor_id)

        assert item.current_stock == Decimal("20")
        assert ledger.compute_balance(item.id) == Decimal("20")

    def test_discontinued_status_survives_append(
        self, ledger, warehouse, create_item, test_actor_id,
    ):
        item = create_item(warehouse, status=InventoryStatus.DISCONTINUED)

        ledger.append(_spec(item, IN, "100"), test_actor_id)

        assert item.status == InventoryStatus.DISCONTINUED.value

    def test_last_updated_follows_clock(self, session, warehouse, create_item, test_actor_id):
        clock = DeterministicClock()
        ledger = StockLedger(session, clock)
        item = create_item(warehouse)
        clock.advance(3600)

        ledger.append(_spec(item, IN, "1"), test_actor_id)

        assert item.last_updated.replace(tzinfo=None) == clock.now().replace(tzinfo=None)


class TestAppendValidation:

    @pytest.mark.parametrize("quantity", ["0", "-5"])
    def test_non_positive_quantity_rejected(
        self, session, ledger, warehouse, create_item, test_actor_id, quantity,
    ):
        item = create_item(warehouse)

        with pytest.raises(ValidationError) as exc_info:
            ledger.append(_spec(item, IN, quantity), test_actor_id)

        assert exc_info.value.field == "quantity"
        assert ledger.movements_for_item(item.id) == []

    def test_unknown_direction_rejected(self, ledger, warehouse, create_item, test_actor_id):
        item = create_item(warehouse)
        spec = MovementSpec(item.id, "sideways", Decimal("1"), reason="Test")

        with pytest.raises(ValidationError) as exc_info:
            ledger.append(spec, test_actor_id)

        assert exc_info.value.field == "direction"

    def test_empty_reason_rejected(self, ledger, warehouse, create_item, test_actor_id):
        item = create_item(warehouse)

        with pytest.raises(ValidationError):
            ledger.append(_spec(item, IN, "1", reason="   "), test_actor_id)

    def test_wrong_warehouse_rejected(
        self, ledger, warehouse, create_warehouse, create_item, test_actor_id,
    ):
        other = create_warehouse(name="Branch")
        item = create_item(warehouse)

        with pytest.raises(ValidationError) as exc_info:
            ledger.append(_spec(item, IN, "1", warehouse_id=other.id), test_actor_id)

        assert exc_info.value.field == "warehouse_id"
        assert item.current_stock == Decimal("0")

    def test_unknown_item(self, ledger, test_actor_id):
        spec = MovementSpec(uuid4(), IN, Decimal("1"), reason="Test")
        with pytest.raises(InventoryItemNotFoundError):
            ledger.append(spec, test_actor_id)


class TestBalance:

    def test_compute_balance_replays_ledger(self, ledger, warehouse, create_item, test_actor_id):
        item = create_item(warehouse)
        ledger.append(_spec(item, IN, "100"), test_actor_id)
        ledger.append(_spec(item, OUT, "30"), test_actor_id)
        ledger.append(_spec(item, IN, "5"), test_actor_id)

        assert ledger.compute_balance(item.id) == Decimal("75")

    def test_available_quantity_uses_cached_value_without_movements(
        self, ledger, warehouse, create_item,
    ):
        item = create_item(warehouse, current_stock=Decimal("42"))

        assert not ledger.has_movements(item.id)
        assert ledger.available_quantity(item) == Decimal("42")

    def test_available_quantity_prefers_ledger(
        self, ledger, warehouse, create_item, test_actor_id,
    ):
        item = create_item(warehouse)
        ledger.append(_spec(item, IN, "50"), test_actor_id)
        # Drift the cache; the ledger stays authoritative.
        item.current_stock = Decimal("999")

        assert ledger.available_quantity(item) == Decimal("50")


class TestReverse:

    def test_reverse_inbound_reference(self, session, ledger, warehouse, create_item, test_actor_id):
        item = create_item(warehouse)
        ledger.append(_spec(item, IN, "40", reference_number="BP-1"), test_actor_id)
        ledger.append(_spec(item, IN, "10", reference_number="BP-2"), test_actor_id)

        result = ledger.reverse("BP-1", test_actor_id)

        assert result.count == 1
        assert item.current_stock == Decimal("10")
        assert ledger.movements_for_reference("BP-1") == []
        assert len(ledger.movements_for_reference("BP-2")) == 1

    def test_reverse_only_touches_requested_direction(
        self, ledger, warehouse, create_item, test_actor_id,
    ):
        item = create_item(warehouse)
        ledger.append(_spec(item, IN, "40", reference_number="R-1"), test_actor_id)
        ledger.append(_spec(item, OUT, "15", reference_number="R-1"), test_actor_id)

        result = ledger.reverse("R-1", test_actor_id, direction=OUT)

        assert result.count == 1
        assert item.current_stock == Decimal("40")
        assert [m.direction for m in ledger.movements_for_reference("R-1")] == ["in"]

    def test_reverse_consumed_stock_clamps_and_reports(
        self, ledger, warehouse, create_item, test_actor_id, captured_logs,
    ):
        item = create_item(warehouse)
        ledger.append(_spec(item, IN, "100", reference_number="BP-1"), test_actor_id)
        ledger.append(_spec(item, OUT, "80", reference_number="SALE-1"), test_actor_id)

        result = ledger.reverse("BP-1", test_actor_id)

        assert item.current_stock == Decimal("0")
        assert len(result.discrepancies) == 1
        assert result.discrepancies[0].shortfall == Decimal("80")
        assert any(
            r["message"] == "reversal_stock_already_consumed" for r in captured_logs()
        )

    def test_reverse_unknown_reference_is_empty(self, ledger, test_actor_id):
        result = ledger.reverse("NOPE", test_actor_id)
        assert result.count == 0

    def test_reverse_movement_by_id(self, ledger, warehouse, create_item, test_actor_id):
        item = create_item(warehouse)
        ledger.append(_spec(item, IN, "30"), test_actor_id)
        out = ledger.append(_spec(item, OUT, "10"), test_actor_id)

        reversed_ = ledger.reverse_movement(out.movement_id, test_actor_id)

        assert reversed_.balance_after == Decimal("30")
        assert item.current_stock == Decimal("30")

    def test_reverse_missing_movement(self, ledger, test_actor_id):
        with pytest.raises(MovementNotFoundError):
            ledger.reverse_movement(uuid4(), test_actor_id)
