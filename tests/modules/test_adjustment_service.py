"""
Tests for StockAdjustmentService.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_config import StockSettings
from stock_kernel.domain.values import InventoryStatus, MovementDirection
from stock_kernel.exceptions import (
    CapacityExceededError,
    InventoryItemNotFoundError,
    ValidationError,
)
from stock_kernel.selectors.stock_selector import StockSelector
from stock_modules.adjustments import MANUAL_UPDATE_REASON, StockAdjustmentService


@pytest.fixture
def adjustments(session, deterministic_clock, settings):
    return StockAdjustmentService(session, deterministic_clock, settings)


@pytest.fixture
def stocked_item(session, create_warehouse, create_item):
    warehouse = create_warehouse(current_usage=Decimal("50"))
    item = create_item(warehouse, name="Sugar", current_stock=Decimal("50"))
    session.commit()
    return warehouse, item


class TestPostMovement:

    def test_stock_in_with_generated_reference(self, session, adjustments, stocked_item, actor):
        warehouse, item = stocked_item

        result = adjustments.post_movement(
            item.id, MovementDirection.IN, Decimal("25"), "Found in recount", actor,
        )

        assert result.balance_after == Decimal("75")
        history = StockSelector(session).movement_history(item.id)
        assert history[0].reference_number == "MANUAL-000001"
        session.refresh(warehouse)
        assert warehouse.current_usage == Decimal("75")

    def test_string_direction_accepted(self, adjustments, stocked_item, actor):
        _, item = stocked_item
        result = adjustments.post_movement(item.id, "out", Decimal("5"), "Spillage", actor)
        assert result.balance_after == Decimal("45")

    def test_explicit_reference_kept(self, session, adjustments, stocked_item, actor):
        _, item = stocked_item
        adjustments.post_movement(
            item.id, MovementDirection.OUT, Decimal("5"), "Sale", actor,
            reference_number="INV-77",
        )
        assert len(StockSelector(session).movements_by_reference("INV-77")) == 1

    def test_clamped_stock_out_moves_usage_by_actual_change(
        self, session, adjustments, stocked_item, actor,
    ):
        warehouse, item = stocked_item

        result = adjustments.post_movement(
            item.id, MovementDirection.OUT, Decimal("80"), "Write-off", actor,
        )

        assert result.shortfall == Decimal("30")
        session.refresh(warehouse)
        assert warehouse.current_usage == Decimal("0")

    def test_invalid_direction(self, adjustments, stocked_item, actor):
        _, item = stocked_item
        with pytest.raises(ValidationError) as exc_info:
            adjustments.post_movement(item.id, "sideways", Decimal("1"), "x", actor)
        assert exc_info.value.field == "direction"

    def test_unknown_item(self, adjustments, actor):
        with pytest.raises(InventoryItemNotFoundError):
            adjustments.post_movement(uuid4(), MovementDirection.IN, Decimal("1"), "x", actor)

    def test_capacity_enforced_on_stock_in(
        self, session, deterministic_clock, create_warehouse, create_item, actor,
    ):
        warehouse = create_warehouse(total_capacity=Decimal("60"), current_usage=Decimal("50"))
        item = create_item(warehouse, current_stock=Decimal("50"))
        session.commit()
        service = StockAdjustmentService(
            session, deterministic_clock, StockSettings(enforce_warehouse_capacity=True),
        )

        with pytest.raises(CapacityExceededError):
            service.post_movement(item.id, MovementDirection.IN, Decimal("11"), "Recount", actor)

        assert StockSelector(session).movement_history(item.id) == []


class TestSetStockLevel:

    def test_raises_to_target(self, session, adjustments, stocked_item, actor):
        _, item = stocked_item

        result = adjustments.set_stock_level(item.id, Decimal("80"), actor)

        assert result.direction == MovementDirection.IN
        assert result.quantity == Decimal("30")
        assert result.balance_after == Decimal("80")
        assert StockSelector(session).movement_history(item.id)[0].reason == MANUAL_UPDATE_REASON

    def test_lowers_to_target(self, adjustments, stocked_item, actor):
        _, item = stocked_item

        result = adjustments.set_stock_level(item.id, Decimal("5"), actor)

        assert result.direction == MovementDirection.OUT
        assert result.quantity == Decimal("45")
        assert result.balance_after == Decimal("5")

    def test_unchanged_level_writes_nothing(self, session, adjustments, stocked_item, actor):
        _, item = stocked_item

        assert adjustments.set_stock_level(item.id, Decimal("50"), actor) is None
        assert StockSelector(session).movement_history(item.id) == []

    def test_negative_level_rejected(self, adjustments, stocked_item, actor):
        _, item = stocked_item
        with pytest.raises(ValidationError):
            adjustments.set_stock_level(item.id, Decimal("-1"), actor)


class TestInitialStock:

    def test_seed_sets_balance_and_usage(self, session, adjustments, stocked_item, actor):
        warehouse, item = stocked_item

        result = adjustments.seed_initial_stock(item.id, Decimal("20"), actor)

        assert result.balance_after == Decimal("20")
        session.refresh(warehouse)
        assert warehouse.current_usage == Decimal("20")

    def test_seed_capacity_checks_growth_only(
        self, session, deterministic_clock, create_warehouse, create_item, actor,
    ):
        warehouse = create_warehouse(total_capacity=Decimal("60"), current_usage=Decimal("50"))
        item = create_item(warehouse, current_stock=Decimal("50"))
        session.commit()
        service = StockAdjustmentService(
            session, deterministic_clock, StockSettings(enforce_warehouse_capacity=True),
        )

        result = service.seed_initial_stock(item.id, Decimal("55"), actor)

        assert result.balance_after == Decimal("55")


class TestDiscontinued:

    def test_override_survives_later_movements(self, adjustments, stocked_item, actor):
        _, item = stocked_item

        dto = adjustments.set_discontinued(item.id, True, actor)
        assert dto.status == InventoryStatus.DISCONTINUED

        adjustments.post_movement(item.id, MovementDirection.OUT, Decimal("50"), "Clearance", actor)
        dto = adjustments.set_discontinued(item.id, False, actor)

        assert dto.status == InventoryStatus.OUT_OF_STOCK
        assert dto.current_stock == Decimal("0")
