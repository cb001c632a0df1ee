"""
Tests for ReconciliationService.

Aggregates and warehouse usage counters are rebuilt from the movement
ledger, idempotently, with per-item failure isolation.
"""

from decimal import Decimal

import pytest

from stock_kernel.domain.values import InventoryStatus, MovementDirection
from stock_kernel.exceptions import StockKernelError
from stock_kernel.services.ledger_service import MovementSpec, StockLedger
from stock_kernel.services.reconciliation_service import ReconciliationService

IN = MovementDirection.IN
OUT = MovementDirection.OUT


@pytest.fixture
def ledger(session, deterministic_clock):
    return StockLedger(session, deterministic_clock)


@pytest.fixture
def reconciliation(session, deterministic_clock):
    return ReconciliationService(session, deterministic_clock)


def _post(ledger, item, direction, quantity, actor_id, reason="Test"):
    return ledger.append(
        MovementSpec(item.id, direction, Decimal(quantity), reason=reason),
        actor_id,
    )


class TestRecalculateOne:

    def test_repairs_drifted_cache(
        self, session, ledger, reconciliation, create_warehouse, create_item, test_actor_id,
    ):
        warehouse = create_warehouse()
        item = create_item(warehouse)
        _post(ledger, item, IN, "100", test_actor_id)
        _post(ledger, item, OUT, "30", test_actor_id)
        item.current_stock = Decimal("5")
        session.flush()

        reconciliation.recalculate_one(item.id)

        assert item.current_stock == Decimal("70")
        assert item.status == InventoryStatus.ACTIVE.value

    def test_replay_floors_only_at_the_end(
        self, session, ledger, reconciliation, create_warehouse, create_item, test_actor_id,
    ):
        warehouse = create_warehouse()
        item = create_item(warehouse)
        # Live path clamps the OUT to zero, then adds 80.
        _post(ledger, item, OUT, "50", test_actor_id)
        _post(ledger, item, IN, "80", test_actor_id)
        assert item.current_stock == Decimal("80")

        reconciliation.recalculate_one(item.id)

        assert item.current_stock == Decimal("30")

    def test_item_without_movements_keeps_stock(
        self, reconciliation, create_warehouse, create_item,
    ):
        warehouse = create_warehouse()
        item = create_item(
            warehouse,
            current_stock=Decimal("5"),
            status=InventoryStatus.ACTIVE,
        )

        reconciliation.recalculate_one(item.id)

        assert item.current_stock == Decimal("5")
        assert item.status == InventoryStatus.LOW_STOCK.value

    def test_preserves_discontinued_by_default(
        self, ledger, reconciliation, create_warehouse, create_item, test_actor_id,
    ):
        warehouse = create_warehouse()
        item = create_item(warehouse, status=InventoryStatus.DISCONTINUED)
        _post(ledger, item, IN, "100", test_actor_id)

        reconciliation.recalculate_one(item.id)

        assert item.status == InventoryStatus.DISCONTINUED.value

    def test_override_discontinued(
        self, session, deterministic_clock, ledger, create_warehouse, create_item, test_actor_id,
    ):
        warehouse = create_warehouse()
        item = create_item(warehouse, status=InventoryStatus.DISCONTINUED)
        _post(ledger, item, IN, "100", test_actor_id)

        service = ReconciliationService(
            session, deterministic_clock, override_discontinued=True,
        )
        service.recalculate_one(item.id)

        assert item.status == InventoryStatus.ACTIVE.value

    def test_logs_only_when_stock_changes(
        self, session, ledger, reconciliation, create_warehouse, create_item,
        test_actor_id, captured_logs,
    ):
        warehouse = create_warehouse()
        item = create_item(warehouse)
        _post(ledger, item, IN, "10", test_actor_id)

        reconciliation.recalculate_one(item.id)
        assert not any(
            r["message"] == "inventory_item_reconciled" for r in captured_logs()
        )

        item.current_stock = Decimal("1")
        session.flush()
        reconciliation.recalculate_one(item.id)
        reconciled = [
            r for r in captured_logs() if r["message"] == "inventory_item_reconciled"
        ]
        assert len(reconciled) == 1
        assert Decimal(reconciled[0]["previous_stock"]) == Decimal("1")


class TestRecalculateAll:

    def test_rebuilds_every_aggregate(
        self, session, ledger, reconciliation, create_warehouse, create_item, test_actor_id,
    ):
        warehouse = create_warehouse()
        wheat = create_item(warehouse, name="Wheat")
        rice = create_item(warehouse, name="Rice")
        _post(ledger, wheat, IN, "40", test_actor_id)
        _post(ledger, rice, IN, "15", test_actor_id)
        wheat.current_stock = Decimal("0")
        rice.current_stock = Decimal("1000")
        session.flush()

        summary = reconciliation.recalculate_all()

        assert summary.total == 2
        assert summary.updated == 2
        assert summary.errors == 0
        assert summary.success
        assert wheat.current_stock == Decimal("40")
        assert rice.current_stock == Decimal("15")

    def test_failure_is_collected_and_later_items_still_rebuilt(
        self, session, ledger, reconciliation, create_warehouse, create_item,
        test_actor_id, monkeypatch, captured_logs,
    ):
        warehouse = create_warehouse()
        rice = create_item(warehouse, name="Rice")
        wheat = create_item(warehouse, name="Wheat")
        _post(ledger, rice, IN, "15", test_actor_id)
        _post(ledger, wheat, IN, "40", test_actor_id)
        rice.current_stock = Decimal("1000")
        wheat.current_stock = Decimal("0")
        session.flush()

        replay = reconciliation._ledger.compute_balance

        def _failing_for_rice(item_id):
            if item_id == rice.id:
                raise StockKernelError("ledger unreadable")
            return replay(item_id)

        monkeypatch.setattr(reconciliation._ledger, "compute_balance", _failing_for_rice)

        summary = reconciliation.recalculate_all()

        assert (summary.total, summary.updated, summary.errors) == (2, 1, 1)
        assert not summary.success
        (failure,) = summary.failures
        assert failure.subject == "Rice"
        assert failure.subject_id == rice.id
        assert failure.code == "STOCK_KERNEL_ERROR"
        assert failure.message == "ledger unreadable"

        session.refresh(rice)
        assert rice.current_stock == Decimal("1000")
        assert wheat.current_stock == Decimal("40")
        assert any(
            r["message"] == "inventory_item_reconciliation_failed" for r in captured_logs()
        )

    def test_idempotent(
        self, ledger, reconciliation, create_warehouse, create_item, test_actor_id,
    ):
        warehouse = create_warehouse()
        item = create_item(warehouse)
        _post(ledger, item, IN, "40", test_actor_id)
        _post(ledger, item, OUT, "15", test_actor_id)

        reconciliation.recalculate_all()
        first = (item.current_stock, item.status)
        reconciliation.recalculate_all()

        assert (item.current_stock, item.status) == first

    def test_empty_database(self, reconciliation):
        summary = reconciliation.recalculate_all()
        assert (summary.total, summary.updated, summary.errors) == (0, 0, 0)


class TestWarehouseUsage:

    def test_usage_is_sum_of_item_balances(
        self, session, ledger, reconciliation, create_warehouse, create_item, test_actor_id,
    ):
        warehouse = create_warehouse(current_usage=Decimal("999"))
        wheat = create_item(warehouse, name="Wheat")
        create_item(warehouse, name="Legacy", current_stock=Decimal("7"))
        _post(ledger, wheat, IN, "40", test_actor_id)
        _post(ledger, wheat, OUT, "10", test_actor_id)

        usage = reconciliation.recalculate_warehouse_usage(warehouse.id)

        assert usage == Decimal("37")
        session.refresh(warehouse)
        assert warehouse.current_usage == Decimal("37")

    def test_all_warehouses(
        self, ledger, reconciliation, create_warehouse, create_item, test_actor_id,
    ):
        first = create_warehouse(current_usage=Decimal("5"))
        second = create_warehouse(current_usage=Decimal("5"))
        item = create_item(first)
        _post(ledger, item, IN, "12", test_actor_id)

        summary = reconciliation.recalculate_all_warehouse_usage()

        assert summary.total == 2
        assert summary.success
        assert first.current_usage == Decimal("12")
        assert second.current_usage == Decimal("0")
