"""
Tests for StockPostingService.

Inbound posting resolves the aggregate and moves the usage counter;
reference reversal isolates each movement in its own savepoint.
"""

from decimal import Decimal

import pytest

from stock_kernel.domain.resolution import ResolutionSource
from stock_kernel.domain.values import MovementDirection
from stock_kernel.exceptions import CapacityExceededError
from stock_kernel.services.posting_service import StockPostingService


@pytest.fixture
def posting(session, deterministic_clock):
    return StockPostingService(session, deterministic_clock)


class TestPostInbound:

    def test_creates_aggregate_and_updates_usage(self, posting, create_warehouse, test_actor_id):
        warehouse = create_warehouse()

        result = posting.post_inbound(
            warehouse_id=warehouse.id,
            product_key="Wheat",
            quantity=Decimal("100"),
            reason="Purchase - BP-1",
            reference_number="BP-1",
            actor_id=test_actor_id,
        )

        assert result.resolution == ResolutionSource.CREATED
        assert result.product_id is None
        assert result.append.balance_after == Decimal("100")
        assert warehouse.current_usage == Decimal("100")

    def test_links_catalog_product(self, posting, create_warehouse, create_product, test_actor_id):
        warehouse = create_warehouse()
        product = create_product("Durum Wheat", unit="bags")

        result = posting.post_inbound(
            warehouse_id=warehouse.id,
            product_key="durum",
            quantity=Decimal("5"),
            reason="Purchase - BP-2",
            reference_number="BP-2",
            actor_id=test_actor_id,
        )

        item = posting.store.get(result.append.inventory_item_id)
        assert result.product_id == product.id
        assert item.product_id == product.id
        assert item.name == "Durum Wheat"
        assert item.unit == "bags"

    def test_capacity_enforced_before_append(
        self, session, deterministic_clock, create_warehouse, test_actor_id,
    ):
        warehouse = create_warehouse(total_capacity=Decimal("50"))
        posting = StockPostingService(session, deterministic_clock, enforce_capacity=True)

        with pytest.raises(CapacityExceededError):
            posting.post_inbound(
                warehouse_id=warehouse.id,
                product_key="Wheat",
                quantity=Decimal("60"),
                reason="Purchase - BP-3",
                reference_number="BP-3",
                actor_id=test_actor_id,
            )

        assert posting.ledger.movements_for_reference("BP-3") == []
        assert warehouse.current_usage == Decimal("0")


class TestPostOutbound:

    def test_decrements_stock_and_usage(self, posting, create_warehouse, test_actor_id):
        warehouse = create_warehouse()
        inbound = posting.post_inbound(
            warehouse_id=warehouse.id,
            product_key="Wheat",
            quantity=Decimal("100"),
            reason="Seed",
            reference_number="S-1",
            actor_id=test_actor_id,
        )

        result = posting.post_outbound(
            inventory_item_id=inbound.append.inventory_item_id,
            quantity=Decimal("30"),
            reason="Transfer Out",
            reference_number="TRF000001",
            actor_id=test_actor_id,
        )

        assert result.balance_after == Decimal("70")
        assert warehouse.current_usage == Decimal("70")


class TestReverseReference:

    def test_reverses_inbound_and_releases_usage(self, posting, create_warehouse, test_actor_id):
        warehouse = create_warehouse()
        for key in ("Wheat", "Rice"):
            posting.post_inbound(
                warehouse_id=warehouse.id,
                product_key=key,
                quantity=Decimal("20"),
                reason="Purchase - BP-9",
                reference_number="BP-9",
                actor_id=test_actor_id,
            )

        cascade = posting.reverse_reference("BP-9", test_actor_id)

        assert len(cascade.reversed) == 2
        assert not cascade.reversal_errors
        assert cascade.discrepancies == ()
        assert warehouse.current_usage == Decimal("0")
        assert posting.ledger.movements_for_reference("BP-9") == []

    def test_reports_consumed_stock(self, posting, create_warehouse, test_actor_id):
        warehouse = create_warehouse()
        inbound = posting.post_inbound(
            warehouse_id=warehouse.id,
            product_key="Wheat",
            quantity=Decimal("50"),
            reason="Purchase - BP-10",
            reference_number="BP-10",
            actor_id=test_actor_id,
        )
        posting.post_outbound(
            inventory_item_id=inbound.append.inventory_item_id,
            quantity=Decimal("45"),
            reason="Sale",
            reference_number="SALE-1",
            actor_id=test_actor_id,
        )

        cascade = posting.reverse_reference("BP-10", test_actor_id)

        assert len(cascade.discrepancies) == 1
        assert cascade.discrepancies[0].shortfall == Decimal("45")
        assert posting.store.get(inbound.append.inventory_item_id).current_stock == Decimal("0")

    def test_both_directions(self, posting, create_warehouse, test_actor_id):
        warehouse = create_warehouse()
        raw = posting.post_inbound(
            warehouse_id=warehouse.id,
            product_key="Wheat",
            quantity=Decimal("100"),
            reason="Seed",
            reference_number="SEED",
            actor_id=test_actor_id,
        )
        posting.post_outbound(
            inventory_item_id=raw.append.inventory_item_id,
            quantity=Decimal("40"),
            reason="Production",
            reference_number="PROD-1",
            actor_id=test_actor_id,
        )
        posting.post_inbound(
            warehouse_id=warehouse.id,
            product_key="Flour",
            quantity=Decimal("35"),
            reason="Production",
            reference_number="PROD-1",
            actor_id=test_actor_id,
        )

        cascade = posting.reverse_reference(
            "PROD-1",
            test_actor_id,
            directions=(MovementDirection.IN, MovementDirection.OUT),
        )

        assert {r.direction for r in cascade.reversed} == {
            MovementDirection.IN, MovementDirection.OUT,
        }
        assert posting.store.get(raw.append.inventory_item_id).current_stock == Decimal("100")
        assert warehouse.current_usage == Decimal("100")
