"""
InventoryStore -- persistence access for inventory aggregates.

Responsibility:
    Loads, locks, finds and lazily creates the cached per-warehouse stock
    rows.  Inbound lines are resolved to an aggregate here, through the
    resolution policy in ``stock_kernel.domain.resolution``.

Architecture position:
    Kernel > Services.  Flushes, never commits.

Invariants enforced:
    - Aggregates are created lazily, on the first movement for a
      (product, warehouse) or (name, warehouse) pair.
    - Writes go through ``get_for_update`` so concurrent appends to the same
      aggregate serialise on the row lock (PostgreSQL).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.resolution import (
    AggregateCandidate,
    ResolutionSource,
    resolve_aggregate,
)
from stock_kernel.domain.values import ZERO, InventoryStatus, derive_status
from stock_kernel.exceptions import InventoryItemNotFoundError, WarehouseNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import InventoryItem
from stock_kernel.models.product import Product
from stock_kernel.models.warehouse import Warehouse

logger = get_logger("services.inventory_store")


class InventoryStore:
    """Aggregate lookup, locking and lazy creation."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        default_minimum_stock: Decimal = Decimal("10"),
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._default_minimum_stock = default_minimum_stock

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, item_id: UUID) -> InventoryItem:
        item = self._session.get(InventoryItem, item_id)
        if item is None:
            raise InventoryItemNotFoundError(item_id)
        return item

    def get_for_update(self, item_id: UUID) -> InventoryItem:
        item = self._session.execute(
            select(InventoryItem)
            .where(InventoryItem.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise InventoryItemNotFoundError(item_id)
        return item

    def get_warehouse(self, warehouse_id: UUID) -> Warehouse:
        warehouse = self._session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(warehouse_id)
        return warehouse

    def find_by_product(self, product_id: UUID, warehouse_id: UUID) -> InventoryItem | None:
        return self._session.execute(
            select(InventoryItem)
            .where(InventoryItem.product_id == product_id)
            .where(InventoryItem.warehouse_id == warehouse_id)
        ).scalar_one_or_none()

    def find_by_name(self, name: str, warehouse_id: UUID) -> InventoryItem | None:
        return self._session.execute(
            select(InventoryItem)
            .where(func.lower(InventoryItem.name) == name.strip().lower())
            .where(InventoryItem.warehouse_id == warehouse_id)
            .order_by(InventoryItem.created_at)
            .limit(1)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Creation and resolution
    # ------------------------------------------------------------------

    def create(
        self,
        *,
        name: str,
        warehouse_id: UUID,
        actor_id: UUID,
        product: Product | None = None,
        code: str | None = None,
        unit: str | None = None,
        unit_price: Decimal | None = None,
        minimum_stock: Decimal | None = None,
        category: str | None = None,
        current_stock: Decimal = ZERO,
    ) -> InventoryItem:
        """Create an aggregate, copying catalog fields when a product is given."""
        self.get_warehouse(warehouse_id)

        if minimum_stock is None:
            minimum_stock = (
                product.minimum_stock
                if product is not None and product.minimum_stock
                else self._default_minimum_stock
            )

        item = InventoryItem(
            product_id=product.id if product is not None else None,
            warehouse_id=warehouse_id,
            name=product.name if product is not None else name.strip(),
            code=(code or (product.code if product is not None else None) or None),
            category=category or (product.category if product is not None else None),
            unit=unit or (product.unit if product is not None else "kg"),
            unit_price=(
                unit_price
                if unit_price is not None
                else (product.unit_price if product is not None else ZERO)
            ),
            current_stock=current_stock,
            minimum_stock=minimum_stock,
            status=derive_status(current_stock, minimum_stock).value,
            last_updated=self._clock.now(),
            created_by_id=actor_id,
        )
        if item.code:
            item.code = item.code.upper()
        self._session.add(item)
        self._session.flush()

        logger.info(
            "inventory_item_created",
            extra={
                "inventory_item_id": str(item.id),
                "item_name": item.name,
                "warehouse_id": str(warehouse_id),
                "product_id": str(item.product_id) if item.product_id else None,
            },
        )
        return item

    def resolve_for_inbound(
        self,
        *,
        warehouse_id: UUID,
        name: str,
        actor_id: UUID,
        product: Product | None = None,
        unit: str | None = None,
        unit_price: Decimal | None = None,
    ) -> tuple[InventoryItem, ResolutionSource]:
        """Find or create the aggregate an inbound line lands on."""
        by_product = (
            self.find_by_product(product.id, warehouse_id) if product is not None else None
        )
        lookup_name = product.name if product is not None else name
        by_name = self.find_by_name(lookup_name, warehouse_id) if by_product is None else None

        decision = resolve_aggregate(
            product_id=product.id if product is not None else None,
            by_product=(
                AggregateCandidate(by_product.id, by_product.product_id)
                if by_product is not None else None
            ),
            by_name=(
                AggregateCandidate(by_name.id, by_name.product_id)
                if by_name is not None else None
            ),
        )

        if decision.creates_aggregate:
            item = self.create(
                name=name,
                warehouse_id=warehouse_id,
                actor_id=actor_id,
                product=product,
                unit=unit,
                unit_price=unit_price,
            )
        else:
            item = self.get_for_update(decision.aggregate_id)
            if decision.link_product_id is not None:
                item.product_id = decision.link_product_id
                item.updated_by_id = actor_id
                self._session.flush()
                logger.info(
                    "inventory_item_linked_to_product",
                    extra={
                        "inventory_item_id": str(item.id),
                        "product_id": str(decision.link_product_id),
                    },
                )

        logger.debug(
            "inventory_item_resolved",
            extra={
                "inventory_item_id": str(item.id),
                "resolution": decision.source.value,
            },
        )
        return item, decision.source

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_stock(
        self,
        item: InventoryItem,
        current_stock: Decimal,
        actor_id: UUID | None = None,
        preserve_discontinued: bool = True,
    ) -> InventoryItem:
        """Overwrite the cached stock and re-derive status."""
        item.current_stock = max(ZERO, current_stock)
        item.status = derive_status(
            item.current_stock,
            item.minimum_stock,
            InventoryStatus(item.status),
            preserve_discontinued=preserve_discontinued,
        ).value
        item.last_updated = self._clock.now()
        if actor_id is not None:
            item.updated_by_id = actor_id
        self._session.flush()
        return item

    def set_discontinued(
        self,
        item: InventoryItem,
        discontinued: bool,
        actor_id: UUID,
    ) -> InventoryItem:
        if discontinued:
            item.status = InventoryStatus.DISCONTINUED.value
        else:
            item.status = derive_status(item.current_stock, item.minimum_stock).value
        item.updated_by_id = actor_id
        item.last_updated = self._clock.now()
        self._session.flush()
        logger.info(
            "inventory_item_status_overridden",
            extra={"inventory_item_id": str(item.id), "status": item.status},
        )
        return item
