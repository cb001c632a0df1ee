"""
Resolution policy (``stock_kernel.domain.resolution``).

Decides where an inbound line lands: which warehouse, and which inventory
aggregate inside that warehouse.  Every cascade processor and the transfer
workflow route through these functions; none of them carries its own
fallback chain.  ZERO I/O: callers look the candidates up and pass them in.

Warehouse precedence
--------------------
1. The warehouse the caller named explicitly.
2. The configured default warehouse.
3. Otherwise ``ValidationError``.  There is no hardcoded fallback.

Aggregate precedence
--------------------
1. The aggregate already linked to the catalog product in that warehouse.
2. An aggregate in that warehouse whose name matches case-insensitively.
   If it has no product link and a catalog product is known, it is linked.
3. A new aggregate.

Catalog name matching
---------------------
Exact case-insensitive match first, then the first product whose name
contains the key.  Inactive products are never matched.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol
from uuid import UUID

from stock_kernel.exceptions import ValidationError


class ResolutionSource(str, Enum):
    PRODUCT = "product"
    NAME = "name"
    CREATED = "created"


@dataclass(frozen=True)
class AggregateCandidate:
    """Just enough of an existing aggregate to decide on it."""

    aggregate_id: UUID
    product_id: UUID | None


@dataclass(frozen=True)
class ResolutionDecision:
    source: ResolutionSource
    aggregate_id: UUID | None = None
    link_product_id: UUID | None = None

    @property
    def creates_aggregate(self) -> bool:
        return self.source == ResolutionSource.CREATED


class NamedProduct(Protocol):
    id: UUID
    name: str
    is_active: bool


def resolve_warehouse(
    requested_id: UUID | None,
    default_id: UUID | None,
) -> UUID:
    """Pick the warehouse for an inbound line."""
    if requested_id is not None:
        return requested_id
    if default_id is not None:
        return default_id
    raise ValidationError(
        "warehouse_id",
        "no warehouse given and no default warehouse configured",
    )


def resolve_aggregate(
    product_id: UUID | None,
    by_product: AggregateCandidate | None,
    by_name: AggregateCandidate | None,
) -> ResolutionDecision:
    """Pick the aggregate for an inbound line inside one warehouse."""
    if product_id is not None and by_product is not None:
        return ResolutionDecision(
            source=ResolutionSource.PRODUCT,
            aggregate_id=by_product.aggregate_id,
        )

    if by_name is not None:
        # Never re-point an aggregate that belongs to a different product.
        if (
            product_id is not None
            and by_name.product_id is not None
            and by_name.product_id != product_id
        ):
            return ResolutionDecision(source=ResolutionSource.CREATED)
        link = product_id if (product_id is not None and by_name.product_id is None) else None
        return ResolutionDecision(
            source=ResolutionSource.NAME,
            aggregate_id=by_name.aggregate_id,
            link_product_id=link,
        )

    return ResolutionDecision(source=ResolutionSource.CREATED)


def match_product_name(key: str, products: Iterable[NamedProduct]):
    """Return the catalog product for ``key``: exact match, then substring."""
    needle = key.strip().lower()
    if not needle:
        return None
    active = [p for p in products if p.is_active]
    for product in active:
        if product.name.strip().lower() == needle:
            return product
    for product in active:
        if needle in product.name.lower():
            return product
    return None
