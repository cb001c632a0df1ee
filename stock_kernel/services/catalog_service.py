"""
Product catalog lookup.

Cascade processors receive free-text product keys on purchase and production
lines and need the canonical catalog product, if any.  ``CatalogLookup`` is
the collaborator interface; ``ProductCatalog`` is the default implementation
over the ``products`` table.
"""

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.resolution import match_product_name
from stock_kernel.logging_config import get_logger
from stock_kernel.models.product import Product

logger = get_logger("services.catalog")


class CatalogLookup(Protocol):
    def get(self, product_id: UUID) -> Product | None: ...

    def find_by_name(self, key: str) -> Product | None: ...


class ProductCatalog:
    """Catalog lookup backed by the ``products`` table."""

    def __init__(self, session: Session):
        self._session = session

    def get(self, product_id: UUID) -> Product | None:
        return self._session.get(Product, product_id)

    def get_by_code(self, code: str) -> Product | None:
        return self._session.execute(
            select(Product).where(Product.code == code.strip().upper())
        ).scalar_one_or_none()

    def find_by_name(self, key: str) -> Product | None:
        """Exact case-insensitive name match first, then substring match."""
        needle = key.strip()
        if not needle:
            return None
        candidates = self._session.execute(
            select(Product)
            .where(Product.name.ilike(f"%{needle}%"))
            .where(Product.is_active.is_(True))
            .order_by(Product.name)
        ).scalars().all()
        product = match_product_name(needle, candidates)
        logger.debug(
            "catalog_lookup",
            extra={
                "key": needle,
                "candidates": len(candidates),
                "matched": str(product.id) if product else None,
            },
        )
        return product
