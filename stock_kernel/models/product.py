"""
Module: stock_kernel.models.product
Responsibility: ORM persistence for the product catalog -- the canonical list
    of things the business stocks.  Inventory aggregates optionally link to a
    catalog product and copy its denormalised name, code and unit.
Architecture position: Kernel > Models.  May import from db/base.py only.

Failure modes:
    - IntegrityError on a duplicate product code.
"""

from decimal import Decimal

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase


class Product(TrackedBase):
    """A catalog product."""

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("code", name="uq_product_code"),
        Index("idx_product_name", "name"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="kg")
    unit_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    minimum_stock: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Product {self.code}: {self.name}>"
