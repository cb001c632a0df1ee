"""
Module: stock_kernel.db.base
Responsibility: Declarative base classes for every ORM model in the stock
    ledger.  Provides the UUID primary key convention, the type annotation map
    that fixes quantity precision, and the TrackedBase audit mixin.
Architecture position: Kernel > DB.  Lowest-level import target inside the
    kernel.  MUST NOT import from models/, services/, selectors/, domain/, or
    outer layers.

Invariants enforced:
    - UUID primary keys generated with uuid4.
    - Quantity precision: Python Decimal maps to Numeric(38, 9).  Stock
      quantities are fractional (kg, litres) and must never round-trip
      through float in application code.
    - Audit columns: TrackedBase records created_at, updated_at,
      created_by_id and updated_by_id.

Failure modes:
    - IntegrityError on a duplicate primary key.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID stored as String(36) so the same schema runs on PostgreSQL and SQLite.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all stock models.

    Guarantees:
        - id is a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger, safe for monotonic sequences.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps and actor tracking.

    Guarantees:
        - created_at defaults to server NOW() on INSERT unless the caller
          stamps it from an injected clock.
        - updated_at refreshes on every UPDATE.
        - created_by_id is required.  Every row has a creator.
        - updated_by_id is nullable.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


# Re-export UUID for convenience
UUID = PyUUID
