"""
Configuration schema (``stock_config.schema``).

``StockSettings`` is the typed, frozen form of the YAML settings file.
Validation happens in ``__post_init__`` and raises ``ValueError`` with a
message naming the offending key.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class StockSettings:
    """
    Runtime settings for the stock ledger and its processors.

    Field defaults are the shipped behaviour; ``defaults.yaml`` mirrors them.
    """

    # Resolution policy
    default_warehouse_id: UUID | None = None
    default_minimum_stock: Decimal = Decimal("10")

    # Reconciliation
    reconcile_overwrites_discontinued: bool = False

    # Capacity
    enforce_warehouse_capacity: bool = False

    # Transfers
    revalidate_on_approve: bool = True
    revalidate_on_dispatch: bool = True
    transfer_number_prefix: str = "TRF"
    transfer_number_width: int = 6

    # Business numbers
    purchase_number_prefix: str = "BP"
    production_batch_prefix: str = "PB"
    production_reference_prefix: str = "PROD"
    manual_reference_prefix: str = "MANUAL"

    def __post_init__(self) -> None:
        if self.default_minimum_stock < 0:
            raise ValueError("default_minimum_stock cannot be negative")
        if not 1 <= self.transfer_number_width <= 12:
            raise ValueError("transfer_number_width must be between 1 and 12")
        for name in (
            "transfer_number_prefix",
            "purchase_number_prefix",
            "production_batch_prefix",
            "production_reference_prefix",
            "manual_reference_prefix",
        ):
            if not getattr(self, name).strip():
                raise ValueError(f"{name} must not be empty")

    @classmethod
    def with_defaults(cls) -> StockSettings:
        return cls()

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    def replace(self, **changes: Any) -> StockSettings:
        from dataclasses import replace

        return replace(self, **changes)
