"""Read-only selectors."""

from stock_kernel.selectors.base import BaseSelector
from stock_kernel.selectors.stock_selector import (
    InventoryItemDTO,
    MovementDTO,
    StockSelector,
)

__all__ = [
    "BaseSelector",
    "InventoryItemDTO",
    "MovementDTO",
    "StockSelector",
]
