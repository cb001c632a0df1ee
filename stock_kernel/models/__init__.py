"""ORM models for the stock kernel."""

from stock_kernel.models.inventory import InventoryItem
from stock_kernel.models.movement import StockMovement
from stock_kernel.models.product import Product
from stock_kernel.models.warehouse import Warehouse
from stock_kernel.models.sequence import SequenceCounter

__all__ = [
    "InventoryItem",
    "Product",
    "SequenceCounter",
    "StockMovement",
    "Warehouse",
]
