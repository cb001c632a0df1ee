"""Services for the stock kernel (write side)."""

from stock_kernel.services.capacity_service import WarehouseCapacityTracker
from stock_kernel.services.catalog_service import CatalogLookup, ProductCatalog
from stock_kernel.services.inventory_store import InventoryStore
from stock_kernel.services.ledger_service import (
    AppendResult,
    MovementSpec,
    ReversalResult,
    ReversedMovement,
    StockLedger,
)
from stock_kernel.services.posting_service import (
    CascadeReversal,
    InboundPosting,
    StockPostingService,
)
from stock_kernel.services.reconciliation_service import (
    ReconciliationService,
    ReconciliationSummary,
)
from stock_kernel.services.sequence_service import SequenceService, format_sequence_number

__all__ = [
    "AppendResult",
    "CascadeReversal",
    "InboundPosting",
    "CatalogLookup",
    "InventoryStore",
    "MovementSpec",
    "ProductCatalog",
    "ReconciliationService",
    "ReconciliationSummary",
    "ReversalResult",
    "ReversedMovement",
    "SequenceService",
    "StockLedger",
    "StockPostingService",
    "WarehouseCapacityTracker",
    "format_sequence_number",
]
