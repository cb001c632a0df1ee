"""
Stock Transfers (``stock_modules.transfers``).

Warehouse-to-warehouse transfers with an approval / dispatch / receipt /
completion lifecycle.  Availability is validated against the stock ledger,
dispatch and completion post ledger movements, and receipts record
quantity discrepancies instead of failing on them.
"""

from stock_modules.transfers.models import (
    ItemCondition,
    ReceivedItem,
    StockTransfer,
    TransferDiscrepancy,
    TransferItem,
    TransferItemRequest,
    TransferPriority,
    TransferRequest,
    TransferStatus,
    TransferType,
)
from stock_modules.transfers.selectors import TransferSelector
from stock_modules.transfers.service import StockTransferService
from stock_modules.transfers.workflows import TRANSFER_WORKFLOW

__all__ = [
    "ItemCondition",
    "ReceivedItem",
    "StockTransfer",
    "StockTransferService",
    "TRANSFER_WORKFLOW",
    "TransferDiscrepancy",
    "TransferItem",
    "TransferItemRequest",
    "TransferPriority",
    "TransferRequest",
    "TransferSelector",
    "TransferStatus",
    "TransferType",
]
