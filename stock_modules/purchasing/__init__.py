"""
Purchasing (``stock_modules.purchasing``).

Purchase documents whose lines post inbound stock on save and are reversed
from the ledger on delete.
"""

from stock_modules.purchasing.models import (
    Purchase,
    PurchaseLine,
    PurchaseLineRequest,
    PurchaseRequest,
    PurchaseResult,
)
from stock_modules.purchasing.service import PurchaseService

__all__ = [
    "Purchase",
    "PurchaseLine",
    "PurchaseLineRequest",
    "PurchaseRequest",
    "PurchaseResult",
    "PurchaseService",
]
