"""
Production (``stock_modules.production``).

Production batches that consume raw material from one warehouse and receive
finished products into another, reversed from the ledger on delete.
"""

from stock_modules.production.models import (
    ProductionBatch,
    ProductionOutput,
    ProductionOutputRequest,
    ProductionRequest,
    ProductionResult,
)
from stock_modules.production.service import ProductionService

__all__ = [
    "ProductionBatch",
    "ProductionOutput",
    "ProductionOutputRequest",
    "ProductionRequest",
    "ProductionResult",
    "ProductionService",
]
