"""
Stock Kernel

A movement-ledger inventory engine with:
- Append-only stock movements per warehouse
- Cached per-warehouse stock aggregates, rebuildable from the ledger
- Warehouse capacity counters
- Cascade reversal by reference number
"""

__version__ = "0.1.0"
