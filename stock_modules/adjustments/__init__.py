"""
Manual adjustments (``stock_modules.adjustments``).

Stock-in / stock-out entries, stock counts, opening balances and the
Discontinued override for a single inventory item.
"""

from stock_modules.adjustments.service import MANUAL_UPDATE_REASON, StockAdjustmentService

__all__ = ["MANUAL_UPDATE_REASON", "StockAdjustmentService"]
