"""
Stock Modules.

Document-driven orchestration over the stock kernel.  Each module owns its
documents (ORM + frozen DTOs) and one service that posts their stock
effect through the kernel ledger and commits the unit of work:

- purchasing: purchases received into a warehouse
- production: raw material consumed, finished goods received
- adjustments: manual stock entries, stock counts, opening balances
- transfers: warehouse-to-warehouse transfer workflow
"""
