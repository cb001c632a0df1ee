"""
Module ORM Registry (``stock_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` contains its table before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  ``stock_kernel.db.engine.create_tables``
imports it lazily, inside the function, so the kernel keeps no import-time
dependency on the modules.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``stock_modules.*.orm`` module.

    Kernel tables (warehouses, products, inventory_items, stock_movements,
    sequence_counters) are registered first because module tables hold
    foreign keys to them.  Idempotent.
    """
    import stock_kernel.models  # noqa: F401
    # fmt: off
    import stock_modules.production.orm  # noqa: F401
    import stock_modules.purchasing.orm  # noqa: F401
    import stock_modules.transfers.orm  # noqa: F401
    # fmt: on
