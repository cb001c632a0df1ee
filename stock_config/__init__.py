"""
stock_config -- single public entrypoint for stock ledger settings.

``get_active_settings()`` is the only way runtime code obtains settings.
Without an explicit path it reads the bundled ``defaults.yaml``.  Every call
logs a ``stock_config_loaded`` trace with the source path.
"""

from __future__ import annotations

from pathlib import Path

from stock_config.loader import load_settings, parse_settings
from stock_config.schema import StockSettings
from stock_kernel.logging_config import get_logger

logger = get_logger("config")

_DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_settings(path: Path | str | None = None) -> StockSettings:
    """Load and validate settings from ``path`` (or the bundled defaults)."""
    source = Path(path) if path is not None else _DEFAULT_SETTINGS_PATH
    settings = load_settings(source)
    logger.info(
        "stock_config_loaded",
        extra={
            "source": str(source),
            "enforce_warehouse_capacity": settings.enforce_warehouse_capacity,
            "reconcile_overwrites_discontinued": settings.reconcile_overwrites_discontinued,
        },
    )
    return settings


__all__ = [
    "StockSettings",
    "get_active_settings",
    "load_settings",
    "parse_settings",
]
