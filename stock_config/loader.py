"""
Configuration loader (``stock_config.loader``).

Loads a YAML settings file and parses it into ``StockSettings``.  Runtime
code goes through ``stock_config.get_active_settings()`` instead of calling
this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from stock_config.schema import StockSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_decimal(key: str, value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key} must be a number, got {value!r}") from None


def _parse_uuid(key: str, value: Any) -> UUID | None:
    if value in (None, ""):
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise ValueError(f"{key} must be a UUID, got {value!r}") from None


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"{key} must be true or false, got {value!r}")


def parse_settings(data: dict[str, Any]) -> StockSettings:
    """Build ``StockSettings`` from a parsed YAML mapping."""
    section = data.get("stock", data)
    if not isinstance(section, dict):
        raise ValueError("settings must be a mapping")

    unknown = set(section) - StockSettings.field_names()
    if unknown:
        raise ValueError(f"unknown settings: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    for key, value in section.items():
        if key == "default_warehouse_id":
            kwargs[key] = _parse_uuid(key, value)
        elif key == "default_minimum_stock":
            kwargs[key] = _parse_decimal(key, value)
        elif key in (
            "reconcile_overwrites_discontinued",
            "enforce_warehouse_capacity",
            "revalidate_on_approve",
            "revalidate_on_dispatch",
        ):
            kwargs[key] = _parse_bool(key, value)
        elif key == "transfer_number_width":
            kwargs[key] = int(value)
        else:
            kwargs[key] = str(value)

    return StockSettings(**kwargs)


def load_settings(path: Path) -> StockSettings:
    return parse_settings(load_yaml_file(path))
