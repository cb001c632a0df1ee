"""
Pure domain layer.

Value types, balance arithmetic, the resolution policy and workflow
definitions, with NO dependencies on the ORM, the database or I/O.
"""

from stock_kernel.domain.balance import (
    AppliedDelta,
    BalanceStep,
    apply_delta,
    invert,
    replay_balance,
)
from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.resolution import (
    AggregateCandidate,
    ResolutionDecision,
    ResolutionSource,
    match_product_name,
    resolve_aggregate,
    resolve_warehouse,
)
from stock_kernel.domain.results import FailureDetail, PartialFailure
from stock_kernel.domain.values import (
    INITIAL_STOCK_REASON,
    Actor,
    InventoryStatus,
    MovementDirection,
    WarehouseStatus,
    derive_status,
)
from stock_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "INITIAL_STOCK_REASON",
    "Actor",
    "AggregateCandidate",
    "AppliedDelta",
    "BalanceStep",
    "Clock",
    "DeterministicClock",
    "FailureDetail",
    "Guard",
    "InventoryStatus",
    "MovementDirection",
    "PartialFailure",
    "ResolutionDecision",
    "ResolutionSource",
    "SystemClock",
    "Transition",
    "WarehouseStatus",
    "Workflow",
    "apply_delta",
    "derive_status",
    "invert",
    "match_product_name",
    "replay_balance",
    "resolve_aggregate",
    "resolve_warehouse",
]
