"""
Balance arithmetic (``stock_kernel.domain.balance``).

Pure functions shared by the live aggregate update path and the replay used
by reconciliation, so both derive stock the same way.  ZERO I/O.

Replay rules
------------
* Movements are consumed in insertion order.
* A movement whose reason is ``"Initial Stock"`` resets the running
  balance to its quantity.
* Every other movement adds (``in``) or subtracts (``out``) its quantity.
* The final result is floored at zero.

For a ledger without seed entries the result is ``max(0, sum_in - sum_out)``
whatever the ordering.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from stock_kernel.domain.values import INITIAL_STOCK_REASON, ZERO, MovementDirection


class MovementLike(Protocol):
    direction: str
    quantity: Decimal
    reason: str


@dataclass(frozen=True)
class BalanceStep:
    """Minimal movement shape for replay outside the ORM."""

    direction: MovementDirection
    quantity: Decimal
    reason: str = ""


@dataclass(frozen=True)
class AppliedDelta:
    """Result of applying one movement to a cached balance."""

    new_balance: Decimal
    shortfall: Decimal = ZERO

    @property
    def clamped(self) -> bool:
        return self.shortfall > ZERO


def _direction(value) -> MovementDirection:
    return value if isinstance(value, MovementDirection) else MovementDirection(value)


def replay_balance(movements: Iterable[MovementLike]) -> Decimal:
    """Recompute a balance from movements already sorted by insertion order."""
    running = ZERO
    for movement in movements:
        if movement.reason == INITIAL_STOCK_REASON:
            running = Decimal(movement.quantity)
        elif _direction(movement.direction) == MovementDirection.IN:
            running += movement.quantity
        else:
            running -= movement.quantity
    return max(ZERO, running)


def apply_delta(
    current: Decimal,
    direction: MovementDirection | str,
    quantity: Decimal,
    reason: str = "",
) -> AppliedDelta:
    """
    Apply one movement to a cached balance.

    Subtractions clamp at zero; the amount that could not be subtracted is
    returned as ``shortfall`` so the caller can warn about it.
    """
    if reason == INITIAL_STOCK_REASON:
        return AppliedDelta(new_balance=quantity)
    if _direction(direction) == MovementDirection.IN:
        return AppliedDelta(new_balance=current + quantity)
    remaining = current - quantity
    if remaining < ZERO:
        return AppliedDelta(new_balance=ZERO, shortfall=-remaining)
    return AppliedDelta(new_balance=remaining)


def invert(direction: MovementDirection | str) -> MovementDirection:
    """Direction that undoes a movement."""
    if _direction(direction) == MovementDirection.IN:
        return MovementDirection.OUT
    return MovementDirection.IN
