"""
Canonical workflow types (``stock_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines (stock transfers today).
A workflow is declared once as a frozen ``Workflow`` value; services ask it
which transition an action maps to instead of hand-coding status checks.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass

from stock_kernel.exceptions import InvalidStateTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must hold before a transition fires.

    Descriptive only; the owning service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition.

    ``posts_movements=True`` marks transitions that write to the stock ledger.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    posts_movements: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"initial_state '{self.initial_state}' not in states of {self.name}"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"transition '{t.action}' references unknown state in {self.name}"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"terminal state '{t.from_state}' has outgoing transition "
                    f"'{t.action}' in {self.name}"
                )

    def allowed_from(self, action: str) -> tuple[str, ...]:
        """States from which ``action`` may fire."""
        return tuple(t.from_state for t in self.transitions if t.action == action)

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)

    def transition_for(self, current_state: str, action: str, entity: str) -> Transition:
        """
        Look up the transition for ``action`` from ``current_state``.

        Raises:
            InvalidStateTransitionError: the action is not allowed from the
                current state.
        """
        for t in self.transitions:
            if t.from_state == current_state and t.action == action:
                return t
        raise InvalidStateTransitionError(
            entity=entity,
            current_state=current_state,
            action=action,
            allowed_from=self.allowed_from(action),
        )
