"""
Canonical workflow types (``assessment_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for state machines.  The additionals entry lifecycle,
the FRC lifecycle and the assessment stage lifecycle are each declared once
as a ``Workflow`` and every state change is checked against it.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* A workflow whose start state or any transition endpoint is undeclared
  fails at import time, not on first use.
* No transition leaves a state listed in ``terminal_states``.
* ``require_transition`` raises ``InvalidTransitionError`` for any action
  the workflow does not declare from the current state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from assessment_kernel.exceptions import InvalidTransitionError


@dataclass(frozen=True)
class Guard:
    """Named precondition on a transition.  Documentation only; the aggregate checks it."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """Declared lifecycle: states, the start state, and the actions that move between them.

    ``terminal_states`` lists states nothing may leave, e.g. a cancelled
    assessment.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action!r} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action!r} leaves terminal state {t.from_state!r}"
                )
        for state in self.terminal_states:
            if state not in self.states:
                raise ValueError(f"Workflow {self.name}: terminal state {state!r} not in states")

    def find_transition(self, from_state: str, action: str) -> Transition | None:
        return next(
            (t for t in self.transitions if (t.from_state, t.action) == (from_state, action)),
            None,
        )

    def allowed_actions(self, from_state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == from_state)

    def require_transition(
        self,
        from_state: str,
        action: str,
        entity_type: str,
        entity_id: Any,
    ) -> Transition:
        """Return the transition for ``action`` or raise InvalidTransitionError."""
        transition = self.find_transition(from_state, action)
        if transition is None:
            allowed = ", ".join(self.allowed_actions(from_state)) or "none"
            raise InvalidTransitionError(
                entity_type=entity_type,
                entity_id=entity_id,
                current_state=from_state,
                action=action,
                detail=f"allowed actions: {allowed}",
            )
        return transition
