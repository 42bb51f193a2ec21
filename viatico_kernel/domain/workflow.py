"""
Canonical workflow types (``viatico_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for state machines: Guard, Transition and Workflow.
The viatic request lifecycle in ``domain/request_workflow.py`` is one
instance; the service layer consults it before every state change.

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


@dataclass(frozen=True)
class Guard:
    """A named condition that must hold before a transition fires.

    The workflow service looks up an evaluator by ``name`` and refuses the
    transition when it fails or when no evaluator is registered.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition.

    ``required_role`` names the actor role allowed to fire it.
    ``to_state`` equal to ``from_state`` marks an idempotent re-application
    (for example registering a payment on a request that is already PAID).
    """
    from_state: str
    to_state: str
    action: str
    required_role: str | None = None
    guard: Guard | None = None


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
                f"Workflow {self.name}: initial state {self.initial_state} "
                "is not a declared state"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} "
                    f"{t.from_state}->{t.to_state} references an unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state} "
                    f"has outgoing transition {t.action}"
                )

    def actions(self) -> tuple[str, ...]:
        """Distinct action names, in declaration order."""
        seen: dict[str, None] = {}
        for t in self.transitions:
            seen.setdefault(t.action, None)
        return tuple(seen)

    def sources_for(self, action: str) -> tuple[str, ...]:
        """States from which ``action`` may fire."""
        return tuple(t.from_state for t in self.transitions if t.action == action)

    def find(self, action: str, from_state: str) -> Transition | None:
        """The transition for ``action`` out of ``from_state``, if any."""
        for t in self.transitions:
            if t.action == action and t.from_state == from_state:
                return t
        return None

    def required_role(self, action: str) -> str | None:
        """Role required for ``action`` (uniform across its transitions)."""
        for t in self.transitions:
            if t.action == action:
                return t.required_role
        return None
