"""
Workflow -- declarative document state machines.

Responsibility:
    Frozen value objects describing a document lifecycle: its states, the
    actions that move it between states, and optional guard conditions.
    Each procurement aggregate declares one ``Workflow`` in its
    ``workflows.py``; services ask the workflow before mutating status.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - ``transitions`` reference only states in ``states``.
    - A terminal state has no outgoing transitions.
    - ``transition()`` is the only path by which services obtain a new status,
      so an undeclared move raises ``InvalidStateError`` instead of silently
      writing a status string.
"""

from dataclasses import dataclass, field

from procurement_kernel.exceptions import InvalidStateError


@dataclass(frozen=True)
class Guard:
    """A named precondition evaluated by the owning service before a transition."""

    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """

    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()
    _index: dict[tuple[str, str], Transition] = field(
        init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"{self.name}: initial state {self.initial_state} not declared")
        index: dict[tuple[str, str], Transition] = {}
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"{self.name}: transition {t} references unknown state")
            if t.from_state in self.terminal_states:
                raise ValueError(f"{self.name}: terminal state {t.from_state} has an exit")
            index[(t.from_state, t.action)] = t
        object.__setattr__(self, "_index", index)

    def can_transition(self, current: str, action: str) -> bool:
        return (str(current), action) in self._index

    def actions_from(self, current: str) -> tuple[str, ...]:
        return tuple(sorted({a for (s, a) in self._index if s == str(current)}))

    def is_terminal(self, state: str) -> bool:
        return str(state) in self.terminal_states

    def transition(self, current: str, action: str) -> str:
        """Return the target state for ``action`` or raise ``InvalidStateError``."""
        t = self._index.get((str(current), action))
        if t is None:
            raise InvalidStateError(
                f"Cannot {action} {self.name} in status {current}",
                entity=self.name,
                current_status=str(current),
                action=action,
            )
        return t.to_state
