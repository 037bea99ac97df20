"""
Repair lifecycle workflow (``asset_kernel.domain.lifecycle``).

Responsibility
--------------
Pure definition of the maintenance (Kanban) state machine a machine goes
through at the center, and the predicates built on it.  The table is fixed
in code; there are no implicit transitions and no self-loops.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Consumed by
``services.lifecycle_service`` (which applies transitions) and by the
transfer orchestrator (center intake uses the IN_TRANSIT ->
RECEIVED_AT_CENTER edge).

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Any


def _state_name(state: Any) -> str:
    """Accept enum members or raw strings."""
    return getattr(state, "value", state)


@dataclass(frozen=True)
class Guard:
    """A named condition the service must check before the edge fires.

    Non-goals: does not evaluate the condition -- the lifecycle service does.
    """

    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A directed edge of the workflow."""

    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition.

    Guarantees: ``initial_state`` and every transition endpoint are members
    of ``states`` (checked in ``__post_init__``).
    """

    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"initial_state {self.initial_state!r} not in states")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"transition {t.from_state}->{t.to_state} uses unknown state")
            if t.from_state in self.terminal_states:
                raise ValueError(f"terminal state {t.from_state!r} has outgoing transition")
            if t.from_state == t.to_state:
                raise ValueError(f"self-loop on {t.from_state!r}")

    @cached_property
    def _edges(self) -> dict[tuple[str, str], Transition]:
        return {(t.from_state, t.to_state): t for t in self.transitions}

    def find_transition(self, from_state: str, to_state: str) -> Transition | None:
        return self._edges.get((_state_name(from_state), _state_name(to_state)))

    def allowed_targets(self, from_state: str) -> tuple[str, ...]:
        return tuple(
            t.to_state for t in self.transitions if t.from_state == _state_name(from_state)
        )


RESOLUTION_REQUIRED = Guard(
    name="resolution_required",
    description="payload.resolution must be REPAIRED, SCRAPPED or REJECTED_REPAIR",
)

RESOLUTION_RECORDED = Guard(
    name="resolution_recorded",
    description="machine must carry a resolution before the repair completes",
)

RESOLUTIONS = ("REPAIRED", "SCRAPPED", "REJECTED_REPAIR")

MAINTENANCE_WORKFLOW = Workflow(
    name="maintenance_center",
    description="Repair lifecycle of a machine sent to the maintenance center",
    initial_state="IN_TRANSIT",
    states=(
        "IN_TRANSIT",
        "RECEIVED_AT_CENTER",
        "UNDER_INSPECTION",
        "AWAITING_APPROVAL",
        "IN_PROGRESS",
        "READY_FOR_RETURN",
        "RETURNING",
        "COMPLETED",
    ),
    transitions=(
        Transition("IN_TRANSIT", "RECEIVED_AT_CENTER", action="receive_at_center"),
        Transition("RECEIVED_AT_CENTER", "UNDER_INSPECTION", action="start_inspection"),
        Transition("UNDER_INSPECTION", "AWAITING_APPROVAL", action="request_approval"),
        Transition("UNDER_INSPECTION", "IN_PROGRESS", action="start_repair"),
        Transition(
            "UNDER_INSPECTION", "READY_FOR_RETURN",
            action="mark_ready", guard=RESOLUTION_REQUIRED,
        ),
        Transition("AWAITING_APPROVAL", "IN_PROGRESS", action="start_repair"),
        Transition(
            "AWAITING_APPROVAL", "READY_FOR_RETURN",
            action="mark_ready", guard=RESOLUTION_REQUIRED,
        ),
        Transition(
            "IN_PROGRESS", "READY_FOR_RETURN",
            action="mark_ready", guard=RESOLUTION_REQUIRED,
        ),
        Transition("READY_FOR_RETURN", "RETURNING", action="dispatch_return"),
        Transition(
            "RETURNING", "COMPLETED",
            action="complete", guard=RESOLUTION_RECORDED,
        ),
    ),
    terminal_states=("COMPLETED",),
)

# Columns of the center Kanban board
KANBAN_STATES = (
    "RECEIVED_AT_CENTER",
    "UNDER_INSPECTION",
    "AWAITING_APPROVAL",
    "IN_PROGRESS",
    "READY_FOR_RETURN",
)


def is_valid_transition(from_status: str, to_status: str) -> bool:
    """True iff (from_status, to_status) is an edge of the repair workflow."""
    return MAINTENANCE_WORKFLOW.find_transition(from_status, to_status) is not None


def allowed_targets(from_status: str) -> tuple[str, ...]:
    return MAINTENANCE_WORKFLOW.allowed_targets(from_status)
