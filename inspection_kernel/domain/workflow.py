"""
Inspection workflow state graph (``inspection_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the inspection lifecycle: the closed set of states,
the closed set of actor roles, and the static directed graph of permitted
transitions annotated with the roles allowed to traverse each edge.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Edges reference only members of ``WorkflowState``.
* Every edge permits at least one role.
* The registry is immutable once built: lookups return frozensets and the
  edge table is exposed through ``MappingProxyType``.
* An absent edge is invalid for every role (graph failure), which is
  structurally different from a present edge the role may not traverse
  (authorization failure).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping

from inspection_kernel.exceptions import InvalidRoleError, InvalidWorkflowStateError


class WorkflowState(str, Enum):
    """Lifecycle states of an inspection record."""

    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    SENT_TO_CUSTOMER = "sent_to_customer"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: WorkflowState | str) -> WorkflowState:
        """Validate a state value at the system boundary."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidWorkflowStateError(value) from None


class Role(str, Enum):
    """Actor roles.  A closed set: unknown values fail loudly."""

    TECHNICIAN = "technician"
    MANAGER = "manager"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Role | str) -> Role:
        """Validate a role value at the system boundary.

        Accepts the legacy labels ``mechanic`` and ``shop_manager`` stored
        on older user rows.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = _ROLE_ALIASES.get(value, value)
            try:
                return cls(normalized)
            except ValueError:
                pass
        raise InvalidRoleError(value)


_ROLE_ALIASES: dict[str, str] = {
    "mechanic": Role.TECHNICIAN.value,
    "shop_manager": Role.MANAGER.value,
}

INITIAL_STATE = WorkflowState.DRAFT


@dataclass(frozen=True)
class WorkflowEdge:
    """One permitted transition and the roles allowed to take it."""

    from_state: WorkflowState
    to_state: WorkflowState
    allowed_roles: frozenset[Role]
    description: str = ""


class StateRegistry:
    """Read-only lookup over a fixed set of workflow edges.

    Contract: built once from an iterable of edges; never mutated.
    Guarantees: ``get_valid_transitions`` is pure and side-effect free.
    """

    def __init__(self, edges: Iterable[WorkflowEdge]):
        table: dict[tuple[WorkflowState, WorkflowState], WorkflowEdge] = {}
        for edge in edges:
            key = (edge.from_state, edge.to_state)
            if key in table:
                raise ValueError(
                    f"Duplicate workflow edge {edge.from_state.value}->"
                    f"{edge.to_state.value}"
                )
            if not edge.allowed_roles:
                raise ValueError(
                    f"Workflow edge {edge.from_state.value}->"
                    f"{edge.to_state.value} permits no roles"
                )
            table[key] = edge
        self._edges: Mapping[tuple[WorkflowState, WorkflowState], WorkflowEdge] = (
            MappingProxyType(table)
        )

    @property
    def edges(self) -> Mapping[tuple[WorkflowState, WorkflowState], WorkflowEdge]:
        return self._edges

    def get_edge(
        self, from_state: WorkflowState, to_state: WorkflowState,
    ) -> WorkflowEdge | None:
        return self._edges.get((from_state, to_state))

    def has_edge(self, from_state: WorkflowState, to_state: WorkflowState) -> bool:
        return (from_state, to_state) in self._edges

    def allowed_roles(
        self, from_state: WorkflowState, to_state: WorkflowState,
    ) -> frozenset[Role]:
        edge = self._edges.get((from_state, to_state))
        return edge.allowed_roles if edge is not None else frozenset()

    def is_permitted(
        self, from_state: WorkflowState, to_state: WorkflowState, role: Role,
    ) -> bool:
        return role in self.allowed_roles(from_state, to_state)

    def get_valid_transitions(
        self, from_state: WorkflowState, role: Role,
    ) -> frozenset[WorkflowState]:
        """All target states ``role`` may move an inspection to from ``from_state``."""
        return frozenset(
            to_state
            for (src, to_state), edge in self._edges.items()
            if src == from_state and role in edge.allowed_roles
        )


_ANY_STAFF = frozenset({Role.TECHNICIAN, Role.MANAGER, Role.ADMIN})
_REVIEWERS = frozenset({Role.MANAGER, Role.ADMIN})

INSPECTION_WORKFLOW = StateRegistry((
    WorkflowEdge(
        WorkflowState.DRAFT, WorkflowState.IN_PROGRESS, _ANY_STAFF,
        "Technician starts the inspection",
    ),
    WorkflowEdge(
        WorkflowState.IN_PROGRESS, WorkflowState.PENDING_REVIEW, _ANY_STAFF,
        "Technician submits findings for review",
    ),
    WorkflowEdge(
        WorkflowState.PENDING_REVIEW, WorkflowState.APPROVED, _REVIEWERS,
        "Manager approves the findings",
    ),
    WorkflowEdge(
        WorkflowState.PENDING_REVIEW, WorkflowState.REJECTED, _REVIEWERS,
        "Manager sends the inspection back",
    ),
    WorkflowEdge(
        WorkflowState.REJECTED, WorkflowState.IN_PROGRESS, _ANY_STAFF,
        "Technician reworks a rejected inspection",
    ),
    WorkflowEdge(
        WorkflowState.APPROVED, WorkflowState.SENT_TO_CUSTOMER, _REVIEWERS,
        "Manager releases results to the customer",
    ),
    WorkflowEdge(
        WorkflowState.SENT_TO_CUSTOMER, WorkflowState.COMPLETED, _ANY_STAFF,
        "Customer has received the results",
    ),
))

TERMINAL_STATES: frozenset[WorkflowState] = frozenset(
    state
    for state in WorkflowState
    if not any(src == state for src, _ in INSPECTION_WORKFLOW.edges)
)
