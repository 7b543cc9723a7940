"""
Action registry -- deterministic side effects bound to workflow edges.

Responsibility:
    Maps (from_state, to_state) edges to the ordered tuple of actions run
    inside the executor's transaction after the state write.  Actions only
    stamp fields on the locked inspection row; they never perform external
    I/O.  Notifications are the caller's reaction to the TransitionResult.

Architecture position:
    Kernel > Domain.  Actions receive the target through ActionContext and
    mutate plain attributes on it; they never touch a session.

Invariants enforced:
    - The registry is immutable once built.
    - Unregistered edges run no actions.
    - An action that raises aborts the whole transition.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping
from uuid import UUID

from inspection_kernel.domain.workflow import WorkflowState


@dataclass(frozen=True)
class ActionContext:
    """Everything an action may read.  ``target`` is the locked inspection row."""

    target: Any
    from_state: WorkflowState
    to_state: WorkflowState
    actor_id: UUID
    now: datetime


Action = Callable[[ActionContext], None]
EdgeKey = tuple[WorkflowState, WorkflowState]


def record_start_time(ctx: ActionContext) -> None:
    ctx.target.started_at = ctx.now


def record_inspection_duration(ctx: ActionContext) -> None:
    """Whole seconds from start to submission; skipped if never started."""
    started_at = ctx.target.started_at
    if started_at is None:
        return
    ctx.target.inspection_duration = int((ctx.now - started_at).total_seconds())


def record_completion_time(ctx: ActionContext) -> None:
    ctx.target.completed_at = ctx.now


class ActionRegistry:
    """Read-only edge -> actions lookup."""

    def __init__(self, bindings: Mapping[EdgeKey, Iterable[Action]]):
        self._bindings: Mapping[EdgeKey, tuple[Action, ...]] = MappingProxyType(
            {edge: tuple(actions) for edge, actions in bindings.items()}
        )

    @property
    def bindings(self) -> Mapping[EdgeKey, tuple[Action, ...]]:
        return self._bindings

    def actions_for(
        self, from_state: WorkflowState, to_state: WorkflowState,
    ) -> tuple[Action, ...]:
        return self._bindings.get((from_state, to_state), ())

    def run(self, ctx: ActionContext) -> int:
        """Run the actions bound to ctx's edge in order; returns how many ran."""
        actions = self.actions_for(ctx.from_state, ctx.to_state)
        for action in actions:
            action(ctx)
        return len(actions)


DEFAULT_ACTIONS = ActionRegistry({
    (WorkflowState.DRAFT, WorkflowState.IN_PROGRESS): (record_start_time,),
    (WorkflowState.IN_PROGRESS, WorkflowState.PENDING_REVIEW): (
        record_inspection_duration,
    ),
    (WorkflowState.PENDING_REVIEW, WorkflowState.APPROVED): (record_completion_time,),
    (WorkflowState.SENT_TO_CUSTOMER, WorkflowState.COMPLETED): (
        record_completion_time,
    ),
})
