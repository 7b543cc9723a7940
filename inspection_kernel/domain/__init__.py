"""Pure domain layer: workflow graph, DTOs, rules, actions, clock."""

from inspection_kernel.domain.actions import (
    DEFAULT_ACTIONS,
    ActionContext,
    ActionRegistry,
)
from inspection_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inspection_kernel.domain.dtos import (
    ErrorKind,
    InspectionFacts,
    TransitionErrorDetail,
    TransitionRequest,
    TransitionResult,
    ValidationOutcome,
)
from inspection_kernel.domain.transition_rules import (
    DEFAULT_RULES,
    WorkflowRules,
    evaluate_transition,
)
from inspection_kernel.domain.workflow import (
    INITIAL_STATE,
    INSPECTION_WORKFLOW,
    TERMINAL_STATES,
    Role,
    StateRegistry,
    WorkflowEdge,
    WorkflowState,
)

__all__ = [
    "ActionContext",
    "ActionRegistry",
    "DEFAULT_ACTIONS",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ErrorKind",
    "InspectionFacts",
    "TransitionErrorDetail",
    "TransitionRequest",
    "TransitionResult",
    "ValidationOutcome",
    "DEFAULT_RULES",
    "WorkflowRules",
    "evaluate_transition",
    "INITIAL_STATE",
    "INSPECTION_WORKFLOW",
    "TERMINAL_STATES",
    "Role",
    "StateRegistry",
    "WorkflowEdge",
    "WorkflowState",
]
