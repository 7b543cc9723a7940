"""
Transition rules -- pure business-rule evaluation for workflow transitions.

Responsibility:
    Given a TransitionRequest, the InspectionFacts gathered for it, the
    state registry and the configured WorkflowRules, decide whether the
    transition may proceed and collect every error and warning.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The imperative
    shell that gathers facts lives in services/transition_validator.py.

Invariants enforced:
    - Every check runs; errors are accumulated, never short-circuited, so
      a caller sees all reasons at once.
    - A missing edge is a GRAPH error for every role; a present edge the
      role may not traverse is an AUTHORIZATION error.
    - Entering ``approved`` is refused while any critical item is
      unresolved.
    - Entering ``rejected`` requires a non-blank reason.
"""

from __future__ import annotations

from dataclasses import dataclass

from inspection_kernel.domain.dtos import (
    ErrorKind,
    InspectionFacts,
    TransitionErrorDetail,
    TransitionRequest,
    ValidationOutcome,
)
from inspection_kernel.domain.workflow import StateRegistry, WorkflowState

CONDITION_STATUSES: frozenset[str] = frozenset(
    {"good", "fair", "poor", "needs_immediate", "not_applicable"}
)


@dataclass(frozen=True)
class WorkflowRules:
    """Tunable inputs to the business rules."""

    critical_conditions: frozenset[str] = frozenset({"needs_immediate"})
    min_contact_digits: int = 7

    def __post_init__(self) -> None:
        object.__setattr__(self, "critical_conditions", frozenset(self.critical_conditions))
        unknown = self.critical_conditions - CONDITION_STATUSES
        if unknown:
            raise ValueError(f"Unknown critical conditions: {sorted(unknown)}")
        if self.min_contact_digits < 1:
            raise ValueError("min_contact_digits must be at least 1")


DEFAULT_RULES = WorkflowRules()


def is_usable_contact(phone: str | None, min_digits: int) -> bool:
    """A contact number is usable when it is non-blank and has enough digits."""
    if phone is None or not phone.strip():
        return False
    return sum(ch.isdigit() for ch in phone) >= min_digits


def _error(kind: ErrorKind, code: str, message: str, **details) -> TransitionErrorDetail:
    return TransitionErrorDetail(kind=kind, code=code, message=message, details=details)


def check_graph(
    request: TransitionRequest, registry: StateRegistry,
) -> list[TransitionErrorDetail]:
    src, dst = request.from_state, request.to_state
    if not registry.has_edge(src, dst):
        return [_error(
            ErrorKind.GRAPH, "INVALID_TRANSITION",
            f"Transition from {src.value} to {dst.value} is not allowed",
            from_state=src.value, to_state=dst.value,
        )]
    if not registry.is_permitted(src, dst, request.actor_role):
        allowed = sorted(r.value for r in registry.allowed_roles(src, dst))
        return [_error(
            ErrorKind.AUTHORIZATION, "ROLE_NOT_PERMITTED",
            f"Role {request.actor_role.value} may not transition "
            f"from {src.value} to {dst.value}",
            role=request.actor_role.value, allowed_roles=allowed,
        )]
    return []


def check_preconditions(
    request: TransitionRequest, facts: InspectionFacts, rules: WorkflowRules,
) -> tuple[list[TransitionErrorDetail], list[str]]:
    """Business preconditions keyed on the target state."""
    errors: list[TransitionErrorDetail] = []
    warnings: list[str] = []
    target = request.to_state

    if target == WorkflowState.PENDING_REVIEW:
        if facts.item_count == 0:
            errors.append(_error(
                ErrorKind.VALIDATION, "NO_ITEMS",
                "Inspection must have at least one item to submit for review",
            ))
        if facts.unassessed_item_count > 0:
            errors.append(_error(
                ErrorKind.VALIDATION, "ITEMS_UNASSESSED",
                "All inspection items must have a condition status",
                unassessed=facts.unassessed_item_count,
            ))
        if facts.critical_unresolved_count > 0:
            warnings.append(
                f"{facts.critical_unresolved_count} critical safety items found "
                f"- requires manager approval"
            )

    elif target == WorkflowState.APPROVED:
        if facts.critical_unresolved_count > 0:
            errors.append(_error(
                ErrorKind.VALIDATION, "CRITICAL_ITEMS_UNRESOLVED",
                f"Cannot approve inspection with "
                f"{facts.critical_unresolved_count} critical safety items",
                critical_items=facts.critical_unresolved_count,
            ))

    elif target == WorkflowState.SENT_TO_CUSTOMER:
        if not is_usable_contact(facts.customer_phone, rules.min_contact_digits):
            errors.append(_error(
                ErrorKind.VALIDATION, "NO_CUSTOMER_CONTACT",
                "Customer must have a valid phone number to send inspection results",
            ))

    elif target == WorkflowState.REJECTED:
        if not request.has_reason:
            errors.append(_error(
                ErrorKind.VALIDATION, "REASON_REQUIRED",
                "Rejection reason is required",
            ))

    return errors, warnings


def evaluate_transition(
    request: TransitionRequest,
    facts: InspectionFacts,
    registry: StateRegistry,
    rules: WorkflowRules = DEFAULT_RULES,
) -> ValidationOutcome:
    """Evaluate every rule for ``request`` and accumulate the findings."""
    if not facts.exists:
        return ValidationOutcome(errors=(_error(
            ErrorKind.NOT_FOUND, "INSPECTION_NOT_FOUND", "Inspection not found",
            inspection_id=str(request.inspection_id),
        ),))

    errors = check_graph(request, registry)
    precondition_errors, warnings = check_preconditions(request, facts, rules)
    errors.extend(precondition_errors)
    return ValidationOutcome(errors=tuple(errors), warnings=tuple(warnings))
