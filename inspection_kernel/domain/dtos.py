"""
DTOs -- Pure domain data transfer objects for workflow transitions.

Responsibility:
    Defines the immutable data structures that flow through a transition:
    TransitionRequest (input), InspectionFacts (what the validator knows
    about the inspection), ValidationOutcome (pure rule output), and
    TransitionResult (what the caller gets back), plus the structured
    TransitionErrorDetail carried by failed results.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies, database access, and external services.

Invariants enforced:
    - TransitionRequest fields are validated at construction: roles and
      states must belong to their closed sets, so an invalid role can never
      be silently treated as "no permissions".
    - Metadata is deep-frozen into a MappingProxyType.
    - A TransitionResult is successful iff it carries no errors.

Data flow:
    TransitionRequest -> InspectionFacts -> ValidationOutcome -> TransitionResult
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

from inspection_kernel.domain.workflow import Role, WorkflowState


class ErrorKind(str, Enum):
    """Category of a transition failure; drives how a caller reacts."""

    VALIDATION = "validation"
    CONCURRENCY = "concurrency"
    AUTHORIZATION = "authorization"
    GRAPH = "graph"
    PERSISTENCE = "persistence"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class TransitionErrorDetail:
    """One structured failure reason inside a TransitionResult."""

    kind: ErrorKind
    code: str
    message: str
    retryable: bool = False
    details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))


def _freeze_metadata(metadata: Mapping[str, Any] | None) -> Mapping[str, Any]:
    if not metadata:
        return MappingProxyType({})
    frozen: dict[str, Any] = {}
    for key, value in metadata.items():
        if isinstance(value, Mapping):
            frozen[key] = _freeze_metadata(value)
        elif isinstance(value, list):
            frozen[key] = tuple(value)
        else:
            frozen[key] = value
    return MappingProxyType(frozen)


def thaw_metadata(metadata: Mapping[str, Any]) -> dict[str, Any]:
    """Convert frozen metadata back into JSON-serializable builtins."""
    thawed: dict[str, Any] = {}
    for key, value in metadata.items():
        if isinstance(value, Mapping):
            thawed[key] = thaw_metadata(value)
        elif isinstance(value, tuple):
            thawed[key] = list(value)
        else:
            thawed[key] = value
    return thawed


@dataclass(frozen=True)
class TransitionRequest:
    """
    A caller's request to move one inspection from one state to another.

    ``from_state`` is the caller's belief about the current state; the
    executor re-reads the persisted state under lock and rejects the
    request when they disagree.  ``expected_version`` tightens the check
    to the exact version the caller last saw.
    """

    inspection_id: UUID
    from_state: WorkflowState
    to_state: WorkflowState
    actor_id: UUID
    actor_role: Role
    shop_id: UUID
    reason: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    expected_version: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "from_state", WorkflowState.parse(self.from_state))
        object.__setattr__(self, "to_state", WorkflowState.parse(self.to_state))
        object.__setattr__(self, "actor_role", Role.parse(self.actor_role))
        object.__setattr__(self, "metadata", _freeze_metadata(self.metadata))
        if self.expected_version is not None and self.expected_version < 0:
            raise ValueError(
                f"expected_version must be non-negative, got {self.expected_version}"
            )

    @property
    def has_reason(self) -> bool:
        return bool(self.reason and self.reason.strip())


@dataclass(frozen=True)
class InspectionFacts:
    """
    Snapshot of everything the rules need to know about an inspection.

    Built by the selector inside the executor's transaction.  A missing
    inspection is represented by ``exists=False`` rather than ``None`` so
    the pure rules can report it like any other failure.
    """

    exists: bool
    item_count: int = 0
    unassessed_item_count: int = 0
    critical_unresolved_count: int = 0
    customer_phone: str | None = None

    @classmethod
    def missing(cls) -> InspectionFacts:
        return cls(exists=False)


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of evaluating one request against the rules."""

    errors: tuple[TransitionErrorDetail, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def error_messages(self) -> tuple[str, ...]:
        return tuple(e.message for e in self.errors)


@dataclass(frozen=True)
class TransitionResult:
    """
    What the engine returns for every transition attempt.

    Handled failures (validation, authorization, graph, concurrency,
    not-found, lock timeout) are reported here rather than raised.
    """

    success: bool
    inspection_id: UUID
    from_state: WorkflowState | None = None
    to_state: WorkflowState | None = None
    errors: tuple[TransitionErrorDetail, ...] = ()
    warnings: tuple[str, ...] = ()
    new_version: int | None = None

    @classmethod
    def succeeded(
        cls,
        inspection_id: UUID,
        from_state: WorkflowState,
        to_state: WorkflowState,
        new_version: int,
        warnings: tuple[str, ...] = (),
    ) -> TransitionResult:
        return cls(
            success=True,
            inspection_id=inspection_id,
            from_state=from_state,
            to_state=to_state,
            warnings=tuple(warnings),
            new_version=new_version,
        )

    @classmethod
    def failed(
        cls,
        inspection_id: UUID,
        errors: tuple[TransitionErrorDetail, ...] | list[TransitionErrorDetail],
        warnings: tuple[str, ...] = (),
        from_state: WorkflowState | None = None,
        to_state: WorkflowState | None = None,
    ) -> TransitionResult:
        return cls(
            success=False,
            inspection_id=inspection_id,
            from_state=from_state,
            to_state=to_state,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )

    @property
    def error_messages(self) -> tuple[str, ...]:
        return tuple(e.message for e in self.errors)

    @property
    def error_kinds(self) -> frozenset[ErrorKind]:
        return frozenset(e.kind for e in self.errors)

    @property
    def retryable(self) -> bool:
        """True when every error is one a refetch-and-retry could clear."""
        return bool(self.errors) and all(e.retryable for e in self.errors)
