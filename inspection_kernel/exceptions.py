"""
Typed exception hierarchy for the inspection workflow kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine (API handlers, timers, admin tools) must react to
failures by category: a concurrency conflict means "refetch and retry", an
authorization failure means "tell the user", a persistence failure means
"page someone".  Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InspectionWorkflowError (base)
    |
    +-- InvalidRoleError
    +-- InvalidWorkflowStateError
    +-- InspectionNotFoundError
    +-- TransitionAbortedError
    |
    +-- ConcurrencyError
    |   +-- StateConflictError
    |   +-- LockTimeoutError
    |
    +-- PersistenceError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Boundary        | INVALID_ROLE                | Role value outside the closed role set
                | INVALID_WORKFLOW_STATE      | State value outside the closed state set
----------------|-----------------------------|-----------------------------------------
Lookup          | INSPECTION_NOT_FOUND        | No inspection with this id in this shop
----------------|-----------------------------|-----------------------------------------
Transition      | TRANSITION_ABORTED          | Hard errors found inside the transaction
----------------|-----------------------------|-----------------------------------------
Concurrency     | STATE_CONFLICT              | Persisted (state, version) != caller's
                | LOCK_TIMEOUT                | Row lock not acquired in time
----------------|-----------------------------|-----------------------------------------
Persistence     | PERSISTENCE_ERROR           | Statement or commit failure
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of a history row
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Invalid engine configuration

Hard validation failures are normally *returned* in a ``TransitionResult``
rather than raised; ``TransitionAbortedError`` is the internal signal the
executor uses to roll back and build that result.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from inspection_kernel.domain.dtos import TransitionErrorDetail


class InspectionWorkflowError(Exception):
    """
    Base exception for all inspection workflow errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "INSPECTION_WORKFLOW_ERROR"


# Boundary validation


class InvalidRoleError(InspectionWorkflowError):
    """Actor role value is not one of the closed set of roles."""

    code: str = "INVALID_ROLE"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unknown actor role: {value!r}")


class InvalidWorkflowStateError(InspectionWorkflowError):
    """Workflow state value is not one of the closed set of states."""

    code: str = "INVALID_WORKFLOW_STATE"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unknown workflow state: {value!r}")


class InspectionNotFoundError(InspectionWorkflowError):
    """No inspection with the given id exists in the given shop."""

    code: str = "INSPECTION_NOT_FOUND"

    def __init__(self, inspection_id: str, shop_id: str):
        self.inspection_id = inspection_id
        self.shop_id = shop_id
        super().__init__(f"Inspection not found: {inspection_id} (shop {shop_id})")


class TransitionAbortedError(InspectionWorkflowError):
    """
    One or more hard errors were found while the transaction was open.

    Raised inside the executor's transaction scope so the scope rolls back;
    the executor converts it into a failed ``TransitionResult``.
    """

    code: str = "TRANSITION_ABORTED"

    def __init__(
        self,
        errors: Sequence[TransitionErrorDetail],
        warnings: Sequence[str] = (),
    ):
        self.errors = tuple(errors)
        self.warnings = tuple(warnings)
        super().__init__(
            "; ".join(e.message for e in self.errors) or "Transition aborted"
        )


# Concurrency


class ConcurrencyError(InspectionWorkflowError):
    """Base exception for concurrency-related errors.  Always retryable."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class StateConflictError(ConcurrencyError):
    """Persisted state or version disagrees with what the caller expected."""

    code: str = "STATE_CONFLICT"

    def __init__(
        self,
        inspection_id: str,
        expected_state: str,
        found_state: str,
        expected_version: int | None = None,
        found_version: int | None = None,
    ):
        self.inspection_id = inspection_id
        self.expected_state = expected_state
        self.found_state = found_state
        self.expected_version = expected_version
        self.found_version = found_version
        if expected_state != found_state:
            message = (
                f"Inspection state has changed. "
                f"Expected {expected_state}, found {found_state}"
            )
        else:
            message = (
                f"Inspection version has changed. "
                f"Expected {expected_version}, found {found_version}"
            )
        super().__init__(message)


class LockTimeoutError(ConcurrencyError):
    """The inspection row lock could not be acquired in time."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, inspection_id: str, timeout_ms: int | None = None):
        self.inspection_id = inspection_id
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Timed out waiting for lock on inspection {inspection_id}; retry"
        )


# Persistence


class PersistenceError(InspectionWorkflowError):
    """A statement or commit failed; the transaction was rolled back."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, inspection_id: str, detail: str):
        self.operation = operation
        self.inspection_id = inspection_id
        self.detail = detail
        super().__init__(
            f"Persistence failure during {operation} on inspection "
            f"{inspection_id}: {detail}"
        )


# Immutability


class ImmutabilityError(InspectionWorkflowError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(InspectionWorkflowError):
    """Engine configuration failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, errors: Sequence[str], source: str | None = None):
        self.errors = tuple(errors)
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(
            f"Invalid configuration{where}: " + "; ".join(self.errors)
        )
