"""
inspection_services.workflow_executor -- Transactional transition execution.

Responsibility:
    Runs one workflow transition as a single atomic unit: row lock,
    re-fetch, optimistic state/version comparison, validation, state write,
    audit row, in-transaction actions, commit.  Also hosts the admin
    override path, which skips the graph, validator and actions.

Architecture position:
    Services layer.  Owns the transaction boundary (commit/rollback via
    ``transaction_scope``).  Delegates rule evaluation to the kernel's
    TransitionValidator, persistence to StateTransitionWriter and side
    effects to the ActionRegistry.

Invariants enforced:
    - Nothing is written unless every check passed; a failed check rolls
      back the whole unit.
    - The persisted (workflow_state, version) is re-read under lock and
      compared against the caller's belief; a mismatch never writes.
    - Exactly one history row per committed transition.
    - The engine never retries; retryable failures are flagged in the
      result and the caller decides.

Failure modes:
    - Handled aborts (not found, stale state, lock timeout, validation,
      authorization, graph) return a failed TransitionResult.
    - Any other database failure is rolled back and raised as
      PersistenceError.
    - Any other exception (including one raised by an action) is rolled
      back and re-raised unchanged.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable
from uuid import UUID

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from inspection_kernel.db.engine import transaction_scope
from inspection_kernel.domain.actions import DEFAULT_ACTIONS, ActionContext, ActionRegistry
from inspection_kernel.domain.clock import Clock, SystemClock
from inspection_kernel.domain.dtos import (
    ErrorKind,
    TransitionErrorDetail,
    TransitionRequest,
    TransitionResult,
    thaw_metadata,
)
from inspection_kernel.domain.transition_rules import DEFAULT_RULES, WorkflowRules
from inspection_kernel.domain.workflow import (
    INSPECTION_WORKFLOW,
    Role,
    StateRegistry,
    WorkflowState,
)
from inspection_kernel.exceptions import (
    InspectionNotFoundError,
    LockTimeoutError,
    PersistenceError,
    StateConflictError,
    TransitionAbortedError,
)
from inspection_kernel.logging_config import LogContext, get_logger
from inspection_kernel.models.inspection import InspectionModel
from inspection_kernel.models.state_history import TransitionKind
from inspection_kernel.selectors.inspection_selector import CustomerContactLookup
from inspection_kernel.services.transition_validator import TransitionValidator
from inspection_kernel.services.transition_writer import (
    AppliedTransition,
    StateTransitionWriter,
)

logger = get_logger("services.workflow_executor")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_REJECTED = "rejected"
OUTCOME_CONFLICT = "conflict"
OUTCOME_NOT_FOUND = "not_found"
OUTCOME_LOCK_TIMEOUT = "lock_timeout"

# PostgreSQL SQLSTATE for lock_not_available
_PG_LOCK_NOT_AVAILABLE = "55P03"
# sqlite3 message once the busy timeout expires
_SQLITE_LOCKED = "database is locked"

FORCE_REASON_REQUIRED = "Reason is required for force transition"

ContactLookupFactory = Callable[[Session], CustomerContactLookup]


def _is_lock_timeout(exc: OperationalError) -> bool:
    if getattr(exc.orig, "pgcode", None) == _PG_LOCK_NOT_AVAILABLE:
        return True
    return _SQLITE_LOCKED in str(exc.orig)


def _emit_transition_trace(
    event: str,
    inspection_id: UUID,
    from_state: str | None,
    to_state: str,
    outcome: str,
    duration_ms: float,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Emit one structured record per transition attempt."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "inspection_id": str(inspection_id),
        "from_state": from_state,
        "to_state": to_state,
        "outcome": outcome,
        "duration_ms": round(duration_ms, 3),
    }
    record.update(fields)
    logger.log(level, event, extra=record)


class TransitionExecutor:
    """
    Executes transitions against the database.

    Each call opens its own session from ``session_factory``, so one
    executor can be shared by many threads.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        rules: WorkflowRules = DEFAULT_RULES,
        registry: StateRegistry = INSPECTION_WORKFLOW,
        actions: ActionRegistry = DEFAULT_ACTIONS,
        clock: Clock | None = None,
        lock_timeout_ms: int | None = None,
        contact_lookup_factory: ContactLookupFactory | None = None,
    ):
        self._session_factory = session_factory
        self._rules = rules
        self._registry = registry
        self._actions = actions
        self._clock = clock or SystemClock()
        self._lock_timeout_ms = lock_timeout_ms
        self._contact_lookup_factory = contact_lookup_factory

    # ------------------------------------------------------------------
    # Standard path
    # ------------------------------------------------------------------

    def execute(self, request: TransitionRequest) -> TransitionResult:
        """Run ``request`` as one atomic unit and report the outcome."""
        start = time.monotonic()
        with LogContext.bind(
            inspection_id=request.inspection_id,
            shop_id=request.shop_id,
            actor_id=request.actor_id,
        ):
            try:
                with transaction_scope(self._session_factory) as session:
                    applied, warnings = self._execute_in_session(session, request)
            except TransitionAbortedError as exc:
                _emit_transition_trace(
                    "transition_rejected", request.inspection_id,
                    request.from_state.value, request.to_state.value,
                    OUTCOME_REJECTED, _elapsed_ms(start),
                    error_codes=[e.code for e in exc.errors],
                )
                return TransitionResult.failed(
                    request.inspection_id, exc.errors, exc.warnings,
                    from_state=request.from_state, to_state=request.to_state,
                )
            except StateConflictError as exc:
                _emit_transition_trace(
                    "transition_conflict", request.inspection_id,
                    request.from_state.value, request.to_state.value,
                    OUTCOME_CONFLICT, _elapsed_ms(start), level=logging.WARNING,
                    found_state=exc.found_state, found_version=exc.found_version,
                )
                return TransitionResult.failed(
                    request.inspection_id, [_conflict_detail(exc)],
                    from_state=request.from_state, to_state=request.to_state,
                )
            except InspectionNotFoundError as exc:
                _emit_transition_trace(
                    "transition_rejected", request.inspection_id,
                    request.from_state.value, request.to_state.value,
                    OUTCOME_NOT_FOUND, _elapsed_ms(start),
                )
                return TransitionResult.failed(
                    request.inspection_id, [_not_found_detail(exc)],
                    from_state=request.from_state, to_state=request.to_state,
                )
            except LockTimeoutError as exc:
                _emit_transition_trace(
                    "transition_lock_timeout", request.inspection_id,
                    request.from_state.value, request.to_state.value,
                    OUTCOME_LOCK_TIMEOUT, _elapsed_ms(start), level=logging.WARNING,
                )
                return TransitionResult.failed(
                    request.inspection_id, [_lock_timeout_detail(exc)],
                    from_state=request.from_state, to_state=request.to_state,
                )
            except SQLAlchemyError as exc:
                logger.error(
                    "transition_persistence_failed",
                    extra={"to_state": request.to_state.value},
                    exc_info=True,
                )
                raise PersistenceError(
                    "transition", str(request.inspection_id), str(exc),
                ) from exc

            _emit_transition_trace(
                "transition_committed", request.inspection_id,
                applied.from_state.value, applied.to_state.value,
                OUTCOME_SUCCESS, _elapsed_ms(start),
                new_version=applied.new_version,
                actor_role=request.actor_role.value,
                warning_count=len(warnings),
            )
            return TransitionResult.succeeded(
                request.inspection_id, applied.from_state, applied.to_state,
                applied.new_version, warnings,
            )

    def _execute_in_session(
        self, session: Session, request: TransitionRequest,
    ) -> tuple[AppliedTransition, tuple[str, ...]]:
        writer = StateTransitionWriter(session)
        inspection = self._lock(writer, request.inspection_id, request.shop_id)

        found_state = WorkflowState(inspection.workflow_state)
        version_mismatch = (
            request.expected_version is not None
            and inspection.version != request.expected_version
        )
        if found_state != request.from_state or version_mismatch:
            raise StateConflictError(
                inspection_id=str(request.inspection_id),
                expected_state=request.from_state.value,
                found_state=found_state.value,
                expected_version=request.expected_version,
                found_version=inspection.version,
            )

        validator = TransitionValidator(
            session,
            rules=self._rules,
            registry=self._registry,
            contact_lookup=(
                self._contact_lookup_factory(session)
                if self._contact_lookup_factory is not None else None
            ),
        )
        outcome = validator.validate(request)
        if not outcome.valid:
            raise TransitionAbortedError(outcome.errors, outcome.warnings)

        now = self._clock.now()
        applied = writer.apply(
            inspection,
            request.to_state,
            request.actor_id,
            request.actor_role,
            now,
            reason=request.reason,
            kind=TransitionKind.STANDARD,
            validation_passed=True,
            metadata=thaw_metadata(request.metadata) or None,
        )

        ctx = ActionContext(
            target=inspection,
            from_state=applied.from_state,
            to_state=applied.to_state,
            actor_id=request.actor_id,
            now=now,
        )
        try:
            ran = self._actions.run(ctx)
        except Exception:
            logger.error(
                "transition_action_failed",
                extra={
                    "from_state": applied.from_state.value,
                    "to_state": applied.to_state.value,
                },
                exc_info=True,
            )
            raise
        if ran:
            session.flush()
        return applied, outcome.warnings

    # ------------------------------------------------------------------
    # Override path
    # ------------------------------------------------------------------

    def force_transition(
        self,
        inspection_id: UUID,
        to_state: WorkflowState | str,
        actor_id: UUID,
        shop_id: UUID,
        reason: str | None,
        *,
        actor_role: Role | str,
    ) -> TransitionResult:
        """
        Move an inspection to ``to_state`` without graph, rule or action checks.

        Only admins may do this, and only with a non-blank reason.  Both are
        checked before the database is touched.  The history row is tagged
        ``override`` with ``validation_passed=False``.
        """
        target = WorkflowState.parse(to_state)
        role = Role.parse(actor_role)

        errors: list[TransitionErrorDetail] = []
        if not reason or not reason.strip():
            errors.append(TransitionErrorDetail(
                kind=ErrorKind.VALIDATION,
                code="REASON_REQUIRED",
                message=FORCE_REASON_REQUIRED,
            ))
        if role != Role.ADMIN:
            errors.append(TransitionErrorDetail(
                kind=ErrorKind.AUTHORIZATION,
                code="ADMIN_REQUIRED",
                message="Only admins can force a transition",
                details={"role": role.value},
            ))
        if errors:
            logger.warning(
                "force_transition_refused",
                extra={
                    "inspection_id": str(inspection_id),
                    "to_state": target.value,
                    "error_codes": [e.code for e in errors],
                },
            )
            return TransitionResult.failed(inspection_id, errors, to_state=target)

        start = time.monotonic()
        with LogContext.bind(
            inspection_id=inspection_id, shop_id=shop_id, actor_id=actor_id,
        ):
            try:
                with transaction_scope(self._session_factory) as session:
                    writer = StateTransitionWriter(session)
                    inspection = self._lock(writer, inspection_id, shop_id)
                    applied = writer.apply(
                        inspection,
                        target,
                        actor_id,
                        role,
                        self._clock.now(),
                        reason=reason,
                        kind=TransitionKind.OVERRIDE,
                        validation_passed=False,
                        metadata={"forced": True},
                    )
            except InspectionNotFoundError as exc:
                return TransitionResult.failed(
                    inspection_id, [_not_found_detail(exc)], to_state=target,
                )
            except LockTimeoutError as exc:
                return TransitionResult.failed(
                    inspection_id, [_lock_timeout_detail(exc)], to_state=target,
                )
            except SQLAlchemyError as exc:
                logger.error("force_transition_persistence_failed", exc_info=True)
                raise PersistenceError(
                    "force_transition", str(inspection_id), str(exc),
                ) from exc

            _emit_transition_trace(
                "force_transition_committed", inspection_id,
                applied.from_state.value, applied.to_state.value,
                OUTCOME_SUCCESS, _elapsed_ms(start), level=logging.WARNING,
                new_version=applied.new_version,
                reason=reason,
            )
            return TransitionResult.succeeded(
                inspection_id, applied.from_state, applied.to_state,
                applied.new_version,
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock(
        self, writer: StateTransitionWriter, inspection_id: UUID, shop_id: UUID,
    ) -> InspectionModel:
        try:
            writer.begin_write(self._lock_timeout_ms)
            inspection = writer.lock(inspection_id, shop_id)
        except OperationalError as exc:
            if _is_lock_timeout(exc):
                raise LockTimeoutError(str(inspection_id), self._lock_timeout_ms) from exc
            raise
        if inspection is None:
            raise InspectionNotFoundError(str(inspection_id), str(shop_id))
        return inspection


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


def _conflict_detail(exc: StateConflictError) -> TransitionErrorDetail:
    return TransitionErrorDetail(
        kind=ErrorKind.CONCURRENCY,
        code=exc.code,
        message=str(exc),
        retryable=True,
        details={
            "expected_state": exc.expected_state,
            "found_state": exc.found_state,
            "expected_version": exc.expected_version,
            "found_version": exc.found_version,
        },
    )


def _not_found_detail(exc: InspectionNotFoundError) -> TransitionErrorDetail:
    return TransitionErrorDetail(
        kind=ErrorKind.NOT_FOUND,
        code=exc.code,
        message="Inspection not found",
        details={"inspection_id": exc.inspection_id},
    )


def _lock_timeout_detail(exc: LockTimeoutError) -> TransitionErrorDetail:
    return TransitionErrorDetail(
        kind=ErrorKind.CONCURRENCY,
        code=exc.code,
        message=str(exc),
        retryable=True,
        details={"timeout_ms": exc.timeout_ms},
    )
