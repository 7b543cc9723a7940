"""
inspection_services.workflow_service -- Public facade over the workflow engine.

Responsibility:
    One object callers (API handlers, timers, admin tools) hold to ask what
    an inspection may do next, to run or force transitions, and to read the
    audit trail.  Writes go through TransitionExecutor; reads open short
    sessions that are closed (and rolled back) immediately.

Architecture position:
    Services layer.  Thin coordinator: no rule logic and no SQL of its own.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Sequence
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from inspection_kernel.domain.actions import DEFAULT_ACTIONS, ActionRegistry
from inspection_kernel.domain.clock import Clock, SystemClock
from inspection_kernel.domain.dtos import (
    TransitionRequest,
    TransitionResult,
    ValidationOutcome,
)
from inspection_kernel.domain.transition_rules import DEFAULT_RULES, WorkflowRules
from inspection_kernel.domain.workflow import (
    INSPECTION_WORKFLOW,
    Role,
    StateRegistry,
    WorkflowState,
)
from inspection_kernel.selectors.inspection_selector import InspectionSelector
from inspection_kernel.selectors.workflow_history_selector import (
    InspectionSnapshotDTO,
    StateHistoryEntryDTO,
    WorkflowHistorySelector,
    WorkflowStatisticsDTO,
)
from inspection_kernel.services.transition_validator import TransitionValidator
from inspection_services.workflow_executor import (
    ContactLookupFactory,
    TransitionExecutor,
)


class WorkflowService:
    """
    Facade for the inspection workflow.

    Contract:
        Every method is safe to call from multiple threads; each call uses
        its own session from ``session_factory``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        rules: WorkflowRules = DEFAULT_RULES,
        registry: StateRegistry = INSPECTION_WORKFLOW,
        actions: ActionRegistry = DEFAULT_ACTIONS,
        clock: Clock | None = None,
        lock_timeout_ms: int | None = None,
        statistics_window_days: int = 30,
        listing_limit: int = 50,
        contact_lookup_factory: ContactLookupFactory | None = None,
    ):
        self._session_factory = session_factory
        self._rules = rules
        self._registry = registry
        self._clock = clock or SystemClock()
        self._statistics_window_days = statistics_window_days
        self._listing_limit = listing_limit
        self._contact_lookup_factory = contact_lookup_factory
        self._executor = TransitionExecutor(
            session_factory,
            rules=rules,
            registry=registry,
            actions=actions,
            clock=self._clock,
            lock_timeout_ms=lock_timeout_ms,
            contact_lookup_factory=contact_lookup_factory,
        )

    @property
    def executor(self) -> TransitionExecutor:
        return self._executor

    @property
    def session_factory(self) -> sessionmaker[Session] | Callable[[], Session]:
        return self._session_factory

    @property
    def rules(self) -> WorkflowRules:
        return self._rules

    # Graph

    def get_valid_transitions(
        self, from_state: WorkflowState | str, role: Role | str,
    ) -> frozenset[WorkflowState]:
        return self._registry.get_valid_transitions(
            WorkflowState.parse(from_state), Role.parse(role),
        )

    # Validation

    def validate(self, request: TransitionRequest) -> ValidationOutcome:
        """Evaluate ``request`` without writing anything or taking locks."""
        with self._session_factory() as session:
            validator = TransitionValidator(
                session,
                rules=self._rules,
                registry=self._registry,
                contact_lookup=(
                    self._contact_lookup_factory(session)
                    if self._contact_lookup_factory is not None else None
                ),
            )
            return validator.validate(request)

    def can_transition(self, request: TransitionRequest) -> bool:
        return self.validate(request).valid

    # Writes

    def execute(self, request: TransitionRequest) -> TransitionResult:
        return self._executor.execute(request)

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
        return self._executor.force_transition(
            inspection_id, to_state, actor_id, shop_id, reason, actor_role=actor_role,
        )

    # Reads

    def get_current_state(
        self, inspection_id: UUID, shop_id: UUID,
    ) -> WorkflowState | None:
        with self._session_factory() as session:
            return InspectionSelector(session).get_current_state(inspection_id, shop_id)

    def get_workflow_history(
        self, inspection_id: UUID, shop_id: UUID,
    ) -> list[StateHistoryEntryDTO]:
        with self._session_factory() as session:
            return WorkflowHistorySelector(session).get_workflow_history(
                inspection_id, shop_id,
            )

    def get_workflow_statistics(
        self,
        shop_id: UUID,
        window_days: int | None = None,
        now: datetime | None = None,
    ) -> WorkflowStatisticsDTO:
        with self._session_factory() as session:
            return WorkflowHistorySelector(session).get_workflow_statistics(
                shop_id,
                self._statistics_window_days if window_days is None else window_days,
                self._clock.now() if now is None else now,
            )

    def get_inspections_by_state(
        self,
        shop_id: UUID,
        states: Sequence[WorkflowState | str],
        limit: int | None = None,
    ) -> list[InspectionSnapshotDTO]:
        with self._session_factory() as session:
            return WorkflowHistorySelector(session).get_inspections_by_state(
                shop_id, states, self._listing_limit if limit is None else limit,
            )
