"""
TransitionValidator -- imperative shell around the pure transition rules.

Responsibility:
    Gathers InspectionFacts for a TransitionRequest through read-only
    selectors and hands them to ``evaluate_transition``.  The customer
    contact number is looked up only when the request targets
    ``sent_to_customer``.

Architecture position:
    Kernel > Services -- imperative shell.  Uses the caller's session, so
    inside the executor it sees the same locked, in-transaction view as
    the writer.  Never flushes, commits, or mutates anything.

Failure modes:
    - A missing inspection (or one in another shop) is reported as a
      NOT_FOUND error in the outcome, never raised.
"""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy.orm import Session

from inspection_kernel.domain.dtos import (
    InspectionFacts,
    TransitionRequest,
    ValidationOutcome,
)
from inspection_kernel.domain.transition_rules import (
    DEFAULT_RULES,
    WorkflowRules,
    evaluate_transition,
)
from inspection_kernel.domain.workflow import (
    INSPECTION_WORKFLOW,
    StateRegistry,
    WorkflowState,
)
from inspection_kernel.logging_config import get_logger
from inspection_kernel.selectors.inspection_selector import (
    CustomerContactLookup,
    CustomerContactSelector,
    InspectionSelector,
)

logger = get_logger("services.transition_validator")


class TransitionValidator:
    """Validates one request against the registry and business rules."""

    def __init__(
        self,
        session: Session,
        rules: WorkflowRules = DEFAULT_RULES,
        registry: StateRegistry = INSPECTION_WORKFLOW,
        contact_lookup: CustomerContactLookup | None = None,
    ):
        self._session = session
        self._rules = rules
        self._registry = registry
        self._selector = InspectionSelector(session)
        self._contact_lookup = contact_lookup or CustomerContactSelector(session)

    def gather_facts(self, request: TransitionRequest) -> InspectionFacts:
        facts = self._selector.gather_facts(
            request.inspection_id, request.shop_id, self._rules.critical_conditions,
        )
        if facts.exists and request.to_state == WorkflowState.SENT_TO_CUSTOMER:
            phone = self._contact_lookup.get_customer_phone(
                request.inspection_id, request.shop_id,
            )
            facts = replace(facts, customer_phone=phone)
        return facts

    def validate(self, request: TransitionRequest) -> ValidationOutcome:
        facts = self.gather_facts(request)
        outcome = evaluate_transition(request, facts, self._registry, self._rules)
        logger.debug(
            "transition_validated",
            extra={
                "inspection_id": str(request.inspection_id),
                "from_state": request.from_state.value,
                "to_state": request.to_state.value,
                "valid": outcome.valid,
                "error_codes": [e.code for e in outcome.errors],
                "warning_count": len(outcome.warnings),
            },
        )
        return outcome
