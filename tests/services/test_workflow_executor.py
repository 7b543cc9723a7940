"""
Tests for the transactional executor (``inspection_services.workflow_executor``).

Covers the standard path end to end against a real database, the admin
override path, and every handled and unhandled failure mode.

Invariants tested:
- version increases by exactly one per successful transition and a
  history row with that version is written.
- Any failed check leaves the inspection and its history untouched.
- A stale (state, version) belief is rejected as a retryable conflict.
- Approval is refused while critical items are unresolved, but the
  override path bypasses that gate and is tagged as an override.
- An exception raised by an action rolls back the whole transition.
"""

import sqlite3
from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from inspection_kernel.domain.actions import ActionRegistry
from inspection_kernel.domain.dtos import ErrorKind, TransitionRequest
from inspection_kernel.domain.workflow import WorkflowState
from inspection_kernel.exceptions import PersistenceError
from inspection_kernel.models import InspectionItemModel
from inspection_kernel.services.transition_writer import StateTransitionWriter
from inspection_services.workflow_executor import TransitionExecutor


def _assert_untouched(seed, inspection, state, version, history_rows=0):
    row = seed.reload(inspection.id)
    assert row.workflow_state == state
    assert row.version == version
    assert len(seed.history(inspection.id)) == history_rows


# =========================================================================
# Standard path
# =========================================================================


class TestHappyPath:
    """A full lifecycle from draft to completed."""

    def test_full_lifecycle(self, service, seed, make_request, clock):
        customer = seed.customer(phone="555-867-5309")
        tech = seed.user("technician")
        manager = seed.user("manager", "Morgan", "Manager")
        inspection = seed.inspection(items=("good", "fair"), customer=customer)
        start = clock.now()

        steps = [
            ("draft", "in_progress", "technician", tech.id),
            ("in_progress", "pending_review", "technician", tech.id),
            ("pending_review", "approved", "manager", manager.id),
            ("approved", "sent_to_customer", "manager", manager.id),
            ("sent_to_customer", "completed", "technician", tech.id),
        ]
        for expected_version, (src, dst, role, actor) in enumerate(steps, start=1):
            result = service.execute(make_request(
                inspection, dst, from_state=src, role=role, actor_id=actor,
            ))
            assert result.success, result.error_messages
            assert result.new_version == expected_version
            assert result.from_state == WorkflowState(src)
            assert result.to_state == WorkflowState(dst)
            clock.advance(1800)

        row = seed.reload(inspection.id)
        assert row.workflow_state == "completed"
        assert row.version == 5
        assert row.previous_state == "sent_to_customer"
        assert row.state_changed_by == tech.id
        assert row.started_at == start
        assert row.inspection_duration == 1800
        assert row.completed_at == start + timedelta(seconds=4 * 1800)

        history = seed.history(inspection.id)
        assert [h.version for h in history] == [1, 2, 3, 4, 5]
        assert [(h.from_state, h.to_state) for h in history] == [
            (src, dst) for src, dst, _, _ in steps
        ]
        assert all(h.transition_kind == "standard" for h in history)
        assert all(h.validation_passed for h in history)
        assert history[2].changed_by_role == "manager"

    def test_state_changed_fields(self, service, seed, make_request, clock):
        inspection = seed.inspection()
        actor = uuid4()
        result = service.execute(make_request(inspection, "in_progress", actor_id=actor))

        assert result.success
        row = seed.reload(inspection.id)
        assert row.previous_state == "draft"
        assert row.state_changed_at == clock.now()
        assert row.state_changed_by == actor
        assert row.started_at == clock.now()

    def test_metadata_and_reason_recorded(self, service, seed, make_request):
        inspection = seed.inspection("pending_review", version=2, items=("good",))
        result = service.execute(make_request(
            inspection, "rejected", role="manager",
            reason="Tire photos are blurry", metadata={"source": "tablet"},
        ))

        assert result.success
        (entry,) = seed.history(inspection.id)
        assert entry.version == 3
        assert entry.change_reason == "Tire photos are blurry"
        assert entry.transition_metadata == {"source": "tablet"}

    def test_rejected_inspection_can_be_reworked(self, service, seed, make_request):
        inspection = seed.inspection("rejected", version=3)
        result = service.execute(make_request(inspection, "in_progress", role="mechanic"))
        assert result.success
        assert result.new_version == 4

    def test_expected_version_match_succeeds(self, service, seed, make_request):
        inspection = seed.inspection("draft", version=0)
        result = service.execute(make_request(inspection, "in_progress", expected_version=0))
        assert result.success


# =========================================================================
# Critical items
# =========================================================================


class TestCriticalItems:

    def test_submit_warns_then_approval_blocked(self, service, seed, make_request):
        inspection = seed.inspection(
            "in_progress", version=1,
            items=("needs_immediate", {"condition_status": "poor", "is_critical": True}, "good"),
        )

        submitted = service.execute(make_request(inspection, "pending_review"))
        assert submitted.success
        assert submitted.warnings == (
            "2 critical safety items found - requires manager approval",
        )

        approved = service.execute(make_request(
            inspection, "approved", from_state="pending_review", role="manager",
        ))
        assert not approved.success
        assert approved.error_messages == (
            "Cannot approve inspection with 2 critical safety items",
        )
        _assert_untouched(seed, inspection, "pending_review", 2, history_rows=1)

    def test_resolved_critical_items_allow_approval(
        self, service, seed, make_request, session_factory, clock,
    ):
        inspection = seed.inspection("pending_review", version=2)
        item = seed.item(inspection, condition_status="needs_immediate")

        blocked = service.execute(make_request(inspection, "approved", role="manager"))
        assert not blocked.success

        with session_factory() as s:
            s.get(InspectionItemModel, item.id).resolved_at = clock.now()
            s.commit()

        result = service.execute(make_request(inspection, "approved", role="manager"))
        assert result.success
        assert seed.reload(inspection.id).completed_at == clock.now()


# =========================================================================
# Failed checks leave no trace
# =========================================================================


class TestRejectedTransitions:

    def test_submit_without_items(self, service, seed, make_request):
        inspection = seed.inspection("in_progress", version=1)
        result = service.execute(make_request(inspection, "pending_review"))

        assert not result.success
        assert result.error_messages == (
            "Inspection must have at least one item to submit for review",
        )
        _assert_untouched(seed, inspection, "in_progress", 1)

    def test_submit_with_unassessed_item(self, service, seed, make_request):
        inspection = seed.inspection("in_progress", version=1, items=("good", None))
        result = service.execute(make_request(inspection, "pending_review"))
        assert result.error_messages == (
            "All inspection items must have a condition status",
        )

    def test_reject_without_reason(self, service, seed, make_request):
        inspection = seed.inspection("pending_review", version=2, items=("good",))
        result = service.execute(make_request(inspection, "rejected", role="manager", reason=" "))

        assert result.error_messages == ("Rejection reason is required",)
        _assert_untouched(seed, inspection, "pending_review", 2)

    def test_technician_cannot_approve(self, service, seed, make_request):
        inspection = seed.inspection("pending_review", version=2, items=("good",))
        result = service.execute(make_request(inspection, "approved", role="technician"))

        assert result.error_kinds == frozenset({ErrorKind.AUTHORIZATION})
        _assert_untouched(seed, inspection, "pending_review", 2)

    def test_edge_outside_graph(self, service, seed, make_request):
        inspection = seed.inspection("draft")
        result = service.execute(make_request(inspection, "completed", role="admin"))
        assert result.error_kinds == frozenset({ErrorKind.GRAPH})

    @pytest.mark.parametrize("phone", [None, "  ", "555-12"])
    def test_send_without_usable_phone(self, service, seed, make_request, phone):
        customer = seed.customer(phone=phone)
        inspection = seed.inspection("approved", version=3, customer=customer)
        result = service.execute(make_request(inspection, "sent_to_customer", role="manager"))

        assert [e.code for e in result.errors] == ["NO_CUSTOMER_CONTACT"]
        _assert_untouched(seed, inspection, "approved", 3)

    def test_send_without_customer(self, service, seed, make_request):
        inspection = seed.inspection("approved", version=3)
        result = service.execute(make_request(inspection, "sent_to_customer", role="manager"))
        assert not result.success

    def test_missing_inspection(self, service, seed):
        ghost = TransitionRequest(
            inspection_id=uuid4(),
            from_state="draft",
            to_state="in_progress",
            actor_id=uuid4(),
            actor_role="technician",
            shop_id=seed.shop_id,
        )

        result = service.execute(ghost)
        assert result.error_kinds == frozenset({ErrorKind.NOT_FOUND})
        assert result.error_messages == ("Inspection not found",)
        assert not result.retryable

    def test_other_shop_sees_not_found(self, service, seed, make_request):
        inspection = seed.inspection()
        result = service.execute(make_request(inspection, "in_progress", shop_id=uuid4()))

        assert result.error_kinds == frozenset({ErrorKind.NOT_FOUND})
        _assert_untouched(seed, inspection, "draft", 0)


# =========================================================================
# Stale state
# =========================================================================


class TestStaleState:

    def test_stale_from_state(self, service, seed, make_request):
        inspection = seed.inspection("pending_review", version=2, items=("good",))
        result = service.execute(make_request(
            inspection, "pending_review", from_state="in_progress",
        ))

        assert not result.success
        (error,) = result.errors
        assert error.kind == ErrorKind.CONCURRENCY
        assert error.message == (
            "Inspection state has changed. Expected in_progress, found pending_review"
        )
        assert error.retryable
        assert result.retryable
        assert error.details["expected_state"] == "in_progress"
        assert error.details["found_state"] == "pending_review"
        _assert_untouched(seed, inspection, "pending_review", 2)

    def test_stale_version(self, service, seed, make_request):
        inspection = seed.inspection("draft", version=4)
        result = service.execute(make_request(inspection, "in_progress", expected_version=3))

        assert result.error_messages == ("Inspection version has changed. Expected 3, found 4",)
        assert result.retryable
        _assert_untouched(seed, inspection, "draft", 4)

    def test_same_request_twice_applies_once(self, service, seed, make_request):
        inspection = seed.inspection()
        first = service.execute(make_request(inspection, "in_progress"))
        second = service.execute(make_request(inspection, "in_progress"))

        assert first.success
        assert not second.success
        assert second.error_kinds == frozenset({ErrorKind.CONCURRENCY})
        _assert_untouched(seed, inspection, "in_progress", 1, history_rows=1)


# =========================================================================
# Admin override
# =========================================================================


class TestForceTransition:

    def test_admin_override_bypasses_critical_gate(self, service, seed, make_request):
        admin = seed.user("admin", "Alex", "Admin")
        inspection = seed.inspection("pending_review", version=2, items=("needs_immediate",))

        result = service.force_transition(
            inspection.id, "approved", admin.id, seed.shop_id,
            "Customer signed a waiver", actor_role="admin",
        )

        assert result.success
        assert result.new_version == 3
        row = seed.reload(inspection.id)
        assert row.workflow_state == "approved"
        assert row.previous_state == "pending_review"
        # actions are skipped on the override path
        assert row.completed_at is None

        (entry,) = seed.history(inspection.id)
        assert entry.transition_kind == "override"
        assert entry.is_override
        assert entry.validation_passed is False
        assert entry.transition_metadata == {"forced": True}
        assert entry.change_reason == "Customer signed a waiver"
        assert entry.changed_by == admin.id

    def test_override_out_of_terminal_state(self, service, seed):
        inspection = seed.inspection("completed", version=5)
        result = service.force_transition(
            inspection.id, WorkflowState.APPROVED, uuid4(), seed.shop_id,
            "Reopened for warranty claim", actor_role="admin",
        )
        assert result.success
        assert seed.reload(inspection.id).workflow_state == "approved"

    @pytest.mark.parametrize("role", ["technician", "manager"])
    def test_non_admin_refused(self, service, seed, role):
        inspection = seed.inspection("pending_review", version=2)
        result = service.force_transition(
            inspection.id, "approved", uuid4(), seed.shop_id, "because", actor_role=role,
        )

        assert result.error_kinds == frozenset({ErrorKind.AUTHORIZATION})
        _assert_untouched(seed, inspection, "pending_review", 2)

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_blank_reason_refused(self, service, seed, reason):
        inspection = seed.inspection("pending_review", version=2)
        result = service.force_transition(
            inspection.id, "approved", uuid4(), seed.shop_id, reason, actor_role="admin",
        )

        assert result.error_messages == ("Reason is required for force transition",)
        _assert_untouched(seed, inspection, "pending_review", 2)

    def test_refusals_never_touch_the_database(self):
        def no_sessions():
            pytest.fail("force_transition opened a session")

        executor = TransitionExecutor(no_sessions)
        blank = executor.force_transition(
            uuid4(), "approved", uuid4(), uuid4(), "", actor_role="admin",
        )
        wrong_role = executor.force_transition(
            uuid4(), "approved", uuid4(), uuid4(), "reason", actor_role="manager",
        )
        assert not blank.success
        assert not wrong_role.success

    def test_missing_inspection(self, service, seed):
        result = service.force_transition(
            uuid4(), "approved", uuid4(), seed.shop_id, "reason", actor_role="admin",
        )
        assert result.error_kinds == frozenset({ErrorKind.NOT_FOUND})


# =========================================================================
# Unhandled failures
# =========================================================================


class _DbFailure(Exception):
    pgcode = None


class _LockNotAvailable(Exception):
    pgcode = "55P03"


class TestFailurePropagation:

    def test_action_failure_rolls_back(self, session_factory, seed, make_request, clock):
        def explode(ctx):
            raise RuntimeError("printer on fire")

        executor = TransitionExecutor(
            session_factory,
            actions=ActionRegistry({(WorkflowState.DRAFT, WorkflowState.IN_PROGRESS): (explode,)}),
            clock=clock,
        )
        inspection = seed.inspection()

        with pytest.raises(RuntimeError, match="printer on fire"):
            executor.execute(make_request(inspection, "in_progress"))
        _assert_untouched(seed, inspection, "draft", 0)

    def test_database_failure_becomes_persistence_error(
        self, session_factory, seed, make_request, clock,
    ):
        class FailingLookup:
            def get_customer_phone(self, inspection_id, shop_id):
                raise OperationalError("SELECT phone", {}, _DbFailure("connection reset"))

        executor = TransitionExecutor(
            session_factory, clock=clock, contact_lookup_factory=lambda s: FailingLookup(),
        )
        inspection = seed.inspection("approved", version=3, customer=seed.customer())

        with pytest.raises(PersistenceError) as exc_info:
            executor.execute(make_request(inspection, "sent_to_customer", role="manager"))
        assert exc_info.value.code == "PERSISTENCE_ERROR"
        assert isinstance(exc_info.value.__cause__, OperationalError)
        _assert_untouched(seed, inspection, "approved", 3)

    def test_lock_timeout_is_retryable(
        self, session_factory, seed, make_request, clock, monkeypatch,
    ):
        def timed_out(self, inspection_id, shop_id):
            raise OperationalError("SELECT ... FOR UPDATE", {}, _LockNotAvailable())

        monkeypatch.setattr(StateTransitionWriter, "lock", timed_out)
        executor = TransitionExecutor(session_factory, clock=clock, lock_timeout_ms=50)
        inspection = seed.inspection()

        result = executor.execute(make_request(inspection, "in_progress"))

        (error,) = result.errors
        assert error.code == "LOCK_TIMEOUT"
        assert error.kind == ErrorKind.CONCURRENCY
        assert error.details["timeout_ms"] == 50
        assert result.retryable

    def test_sqlite_busy_is_lock_timeout(
        self, session_factory, seed, make_request, clock, monkeypatch,
    ):
        def busy(self, inspection_id, shop_id):
            raise OperationalError(
                "SELECT ...", {}, sqlite3.OperationalError("database is locked"),
            )

        monkeypatch.setattr(StateTransitionWriter, "lock", busy)
        executor = TransitionExecutor(session_factory, clock=clock, lock_timeout_ms=75)
        inspection = seed.inspection()

        result = executor.execute(make_request(inspection, "in_progress"))

        assert [e.code for e in result.errors] == ["LOCK_TIMEOUT"]
        assert result.retryable
        _assert_untouched(seed, inspection, "draft", 0)


# =========================================================================
# Contact lookup and logging
# =========================================================================


class TestCollaborators:

    def test_contact_lookup_only_for_send(self, session_factory, seed, make_request, clock):
        calls = []

        class CountingLookup:
            def get_customer_phone(self, inspection_id, shop_id):
                calls.append(inspection_id)
                return "555-000-1111"

        executor = TransitionExecutor(
            session_factory, clock=clock, contact_lookup_factory=lambda s: CountingLookup(),
        )
        draft = seed.inspection()
        assert executor.execute(make_request(draft, "in_progress")).success
        assert calls == []

        approved = seed.inspection("approved", version=3)
        assert executor.execute(make_request(approved, "sent_to_customer", role="admin")).success
        assert calls == [approved.id]

    def test_structured_logs(self, service, seed, make_request, captured_logs):
        inspection = seed.inspection()
        service.execute(make_request(inspection, "in_progress"))
        service.execute(make_request(inspection, "in_progress"))

        logs = captured_logs()
        committed = [r for r in logs if r["message"] == "transition_committed"]
        conflicts = [r for r in logs if r["message"] == "transition_conflict"]
        assert len(committed) == 1
        assert committed[0]["new_version"] == 1
        assert committed[0]["inspection_id"] == str(inspection.id)
        assert committed[0]["trace_type"] == "WORKFLOW_TRANSITION"
        assert len(conflicts) == 1
        assert conflicts[0]["level"] == "WARNING"
