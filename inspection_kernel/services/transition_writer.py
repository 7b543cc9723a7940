"""
StateTransitionWriter -- applies a state change and its audit row.

Responsibility:
    Locks the inspection row, applies the new state with an exact +1
    version bump, and appends exactly one history row.  Used by both the
    standard path (kind ``standard``) and the admin override path (kind
    ``override``).

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits: the
    transaction boundary belongs to the caller (inspection_services).

Invariants enforced:
    - version increases by exactly one per write.
    - previous_state, state_changed_at and state_changed_by always describe
      the latest write.
    - One history row per write, carrying the version the write produced;
      UNIQUE(inspection_id, version) rejects a duplicate at flush time.

Failure modes:
    - ``lock`` returns None when the inspection does not exist in the shop.
    - Database errors (including lock timeouts) propagate to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from inspection_kernel.domain.workflow import Role, WorkflowState
from inspection_kernel.logging_config import get_logger
from inspection_kernel.models.inspection import InspectionModel
from inspection_kernel.models.state_history import (
    InspectionStateHistoryModel,
    TransitionKind,
)

logger = get_logger("services.transition_writer")


@dataclass(frozen=True)
class AppliedTransition:
    """What a write produced."""

    inspection_id: UUID
    from_state: WorkflowState
    to_state: WorkflowState
    new_version: int
    history_id: UUID
    changed_at: datetime


class StateTransitionWriter:
    """Row-locked state writes plus the matching audit row."""

    def __init__(self, session: Session):
        self._session = session

    def begin_write(self, timeout_ms: int | None) -> None:
        """
        Prepare the current transaction for a locked write.

        PostgreSQL: bound how long ``lock`` may wait (``SET LOCAL``).
        SQLite: take the database write lock now with ``BEGIN IMMEDIATE``,
        waiting at most ``timeout_ms`` (default: the driver's busy timeout).
        A concurrent writer then blocks here instead of reading a state it
        could never commit on top of.
        """
        dialect = self._session.get_bind().dialect.name
        if dialect == "postgresql":
            if timeout_ms:
                self._session.execute(
                    text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'")
                )
        elif dialect == "sqlite":
            self._begin_immediate(timeout_ms)

    def _begin_immediate(self, timeout_ms: int | None) -> None:
        connection = self._session.connection()
        if connection.connection.driver_connection.in_transaction:
            return
        if timeout_ms:
            connection.exec_driver_sql(f"PRAGMA busy_timeout = {int(timeout_ms)}")
        connection.exec_driver_sql("BEGIN IMMEDIATE")

    def lock(self, inspection_id: UUID, shop_id: UUID) -> InspectionModel | None:
        """
        Re-fetch the inspection with ``SELECT ... FOR UPDATE``.

        populate_existing makes sure a row already in the identity map is
        refreshed with the values read under the lock.
        """
        stmt = (
            select(InspectionModel)
            .where(
                InspectionModel.id == inspection_id,
                InspectionModel.shop_id == shop_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def apply(
        self,
        inspection: InspectionModel,
        to_state: WorkflowState,
        actor_id: UUID,
        actor_role: Role,
        now: datetime,
        *,
        reason: str | None = None,
        kind: TransitionKind = TransitionKind.STANDARD,
        validation_passed: bool = True,
        metadata: Mapping[str, Any] | None = None,
    ) -> AppliedTransition:
        """Write the new state onto the locked row and append its history row."""
        from_state = WorkflowState(inspection.workflow_state)
        new_version = inspection.version + 1

        inspection.previous_state = from_state.value
        inspection.workflow_state = to_state.value
        inspection.version = new_version
        inspection.state_changed_at = now
        inspection.state_changed_by = actor_id
        inspection.updated_at = now

        history = InspectionStateHistoryModel(
            inspection_id=inspection.id,
            version=new_version,
            from_state=from_state.value,
            to_state=to_state.value,
            changed_by=actor_id,
            changed_by_role=actor_role.value,
            changed_at=now,
            change_reason=reason,
            transition_kind=kind.value,
            validation_passed=validation_passed,
            transition_metadata=dict(metadata) if metadata else None,
        )
        self._session.add(history)
        self._session.flush()

        logger.info(
            "state_written",
            extra={
                "inspection_id": str(inspection.id),
                "from_state": from_state.value,
                "to_state": to_state.value,
                "version": new_version,
                "transition_kind": kind.value,
            },
        )
        return AppliedTransition(
            inspection_id=inspection.id,
            from_state=from_state,
            to_state=to_state,
            new_version=new_version,
            history_id=history.id,
            changed_at=now,
        )
