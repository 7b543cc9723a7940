"""
Module: inspection_kernel.selectors.workflow_history_selector
Responsibility: Read-only projections of the workflow audit trail: per
    inspection history, per shop statistics over a time window, and the
    "inspections waiting in state X" dashboard listing.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Shop scoping: history rows are reached through their inspection, whose
      shop_id must match.  Another shop's inspection yields an empty history.
    - History is ordered newest first by version, which is unique per
      inspection and therefore a total order.
    - Statistics are computed from history rows only; no counters are stored.

Audit relevance:
    These are the views a shop owner uses to answer "who moved this, when,
    and was it an override?".  Override rows are reported separately.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from inspection_kernel.domain.workflow import WorkflowState
from inspection_kernel.models.directory import CustomerModel, UserModel
from inspection_kernel.models.inspection import InspectionModel
from inspection_kernel.models.state_history import (
    InspectionStateHistoryModel,
    TransitionKind,
)
from inspection_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class StateHistoryEntryDTO:
    """One audit row with the actor's display name resolved."""

    id: UUID
    inspection_id: UUID
    version: int
    from_state: str
    to_state: str
    changed_by: UUID
    changed_by_name: str | None
    changed_by_role: str
    changed_at: datetime
    change_reason: str | None
    transition_kind: str
    validation_passed: bool
    metadata: dict[str, Any] | None

    @property
    def is_override(self) -> bool:
        return self.transition_kind == TransitionKind.OVERRIDE.value


@dataclass(frozen=True)
class WorkflowStatisticsDTO:
    """Transition counts for one shop over a trailing window."""

    shop_id: UUID
    window_days: int
    window_start: datetime
    total_transitions: int
    inspections_started: int
    submitted_for_review: int
    approved: int
    rejected: int
    completed: int
    overrides: int
    average_completion_hours: float | None


@dataclass(frozen=True)
class InspectionSnapshotDTO:
    """Dashboard row: an inspection and how long it has sat in its state."""

    inspection_id: UUID
    workflow_state: WorkflowState
    version: int
    previous_state: str | None
    state_changed_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    customer_name: str | None
    technician_name: str | None


def _display_name(first: str | None, last: str | None) -> str | None:
    if first is None and last is None:
        return None
    return f"{first or ''} {last or ''}".strip()


class WorkflowHistorySelector(BaseSelector):
    """Audit trail, statistics and state listings."""

    def get_workflow_history(
        self, inspection_id: UUID, shop_id: UUID,
    ) -> list[StateHistoryEntryDTO]:
        h = InspectionStateHistoryModel
        stmt = (
            select(h, UserModel.first_name, UserModel.last_name)
            .join(InspectionModel, InspectionModel.id == h.inspection_id)
            .outerjoin(UserModel, UserModel.id == h.changed_by)
            .where(
                h.inspection_id == inspection_id,
                InspectionModel.shop_id == shop_id,
            )
            .order_by(h.version.desc())
        )
        return [
            StateHistoryEntryDTO(
                id=row.id,
                inspection_id=row.inspection_id,
                version=row.version,
                from_state=row.from_state,
                to_state=row.to_state,
                changed_by=row.changed_by,
                changed_by_name=_display_name(first, last),
                changed_by_role=row.changed_by_role,
                changed_at=row.changed_at,
                change_reason=row.change_reason,
                transition_kind=row.transition_kind,
                validation_passed=row.validation_passed,
                metadata=row.transition_metadata,
            )
            for row, first, last in self.session.execute(stmt).all()
        ]

    def get_workflow_statistics(
        self, shop_id: UUID, window_days: int, now: datetime,
    ) -> WorkflowStatisticsDTO:
        """
        Count transitions with ``changed_at`` inside the trailing window.

        ``average_completion_hours`` spans each inspection's first
        draft -> in_progress to its latest arrival in ``completed``, over the
        inspections that reached ``completed`` inside the window.
        """
        if window_days <= 0:
            raise ValueError(f"window_days must be positive, got {window_days}")

        h = InspectionStateHistoryModel
        window_start = now - timedelta(days=window_days)
        stmt = (
            select(
                h.inspection_id, h.from_state, h.to_state,
                h.transition_kind, h.changed_at,
            )
            .join(InspectionModel, InspectionModel.id == h.inspection_id)
            .where(
                InspectionModel.shop_id == shop_id,
                h.changed_at >= window_start,
                h.changed_at <= now,
            )
        )
        rows = self.session.execute(stmt).all()

        counts = {
            "started": 0, "submitted": 0, "approved": 0,
            "rejected": 0, "completed": 0, "overrides": 0,
        }
        completed_at: dict[UUID, datetime] = {}
        for row in rows:
            if row.transition_kind == TransitionKind.OVERRIDE.value:
                counts["overrides"] += 1
            if (
                row.from_state == WorkflowState.DRAFT.value
                and row.to_state == WorkflowState.IN_PROGRESS.value
            ):
                counts["started"] += 1
            elif row.to_state == WorkflowState.PENDING_REVIEW.value:
                counts["submitted"] += 1
            elif row.to_state == WorkflowState.APPROVED.value:
                counts["approved"] += 1
            elif row.to_state == WorkflowState.REJECTED.value:
                counts["rejected"] += 1
            elif row.to_state == WorkflowState.COMPLETED.value:
                counts["completed"] += 1
                previous = completed_at.get(row.inspection_id)
                if previous is None or row.changed_at > previous:
                    completed_at[row.inspection_id] = row.changed_at

        return WorkflowStatisticsDTO(
            shop_id=shop_id,
            window_days=window_days,
            window_start=window_start,
            total_transitions=len(rows),
            inspections_started=counts["started"],
            submitted_for_review=counts["submitted"],
            approved=counts["approved"],
            rejected=counts["rejected"],
            completed=counts["completed"],
            overrides=counts["overrides"],
            average_completion_hours=self._average_completion_hours(completed_at),
        )

    def _average_completion_hours(
        self, completed_at: dict[UUID, datetime],
    ) -> float | None:
        if not completed_at:
            return None
        h = InspectionStateHistoryModel
        stmt = (
            select(h.inspection_id, func.min(h.changed_at).label("first_started"))
            .where(
                h.inspection_id.in_(list(completed_at)),
                h.from_state == WorkflowState.DRAFT.value,
                h.to_state == WorkflowState.IN_PROGRESS.value,
            )
            .group_by(h.inspection_id)
        )
        # min() keeps the column type, so values come back UTC-aware
        durations = [
            (completed_at[row.inspection_id] - row.first_started).total_seconds() / 3600
            for row in self.session.execute(stmt).all()
        ]
        if not durations:
            return None
        return round(sum(durations) / len(durations), 2)

    def get_inspections_by_state(
        self,
        shop_id: UUID,
        states: Sequence[WorkflowState | str],
        limit: int = 50,
    ) -> list[InspectionSnapshotDTO]:
        """Inspections in ``states``, longest-waiting first."""
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        state_values = sorted({WorkflowState.parse(s).value for s in states})
        if not state_values:
            return []

        i = InspectionModel
        waiting_since = func.coalesce(i.state_changed_at, i.created_at)
        stmt = (
            select(
                i,
                CustomerModel.first_name.label("customer_first"),
                CustomerModel.last_name.label("customer_last"),
                UserModel.first_name.label("tech_first"),
                UserModel.last_name.label("tech_last"),
            )
            .outerjoin(CustomerModel, CustomerModel.id == i.customer_id)
            .outerjoin(UserModel, UserModel.id == i.technician_id)
            .where(i.shop_id == shop_id, i.workflow_state.in_(state_values))
            .order_by(waiting_since.asc(), i.id)
            .limit(limit)
        )
        return [
            InspectionSnapshotDTO(
                inspection_id=row.InspectionModel.id,
                workflow_state=WorkflowState(row.InspectionModel.workflow_state),
                version=row.InspectionModel.version,
                previous_state=row.InspectionModel.previous_state,
                state_changed_at=row.InspectionModel.state_changed_at,
                started_at=row.InspectionModel.started_at,
                completed_at=row.InspectionModel.completed_at,
                customer_name=_display_name(row.customer_first, row.customer_last),
                technician_name=_display_name(row.tech_first, row.tech_last),
            )
            for row in self.session.execute(stmt).all()
        ]
