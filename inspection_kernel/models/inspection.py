"""
Module: inspection_kernel.models.inspection
Responsibility: ORM persistence for inspection records and their items.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - workflow_state is always one of the fixed workflow states (DB check
      constraint, mirrored by WorkflowState in domain/workflow.py).
    - version is non-negative; the transition writer increments it by
      exactly one per successful transition.
    - Items carry a condition status from a fixed set (or NULL while the
      technician has not assessed them yet).

Audit relevance:
    The inspection row is the single contended resource of the engine.
    Its (workflow_state, version) pair is what every transition re-reads
    under a row lock and compares against the caller's belief.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from inspection_kernel.db.base import TimestampedBase
from inspection_kernel.db.types import UTCDateTime, UUIDString


class InspectionModel(TimestampedBase):
    """
    Persistent vehicle inspection record.

    Contract:
        Created upstream in the ``draft`` state.  After creation it is
        mutated only by the transition writer (normal and override paths).
    """

    __tablename__ = "inspections"

    __table_args__ = (
        CheckConstraint(
            "workflow_state IN ('draft', 'in_progress', 'pending_review', "
            "'approved', 'rejected', 'sent_to_customer', 'completed')",
            name="ck_inspections_valid_workflow_state",
        ),
        CheckConstraint("version >= 0", name="ck_inspections_version_non_negative"),
        Index("idx_inspections_shop_state", "shop_id", "workflow_state"),
    )

    shop_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    technician_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=True,
    )
    customer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=True,
    )

    workflow_state: Mapped[str] = mapped_column(
        String(32), nullable=False, default="draft",
    )
    version: Mapped[int] = mapped_column(nullable=False, default=0)

    previous_state: Mapped[str | None] = mapped_column(String(32), nullable=True)
    state_changed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True,
    )
    state_changed_by: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )

    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    # Seconds between started_at and submission for review
    inspection_duration: Mapped[int | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Inspection {self.id} state={self.workflow_state} "
            f"v{self.version}>"
        )


class InspectionItemModel(TimestampedBase):
    """
    One checklist item of an inspection.

    Read-only from the workflow engine's perspective: the validator counts
    items, unassessed items, and unresolved critical items.
    """

    __tablename__ = "inspection_items"

    __table_args__ = (
        CheckConstraint(
            "condition_status IS NULL OR condition_status IN "
            "('good', 'fair', 'poor', 'needs_immediate', 'not_applicable')",
            name="ck_inspection_items_valid_condition",
        ),
        Index("idx_inspection_items_inspection_id", "inspection_id"),
    )

    inspection_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False,
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    component: Mapped[str] = mapped_column(String(200), nullable=False)
    condition_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_critical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    def __repr__(self) -> str:
        return f"<InspectionItem {self.component} condition={self.condition_status}>"
