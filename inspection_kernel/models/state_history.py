"""
Module: inspection_kernel.models.state_history
Responsibility: ORM persistence for the inspection state-change audit trail.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (ORM listeners in db/immutability.py).
    - Exactly one row per successful transition: UNIQUE(inspection_id, version)
      where version is the inspection version the transition produced, so a
      duplicate or a gap is structurally visible.
    - Override transitions are tagged with transition_kind='override' and
      validation_passed=False.

Audit relevance:
    This table IS the audit trail of the workflow.  Statistics and history
    views are projections of it.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inspection_kernel.db.base import Base
from inspection_kernel.db.types import UTCDateTime, UUIDString


class TransitionKind(str, Enum):
    """How a history row was produced."""

    STANDARD = "standard"
    OVERRIDE = "override"


class InspectionStateHistoryModel(Base):
    """
    One immutable state change of one inspection.

    Contract:
        Rows are inserted by the transition writer inside the same
        transaction as the inspection update, and never touched again.
    """

    __tablename__ = "inspection_state_history"

    __table_args__ = (
        UniqueConstraint(
            "inspection_id", "version",
            name="uq_state_history_inspection_version",
        ),
        CheckConstraint(
            "transition_kind IN ('standard', 'override')",
            name="ck_state_history_valid_kind",
        ),
        Index("idx_state_history_inspection", "inspection_id", "version"),
        Index("idx_state_history_changed_at", "changed_at"),
    )

    inspection_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inspections.id"), nullable=False,
    )
    version: Mapped[int] = mapped_column(nullable=False)
    from_state: Mapped[str] = mapped_column(String(32), nullable=False)
    to_state: Mapped[str] = mapped_column(String(32), nullable=False)
    changed_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    changed_by_role: Mapped[str] = mapped_column(String(32), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    change_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    transition_kind: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TransitionKind.STANDARD.value,
    )
    validation_passed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    # "metadata" is reserved on declarative classes
    transition_metadata: Mapped[dict | None] = mapped_column(
        "metadata", JSON, nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<StateHistory {self.inspection_id} v{self.version} "
            f"{self.from_state}->{self.to_state} ({self.transition_kind})>"
        )

    @property
    def is_override(self) -> bool:
        return self.transition_kind == TransitionKind.OVERRIDE.value
