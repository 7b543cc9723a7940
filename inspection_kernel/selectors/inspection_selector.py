"""
Module: inspection_kernel.selectors.inspection_selector
Responsibility: Read-only access to a single inspection for validation:
    existence, item counts, unresolved critical items, current state and
    customer contact number.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every query is scoped by inspection id AND shop id.
    - Returns InspectionFacts / WorkflowState / scalars, never ORM rows.

Failure modes:
    - Never raises on absence of data: a missing inspection yields
      ``InspectionFacts.missing()`` or ``None``.
"""

from __future__ import annotations

from typing import Iterable, Protocol
from uuid import UUID

from sqlalchemy import and_, case, func, or_, select

from inspection_kernel.domain.dtos import InspectionFacts
from inspection_kernel.domain.workflow import WorkflowState
from inspection_kernel.models.directory import CustomerModel
from inspection_kernel.models.inspection import InspectionItemModel, InspectionModel
from inspection_kernel.selectors.base import BaseSelector


class CustomerContactLookup(Protocol):
    """Resolves the customer contact number for an inspection."""

    def get_customer_phone(self, inspection_id: UUID, shop_id: UUID) -> str | None:
        ...


class CustomerContactSelector(BaseSelector):
    """Default CustomerContactLookup: inspection -> customer row, shop-scoped."""

    def get_customer_phone(self, inspection_id: UUID, shop_id: UUID) -> str | None:
        stmt = (
            select(CustomerModel.phone)
            .join(InspectionModel, InspectionModel.customer_id == CustomerModel.id)
            .where(
                InspectionModel.id == inspection_id,
                InspectionModel.shop_id == shop_id,
                CustomerModel.shop_id == shop_id,
            )
        )
        return self.session.execute(stmt).scalar_one_or_none()


class InspectionSelector(BaseSelector):
    """Facts about one inspection, as seen by the caller's session."""

    def exists(self, inspection_id: UUID, shop_id: UUID) -> bool:
        stmt = select(InspectionModel.id).where(
            InspectionModel.id == inspection_id,
            InspectionModel.shop_id == shop_id,
        )
        return self.session.execute(stmt).first() is not None

    def get_current_state(
        self, inspection_id: UUID, shop_id: UUID,
    ) -> WorkflowState | None:
        stmt = select(InspectionModel.workflow_state).where(
            InspectionModel.id == inspection_id,
            InspectionModel.shop_id == shop_id,
        )
        value = self.session.execute(stmt).scalar_one_or_none()
        return WorkflowState(value) if value is not None else None

    def get_state_and_version(
        self, inspection_id: UUID, shop_id: UUID,
    ) -> tuple[WorkflowState, int] | None:
        stmt = select(InspectionModel.workflow_state, InspectionModel.version).where(
            InspectionModel.id == inspection_id,
            InspectionModel.shop_id == shop_id,
        )
        row = self.session.execute(stmt).first()
        if row is None:
            return None
        return WorkflowState(row.workflow_state), row.version

    def gather_facts(
        self,
        inspection_id: UUID,
        shop_id: UUID,
        critical_conditions: Iterable[str],
    ) -> InspectionFacts:
        """
        Count items, unassessed items and unresolved critical items.

        An item is critical when flagged ``is_critical`` or its condition
        status is one of ``critical_conditions``; it stays unresolved while
        ``resolved_at`` is NULL.
        """
        if not self.exists(inspection_id, shop_id):
            return InspectionFacts.missing()

        item = InspectionItemModel
        is_critical = or_(
            item.is_critical.is_(True),
            item.condition_status.in_(sorted(critical_conditions)),
        )
        stmt = (
            select(
                func.count(item.id).label("item_count"),
                func.coalesce(
                    func.sum(case((item.condition_status.is_(None), 1), else_=0)), 0,
                ).label("unassessed"),
                func.coalesce(
                    func.sum(
                        case(
                            (and_(is_critical, item.resolved_at.is_(None)), 1),
                            else_=0,
                        )
                    ),
                    0,
                ).label("critical_unresolved"),
            )
            .join(InspectionModel, InspectionModel.id == item.inspection_id)
            .where(
                item.inspection_id == inspection_id,
                InspectionModel.shop_id == shop_id,
            )
        )
        row = self.session.execute(stmt).one()
        return InspectionFacts(
            exists=True,
            item_count=int(row.item_count),
            unassessed_item_count=int(row.unassessed),
            critical_unresolved_count=int(row.critical_unresolved),
        )
