"""Read-only selectors over inspections and their audit trail."""

from inspection_kernel.selectors.base import BaseSelector
from inspection_kernel.selectors.inspection_selector import (
    CustomerContactLookup,
    CustomerContactSelector,
    InspectionSelector,
)
from inspection_kernel.selectors.workflow_history_selector import (
    InspectionSnapshotDTO,
    StateHistoryEntryDTO,
    WorkflowHistorySelector,
    WorkflowStatisticsDTO,
)

__all__ = [
    "BaseSelector",
    "CustomerContactLookup",
    "CustomerContactSelector",
    "InspectionSelector",
    "InspectionSnapshotDTO",
    "StateHistoryEntryDTO",
    "WorkflowHistorySelector",
    "WorkflowStatisticsDTO",
]
