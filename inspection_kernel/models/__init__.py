"""ORM models for the inspection workflow."""

from inspection_kernel.models.directory import CustomerModel, UserModel
from inspection_kernel.models.inspection import InspectionItemModel, InspectionModel
from inspection_kernel.models.state_history import (
    InspectionStateHistoryModel,
    TransitionKind,
)

__all__ = [
    "CustomerModel",
    "UserModel",
    "InspectionModel",
    "InspectionItemModel",
    "InspectionStateHistoryModel",
    "TransitionKind",
]
