"""
inspection_services -- transactional orchestration over the kernel.

Owns the transaction boundary for workflow transitions and exposes the
``WorkflowService`` facade.
"""

from inspection_services.bootstrap import create_workflow_service
from inspection_services.workflow_executor import TransitionExecutor
from inspection_services.workflow_service import WorkflowService

__all__ = [
    "TransitionExecutor",
    "WorkflowService",
    "create_workflow_service",
]
