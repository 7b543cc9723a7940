"""
Config -> Kernel Bridges.

Functions that convert an EngineConfiguration into kernel-compatible
inputs.  They live here (the producer) because the kernel must NEVER
import inspection_config.

Usage:
    from inspection_config.bridges import build_workflow_rules, engine_kwargs

    config = get_active_config()
    rules = build_workflow_rules(config)
    init_engine_from_url(**engine_kwargs(config))
"""

from __future__ import annotations

from typing import Any

from inspection_config.schema import EngineConfiguration
from inspection_kernel.domain.transition_rules import WorkflowRules


def build_workflow_rules(config: EngineConfiguration) -> WorkflowRules:
    return WorkflowRules(
        critical_conditions=config.workflow.critical_conditions,
        min_contact_digits=config.workflow.min_contact_digits,
    )


def engine_kwargs(config: EngineConfiguration) -> dict[str, Any]:
    """Keyword arguments for ``inspection_kernel.db.init_engine_from_url``."""
    db = config.database
    return {
        "database_url": db.url,
        "echo": db.echo,
        "pool_size": db.pool_size,
        "max_overflow": db.max_overflow,
        "pool_timeout": db.pool_timeout,
        "pool_recycle": db.pool_recycle,
    }
