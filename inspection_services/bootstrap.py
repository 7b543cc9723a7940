"""
inspection_services.bootstrap -- Wire a WorkflowService from configuration.

Usage:
    from inspection_config import get_active_config
    from inspection_services.bootstrap import create_workflow_service

    service = create_workflow_service(get_active_config())
"""

from __future__ import annotations

from inspection_config.bridges import build_workflow_rules, engine_kwargs
from inspection_config.schema import EngineConfiguration
from inspection_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from inspection_kernel.db.immutability import register_immutability_listeners
from inspection_kernel.domain.clock import Clock, SystemClock
from inspection_kernel.logging_config import configure_logging, get_logger
from inspection_services.workflow_service import WorkflowService

logger = get_logger("services.bootstrap")


def create_workflow_service(
    config: EngineConfiguration,
    *,
    clock: Clock | None = None,
    create_schema: bool = False,
) -> WorkflowService:
    """
    Initialize logging, the engine and the immutability listeners, then
    build the facade.

    ``create_schema`` creates missing tables; intended for local runs and
    tests, production schemas are managed outside the engine.
    """
    configure_logging(level=config.logging.level)
    engine = init_engine_from_url(**engine_kwargs(config))
    register_immutability_listeners()
    if create_schema:
        create_tables(engine)

    service = WorkflowService(
        get_session_factory(),
        rules=build_workflow_rules(config),
        clock=clock or SystemClock(),
        lock_timeout_ms=config.database.lock_timeout_ms,
        statistics_window_days=config.workflow.statistics_window_days,
        listing_limit=config.workflow.listing_limit,
    )
    logger.info(
        "workflow_service_created",
        extra={
            "config_id": config.config_id,
            "checksum": config.checksum,
            "dialect": engine.dialect.name,
        },
    )
    return service
