"""
ORM-level immutability enforcement for the workflow audit trail.

===============================================================================
WHY THIS EXISTS
===============================================================================

The state history table is the sole audit source of truth for who moved an
inspection where, and why.  A history row that can be edited after the fact
is worthless to a shop owner disputing a rejected inspection or to anyone
separating override transitions from normal ones.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_update event] --> _check_history_update() -----> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_history_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

If a check fails, ImmutabilityViolationError is raised and the surrounding
transaction is rolled back by its scope.  Bulk ``UPDATE`` statements issued
with ``session.execute(update(...))`` bypass mapper events; the engine never
issues them against history rows.

===============================================================================
USAGE
===============================================================================

    from inspection_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

In tests:

    unregister_immutability_listeners()
    # ... set up fixture data that needs to bypass the rules ...
    register_immutability_listeners()
"""

from sqlalchemy import event

from inspection_kernel.exceptions import ImmutabilityViolationError
from inspection_kernel.logging_config import get_logger
from inspection_kernel.models.state_history import InspectionStateHistoryModel

logger = get_logger("db.immutability")


def _blocker(operation: str, reason: str):
    def _block(mapper, connection, target):
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "InspectionStateHistory",
                "entity_id": str(target.id),
                "inspection_id": str(target.inspection_id),
                "operation": operation,
            },
        )
        raise ImmutabilityViolationError(
            entity_type="InspectionStateHistory",
            entity_id=str(target.id),
            reason=reason,
        )

    _block.__name__ = f"_block_history_{operation.lower()}"
    return _block


_check_history_update = _blocker(
    "UPDATE", "State history entries are immutable and cannot be modified",
)
_check_history_delete = _blocker("DELETE", "State history entries cannot be deleted")


_LISTENERS = (
    (InspectionStateHistoryModel, "before_update", _check_history_update),
    (InspectionStateHistoryModel, "before_delete", _check_history_delete),
)


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners (idempotent).

    Call this after models are imported and before any transition runs.
    """
    for target, identifier, fn in _LISTENERS:
        if not event.contains(target, identifier, fn):
            event.listen(target, identifier, fn)


def unregister_immutability_listeners() -> None:
    """Remove the listeners registered by register_immutability_listeners()."""
    for target, identifier, fn in _LISTENERS:
        if event.contains(target, identifier, fn):
            event.remove(target, identifier, fn)
