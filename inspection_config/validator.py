"""
Configuration Validator (``inspection_config.validator``).

Responsibility
--------------
Checks a parsed ``EngineConfiguration`` for values that parse fine but
cannot work: non-positive pool sizes, an empty database URL, unknown
critical condition names, and so on.

Failure modes
-------------
* Validation errors  -> the configuration MUST NOT be used;
  ``get_active_config()`` raises ``ConfigurationError``.
* Validation warnings  -> usable, but logged for review.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from inspection_config.schema import EngineConfiguration
from inspection_kernel.domain.transition_rules import CONDITION_STATUSES

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass
class ConfigValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_configuration(config: EngineConfiguration) -> ConfigValidationResult:
    result = ConfigValidationResult()
    db = config.database
    wf = config.workflow

    if not db.url.strip():
        result.errors.append("database.url must not be empty")
    if db.pool_size < 1:
        result.errors.append(f"database.pool_size must be positive, got {db.pool_size}")
    if db.max_overflow < 0:
        result.errors.append(
            f"database.max_overflow must not be negative, got {db.max_overflow}"
        )
    if db.pool_timeout < 1:
        result.errors.append(
            f"database.pool_timeout must be positive, got {db.pool_timeout}"
        )
    if db.lock_timeout_ms is not None and db.lock_timeout_ms < 1:
        result.errors.append(
            f"database.lock_timeout_ms must be positive, got {db.lock_timeout_ms}"
        )
    if db.lock_timeout_ms is None:
        result.warnings.append("database.lock_timeout_ms is unset; lock waits are unbounded")

    if not wf.critical_conditions:
        result.warnings.append(
            "workflow.critical_conditions is empty; only flagged items are critical"
        )
    for name in sorted(wf.critical_conditions - CONDITION_STATUSES):
        result.errors.append(f"workflow.critical_conditions: unknown condition {name!r}")
    if wf.min_contact_digits < 1:
        result.errors.append(
            f"workflow.min_contact_digits must be positive, got {wf.min_contact_digits}"
        )
    if wf.statistics_window_days < 1:
        result.errors.append(
            "workflow.statistics_window_days must be positive, "
            f"got {wf.statistics_window_days}"
        )
    if wf.listing_limit < 1:
        result.errors.append(
            f"workflow.listing_limit must be positive, got {wf.listing_limit}"
        )

    if config.logging.level not in _LOG_LEVELS:
        result.errors.append(f"logging.level: unknown level {config.logging.level!r}")

    return result
