"""
Engine configuration schema.

Frozen dataclasses the YAML loader parses into.  ``EngineConfiguration`` is
the only runtime artifact; callers obtain it from
``inspection_config.get_active_config()`` and never read YAML themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection and locking parameters for the inspection database."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    # Transaction-local row-lock wait; None waits indefinitely
    lock_timeout_ms: int | None = 5000


@dataclass(frozen=True)
class WorkflowSettings:
    """Business-rule tunables."""

    critical_conditions: frozenset[str] = frozenset({"needs_immediate"})
    min_contact_digits: int = 7
    statistics_window_days: int = 30
    listing_limit: int = 50


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfiguration:
    """The complete, validated engine configuration."""

    config_id: str
    version: int
    database: DatabaseSettings
    workflow: WorkflowSettings = field(default_factory=WorkflowSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
    source: str | None = None
