"""
Configuration Loader (``inspection_config.loader``).

Responsibility
--------------
Loads the engine YAML file and parses it into typed
``inspection_config.schema`` dataclass instances.  Runtime callers go
through ``inspection_config.get_active_config()`` instead.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown top-level sections are rejected rather than ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed source, so two files with the same content share a checksum.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys or wrong value types  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from inspection_config.schema import (
    DatabaseSettings,
    EngineConfiguration,
    LoggingSettings,
    WorkflowSettings,
)
from inspection_kernel.exceptions import ConfigurationError

_KNOWN_SECTIONS = frozenset({"config_id", "version", "database", "workflow", "logging"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _as_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError([f"{section}.{key} must be an integer, got {value!r}"])
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    if "url" not in data:
        raise ConfigurationError(["database.url is required"])
    lock_timeout = data.get("lock_timeout_ms", 5000)
    return DatabaseSettings(
        url=str(data["url"]),
        echo=bool(data.get("echo", False)),
        pool_size=_as_int("database", "pool_size", data.get("pool_size", 20)),
        max_overflow=_as_int("database", "max_overflow", data.get("max_overflow", 10)),
        pool_timeout=_as_int("database", "pool_timeout", data.get("pool_timeout", 30)),
        pool_recycle=_as_int("database", "pool_recycle", data.get("pool_recycle", 1800)),
        lock_timeout_ms=(
            None if lock_timeout is None
            else _as_int("database", "lock_timeout_ms", lock_timeout)
        ),
    )


def parse_workflow(data: dict[str, Any]) -> WorkflowSettings:
    conditions = data.get("critical_conditions", ["needs_immediate"])
    if isinstance(conditions, str) or not isinstance(conditions, list):
        raise ConfigurationError(["workflow.critical_conditions must be a list"])
    return WorkflowSettings(
        critical_conditions=frozenset(str(c) for c in conditions),
        min_contact_digits=_as_int(
            "workflow", "min_contact_digits", data.get("min_contact_digits", 7),
        ),
        statistics_window_days=_as_int(
            "workflow", "statistics_window_days", data.get("statistics_window_days", 30),
        ),
        listing_limit=_as_int("workflow", "listing_limit", data.get("listing_limit", 50)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    return LoggingSettings(level=str(data.get("level", "INFO")).upper())


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_configuration(
    data: dict[str, Any], source: str | None = None,
) -> EngineConfiguration:
    """Parse a raw mapping (as loaded from YAML) into an EngineConfiguration."""
    unknown = sorted(set(data) - _KNOWN_SECTIONS)
    if unknown:
        raise ConfigurationError(
            [f"Unknown configuration section: {name}" for name in unknown], source,
        )
    if "database" not in data:
        raise ConfigurationError(["database section is required"], source)
    try:
        return EngineConfiguration(
            config_id=str(data.get("config_id", "default")),
            version=_as_int("root", "version", data.get("version", 1)),
            database=parse_database(data["database"] or {}),
            workflow=parse_workflow(data.get("workflow") or {}),
            logging=parse_logging(data.get("logging") or {}),
            checksum=compute_checksum(data),
            source=source,
        )
    except ConfigurationError as exc:
        if exc.source is None and source is not None:
            raise ConfigurationError(exc.errors, source) from exc
        raise


def load_configuration(path: Path) -> EngineConfiguration:
    return parse_configuration(load_yaml_file(path), source=str(path))
