"""
inspection_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component may read configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``inspection_kernel`` and below
    ``inspection_services``.  The kernel MUST NEVER import from
    ``inspection_config``; ``bridges`` translates the configuration into
    kernel inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - A configuration with validation errors is never returned.
    - Same YAML content (after the URL override) always yields the same
      checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ConfigurationError`` -- parse or validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``INSPECTION_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying engine behaviour to an exact configuration.
"""

from __future__ import annotations

import os
from pathlib import Path

from inspection_config.loader import load_yaml_file, parse_configuration
from inspection_config.schema import (
    DatabaseSettings,
    EngineConfiguration,
    LoggingSettings,
    WorkflowSettings,
)
from inspection_config.validator import validate_configuration
from inspection_kernel.exceptions import ConfigurationError
from inspection_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "engine.yaml"

DATABASE_URL_ENV = "INSPECTION_DATABASE_URL"


def get_active_config(config_path: Path | str | None = None) -> EngineConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to
            ``inspection_config/defaults/engine.yaml``.

    Returns:
        A validated, frozen ``EngineConfiguration``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If parsing or validation fails.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    data = load_yaml_file(path)

    url_override = os.environ.get(DATABASE_URL_ENV)
    if url_override:
        database = dict(data.get("database") or {})
        database["url"] = url_override
        data = {**data, "database": database}

    config = parse_configuration(data, source=str(path))

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ConfigurationError(validation.errors, source=str(path))
    for warning in validation.warnings:
        _logger.warning("config_warning", extra={"warning": warning})

    _logger.info(
        "INSPECTION_CONFIG_TRACE",
        extra={
            "trace_type": "INSPECTION_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_source": str(path),
            "database_url_overridden": bool(url_override),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "DATABASE_URL_ENV",
    "DatabaseSettings",
    "EngineConfiguration",
    "LoggingSettings",
    "WorkflowSettings",
]
