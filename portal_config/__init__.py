"""
Portal Configuration (``portal_config``).

Responsibility
--------------
Single entrypoint for runtime configuration.  Loads a YAML settings set,
applies environment overrides, validates it, and returns a frozen
``PortalSettings``.

Architecture position
---------------------
Configuration layer, outside the kernel.  The kernel never reads files or
environment variables; ``portal_services.bootstrap`` hands it the values
from ``PortalSettings``.

Invariants
----------
* Settings that fail validation are never returned.
* Environment overrides: ``DATABASE_URL`` replaces ``database.url``;
  ``PORTAL_LOG_LEVEL`` replaces ``logging.level``.
* A ``PORTAL_CONFIG_TRACE`` log entry is emitted on every successful call.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from portal_config.loader import load_settings
from portal_config.schema import (
    CatalogSeed,
    DatabaseSettings,
    EnvironmentDef,
    LoggingSettings,
    PortalSettings,
    ResourceTypeDef,
)
from portal_config.validator import ConfigValidationResult, validate_settings

_logger = logging.getLogger("portal_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_CONFIG_PATH = _DEFAULT_CONFIG_DIR / "default.yaml"


class ConfigurationError(ValueError):
    """Settings failed validation."""

    def __init__(self, path: Path, errors: list[str]):
        self.path = path
        self.errors = errors
        super().__init__(
            f"Configuration {path} failed validation:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def apply_env_overrides(
    settings: PortalSettings,
    environ: dict[str, str] | None = None,
) -> PortalSettings:
    """Return settings with DATABASE_URL / PORTAL_LOG_LEVEL applied."""
    env = os.environ if environ is None else environ
    database = settings.database
    logging_settings = settings.logging

    if env.get("DATABASE_URL"):
        database = dataclasses.replace(database, url=env["DATABASE_URL"])
    if env.get("PORTAL_LOG_LEVEL"):
        logging_settings = dataclasses.replace(
            logging_settings, level=env["PORTAL_LOG_LEVEL"].upper(),
        )
    return dataclasses.replace(settings, database=database, logging=logging_settings)


def get_active_config(
    config_path: Path | str | None = None,
    environ: dict[str, str] | None = None,
) -> PortalSettings:
    """Load, override, and validate the portal settings.

    Raises:
        FileNotFoundError: if the settings file does not exist.
        ConfigurationError: if validation reports errors.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    settings = apply_env_overrides(load_settings(path), environ)

    result = validate_settings(settings)
    for warning in result.warnings:
        _logger.warning("config_validation_warning", extra={"detail": warning})
    if not result.is_valid:
        raise ConfigurationError(path, result.errors)

    _logger.info(
        "PORTAL_CONFIG_TRACE",
        extra={
            "trace_type": "PORTAL_CONFIG_TRACE",
            "config_name": settings.name,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "environment_count": len(settings.catalog.environments),
            "resource_type_count": len(settings.catalog.resource_types),
        },
    )
    return settings


__all__ = [
    "CatalogSeed",
    "ConfigValidationResult",
    "ConfigurationError",
    "DEFAULT_CONFIG_PATH",
    "DatabaseSettings",
    "EnvironmentDef",
    "LoggingSettings",
    "PortalSettings",
    "ResourceTypeDef",
    "apply_env_overrides",
    "get_active_config",
    "validate_settings",
]
