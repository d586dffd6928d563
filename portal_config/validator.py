"""
Configuration Validator (``portal_config.validator``).

Responsibility
--------------
Validates a ``PortalSettings`` before it is used: catalog names are unique,
resource schemas are well-formed object schemas, costs are non-negative,
and runtime settings are in range.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``) -> the settings
  MUST NOT be used; ``get_active_config`` raises ``ConfigurationError``.
* Warnings are reported but do not block.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from portal_config.schema import PortalSettings, ResourceTypeDef

_LOG_LEVELS = frozenset(logging.getLevelNamesMapping())


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is True only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _validate_schema_document(rt: ResourceTypeDef, result: ConfigValidationResult) -> None:
    schema: dict[str, Any] = rt.config_schema
    if not schema:
        result.add_warning(f"Resource type '{rt.name}' has no config_schema")
        return
    if schema.get("type", "object") != "object":
        result.add_error(f"Resource type '{rt.name}': config_schema type must be 'object'")
    properties = schema.get("properties") or {}
    if not isinstance(properties, dict):
        result.add_error(f"Resource type '{rt.name}': properties must be a mapping")
        return
    for required in schema.get("required") or ():
        if required not in properties:
            result.add_error(
                f"Resource type '{rt.name}': required field '{required}' "
                f"is not declared in properties"
            )
    for prop_name, prop in properties.items():
        if not isinstance(prop, dict):
            result.add_error(
                f"Resource type '{rt.name}': property '{prop_name}' must be a mapping"
            )
            continue
        lo, hi = prop.get("minimum"), prop.get("maximum")
        if lo is not None and hi is not None and lo > hi:
            result.add_error(
                f"Resource type '{rt.name}': property '{prop_name}' minimum exceeds maximum"
            )
        if "enum" in prop and not prop["enum"]:
            result.add_error(
                f"Resource type '{rt.name}': property '{prop_name}' has an empty enum"
            )


def validate_settings(settings: PortalSettings) -> ConfigValidationResult:
    """Validate a parsed settings set."""
    result = ConfigValidationResult()

    if not settings.database.url:
        result.add_error("database.url is required")
    if settings.database.pool_size < 1:
        result.add_error("database.pool_size must be at least 1")
    if settings.database.max_overflow < 0:
        result.add_error("database.max_overflow must not be negative")
    if settings.logging.level not in _LOG_LEVELS:
        result.add_error(f"logging.level '{settings.logging.level}' is not a known level")

    seen_envs: set[str] = set()
    for env in settings.catalog.environments:
        if env.name in seen_envs:
            result.add_error(f"Duplicate environment name '{env.name}'")
        seen_envs.add(env.name)

    seen_types: set[str] = set()
    for rt in settings.catalog.resource_types:
        if rt.name in seen_types:
            result.add_error(f"Duplicate resource type name '{rt.name}'")
        seen_types.add(rt.name)
        if rt.base_cost < 0:
            result.add_error(f"Resource type '{rt.name}': base_cost must not be negative")
        _validate_schema_document(rt, result)

    if not settings.catalog.environments:
        result.add_warning("Catalog has no environments")

    return result
