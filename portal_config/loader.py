"""
Configuration Loader (``portal_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into typed ``portal_config.schema``
dataclass instances.  Runtime callers go through
``portal_config.get_active_config()``; this module is the parsing layer
underneath it.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Non-numeric base_cost  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from portal_config.schema import (
    CatalogSeed,
    DatabaseSettings,
    EnvironmentDef,
    LoggingSettings,
    PortalSettings,
    ResourceTypeDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed settings document."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 10)),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_timeout=int(data.get("pool_timeout", 30)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    return LoggingSettings(level=str(data.get("level", "INFO")).upper())


def parse_environment(data: dict[str, Any]) -> EnvironmentDef:
    return EnvironmentDef(
        name=data["name"],
        display_name=data.get("display_name", data["name"]),
        description=data.get("description", "") or "",
        gcp_project_id=data.get("gcp_project_id", "") or "",
        region=data.get("region", "asia-southeast1"),
        requires_approval=bool(data.get("requires_approval", True)),
        is_active=bool(data.get("is_active", True)),
    )


def parse_resource_type(data: dict[str, Any]) -> ResourceTypeDef:
    try:
        base_cost = Decimal(str(data.get("base_cost", "0")))
    except InvalidOperation:
        raise ValueError(
            f"Resource type {data.get('name')!r}: base_cost is not a number"
        ) from None
    return ResourceTypeDef(
        name=data["name"],
        display_name=data.get("display_name", data["name"]),
        description=data.get("description", "") or "",
        module_path=data.get("module_path", "") or "",
        config_schema=dict(data.get("config_schema") or {}),
        base_cost=base_cost,
        is_active=bool(data.get("is_active", True)),
    )


def parse_catalog(data: dict[str, Any]) -> CatalogSeed:
    return CatalogSeed(
        environments=tuple(parse_environment(e) for e in data.get("environments") or ()),
        resource_types=tuple(
            parse_resource_type(r) for r in data.get("resource_types") or ()
        ),
    )


def parse_settings(data: dict[str, Any]) -> PortalSettings:
    """Parse a full settings document."""
    return PortalSettings(
        name=data.get("name", "portal"),
        version=str(data.get("version", "1")),
        database=parse_database(data["database"]),
        logging=parse_logging(data.get("logging") or {}),
        catalog=parse_catalog(data.get("catalog") or {}),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> PortalSettings:
    """Load and parse a YAML settings file."""
    return parse_settings(load_yaml_file(path))
