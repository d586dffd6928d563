"""
PortalSettings schema.

The typed, frozen form of a YAML settings set.  The loader parses YAML into
these dataclasses; ``get_active_config()`` returns a validated
``PortalSettings``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Catalog seed
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EnvironmentDef:
    """A deployment environment to seed."""

    name: str
    display_name: str
    description: str = ""
    gcp_project_id: str = ""
    region: str = "asia-southeast1"
    requires_approval: bool = True
    is_active: bool = True


@dataclass(frozen=True)
class ResourceTypeDef:
    """A provisionable resource type to seed, with its configuration schema."""

    name: str
    display_name: str
    description: str = ""
    module_path: str = ""
    config_schema: dict[str, Any] = field(default_factory=dict)
    base_cost: Decimal = Decimal("0")
    is_active: bool = True


@dataclass(frozen=True)
class CatalogSeed:
    environments: tuple[EnvironmentDef, ...] = ()
    resource_types: tuple[ResourceTypeDef, ...] = ()


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PortalSettings:
    """Complete portal configuration.

    ``checksum`` identifies the source YAML content (before environment
    overrides) so a deployment can be traced to a reviewed settings file.
    """

    name: str
    version: str
    database: DatabaseSettings
    logging: LoggingSettings
    catalog: CatalogSeed
    checksum: str = ""
