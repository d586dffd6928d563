"""
portal_services.catalog_seeder -- load the catalog from configuration.

Upserts environments and resource types by name.  Existing rows keep their
id (so requests referencing them stay valid) and take the configured
values; entries absent from the seed are left untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from portal_config.schema import CatalogSeed, EnvironmentDef, ResourceTypeDef
from portal_kernel.logging_config import get_logger
from portal_kernel.models.catalog import Environment, ResourceType

logger = get_logger("services.catalog_seeder")


@dataclass(frozen=True)
class SeedResult:
    environments_created: int = 0
    environments_updated: int = 0
    resource_types_created: int = 0
    resource_types_updated: int = 0


def _upsert_environment(session: Session, definition: EnvironmentDef) -> bool:
    """Returns True when a new row was created."""
    model = session.execute(
        select(Environment).where(Environment.name == definition.name)
    ).scalar_one_or_none()
    created = model is None
    if created:
        model = Environment(id=uuid4(), name=definition.name)
        session.add(model)
    model.display_name = definition.display_name
    model.description = definition.description
    model.gcp_project_id = definition.gcp_project_id
    model.region = definition.region
    model.requires_approval = definition.requires_approval
    model.is_active = definition.is_active
    return created


def _upsert_resource_type(session: Session, definition: ResourceTypeDef) -> bool:
    model = session.execute(
        select(ResourceType).where(ResourceType.name == definition.name)
    ).scalar_one_or_none()
    created = model is None
    if created:
        model = ResourceType(id=uuid4(), name=definition.name)
        session.add(model)
    model.display_name = definition.display_name
    model.description = definition.description
    model.module_path = definition.module_path
    model.config_schema = dict(definition.config_schema)
    model.base_cost = definition.base_cost
    model.is_active = definition.is_active
    return created


def seed_catalog(session: Session, seed: CatalogSeed) -> SeedResult:
    """Upsert every catalog entry in ``seed``.  Flushes; the caller commits."""
    env_created = env_updated = rt_created = rt_updated = 0

    for env in seed.environments:
        if _upsert_environment(session, env):
            env_created += 1
        else:
            env_updated += 1

    for rt in seed.resource_types:
        if _upsert_resource_type(session, rt):
            rt_created += 1
        else:
            rt_updated += 1

    session.flush()

    result = SeedResult(
        environments_created=env_created,
        environments_updated=env_updated,
        resource_types_created=rt_created,
        resource_types_updated=rt_updated,
    )
    logger.info(
        "catalog_seeded",
        extra={
            "environments_created": env_created,
            "environments_updated": env_updated,
            "resource_types_created": rt_created,
            "resource_types_updated": rt_updated,
        },
    )
    return result
