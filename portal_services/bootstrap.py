"""
portal_services.bootstrap -- wire settings into a ready portal.

Responsibility:
    The startup sequence shared by the CLI and the test suite:
    engine, schema, immutability listeners, catalog seed, facade.

Architecture position:
    Services layer.  The only place that hands ``portal_config`` values to
    ``portal_kernel``.
"""

from __future__ import annotations

from portal_config.schema import PortalSettings
from portal_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from portal_kernel.db.immutability import register_immutability_listeners
from portal_kernel.domain.clock import Clock
from portal_kernel.logging_config import configure_logging, get_logger
from portal_services.catalog_seeder import seed_catalog
from portal_services.provisioning_portal import ProvisioningPortal

logger = get_logger("services.bootstrap")


def bootstrap_portal(
    settings: PortalSettings,
    clock: Clock | None = None,
    seed: bool = True,
) -> ProvisioningPortal:
    """Initialize the database from ``settings`` and return the facade.

    Safe to run repeatedly against the same database: tables are created
    only if missing and the catalog seed is an upsert.
    """
    configure_logging(level=settings.logging.level)

    init_engine_from_url(
        settings.database.url,
        echo=settings.database.echo,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
        pool_timeout=settings.database.pool_timeout,
    )
    create_tables()
    register_immutability_listeners()

    factory = get_session_factory()
    if seed:
        with session_scope(factory) as session:
            seed_catalog(session, settings.catalog)

    logger.info(
        "portal_bootstrapped",
        extra={"config_name": settings.name, "config_checksum": settings.checksum},
    )
    return ProvisioningPortal(factory, clock=clock)
