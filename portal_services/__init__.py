"""Portal orchestration: transactional facade, catalog seeding, bootstrap."""

from portal_services.bootstrap import bootstrap_portal
from portal_services.catalog_seeder import SeedResult, seed_catalog
from portal_services.provisioning_portal import ProvisioningPortal

__all__ = [
    "ProvisioningPortal",
    "SeedResult",
    "bootstrap_portal",
    "seed_catalog",
]
