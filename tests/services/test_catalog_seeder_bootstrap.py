"""
Tests for catalog seeding and the bootstrap sequence.

- seed_catalog is an upsert keyed on name: ids survive re-seeding.
- bootstrap_portal produces a working facade against a fresh database
  and can be run again against the same database.
"""

import dataclasses
from decimal import Decimal
from uuid import uuid4

import pytest

from portal_config import DatabaseSettings
from portal_config.schema import CatalogSeed, EnvironmentDef
from portal_kernel.db.engine import reset_engine, session_scope
from portal_kernel.domain.dtos import RequestDraft
from portal_kernel.domain.identity import IdentityContext, Role
from portal_kernel.domain.lifecycle import RequestStatus
from portal_kernel.selectors.catalog_selector import CatalogSelector
from portal_services import bootstrap_portal, seed_catalog


class TestSeedCatalog:

    def test_first_seed_creates_everything(self, session_factory, settings):
        with session_scope(session_factory) as s:
            result = seed_catalog(s, settings.catalog)

        assert result.environments_created == 3
        assert result.resource_types_created == 3
        assert result.environments_updated == 0

    def test_reseed_keeps_ids_and_applies_changes(self, session_factory, catalog, settings):
        changed_prod = dataclasses.replace(
            next(e for e in settings.catalog.environments if e.name == "prod"),
            region="europe-west1",
        )
        seed = CatalogSeed(
            environments=(changed_prod,),
            resource_types=settings.catalog.resource_types,
        )

        with session_scope(session_factory) as s:
            result = seed_catalog(s, seed)

        assert result.environments_created == 0
        assert result.environments_updated == 1
        assert result.resource_types_updated == 3

        with session_scope(session_factory) as s:
            prod = CatalogSelector(s).find_environment("prod")
            dev = CatalogSelector(s).find_environment("dev")
        assert prod.id == catalog.environments["prod"].id
        assert prod.region == "europe-west1"
        assert dev.id == catalog.environments["dev"].id

    def test_deactivated_entry_disappears_from_listing(self, session_factory, catalog):
        retired = EnvironmentDef(
            name="staging", display_name="Staging", description="", gcp_project_id="",
            is_active=False,
        )
        with session_scope(session_factory) as s:
            seed_catalog(s, CatalogSeed(environments=(retired,), resource_types=()))

        with session_scope(session_factory) as s:
            names = {e.name for e in CatalogSelector(s).list_environments()}
        assert names == {"dev", "prod"}

    def test_seed_is_logged(self, session_factory, settings, captured_logs):
        with session_scope(session_factory) as s:
            seed_catalog(s, settings.catalog)

        seeded = next(r for r in captured_logs() if r["message"] == "catalog_seeded")
        assert seeded["resource_types_created"] == 3


class TestBootstrap:

    @pytest.fixture
    def tmp_settings(self, settings, tmp_path):
        db = DatabaseSettings(url=f"sqlite:///{tmp_path / 'bootstrap.db'}", pool_size=2)
        yield dataclasses.replace(settings, database=db)
        reset_engine()

    def test_bootstrap_returns_working_portal(self, tmp_settings, captured_logs):
        portal = bootstrap_portal(tmp_settings)

        user = IdentityContext(user_id=uuid4(), role=Role.USER)
        assert {e.name for e in portal.list_environments(user)} == {"dev", "staging", "prod"}

        record = portal.create_request(user, _redis_draft())
        assert record.status is RequestStatus.DRAFT
        assert record.estimated_cost == Decimal("35.00")
        assert any(r["message"] == "portal_bootstrapped" for r in captured_logs())

    def test_bootstrap_twice_is_safe(self, tmp_settings):
        first = bootstrap_portal(tmp_settings)
        user = IdentityContext(user_id=uuid4(), role=Role.USER)
        ids = {e.name: e.id for e in first.list_environments(user)}
        reset_engine()

        second = bootstrap_portal(tmp_settings)
        assert {e.name: e.id for e in second.list_environments(user)} == ids

    def test_bootstrap_without_seed(self, tmp_settings):
        portal = bootstrap_portal(tmp_settings, seed=False)
        user = IdentityContext(user_id=uuid4(), role=Role.USER)
        assert portal.list_environments(user) == []


def _redis_draft() -> RequestDraft:
    return RequestDraft(
        environment="dev",
        resource_type="redis",
        title="Session cache",
        configuration={"memory_size_gb": 1, "tier": "BASIC"},
    )
