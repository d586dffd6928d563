"""
Pytest fixtures for the portal test suite.

Provides:
- A fresh database per test (file-backed SQLite under tmp_path, or the
  database named by DATABASE_URL)
- The default catalog seeded from portal_config/sets/default.yaml
- Identity fixtures for each role
- A ProvisioningPortal facade driven by a DeterministicClock

Environment Variables:
- DATABASE_URL: run the suite against this database instead of SQLite.
  Tables are dropped and recreated around every test.
"""

import json
import logging
import os
from dataclasses import dataclass
from io import StringIO
from typing import Callable, Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from portal_config import PortalSettings, get_active_config
from portal_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from portal_kernel.db.immutability import register_immutability_listeners
from portal_kernel.domain.clock import DeterministicClock
from portal_kernel.domain.dtos import EnvironmentRecord, RequestDraft, ResourceTypeRecord
from portal_kernel.domain.identity import IdentityContext, Role
from portal_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from portal_kernel.selectors.catalog_selector import CatalogSelector
from portal_kernel.services.request_lifecycle_service import RequestLifecycleService
from portal_services.catalog_seeder import seed_catalog
from portal_services.provisioning_portal import ProvisioningPortal


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "concurrency: mark test as racing real threads against the database"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture portal_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, portal):
            portal.create_request(...)
            logs = captured_logs()
            assert any(r["message"] == "request_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("portal_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def database_url(tmp_path) -> str:
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'portal_test.db'}"


@pytest.fixture
def engine(database_url):
    """Initialized engine with a clean schema and immutability listeners."""
    eng = init_engine_from_url(database_url, pool_size=5, max_overflow=5)
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield eng
    if eng.dialect.name != "sqlite":
        drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return get_session_factory()


@pytest.fixture
def session(session_factory, catalog) -> Generator[Session, None, None]:
    """
    A single session for service-level tests.

    On SQLite this session holds the write lock once it runs a statement;
    do not mix it with portal calls in the same test.
    """
    s = session_factory()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Configuration and catalog
# =============================================================================


@pytest.fixture(scope="session")
def settings() -> PortalSettings:
    """Default settings, ignoring environment overrides."""
    return get_active_config(environ={})


@dataclass(frozen=True)
class SeededCatalog:
    environments: dict[str, EnvironmentRecord]
    resource_types: dict[str, ResourceTypeRecord]


@pytest.fixture
def catalog(session_factory, settings) -> SeededCatalog:
    """Seed the default catalog and return its records by name."""
    with session_scope(session_factory) as s:
        seed_catalog(s, settings.catalog)
        selector = CatalogSelector(s)
        return SeededCatalog(
            environments={e.name: e for e in selector.list_environments()},
            resource_types={r.name: r for r in selector.list_resource_types()},
        )


# =============================================================================
# Identities
# =============================================================================


@pytest.fixture
def requester() -> IdentityContext:
    return IdentityContext(
        user_id=uuid4(), role=Role.USER, ip_address="10.0.0.5", user_agent="pytest",
    )


@pytest.fixture
def other_user() -> IdentityContext:
    return IdentityContext(user_id=uuid4(), role=Role.USER)


@pytest.fixture
def approver() -> IdentityContext:
    return IdentityContext(user_id=uuid4(), role=Role.APPROVER)


@pytest.fixture
def admin() -> IdentityContext:
    return IdentityContext(user_id=uuid4(), role=Role.ADMIN)


# =============================================================================
# Inputs
# =============================================================================


@pytest.fixture
def gke_config() -> dict:
    return {"machine_type": "e2-standard-4", "min_nodes": 1, "max_nodes": 3}


@pytest.fixture
def make_draft(gke_config) -> Callable[..., RequestDraft]:
    """Factory for RequestDraft, defaulting to a GKE cluster in prod."""

    def _make(
        environment: str = "prod",
        resource_type: str = "gke",
        title: str = "Analytics cluster",
        **kwargs,
    ) -> RequestDraft:
        kwargs.setdefault("configuration", dict(gke_config))
        return RequestDraft(
            environment=environment,
            resource_type=resource_type,
            title=title,
            **kwargs,
        )

    return _make


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def lifecycle(session, deterministic_clock) -> RequestLifecycleService:
    return RequestLifecycleService(session, clock=deterministic_clock)


@pytest.fixture
def portal(session_factory, catalog, deterministic_clock) -> ProvisioningPortal:
    return ProvisioningPortal(session_factory, clock=deterministic_clock)
