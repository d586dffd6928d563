#!/usr/bin/env python3
"""
Initialize the portal database: create the schema and seed the catalog
from a settings file.

Usage:
    python3 scripts/init_portal_db.py [--config PATH] [--reset]

DATABASE_URL in the environment overrides the settings file.
"""

import argparse
import sys
from pathlib import Path
from uuid import uuid4

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create portal tables and seed the catalog")
    p.add_argument(
        "--config",
        default=None,
        help="Settings YAML (default: portal_config/sets/default.yaml)",
    )
    p.add_argument(
        "--reset",
        action="store_true",
        help="Drop all portal tables before creating them",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from portal_config import ConfigurationError, get_active_config
    from portal_kernel.db.engine import drop_tables, init_engine_from_url, reset_engine
    from portal_kernel.domain.identity import IdentityContext, Role
    from portal_services.bootstrap import bootstrap_portal

    try:
        settings = get_active_config(args.config)
    except (FileNotFoundError, ConfigurationError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    if args.reset:
        init_engine_from_url(settings.database.url)
        drop_tables()
        reset_engine()
        print("  Dropped existing tables.")

    portal = bootstrap_portal(settings)

    # Catalog listing is open to any identity; use a throwaway admin.
    operator = IdentityContext(user_id=uuid4(), role=Role.ADMIN)
    environments = portal.list_environments(operator)
    resource_types = portal.list_resource_types(operator)

    print()
    print(f"  Database ready: {settings.database.url}")
    print(f"  Settings: {settings.name} v{settings.version} ({settings.checksum[:12]})")
    print()
    print("  Environments:")
    for env in environments:
        gate = "approval required" if env.requires_approval else "auto-approve"
        print(f"    {env.name:<10} {env.region:<18} {gate}")
    print()
    print("  Resource types:")
    for rt in resource_types:
        print(f"    {rt.name:<10} base cost {rt.base_cost}")
    print()

    reset_engine()
    return 0


if __name__ == "__main__":
    sys.exit(main())
