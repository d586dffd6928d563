"""
Tests for portal_config: YAML loading, environment overrides, validation
and the configuration trace log.

Invariants tested:
- The shipped default settings load and validate cleanly.
- DATABASE_URL and PORTAL_LOG_LEVEL override the file.
- Invalid settings raise ConfigurationError listing every problem.
- The checksum depends only on content.
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from portal_config import (
    DEFAULT_CONFIG_PATH,
    ConfigurationError,
    apply_env_overrides,
    get_active_config,
)
from portal_config.loader import compute_checksum, load_settings, load_yaml_file


def write_settings(tmp_path: Path, data: dict, name: str = "settings.yaml") -> Path:
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path


@pytest.fixture
def minimal_settings() -> dict:
    return {
        "name": "test-portal",
        "version": "0.1",
        "database": {"url": "sqlite:///:memory:"},
        "logging": {"level": "debug"},
        "catalog": {
            "environments": [
                {"name": "dev", "display_name": "Development", "requires_approval": False},
                {"name": "prod", "display_name": "Production"},
            ],
            "resource_types": [
                {
                    "name": "redis",
                    "display_name": "Memorystore Redis",
                    "base_cost": "35.00",
                    "config_schema": {
                        "type": "object",
                        "properties": {"memory_size_gb": {"type": "integer", "minimum": 1}},
                        "required": ["memory_size_gb"],
                    },
                },
            ],
        },
    }


class TestDefaultSettings:
    """The shipped default.yaml."""

    def test_loads_and_validates(self):
        settings = get_active_config(environ={})

        assert settings.name == "infra-portal"
        assert settings.database.url.startswith("sqlite")
        assert {e.name for e in settings.catalog.environments} == {"dev", "staging", "prod"}
        assert {r.name for r in settings.catalog.resource_types} == {"gke", "cloudsql", "redis"}

    def test_only_dev_skips_approval(self):
        settings = get_active_config(environ={})
        gated = {e.name: e.requires_approval for e in settings.catalog.environments}
        assert gated == {"dev": False, "staging": True, "prod": True}

    def test_base_costs_are_decimal(self):
        settings = get_active_config(environ={})
        costs = {r.name: r.base_cost for r in settings.catalog.resource_types}
        assert costs["gke"] == Decimal("150.00")
        assert all(isinstance(c, Decimal) for c in costs.values())

    def test_emits_config_trace(self, captured_logs):
        settings = get_active_config(environ={})

        traces = [r for r in captured_logs() if r["message"] == "PORTAL_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["checksum"] == settings.checksum
        assert traces[0]["environment_count"] == 3


class TestLoading:

    def test_minimal_file(self, tmp_path, minimal_settings):
        settings = get_active_config(write_settings(tmp_path, minimal_settings), environ={})

        assert settings.logging.level == "DEBUG"
        prod = next(e for e in settings.catalog.environments if e.name == "prod")
        assert prod.requires_approval is True
        assert prod.region == "asia-southeast1"
        assert settings.catalog.resource_types[0].base_cost == Decimal("35.00")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml", environ={})

    def test_non_mapping_document_has_no_database(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- just\n- a list\n")
        assert load_yaml_file(path) == {}
        with pytest.raises(KeyError):
            load_settings(path)

    def test_bad_base_cost_rejected(self, tmp_path, minimal_settings):
        minimal_settings["catalog"]["resource_types"][0]["base_cost"] = "cheap"
        with pytest.raises(ValueError):
            load_settings(write_settings(tmp_path, minimal_settings))


class TestEnvironmentOverrides:

    def test_database_url_and_log_level(self):
        settings = get_active_config(
            environ={"DATABASE_URL": "postgresql://portal@db/portal", "PORTAL_LOG_LEVEL": "warning"},
        )
        assert settings.database.url == "postgresql://portal@db/portal"
        assert settings.logging.level == "WARNING"

    def test_empty_values_ignored(self):
        base = load_settings(DEFAULT_CONFIG_PATH)
        assert apply_env_overrides(base, {"DATABASE_URL": ""}) == base

    def test_invalid_override_level_rejected(self):
        with pytest.raises(ConfigurationError):
            get_active_config(environ={"PORTAL_LOG_LEVEL": "chatty"})


class TestValidationErrors:

    def test_duplicate_names_and_negative_cost(self, tmp_path, minimal_settings):
        catalog = minimal_settings["catalog"]
        catalog["environments"].append({"name": "dev", "display_name": "Dev again"})
        catalog["resource_types"][0]["base_cost"] = "-1"

        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config(write_settings(tmp_path, minimal_settings), environ={})

        joined = "\n".join(exc_info.value.errors)
        assert "dev" in joined
        assert "base_cost" in joined
        assert len(exc_info.value.errors) >= 2

    def test_required_key_missing_from_properties(self, tmp_path, minimal_settings):
        schema = minimal_settings["catalog"]["resource_types"][0]["config_schema"]
        schema["required"].append("tier")

        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config(write_settings(tmp_path, minimal_settings), environ={})
        assert any("tier" in e for e in exc_info.value.errors)

    def test_missing_database_url(self, tmp_path, minimal_settings):
        minimal_settings["database"]["url"] = ""
        with pytest.raises(ConfigurationError):
            get_active_config(write_settings(tmp_path, minimal_settings), environ={})

    def test_database_url_override_repairs_missing_url(self, tmp_path, minimal_settings):
        minimal_settings["database"]["url"] = ""
        settings = get_active_config(
            write_settings(tmp_path, minimal_settings),
            environ={"DATABASE_URL": "sqlite:///override.db"},
        )
        assert settings.database.url == "sqlite:///override.db"


class TestChecksum:

    def test_key_order_does_not_matter(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})

    def test_content_changes_checksum(self, tmp_path, minimal_settings):
        first = load_settings(write_settings(tmp_path, minimal_settings, "a.yaml"))
        minimal_settings["version"] = "0.2"
        second = load_settings(write_settings(tmp_path, minimal_settings, "b.yaml"))

        assert len(first.checksum) == 64
        assert first.checksum != second.checksum
