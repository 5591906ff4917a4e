"""
Tests for spn_targets.json loading and validation.
"""

import json

import pytest

from autospn.domain.errors import ConfigError
from autospn.infrastructure.config_loader import ConfigLoader


@pytest.fixture
def config_dir(tmp_path):
    directory = tmp_path / "config"
    directory.mkdir()
    return directory


def write_targets(config_dir, data):
    (config_dir / "spn_targets.json").write_text(json.dumps(data), encoding="utf-8")


class TestLoadTargets:
    """Successful loads."""

    def test_defaults(self, config_dir):
        write_targets(config_dir, {"targets": [{"id": "t1", "server": "host1\\INST1"}]})

        config = ConfigLoader(config_dir).load_targets()

        target = config.targets[0]
        assert target.server == "host1\\INST1"
        assert target.remediate is False
        assert target.auth == "integrated"
        assert target.enabled is True
        assert config.directory.host == "localhost"

    def test_remediate_accepts_flag_strings(self, config_dir):
        write_targets(config_dir, {"targets": [
            {"id": "a", "server": "h1", "remediate": "yes"},
            {"id": "b", "server": "h2", "remediate": "0"},
            {"id": "c", "server": "h3", "remediate": True},
        ]})
        config = ConfigLoader(config_dir).load_targets()
        assert [t.remediate for t in config.targets] == [True, False, True]

    def test_enabled_targets(self, config_dir):
        write_targets(config_dir, {"targets": [
            {"id": "a", "server": "h1"},
            {"id": "b", "server": "h2", "enabled": False},
        ]})
        assert [t.id for t in ConfigLoader(config_dir).load_targets().enabled_targets] == ["a"]

    def test_credential_files_resolved_from_parent(self, config_dir):
        creds = config_dir.parent / "credentials"
        creds.mkdir()
        (creds / "sql.json").write_text(json.dumps({"username": "audit", "password": "pw"}), encoding="utf-8")
        (creds / "admin.json").write_text(json.dumps({"username": "ABCORP\\admin", "password": "apw"}),
                                          encoding="utf-8")
        write_targets(config_dir, {
            "directory": {"host": "dc01", "credential_file": "credentials/admin.json"},
            "targets": [{"id": "a", "server": "h1", "auth": "sql", "credential_file": "credentials/sql.json"}],
        })

        config = ConfigLoader(config_dir).load_targets()

        assert config.targets[0].username == "audit"
        assert config.targets[0].password == "pw"
        assert config.directory.host == "dc01"
        assert config.directory.username == "ABCORP\\admin"
        assert config.directory.password == "apw"


class TestInvalidConfig:
    """Errors surface as ConfigError with a useful message."""

    def test_missing_file(self, config_dir):
        with pytest.raises(ConfigError, match="not found"):
            ConfigLoader(config_dir).load_targets()

    def test_empty_file(self, config_dir):
        (config_dir / "spn_targets.json").write_text("  ", encoding="utf-8")
        with pytest.raises(ConfigError, match="empty"):
            ConfigLoader(config_dir).load_targets()

    def test_malformed_json(self, config_dir):
        (config_dir / "spn_targets.json").write_text("{\"targets\": [", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            ConfigLoader(config_dir).load_targets()

    def test_invalid_remediate_value(self, config_dir):
        write_targets(config_dir, {"targets": [{"id": "a", "server": "h1", "remediate": "maybe"}]})
        with pytest.raises(ConfigError, match="Invalid configuration"):
            ConfigLoader(config_dir).load_targets()

    def test_empty_server(self, config_dir):
        write_targets(config_dir, {"targets": [{"id": "a", "server": " "}]})
        with pytest.raises(ConfigError):
            ConfigLoader(config_dir).load_targets()

    def test_duplicate_ids(self, config_dir):
        write_targets(config_dir, {"targets": [{"id": "a", "server": "h1"}, {"id": "a", "server": "h2"}]})
        with pytest.raises(ConfigError, match="Duplicate target ids"):
            ConfigLoader(config_dir).load_targets()

    def test_sql_auth_without_credentials(self, config_dir):
        write_targets(config_dir, {"targets": [{"id": "a", "server": "h1", "auth": "sql"}]})
        with pytest.raises(ConfigError, match="SQL authentication"):
            ConfigLoader(config_dir).load_targets()
