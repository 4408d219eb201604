"""
Unit tests for agency user configuration loading.
"""

import json
import logging

import pytest

from agency.config import (
    AgencyConfig,
    create_default_config,
    get_config_path,
    load_config,
)
from agency.exceptions import ValidationError


@pytest.mark.unit
class TestLoadConfig:
    """Test loading configuration from JSON files."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "missing.json"))

        assert config == AgencyConfig()
        assert config.source_branch_pattern == "agency/%branch%"
        assert config.emit_branch_pattern == "%branch%"

    def test_loads_patterns(self, tmp_path):
        path = tmp_path / "agency.json"
        path.write_text(json.dumps({"sourceBranchPattern": "wip/%branch%", "emitBranch": "%branch%--PR"}))

        config = load_config(str(path))

        assert config.source_branch_pattern == "wip/%branch%"
        assert config.emit_branch_pattern == "%branch%--PR"

    def test_invalid_json_gives_defaults_with_warning(self, tmp_path, caplog):
        path = tmp_path / "agency.json"
        path.write_text("{not json")

        with caplog.at_level(logging.WARNING):
            config = load_config(str(path))

        assert config == AgencyConfig()
        assert "Using defaults" in caplog.text

    def test_non_object_gives_defaults(self, tmp_path):
        path = tmp_path / "agency.json"
        path.write_text("[1, 2]")

        assert load_config(str(path)) == AgencyConfig()

    def test_invalid_field_types_are_ignored(self, tmp_path):
        path = tmp_path / "agency.json"
        path.write_text(json.dumps({"sourceBranchPattern": 42, "emitBranch": "%branch%--PR"}))

        config = load_config(str(path))

        assert config.source_branch_pattern == "agency/%branch%"
        assert config.emit_branch_pattern == "%branch%--PR"


@pytest.mark.unit
class TestConfigLocation:
    """Test environment overrides of the configuration location."""

    def test_config_path_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AGENCY_CONFIG_PATH", str(tmp_path / "custom.json"))

        assert get_config_path() == tmp_path / "custom.json"

    def test_config_dir_override(self, tmp_path, monkeypatch):
        monkeypatch.delenv("AGENCY_CONFIG_PATH", raising=False)
        monkeypatch.setenv("AGENCY_CONFIG_DIR", str(tmp_path / "cfg"))

        assert get_config_path() == tmp_path / "cfg" / "agency.json"

    def test_default_location_is_used_without_argument(self, tmp_path, monkeypatch):
        path = tmp_path / "env.json"
        path.write_text(json.dumps({"sourceBranchPattern": "env/%branch%"}))
        monkeypatch.setenv("AGENCY_CONFIG_PATH", str(path))

        assert load_config().source_branch_pattern == "env/%branch%"


@pytest.mark.unit
def test_create_default_config_round_trips(tmp_path):
    path = create_default_config(str(tmp_path / "nested" / "agency.json"))

    assert path.exists()
    assert path.read_text().endswith("\n")
    assert json.loads(path.read_text()) == {
        "sourceBranchPattern": "agency/%branch%",
        "emitBranch": "%branch%",
    }
    assert load_config(str(path)) == AgencyConfig()


@pytest.mark.unit
def test_create_default_config_unwritable_location(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file")

    with pytest.raises(ValidationError, match="Failed to write configuration"):
        create_default_config(str(blocker / "agency.json"))
