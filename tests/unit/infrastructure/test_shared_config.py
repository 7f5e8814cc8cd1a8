"""Unit tests for the shared YAML config loader."""

import pytest

from sfa.core.domain.errors import ConfigError
from sfa.infrastructure.config.shared_config import (
    DEFAULT_CONFIG_PATH,
    agent_namespace,
    load_shared_config,
    merge_agent_config,
    resolve_config_path,
)


class TestLoadSharedConfig:
    def test_missing_file_is_empty(self, tmp_path):
        assert load_shared_config({"SFA_CONFIG": str(tmp_path / "nope.yaml")}) == {}

    def test_reads_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("defaults:\n  env:\n    REGION: eu\nagents:\n  echo:\n    env:\n      TOKEN: t\n")
        config = load_shared_config({"SFA_CONFIG": str(path)})
        assert config["defaults"]["env"]["REGION"] == "eu"
        assert agent_namespace(config, "echo") == {"env": {"TOKEN": "t"}}

    def test_empty_file_is_empty(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_shared_config({"SFA_CONFIG": str(path)}) == {}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_shared_config({"SFA_CONFIG": str(path)})

    def test_invalid_yaml_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("key: [unclosed\n")
        with pytest.raises(ConfigError, match="Cannot read config"):
            load_shared_config({"SFA_CONFIG": str(path)})


class TestHelpers:
    def test_default_path(self):
        assert resolve_config_path({}) == DEFAULT_CONFIG_PATH

    def test_agent_namespace_missing(self):
        assert agent_namespace({}, "x") == {}
        assert agent_namespace({"agents": "oops"}, "x") == {}

    def test_merge_agent_config(self):
        config = {"defaults": {"timeout": 60, "env": {}}, "agents": {"a": {"timeout": 10}}}
        assert merge_agent_config(config, "a") == {"timeout": 10, "env": {}}
        assert merge_agent_config(config, "b") == {"timeout": 60, "env": {}}
