r"""
Tests for comdb2_check.config module.
"""

import pytest

from comdb2_check.config import (
    CONNECT_TIMEOUT,
    DEFAULT_NODES,
    ENV_PREFIX,
    OPERATION_TIMEOUT,
    RUN_CONFIGS,
    cluster_nodes,
    connect_timeout,
    debug_enabled,
    get_env,
    get_run_config,
    output_dir,
)


class TestRunConfigs:
    def test_presets_defined(self):
        assert "set" in RUN_CONFIGS
        assert "register" in RUN_CONFIGS
        assert "dirty-reads" in RUN_CONFIGS

    def test_set_preset(self):
        config = RUN_CONFIGS["set"]
        assert config.concurrency == 5
        assert config.time_limit == 120.0
        assert config.op_delay == 0.1
        assert config.final_delay == 30.0

    def test_register_preset(self):
        config = RUN_CONFIGS["register"]
        assert config.concurrency == 50
        assert config.ops_per_key == 200

    def test_dirty_reads_preset(self):
        config = RUN_CONFIGS["dirty-reads"]
        assert config.concurrency == 1
        assert config.rows == 4

    def test_timeouts(self):
        assert CONNECT_TIMEOUT == 5.0
        assert OPERATION_TIMEOUT == CONNECT_TIMEOUT + 1.0


class TestGetRunConfig:
    def test_get_valid(self):
        assert get_run_config("set").name == "set"

    def test_get_invalid(self):
        with pytest.raises(ValueError, match="Unknown workload"):
            get_run_config("bank")


class TestGetEnv:
    def test_env_prefix(self):
        assert ENV_PREFIX == "COMDB2_"

    def test_get_env_with_prefix(self, monkeypatch):
        monkeypatch.setenv("COMDB2_TIER", "dev")
        assert get_env("TIER") == "dev"

    def test_get_env_default(self, monkeypatch):
        monkeypatch.delenv("COMDB2_TIER", raising=False)
        assert get_env("TIER", default="default") == "default"


class TestClusterNodes:
    def test_default_nodes(self, monkeypatch):
        monkeypatch.delenv("COMDB2_CLUSTER", raising=False)
        monkeypatch.delenv("CLUSTER", raising=False)
        assert cluster_nodes() == DEFAULT_NODES.split()
        assert cluster_nodes() == ["m1", "m2", "m3", "m4", "m5"]

    def test_plain_cluster_variable(self, monkeypatch):
        monkeypatch.delenv("COMDB2_CLUSTER", raising=False)
        monkeypatch.setenv("CLUSTER", "n1  n2\tn3")
        assert cluster_nodes() == ["n1", "n2", "n3"]

    def test_prefixed_variable_wins(self, monkeypatch):
        monkeypatch.setenv("COMDB2_CLUSTER", "a b")
        monkeypatch.setenv("CLUSTER", "c d")
        assert cluster_nodes() == ["a", "b"]


class TestFlags:
    def test_debug_disabled_by_default(self, monkeypatch):
        monkeypatch.delenv("COMDB2_DEBUG", raising=False)
        assert debug_enabled() is False

    def test_debug_enabled(self, monkeypatch):
        monkeypatch.setenv("COMDB2_DEBUG", "1")
        assert debug_enabled() is True

    def test_connect_timeout_override(self, monkeypatch):
        monkeypatch.setenv("COMDB2_CONNECT_TIMEOUT", "2.5")
        assert connect_timeout() == 2.5

    def test_output_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("COMDB2_OUTPUT_DIR", str(tmp_path))
        assert output_dir() == tmp_path
