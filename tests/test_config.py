"""
PerfGate Test Suite - Configuration Tests
"""

import pytest
import yaml

from perfgate.core.config import (
    PerfGateConfig,
    ThresholdConfig,
    get_config,
    load_config,
    reset_config,
)
from perfgate.core.exceptions import ConfigurationError


@pytest.fixture
def sample_config_path(tmp_path):
    """Create a temporary perfgate.yaml."""
    config_data = {
        "perfgate": {
            "version": "1.0-test",
            "thresholds": {"target_response_time_ms": 150, "max_error_rate_percent": 2.5},
            "probe": {"timeout_seconds": 3},
            "benchmark": {"dataset_sizes": ["small"], "history_limit": 50},
            "load": {"concurrent_users": 3, "test_duration_seconds": 5, "ramp_up_seconds": 0},
            "regression": {"baseline_path": str(tmp_path / "b.json"), "primary_branch": "trunk"},
            "monitor": {"interval_seconds": 15, "alert_limit": 20},
            "report": {"output_dir": str(tmp_path / "out"), "write_artifacts": False},
            "observability": {"log_level": "DEBUG"},
        }
    }
    config_path = tmp_path / "perfgate.yaml"
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


class TestLoadConfig:
    def test_load_from_yaml(self, sample_config_path, tmp_path):
        config = load_config(sample_config_path)
        assert config.version == "1.0-test"
        assert config.thresholds.target_response_time_ms == 150.0
        assert config.thresholds.max_error_rate == pytest.approx(0.025)
        assert config.probe.timeout_seconds == 3.0
        assert config.benchmark.dataset_sizes == ("small",)
        assert config.load.concurrent_users == 3
        assert config.regression.primary_branch == "trunk"
        assert config.monitor.alert_limit == 20
        assert config.report.write_artifacts is False
        assert config.observability.log_level == "DEBUG"

    def test_default_values_when_no_file(self, tmp_path):
        config = load_config(tmp_path / "nonexistent.yaml")
        assert config == PerfGateConfig()
        assert config.thresholds.target_response_time_ms == 200.0
        assert config.thresholds.critical_response_time_ms == 500.0
        assert config.thresholds.min_throughput_qps == 10.0
        assert config.thresholds.max_error_rate == pytest.approx(0.01)
        assert config.regression.max_acceptable_regression_percent == 10.0
        assert config.regression.baseline_path == ".performance-baseline.json"

    def test_malformed_yaml_raises(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("perfgate: [unclosed")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_config_is_frozen(self):
        config = PerfGateConfig()
        with pytest.raises(Exception):
            config.version = "changed"


class TestEnvOverrides:
    def test_float_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PERFGATE_TARGET_RESPONSE_TIME_MS", "120")
        config = load_config(tmp_path / "none.yaml")
        assert config.thresholds.target_response_time_ms == 120.0

    def test_bool_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PERFGATE_FAIL_ON_REGRESSION", "false")
        config = load_config(tmp_path / "none.yaml")
        assert config.regression.fail_on_regression is False

    def test_tuple_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PERFGATE_BENCHMARK_DATASET_SIZES", "small, enterprise")
        config = load_config(tmp_path / "none.yaml")
        assert config.benchmark.dataset_sizes == ("small", "enterprise")

    def test_env_beats_yaml(self, sample_config_path, monkeypatch):
        monkeypatch.setenv("PERFGATE_LOAD_CONCURRENT_USERS", "9")
        config = load_config(sample_config_path)
        assert config.load.concurrent_users == 9


class TestValidation:
    @pytest.mark.parametrize("section,values,key", [
        ("thresholds", {"target_response_time_ms": 0}, "thresholds.target_response_time_ms"),
        ("thresholds", {"target_response_time_ms": 600}, "thresholds.critical_response_time_ms"),
        ("thresholds", {"validation_compliance_ratio": 1.5}, "thresholds.validation_compliance_ratio"),
        ("benchmark", {"dataset_sizes": ["huge"]}, "benchmark.dataset_sizes"),
        ("load", {"concurrent_users": 0}, "load.concurrent_users"),
        ("load", {"query_complexity": "extreme"}, "load.query_complexity"),
        ("monitor", {"interval_seconds": 0}, "monitor.interval_seconds"),
    ])
    def test_out_of_range_values_rejected(self, tmp_path, section, values, key):
        path = tmp_path / "perfgate.yaml"
        path.write_text(yaml.dump({"perfgate": {section: values}}))
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert exc_info.value.config_key == key


class TestSingleton:
    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reset_config_reloads(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("PERFGATE_TARGET_RESPONSE_TIME_MS", "90")
        assert get_config() is first
        reset_config()
        assert get_config().thresholds.target_response_time_ms == 90.0


def test_threshold_error_rate_fraction():
    assert ThresholdConfig(max_error_rate_percent=5).max_error_rate == pytest.approx(0.05)
