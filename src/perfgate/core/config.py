"""
PerfGate Configuration System
=============================
Centralized, validated configuration with environment variable overrides.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

from perfgate.core.exceptions import ConfigurationError


VALID_DATASET_SIZES: Tuple[str, ...] = ("small", "medium", "large", "enterprise")
VALID_QUERY_COMPLEXITIES: Tuple[str, ...] = ("simple", "moderate", "complex")


@dataclass(frozen=True)
class ThresholdConfig:
    target_response_time_ms: float = 200.0
    critical_response_time_ms: float = 500.0
    min_throughput_qps: float = 10.0
    max_error_rate_percent: float = 1.0
    memory_budget_mb: float = 512.0
    max_memory_usage_mb: float = 1024.0
    min_cache_hit_ratio: float = 0.8
    validation_compliance_ratio: float = 0.95

    @property
    def max_error_rate(self) -> float:
        """Error-rate ceiling as a fraction (1% -> 0.01)."""
        return self.max_error_rate_percent / 100.0


@dataclass(frozen=True)
class ProbeConfig:
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class BenchmarkSettings:
    dataset_sizes: Tuple[str, ...] = ("small", "medium", "large")
    include_memory_profiling: bool = True
    history_limit: int = 500
    probe_history_limit: int = 5000


@dataclass(frozen=True)
class LoadSettings:
    concurrent_users: int = 5
    test_duration_seconds: float = 30.0
    queries_per_user: int = 10
    ramp_up_seconds: float = 5.0
    dataset_size: str = "medium"
    query_complexity: str = "moderate"
    max_think_time_seconds: float = 1.0


@dataclass(frozen=True)
class RegressionConfig:
    baseline_path: str = ".performance-baseline.json"
    max_acceptable_regression_percent: float = 10.0
    baseline_comparison_enabled: bool = True
    fail_on_regression: bool = True
    primary_branch: str = "main"


@dataclass(frozen=True)
class MonitorConfig:
    interval_seconds: float = 60.0
    alert_limit: int = 500
    health_query: str = "monitoring health check"
    trend_latency_increase_percent: float = 20.0
    trend_throughput_decrease_percent: float = 10.0


@dataclass(frozen=True)
class ReportConfig:
    output_dir: str = "."
    write_artifacts: bool = True


@dataclass(frozen=True)
class ObservabilityConfig:
    log_level: str = "INFO"
    json_logs: bool = False


@dataclass(frozen=True)
class PerfGateConfig:
    """Root configuration for the performance gating engine."""

    version: str = "1.0"
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    benchmark: BenchmarkSettings = field(default_factory=BenchmarkSettings)
    load: LoadSettings = field(default_factory=LoadSettings)
    regression: RegressionConfig = field(default_factory=RegressionConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)


def _env_override(key: str, default):
    """Check for PERFGATE_<KEY> environment variable override."""
    env_key = f"PERFGATE_{key.upper()}"
    val = os.environ.get(env_key)
    if val is None:
        return default
    # Type coercion based on the default's type
    if isinstance(default, bool):
        return val.lower() in ("true", "1", "yes")
    if isinstance(default, int):
        return int(val)
    if isinstance(default, float):
        return float(val)
    if isinstance(default, (tuple, list)):
        return tuple(v.strip() for v in val.split(",") if v.strip())
    return val


def _require_positive(key: str, value, allow_zero: bool = False) -> None:
    if value is None or value < 0 or (value == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise ConfigurationError(config_key=key, reason=f"must be {bound}, got {value!r}")


def _validate(config: PerfGateConfig) -> None:
    t = config.thresholds
    _require_positive("thresholds.target_response_time_ms", t.target_response_time_ms)
    _require_positive("thresholds.critical_response_time_ms", t.critical_response_time_ms)
    if t.critical_response_time_ms < t.target_response_time_ms:
        raise ConfigurationError(
            config_key="thresholds.critical_response_time_ms",
            reason="critical threshold must not be lower than the target",
        )
    _require_positive("thresholds.min_throughput_qps", t.min_throughput_qps, allow_zero=True)
    _require_positive("thresholds.max_error_rate_percent", t.max_error_rate_percent, allow_zero=True)
    _require_positive("thresholds.memory_budget_mb", t.memory_budget_mb)
    if not 0.0 <= t.validation_compliance_ratio <= 1.0:
        raise ConfigurationError(
            config_key="thresholds.validation_compliance_ratio",
            reason=f"must be within [0, 1], got {t.validation_compliance_ratio}",
        )

    _require_positive("probe.timeout_seconds", config.probe.timeout_seconds)
    _require_positive("benchmark.history_limit", config.benchmark.history_limit)
    _require_positive("benchmark.probe_history_limit", config.benchmark.probe_history_limit)
    for size in config.benchmark.dataset_sizes:
        if size not in VALID_DATASET_SIZES:
            raise ConfigurationError(
                config_key="benchmark.dataset_sizes",
                reason=f"unknown dataset size '{size}' (expected one of {VALID_DATASET_SIZES})",
            )

    load = config.load
    _require_positive("load.concurrent_users", load.concurrent_users)
    _require_positive("load.test_duration_seconds", load.test_duration_seconds)
    _require_positive("load.queries_per_user", load.queries_per_user)
    _require_positive("load.ramp_up_seconds", load.ramp_up_seconds, allow_zero=True)
    _require_positive("load.max_think_time_seconds", load.max_think_time_seconds, allow_zero=True)
    if load.dataset_size not in VALID_DATASET_SIZES:
        raise ConfigurationError(config_key="load.dataset_size", reason=f"unknown dataset size '{load.dataset_size}'")
    if load.query_complexity not in VALID_QUERY_COMPLEXITIES:
        raise ConfigurationError(
            config_key="load.query_complexity",
            reason=f"unknown query complexity '{load.query_complexity}'",
        )

    _require_positive(
        "regression.max_acceptable_regression_percent",
        config.regression.max_acceptable_regression_percent,
        allow_zero=True,
    )
    if not config.regression.primary_branch:
        raise ConfigurationError(config_key="regression.primary_branch", reason="must not be empty")

    _require_positive("monitor.interval_seconds", config.monitor.interval_seconds)
    _require_positive("monitor.alert_limit", config.monitor.alert_limit)


def load_config(path: Optional[Path] = None) -> PerfGateConfig:
    """
    Load configuration from YAML file with environment variable overrides.

    Priority: ENV > YAML > defaults.

    Args:
        path: Path to perfgate.yaml. If None, searches ./perfgate.yaml.

    Returns:
        Validated PerfGateConfig instance.

    Raises:
        ConfigurationError: If any value is out of range or the YAML is malformed.
    """
    if path is None:
        candidate = Path("perfgate.yaml")
        if candidate.exists():
            path = candidate

    raw = {}
    if path is not None and Path(path).exists():
        try:
            with open(path) as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(config_key=str(path), reason=f"invalid YAML: {e}")
        raw = loaded.get("perfgate") or {}

    thr_raw = raw.get("thresholds") or {}
    thresholds = ThresholdConfig(
        target_response_time_ms=_env_override("TARGET_RESPONSE_TIME_MS", float(thr_raw.get("target_response_time_ms", 200.0))),
        critical_response_time_ms=_env_override("CRITICAL_RESPONSE_TIME_MS", float(thr_raw.get("critical_response_time_ms", 500.0))),
        min_throughput_qps=_env_override("MIN_THROUGHPUT_QPS", float(thr_raw.get("min_throughput_qps", 10.0))),
        max_error_rate_percent=_env_override("MAX_ERROR_RATE_PERCENT", float(thr_raw.get("max_error_rate_percent", 1.0))),
        memory_budget_mb=_env_override("MEMORY_BUDGET_MB", float(thr_raw.get("memory_budget_mb", 512.0))),
        max_memory_usage_mb=_env_override("MAX_MEMORY_USAGE_MB", float(thr_raw.get("max_memory_usage_mb", 1024.0))),
        min_cache_hit_ratio=_env_override("MIN_CACHE_HIT_RATIO", float(thr_raw.get("min_cache_hit_ratio", 0.8))),
        validation_compliance_ratio=_env_override(
            "VALIDATION_COMPLIANCE_RATIO", float(thr_raw.get("validation_compliance_ratio", 0.95))
        ),
    )

    probe_raw = raw.get("probe") or {}
    probe = ProbeConfig(
        timeout_seconds=_env_override("PROBE_TIMEOUT_SECONDS", float(probe_raw.get("timeout_seconds", 10.0))),
    )

    bench_raw = raw.get("benchmark") or {}
    benchmark = BenchmarkSettings(
        dataset_sizes=_env_override(
            "BENCHMARK_DATASET_SIZES", tuple(bench_raw.get("dataset_sizes", ("small", "medium", "large")))
        ),
        include_memory_profiling=_env_override(
            "BENCHMARK_INCLUDE_MEMORY_PROFILING", bench_raw.get("include_memory_profiling", True)
        ),
        history_limit=_env_override("BENCHMARK_HISTORY_LIMIT", bench_raw.get("history_limit", 500)),
        probe_history_limit=_env_override("BENCHMARK_PROBE_HISTORY_LIMIT", bench_raw.get("probe_history_limit", 5000)),
    )

    load_raw = raw.get("load") or {}
    load = LoadSettings(
        concurrent_users=_env_override("LOAD_CONCURRENT_USERS", load_raw.get("concurrent_users", 5)),
        test_duration_seconds=_env_override(
            "LOAD_TEST_DURATION_SECONDS", float(load_raw.get("test_duration_seconds", 30.0))
        ),
        queries_per_user=_env_override("LOAD_QUERIES_PER_USER", load_raw.get("queries_per_user", 10)),
        ramp_up_seconds=_env_override("LOAD_RAMP_UP_SECONDS", float(load_raw.get("ramp_up_seconds", 5.0))),
        dataset_size=_env_override("LOAD_DATASET_SIZE", load_raw.get("dataset_size", "medium")),
        query_complexity=_env_override("LOAD_QUERY_COMPLEXITY", load_raw.get("query_complexity", "moderate")),
        max_think_time_seconds=_env_override(
            "LOAD_MAX_THINK_TIME_SECONDS", float(load_raw.get("max_think_time_seconds", 1.0))
        ),
    )

    reg_raw = raw.get("regression") or {}
    regression = RegressionConfig(
        baseline_path=_env_override("BASELINE_PATH", reg_raw.get("baseline_path", ".performance-baseline.json")),
        max_acceptable_regression_percent=_env_override(
            "MAX_ACCEPTABLE_REGRESSION_PERCENT", float(reg_raw.get("max_acceptable_regression_percent", 10.0))
        ),
        baseline_comparison_enabled=_env_override(
            "BASELINE_COMPARISON_ENABLED", reg_raw.get("baseline_comparison_enabled", True)
        ),
        fail_on_regression=_env_override("FAIL_ON_REGRESSION", reg_raw.get("fail_on_regression", True)),
        primary_branch=_env_override("PRIMARY_BRANCH", reg_raw.get("primary_branch", "main")),
    )

    mon_raw = raw.get("monitor") or {}
    monitor = MonitorConfig(
        interval_seconds=_env_override("MONITOR_INTERVAL_SECONDS", float(mon_raw.get("interval_seconds", 60.0))),
        alert_limit=_env_override("MONITOR_ALERT_LIMIT", mon_raw.get("alert_limit", 500)),
        health_query=_env_override("MONITOR_HEALTH_QUERY", mon_raw.get("health_query", "monitoring health check")),
        trend_latency_increase_percent=_env_override(
            "MONITOR_TREND_LATENCY_INCREASE_PERCENT", float(mon_raw.get("trend_latency_increase_percent", 20.0))
        ),
        trend_throughput_decrease_percent=_env_override(
            "MONITOR_TREND_THROUGHPUT_DECREASE_PERCENT", float(mon_raw.get("trend_throughput_decrease_percent", 10.0))
        ),
    )

    rep_raw = raw.get("report") or {}
    report = ReportConfig(
        output_dir=_env_override("REPORT_OUTPUT_DIR", rep_raw.get("output_dir", ".")),
        write_artifacts=_env_override("REPORT_WRITE_ARTIFACTS", rep_raw.get("write_artifacts", True)),
    )

    obs_raw = raw.get("observability") or {}
    observability = ObservabilityConfig(
        log_level=_env_override("LOG_LEVEL", obs_raw.get("log_level", "INFO")),
        json_logs=_env_override("JSON_LOGS", obs_raw.get("json_logs", False)),
    )

    config = PerfGateConfig(
        version=str(raw.get("version", "1.0")),
        thresholds=thresholds,
        probe=probe,
        benchmark=benchmark,
        load=load,
        regression=regression,
        monitor=monitor,
        report=report,
        observability=observability,
    )
    _validate(config)
    return config


# Module-level singleton (lazy-loaded)
_CONFIG: Optional[PerfGateConfig] = None


def get_config() -> PerfGateConfig:
    """Get or initialize the global config singleton."""
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config()
    return _CONFIG


def reset_config():
    """Reset the global config singleton (useful for testing)."""
    global _CONFIG
    _CONFIG = None
