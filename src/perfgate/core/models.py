"""
Core data model for probes, benchmarks, baselines, gates and alerts.

Records produced by the measuring components (ProbeResult, Benchmark,
Gate) are frozen. Alert is the one mutable record: its resolved flag is
flipped by the operator, never by the monitor that raised it.
"""

from __future__ import annotations

import json
import math
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from perfgate.core.config import LoadSettings, VALID_DATASET_SIZES, VALID_QUERY_COMPLEXITIES
from perfgate.core.exceptions import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _jsonable(value: Any) -> Any:
    """Recursively convert datetimes and enums for JSON output."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class _Serializable:
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return _jsonable(asdict(self))

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


# =============================================================================
# Probes and benchmarks
# =============================================================================

@dataclass(frozen=True)
class ProbeResult(_Serializable):
    """One measured invocation of the search target."""

    probe_id: str
    test_type: str
    query: str
    started_at: datetime
    duration_ms: float
    success: bool
    error_message: Optional[str] = None
    result_count: int = 0
    memory_delta_mb: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Benchmark(_Serializable):
    """Statistical reduction of one sequential probe batch."""

    benchmark_id: str
    timestamp: datetime
    dataset_label: str
    dataset_size: int
    avg_ms: float
    median_ms: float
    p95_ms: float
    p99_ms: float
    throughput_qps: float
    memory_usage_mb: float
    cache_hit_ratio: float
    index_efficiency: float
    meets_requirement: bool
    probe_count: int
    success_count: int

    @property
    def degenerate(self) -> bool:
        """True when not a single probe in the batch succeeded."""
        return self.success_count == 0


# =============================================================================
# Load tests
# =============================================================================

@dataclass(frozen=True)
class LoadTestConfig(_Serializable):
    concurrent_users: int = 5
    test_duration_seconds: float = 30.0
    queries_per_user: int = 10
    ramp_up_seconds: float = 5.0
    dataset_size: str = "medium"
    query_complexity: str = "moderate"

    def __post_init__(self):
        if self.concurrent_users < 1:
            raise ValidationError("concurrent_users", "must be at least 1", self.concurrent_users)
        if self.test_duration_seconds <= 0:
            raise ValidationError("test_duration_seconds", "must be positive", self.test_duration_seconds)
        if self.queries_per_user < 1:
            raise ValidationError("queries_per_user", "must be at least 1", self.queries_per_user)
        if self.ramp_up_seconds < 0:
            raise ValidationError("ramp_up_seconds", "must not be negative", self.ramp_up_seconds)
        if self.dataset_size not in VALID_DATASET_SIZES:
            raise ValidationError("dataset_size", f"expected one of {VALID_DATASET_SIZES}", self.dataset_size)
        if self.query_complexity not in VALID_QUERY_COMPLEXITIES:
            raise ValidationError(
                "query_complexity", f"expected one of {VALID_QUERY_COMPLEXITIES}", self.query_complexity
            )

    @classmethod
    def from_settings(cls, settings: LoadSettings, **overrides) -> "LoadTestConfig":
        values = dict(
            concurrent_users=settings.concurrent_users,
            test_duration_seconds=settings.test_duration_seconds,
            queries_per_user=settings.queries_per_user,
            ramp_up_seconds=settings.ramp_up_seconds,
            dataset_size=settings.dataset_size,
            query_complexity=settings.query_complexity,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class LoadTestResult(_Serializable):
    config: LoadTestConfig
    avg_ms: float
    p95_ms: float
    throughput_qps: float
    error_rate: float
    meets_requirements: bool
    elapsed_seconds: float
    results: List[ProbeResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)


# =============================================================================
# Quick validation
# =============================================================================

@dataclass
class ValidationResult(_Serializable):
    overall_compliance: bool
    avg_ms: float
    compliance_rate: float
    results: List[ProbeResult] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


# =============================================================================
# Baselines and regression
# =============================================================================

# Persisted key for each Baseline metric field.
_BASELINE_KEYS = {
    "avg_ms": "avgMs",
    "p95_ms": "p95Ms",
    "p99_ms": "p99Ms",
    "throughput_qps": "throughputQps",
    "error_rate": "errorRate",
    "memory_mb": "memoryMb",
    "test_count": "testCount",
}


@dataclass(frozen=True)
class Baseline(_Serializable):
    """Snapshot of one accepted run, keyed by revision and branch."""

    revision: str
    branch: str
    timestamp: datetime
    avg_ms: float
    p95_ms: float
    p99_ms: float
    throughput_qps: float
    error_rate: float
    memory_mb: float
    test_count: int

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "revision": self.revision,
            "branch": self.branch,
            "timestamp": self.timestamp.isoformat(),
        }
        for attr, key in _BASELINE_KEYS.items():
            doc[key] = getattr(self, attr)
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Baseline":
        """
        Build a Baseline from its persisted form.

        Raises KeyError, TypeError or ValueError on a malformed document.
        """
        if not isinstance(doc, dict):
            raise TypeError(f"baseline document must be an object, got {type(doc).__name__}")
        revision, branch = doc["revision"], doc["branch"]
        if not isinstance(revision, str) or not isinstance(branch, str):
            raise TypeError("revision and branch must be strings")
        timestamp = datetime.fromisoformat(doc["timestamp"])
        values: Dict[str, Any] = {}
        for attr, key in _BASELINE_KEYS.items():
            raw = doc[key]
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise TypeError(f"{key} must be numeric")
            if not math.isfinite(raw) or raw < 0:
                raise ValueError(f"{key} must be a finite non-negative number, got {raw!r}")
            values[attr] = int(raw) if attr == "test_count" else float(raw)
        return cls(revision=revision, branch=branch, timestamp=timestamp, **values)


@dataclass(frozen=True)
class RegressionResult(_Serializable):
    regression_percent: float
    regression_detected: bool
    tolerance_percent: float


@dataclass(frozen=True)
class BaselineComparison(_Serializable):
    baseline: Baseline
    current: Baseline
    regression_percent: float
    tolerance_percent: float


# =============================================================================
# Gates and budgets
# =============================================================================

class GateCategory(str, Enum):
    LATENCY = "latency"
    THROUGHPUT = "throughput"
    ERROR_RATE = "error_rate"
    MEMORY = "memory"


@dataclass(frozen=True)
class Gate(_Serializable):
    gate_id: str
    category: GateCategory
    threshold: float
    actual: float
    passed: bool
    blocking: bool
    message: str


@dataclass(frozen=True)
class BudgetMetrics(_Serializable):
    response_time_ms: float
    throughput_qps: float
    error_rate: float
    memory_usage_mb: float


@dataclass(frozen=True)
class BudgetViolation(_Serializable):
    metric: str
    budget: float
    actual: float
    violation_percent: float


@dataclass(frozen=True)
class BudgetCheckResult(_Serializable):
    passed: bool
    violations: List[BudgetViolation] = field(default_factory=list)


# =============================================================================
# Alerts
# =============================================================================

class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class AlertCategory(str, Enum):
    RESPONSE_TIME = "response_time"
    THROUGHPUT = "throughput"
    ERROR_RATE = "error_rate"
    MEMORY_USAGE = "memory_usage"
    REGRESSION = "regression"


@dataclass
class Alert(_Serializable):
    alert_id: str
    severity: AlertSeverity
    category: AlertCategory
    message: str
    current_value: float
    threshold_value: float
    timestamp: datetime = field(default_factory=utcnow)
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def resolve(self) -> None:
        if not self.resolved:
            self.resolved = True
            self.resolved_at = utcnow()


# =============================================================================
# Pipeline and reports
# =============================================================================

@dataclass
class PipelineResult(_Serializable):
    """Everything a pipeline run produced; the only input to the report renderers."""

    pipeline_id: str
    revision: str
    branch: str
    timestamp: datetime
    performance_tests_passed: bool
    regression_detected: bool
    current: Baseline
    baseline_comparison: Optional[BaselineComparison] = None
    detailed_results: List[ProbeResult] = field(default_factory=list)
    benchmarks: List[Benchmark] = field(default_factory=list)
    gates: List[Gate] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)
    blocking_issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total_tests(self) -> int:
        return len(self.detailed_results)

    @property
    def passed_tests(self) -> int:
        return sum(1 for r in self.detailed_results if r.success)

    @property
    def failed_tests(self) -> int:
        return self.total_tests - self.passed_tests


@dataclass
class PerformanceReport(_Serializable):
    report_id: str
    period_start: datetime
    period_end: datetime
    total_queries: int
    avg_response_time_ms: float
    compliance_rate: float
    performance_trend: str
    critical_issues: int
    benchmarks: List[Benchmark] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    optimization_opportunities: List[str] = field(default_factory=list)
