"""
API Request Models
==================
Pydantic models validating the JSON bodies accepted by the PerfGate API.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from perfgate.core.config import VALID_DATASET_SIZES, VALID_QUERY_COMPLEXITIES


class LoadTestRequest(BaseModel):
    """Load test parameters; unset fields use the configured defaults."""
    concurrent_users: Optional[int] = Field(default=None, ge=1, le=1000)
    test_duration_seconds: Optional[float] = Field(default=None, gt=0, le=3600)
    queries_per_user: Optional[int] = Field(default=None, ge=1)
    ramp_up_seconds: Optional[float] = Field(default=None, ge=0)
    dataset_size: Optional[str] = None
    query_complexity: Optional[str] = None

    @field_validator("dataset_size")
    @classmethod
    def validate_dataset_size(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_DATASET_SIZES:
            raise ValueError(f"dataset_size must be one of {', '.join(VALID_DATASET_SIZES)}")
        return v

    @field_validator("query_complexity")
    @classmethod
    def validate_query_complexity(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_QUERY_COMPLEXITIES:
            raise ValueError(f"query_complexity must be one of {', '.join(VALID_QUERY_COMPLEXITIES)}")
        return v


class PipelineRequest(BaseModel):
    """CI/CD pipeline parameters."""
    pipeline_id: Optional[str] = Field(default=None, max_length=256)
    revision: str = Field(default="unknown", min_length=1, max_length=256)
    branch: str = Field(default="main", min_length=1, max_length=256)
    target_response_time_ms: Optional[float] = Field(default=None, gt=0)
    max_acceptable_regression_percent: Optional[float] = Field(default=None, ge=0)
    min_throughput_qps: Optional[float] = Field(default=None, ge=0)
    max_error_rate_percent: Optional[float] = Field(default=None, ge=0, le=100)
    test_duration_seconds: Optional[float] = Field(default=None, gt=0)
    concurrent_users: Optional[int] = Field(default=None, ge=1)
    baseline_comparison_enabled: Optional[bool] = None
    fail_on_regression: Optional[bool] = None


class ValidateRequest(BaseModel):
    """Request model for POST /performance/validate."""
    test_type: Literal["quick", "comprehensive", "load_test", "ci_cd"] = "quick"
    queries: Optional[List[str]] = Field(default=None, max_length=100)
    load_test_config: Optional[LoadTestRequest] = None
    ci_cd_config: Optional[PipelineRequest] = None

    @field_validator("queries")
    @classmethod
    def validate_queries(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        if not v:
            raise ValueError("queries must not be empty when provided")
        if any(not q or not q.strip() for q in v):
            raise ValueError("queries must not contain empty strings")
        return v


class MonitorRequest(BaseModel):
    """Request model for POST /performance/monitor."""
    action: Literal["start", "stop", "status", "health_check"]
    interval_seconds: Optional[float] = Field(default=None, gt=0)


class BudgetRequest(BaseModel):
    """Observed metrics to check against the configured budgets."""
    response_time_ms: float = Field(..., ge=0)
    throughput_qps: float = Field(..., ge=0)
    error_rate: float = Field(..., ge=0, le=1, description="Failure ratio between 0 and 1")
    memory_usage_mb: float = Field(..., ge=0)
