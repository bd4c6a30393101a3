"""
Period performance report over the engine's in-memory histories.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from perfgate.core.config import ThresholdConfig
from perfgate.core.models import (
    Alert,
    AlertSeverity,
    Benchmark,
    PerformanceReport,
    ProbeResult,
    new_id,
    utcnow,
)
from perfgate.monitoring.trends import performance_trend

HIGH_MEMORY_PROBE_MB = 100.0
HIGH_MEMORY_SHARE = 0.1
RECOMMENDATION_ERROR_RATE = 0.01
INDEX_EFFICIENCY_FLOOR = 0.9


def optimization_recommendations(
    results: Sequence[ProbeResult],
    benchmarks: Sequence[Benchmark],
    thresholds: ThresholdConfig,
) -> List[str]:
    recommendations: List[str] = []
    target = thresholds.target_response_time_ms

    if results:
        successes = [r for r in results if r.success]
        # Averaged over every probe in the window, failures included.
        avg_ms = sum(r.duration_ms for r in successes) / len(results)
        if avg_ms > target:
            recommendations.append("Consider index optimization to improve query performance")
            recommendations.append("Review query patterns and implement caching for frequent searches")

        error_rate = (len(results) - len(successes)) / len(results)
        if error_rate > RECOMMENDATION_ERROR_RATE:
            recommendations.append("Investigate and resolve query failure causes")
            recommendations.append("Implement better error handling and retry mechanisms")

        high_memory = [r for r in results if (r.memory_delta_mb or 0.0) > HIGH_MEMORY_PROBE_MB]
        if len(high_memory) > len(results) * HIGH_MEMORY_SHARE:
            recommendations.append("Optimize memory usage for search operations")
            recommendations.append("Consider memory-efficient result handling strategies")

    if len(benchmarks) > 1:
        latest = benchmarks[-1]
        if not latest.meets_requirement:
            recommendations.append(f"Critical: Performance does not meet <{target:g}ms requirement")
            recommendations.append("Immediate index optimization and query tuning required")
        if latest.cache_hit_ratio < thresholds.min_cache_hit_ratio:
            recommendations.append("Improve cache hit ratio through query optimization")
            recommendations.append("Consider increasing cache size or implementing smarter caching strategies")

    return recommendations


def optimization_opportunities(benchmarks: Sequence[Benchmark], thresholds: ThresholdConfig) -> List[str]:
    if not benchmarks:
        return []
    latest = benchmarks[-1]
    opportunities: List[str] = []

    if latest.index_efficiency < INDEX_EFFICIENCY_FLOOR:
        opportunities.append("Index efficiency can be improved through rebuild or parameter tuning")
    if latest.throughput_qps < thresholds.min_throughput_qps:
        opportunities.append("Throughput optimization through connection pooling and query optimization")
    if latest.p95_ms > thresholds.target_response_time_ms * 2:
        opportunities.append("P95 response time optimization through outlier query analysis")
    if latest.memory_usage_mb > thresholds.max_memory_usage_mb * 0.8:
        opportunities.append("Memory usage optimization to prevent performance degradation")
    return opportunities


def generate_performance_report(
    probe_results: Sequence[ProbeResult],
    benchmarks: Sequence[Benchmark],
    alerts: Sequence[Alert],
    thresholds: ThresholdConfig,
    period_days: float = 7,
    include_recommendations: bool = True,
    now: Optional[datetime] = None,
) -> PerformanceReport:
    end = now or utcnow()
    start = end - timedelta(days=period_days)

    window_results = [r for r in probe_results if start <= r.started_at <= end]
    window_benchmarks = [b for b in benchmarks if start <= b.timestamp <= end]
    window_alerts = [a for a in alerts if start <= a.timestamp <= end]

    successes = [r for r in window_results if r.success]
    target = thresholds.target_response_time_ms
    avg_ms = sum(r.duration_ms for r in successes) / len(successes) if successes else 0.0
    compliance = sum(1 for r in successes if r.duration_ms <= target) / len(successes) if successes else 0.0

    return PerformanceReport(
        report_id=new_id("perf-report"),
        period_start=start,
        period_end=end,
        total_queries=len(window_results),
        avg_response_time_ms=avg_ms,
        compliance_rate=compliance,
        performance_trend=performance_trend(window_benchmarks),
        critical_issues=sum(1 for a in window_alerts if a.severity is AlertSeverity.CRITICAL),
        benchmarks=window_benchmarks,
        alerts=window_alerts,
        recommendations=(
            optimization_recommendations(window_results, window_benchmarks, thresholds)
            if include_recommendations else []
        ),
        optimization_opportunities=optimization_opportunities(window_benchmarks, thresholds),
    )
