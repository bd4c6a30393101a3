"""
Deployment Gate Evaluator
=========================
Pure evaluation of the four deployment gates, in fixed order:

    1. average latency  <= target          (blocking)
    2. throughput       >= minimum         (blocking)
    3. error rate       <= maximum         (blocking)
    4. memory usage     <= budget          (advisory)

Latency and memory come from the Benchmark; throughput and error rate
from the LoadTestResult.
"""

from typing import List

from perfgate.benchmarks.base import format_ms
from perfgate.core.config import ThresholdConfig
from perfgate.core.models import Benchmark, Gate, GateCategory, LoadTestResult


class GateEvaluator:
    def __init__(self, thresholds: ThresholdConfig):
        self.thresholds = thresholds

    def evaluate(self, benchmark: Benchmark, load_result: LoadTestResult) -> List[Gate]:
        t = self.thresholds
        return [
            Gate(
                gate_id="response_time",
                category=GateCategory.LATENCY,
                threshold=t.target_response_time_ms,
                actual=benchmark.avg_ms,
                passed=benchmark.avg_ms <= t.target_response_time_ms,
                blocking=True,
                message=(
                    f"Average response time: {format_ms(benchmark.avg_ms)} "
                    f"(target: <{t.target_response_time_ms:g}ms)"
                ),
            ),
            Gate(
                gate_id="throughput",
                category=GateCategory.THROUGHPUT,
                threshold=t.min_throughput_qps,
                actual=load_result.throughput_qps,
                passed=load_result.throughput_qps >= t.min_throughput_qps,
                blocking=True,
                message=f"Throughput: {load_result.throughput_qps:.1f} QPS (target: >{t.min_throughput_qps:g} QPS)",
            ),
            Gate(
                gate_id="error_rate",
                category=GateCategory.ERROR_RATE,
                threshold=t.max_error_rate,
                actual=load_result.error_rate,
                passed=load_result.error_rate <= t.max_error_rate,
                blocking=True,
                message=(
                    f"Error rate: {load_result.error_rate * 100:.2f}% "
                    f"(target: <{t.max_error_rate_percent:g}%)"
                ),
            ),
            Gate(
                gate_id="memory_usage",
                category=GateCategory.MEMORY,
                threshold=t.memory_budget_mb,
                actual=benchmark.memory_usage_mb,
                passed=benchmark.memory_usage_mb <= t.memory_budget_mb,
                blocking=False,
                message=f"Memory usage: {benchmark.memory_usage_mb:.1f}MB (target: <{t.memory_budget_mb:g}MB)",
            ),
        ]


def blocking_failures(gates: List[Gate]) -> List[str]:
    return [g.message for g in gates if g.blocking and not g.passed]


def advisory_failures(gates: List[Gate]) -> List[str]:
    return [g.message for g in gates if not g.blocking and not g.passed]
