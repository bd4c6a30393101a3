"""
Markdown summary of a PipelineResult, suitable for a CI job summary page.

Rendering only: every number printed here is read from the result.
"""

from typing import List

from perfgate.benchmarks.base import format_ms
from perfgate.core.models import Gate, GateCategory, PipelineResult


def _gate_value(gate: Gate, value: float) -> str:
    if gate.category is GateCategory.LATENCY:
        return format_ms(value)
    if gate.category is GateCategory.THROUGHPUT:
        return f"{value:.1f} QPS"
    if gate.category is GateCategory.ERROR_RATE:
        return f"{value * 100:.2f}%"
    return f"{value:.1f}MB"


def _gate_target(gate: Gate) -> str:
    comparator = ">=" if gate.category is GateCategory.THROUGHPUT else "<="
    return f"{comparator} {_gate_value(gate, gate.threshold)}"


def _numbered(title: str, items: List[str]) -> List[str]:
    if not items:
        return []
    lines = [f"## {title}"]
    lines.extend(f"{i}. {item}" for i, item in enumerate(items, start=1))
    lines.append("")
    return lines


def render_summary(result: PipelineResult) -> str:
    status = "PASSED" if result.performance_tests_passed else "FAILED"
    lines = [
        f"# Performance Test Results: {status}",
        "",
        "## Summary",
        f"- **Pipeline**: {result.pipeline_id}",
        f"- **Revision**: {result.revision} ({result.branch})",
        f"- **Status**: {status}",
        f"- **Regression Detected**: {'YES' if result.regression_detected else 'NO'}",
        f"- **Total Tests**: {result.total_tests} ({result.failed_tests} failed)",
        f"- **Blocking Issues**: {len(result.blocking_issues)}",
        f"- **Warnings**: {len(result.warnings)}",
        "",
    ]

    if result.gates:
        lines += [
            "## Deployment Gates",
            "| Gate | Observed | Target | Blocking | Status |",
            "|------|----------|--------|----------|--------|",
        ]
        for gate in result.gates:
            lines.append(
                f"| {gate.gate_id} | {_gate_value(gate, gate.actual)} | {_gate_target(gate)} | "
                f"{'yes' if gate.blocking else 'no'} | {'PASS' if gate.passed else 'FAIL'} |"
            )
        lines.append("")

    if result.benchmarks:
        lines += [
            "## Benchmarks",
            "| Dataset | Avg | Median | P95 | P99 | Throughput | Probes |",
            "|---------|-----|--------|-----|-----|------------|--------|",
        ]
        for b in result.benchmarks:
            lines.append(
                f"| {b.dataset_label} | {format_ms(b.avg_ms)} | {format_ms(b.median_ms)} | "
                f"{format_ms(b.p95_ms)} | {format_ms(b.p99_ms)} | {b.throughput_qps:.1f} QPS | "
                f"{b.success_count}/{b.probe_count} |"
            )
        lines.append("")

    comparison = result.baseline_comparison
    if comparison is not None:
        lines += [
            "## Baseline Comparison",
            f"- **Baseline Revision**: {comparison.baseline.revision[:8]} ({comparison.baseline.branch})",
            f"- **Average Latency**: {format_ms(comparison.baseline.avg_ms)} -> {format_ms(comparison.current.avg_ms)}",
            f"- **Performance Change**: {comparison.regression_percent:+.1f}%",
            f"- **Acceptable Threshold**: ±{comparison.tolerance_percent:g}%",
            "",
        ]

    lines += _numbered("Blocking Issues", result.blocking_issues)
    lines += _numbered("Warnings", result.warnings)
    lines += _numbered("Recommendations", result.recommendations)

    if result.alerts:
        lines.append("## Alerts Raised")
        for alert in result.alerts:
            lines.append(f"- [{alert.severity.value}] {alert.category.value}: {alert.message}")
        lines.append("")

    lines += [
        "## Detailed Results",
        "Per-probe results are available in the JUnit and JSON artifacts of this pipeline.",
        "",
    ]
    return "\n".join(lines)
