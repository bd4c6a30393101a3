"""
Machine-readable exports of a PipelineResult: JSON, JUnit XML and the
Prometheus text exposition format.
"""

import json
import xml.etree.ElementTree as ET
from typing import Any, Dict

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from perfgate.core.models import PipelineResult

JUNIT_SUITE_NAME = "Performance Tests"
JUNIT_FAILURE_TYPE = "PerformanceFailure"


def to_json_document(result: PipelineResult) -> Dict[str, Any]:
    current = result.current
    return {
        "pipeline_id": result.pipeline_id,
        "revision": result.revision,
        "branch": result.branch,
        "timestamp": result.timestamp.isoformat(),
        "summary": {
            "passed": result.performance_tests_passed,
            "regression_detected": result.regression_detected,
            "total_tests": result.total_tests,
            "failed_tests": result.failed_tests,
            "avg_response_time_ms": current.avg_ms,
            "p95_response_time_ms": current.p95_ms,
            "p99_response_time_ms": current.p99_ms,
            "throughput_qps": current.throughput_qps,
            "error_rate": current.error_rate,
            "memory_usage_mb": current.memory_mb,
        },
        "baseline_comparison": (
            result.baseline_comparison.to_dict() if result.baseline_comparison is not None else None
        ),
        "gates": [g.to_dict() for g in result.gates],
        "blocking_issues": list(result.blocking_issues),
        "warnings": list(result.warnings),
        "recommendations": list(result.recommendations),
        "alerts": [a.to_dict() for a in result.alerts],
        "detailed_results": [r.to_dict() for r in result.detailed_results],
        "benchmarks": [b.to_dict() for b in result.benchmarks],
    }


def export_json(result: PipelineResult, indent: int = 2) -> str:
    return json.dumps(to_json_document(result), indent=indent)


def export_junit_xml(result: PipelineResult) -> str:
    """One <testcase> per probe; failed probes carry a <failure> element."""
    total_seconds = sum(r.duration_ms for r in result.detailed_results) / 1000.0
    suite = ET.Element("testsuite", {
        "name": JUNIT_SUITE_NAME,
        "tests": str(result.total_tests),
        "failures": str(result.failed_tests),
        "errors": str(len(result.blocking_issues)),
        "time": f"{total_seconds:.3f}",
        "timestamp": result.timestamp.isoformat(),
    })
    for probe in result.detailed_results:
        case = ET.SubElement(suite, "testcase", {
            "classname": f"perfgate.{probe.test_type}",
            "name": probe.query,
            "time": f"{probe.duration_ms / 1000.0:.3f}",
        })
        if not probe.success:
            failure = ET.SubElement(case, "failure", {
                "message": probe.error_message or "Test failed",
                "type": JUNIT_FAILURE_TYPE,
            })
            failure.text = probe.error_message or "Unknown error"

    body = ET.tostring(suite, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body + "\n"


def export_prometheus(result: PipelineResult) -> str:
    """Gauges for the run's headline numbers, labelled with revision and branch."""
    registry = CollectorRegistry()
    labels = ["revision", "branch"]
    values = {
        "perfgate_response_time_seconds": ("Average search response time", result.current.avg_ms / 1000.0),
        "perfgate_p95_response_time_seconds": ("P95 search response time", result.current.p95_ms / 1000.0),
        "perfgate_throughput_qps": ("Search throughput in queries per second", result.current.throughput_qps),
        "perfgate_error_rate": ("Fraction of failed probes under load", result.current.error_rate),
        "perfgate_memory_usage_bytes": ("Memory growth per probe in bytes", result.current.memory_mb * 1024 * 1024),
        "perfgate_tests_passed": ("Probes that succeeded in this run", result.passed_tests),
        "perfgate_tests_failed": ("Probes that failed in this run", result.failed_tests),
        "perfgate_pipeline_passed": ("1 if the pipeline passed its gates", 1 if result.performance_tests_passed else 0),
        "perfgate_regression_detected": ("1 if a baseline regression was detected", 1 if result.regression_detected else 0),
    }
    for name, (documentation, value) in values.items():
        gauge = Gauge(name, documentation, labels, registry=registry)
        gauge.labels(revision=result.revision, branch=result.branch).set(value)

    return generate_latest(registry).decode("utf-8")
