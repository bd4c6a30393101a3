"""
PerfGate - Performance Gating for Async Search
==============================================

Measures an async search operation against latency, throughput, error-rate
and memory targets, detects regressions against a stored baseline, and
decides whether a deployment may proceed.

Main Packages:
    - core: Config, exceptions, logging, metrics, data model, bounded histories
    - probing: Prober, search target adapters, quick validation
    - benchmarks: Sequential benchmark batches and the concurrent load generator
    - regression: Baseline persistence and regression analysis
    - gates: Deployment gates and performance budgets
    - monitoring: Background alert monitor and trend detection
    - reporting: Markdown, JUnit XML, JSON and Prometheus artifacts
    - api: FastAPI REST endpoints
    - cli: Command-line interface

Quick Start:
    from perfgate import PerformanceEngine

    async with PerformanceEngine(my_search) as engine:
        result = await engine.run_pipeline("build-42", "3f2c9e1", "main")
"""

__version__ = "1.0.0"

from perfgate.pipeline import PerformanceEngine, PipelineOptions, check_budget, run_pipeline  # noqa: E402

__all__ = ["PerformanceEngine", "PipelineOptions", "check_budget", "run_pipeline", "__version__"]
