"""
PerfGate CLI - Main Entry Point

Command-line interface for validating, benchmarking and gating an async
search operation.

Usage:
    perfgate validate --target myapp.search:search          # Quick validation
    perfgate benchmark --url http://localhost:8000/search   # Benchmark batches
    perfgate load --target myapp.search:search -u 10        # Concurrent load test
    perfgate pipeline --target myapp.search:search \\
        --pipeline-id build-42 --revision 3f2c9e1 --branch main
    perfgate budget --response-time 180 --throughput 25 --error-rate 0.002 --memory 300
    perfgate serve --url http://localhost:8000/search       # REST API
"""

import asyncio
import json
import sys
from contextlib import asynccontextmanager
from functools import wraps
from pathlib import Path
from typing import Callable, Optional

import click

from loguru import logger

from perfgate.benchmarks.base import format_ms
from perfgate.core.config import (
    VALID_DATASET_SIZES,
    VALID_QUERY_COMPLEXITIES,
    PerfGateConfig,
    load_config,
)
from perfgate.core.exceptions import PerfGateError
from perfgate.core.logging_config import configure_logging
from perfgate.core.models import BudgetMetrics, LoadTestConfig
from perfgate.gates.budget import check_budget
from perfgate.pipeline import PerformanceEngine, PipelineOptions
from perfgate.probing.targets import HttpSearchTarget, load_target
from perfgate.reporting import render_summary


# ============================================================================
# Engine Lifecycle
# ============================================================================

def build_target(target: Optional[str], url: Optional[str]):
    """Resolve --target/--url into a search target. Exactly one is required."""
    if bool(target) == bool(url):
        raise click.UsageError("Provide exactly one of --target MODULE:ATTR or --url URL")
    if url:
        return HttpSearchTarget(url)
    return load_target(target)


@asynccontextmanager
async def engine_context(config: PerfGateConfig, target: Optional[str], url: Optional[str]):
    """
    Async context manager for PerformanceEngine lifecycle.

    Stops the monitor and closes an HTTP target's session on exit.
    """
    search_target = build_target(target, url)
    engine = PerformanceEngine(search_target, config)
    try:
        yield engine
    finally:
        await engine.close()
        if isinstance(search_target, HttpSearchTarget):
            await search_target.close()


def with_engine(func: Callable) -> Callable:
    """
    Run an async command body inside engine_context.

    The wrapped coroutine receives (ctx, engine, **options); --target and
    --url are consumed here.
    """
    @wraps(func)
    def wrapper(ctx, target: Optional[str], url: Optional[str], **kwargs):
        async def run():
            async with engine_context(ctx.obj["config"], target, url) as engine:
                return await func(ctx, engine, **kwargs)

        try:
            return asyncio.run(run())
        except PerfGateError as e:
            raise click.ClickException(e.message)

    return wrapper


def target_options(func: Callable) -> Callable:
    func = click.option("--url", help="HTTP search endpoint to POST queries to")(func)
    func = click.option("--target", "-t", help="Python search target as module:attr")(func)
    return func


def json_option(func: Callable) -> Callable:
    return click.option("--json", "output_json", is_flag=True, help="Output as JSON")(func)


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


# ============================================================================
# CLI Group and Main Entry
# ============================================================================

@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Path to perfgate.yaml file",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """
    PerfGate - performance validation and deployment gating

    Probes an async search operation, compares it with the stored
    baseline and decides whether a deployment may proceed.
    """
    ctx.ensure_object(dict)
    try:
        loaded = load_config(Path(config) if config else None)
    except PerfGateError as e:
        raise click.ClickException(e.message)

    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = loaded

    configure_logging(
        level="DEBUG" if verbose else loaded.observability.log_level,
        json_format=loaded.observability.json_logs or None,
    )


# ============================================================================
# CLI Commands
# ============================================================================

@cli.command()
@click.argument("queries", nargs=-1)
@target_options
@json_option
@click.pass_context
@with_engine
async def validate(ctx, engine: PerformanceEngine, queries: tuple, output_json: bool):
    """
    Probe each query once and check compliance with the latency target.

    Example:
        perfgate validate -t myapp.search:search "pricing" "refund policy"
    """
    result = await engine.validate(list(queries) if queries else None)

    if output_json:
        _echo_json(result.to_dict())
        return

    status = "COMPLIANT" if result.overall_compliance else "NOT COMPLIANT"
    click.echo(f"Validation: {status}")
    click.echo(f"Average: {format_ms(result.avg_ms)}  Compliance: {result.compliance_rate:.0%}")
    for r in result.results:
        mark = "ok" if r.success else "FAIL"
        click.echo(f"  [{mark}] {r.query!r} {format_ms(r.duration_ms)}")
    for rec in result.recommendations:
        click.echo(f"  - {rec}")


@cli.command()
@click.option(
    "--size",
    "-s",
    "sizes",
    multiple=True,
    type=click.Choice(VALID_DATASET_SIZES),
    help="Dataset size to benchmark (can use multiple times)",
)
@click.option("--no-memory", is_flag=True, help="Skip memory profiling")
@target_options
@json_option
@click.pass_context
@with_engine
async def benchmark(ctx, engine: PerformanceEngine, sizes: tuple, no_memory: bool, output_json: bool):
    """
    Run sequential benchmark batches per dataset size.

    Example:
        perfgate benchmark --url http://localhost:8000/search -s small -s medium
    """
    benchmarks = await engine.run_benchmark(sizes or None, False if no_memory else None)

    if output_json:
        _echo_json([b.to_dict() for b in benchmarks])
        return

    click.echo(f"{'Dataset':<12} {'Avg':>10} {'P95':>10} {'P99':>10} {'QPS':>8}  Meets")
    for b in benchmarks:
        click.echo(
            f"{b.dataset_label:<12} {format_ms(b.avg_ms):>10} {format_ms(b.p95_ms):>10} "
            f"{format_ms(b.p99_ms):>10} {b.throughput_qps:>8.1f}  {'yes' if b.meets_requirement else 'no'}"
        )


@cli.command()
@click.option("--users", "-u", type=int, help="Concurrent simulated users")
@click.option("--duration", "-d", type=float, help="Test duration in seconds")
@click.option("--queries-per-user", type=int, help="Queries drawn per user")
@click.option("--ramp-up", type=float, help="Ramp-up window in seconds")
@click.option("--dataset", type=click.Choice(VALID_DATASET_SIZES), help="Dataset size label")
@click.option("--complexity", type=click.Choice(VALID_QUERY_COMPLEXITIES), help="Query complexity tier")
@target_options
@json_option
@click.pass_context
@with_engine
async def load(
    ctx,
    engine: PerformanceEngine,
    users: Optional[int],
    duration: Optional[float],
    queries_per_user: Optional[int],
    ramp_up: Optional[float],
    dataset: Optional[str],
    complexity: Optional[str],
    output_json: bool,
):
    """
    Run a concurrent load test against the search target.

    Example:
        perfgate load -t myapp.search:search -u 20 -d 60 --complexity complex
    """
    config = LoadTestConfig.from_settings(
        engine.config.load,
        concurrent_users=users,
        test_duration_seconds=duration,
        queries_per_user=queries_per_user,
        ramp_up_seconds=ramp_up,
        dataset_size=dataset,
        query_complexity=complexity,
    )
    result = await engine.run_load_test(config)

    if output_json:
        _echo_json(result.to_dict())
        return

    click.echo(f"Load test: {'PASSED' if result.meets_requirements else 'FAILED'}")
    click.echo(f"Probes: {result.total} ({result.failed} failed) in {result.elapsed_seconds:.1f}s")
    click.echo(f"Average: {format_ms(result.avg_ms)}  P95: {format_ms(result.p95_ms)}")
    click.echo(f"Throughput: {result.throughput_qps:.1f} qps  Error rate: {result.error_rate:.2%}")


@cli.command()
@click.option("--pipeline-id", required=True, help="CI pipeline identifier")
@click.option("--revision", required=True, help="Revision (commit hash) under test")
@click.option("--branch", required=True, help="Branch under test")
@click.option("--target-ms", type=float, help="Target average response time in ms")
@click.option("--tolerance", type=float, help="Maximum acceptable regression percent")
@click.option("--min-throughput", type=float, help="Minimum throughput in qps")
@click.option("--max-error-rate", type=float, help="Maximum error rate percent")
@click.option("--duration", type=float, help="Load test duration in seconds")
@click.option("--users", type=int, help="Load test concurrent users")
@click.option("--compare/--no-compare", default=None, help="Compare against the stored baseline")
@click.option("--fail-on-regression/--no-fail-on-regression", default=None, help="Block on regression")
@click.option("--artifacts/--no-artifacts", default=None, help="Write report artifacts")
@target_options
@json_option
@click.pass_context
@with_engine
async def pipeline(
    ctx,
    engine: PerformanceEngine,
    pipeline_id: str,
    revision: str,
    branch: str,
    target_ms: Optional[float],
    tolerance: Optional[float],
    min_throughput: Optional[float],
    max_error_rate: Optional[float],
    duration: Optional[float],
    users: Optional[int],
    compare: Optional[bool],
    fail_on_regression: Optional[bool],
    artifacts: Optional[bool],
    output_json: bool,
):
    """
    Run the full gating pipeline. Exits with status 1 when gating fails.

    Example:
        perfgate pipeline -t myapp.search:search --pipeline-id 42 --revision abc123 --branch main
    """
    options = PipelineOptions(
        target_response_time_ms=target_ms,
        max_acceptable_regression_percent=tolerance,
        min_throughput_qps=min_throughput,
        max_error_rate_percent=max_error_rate,
        test_duration_seconds=duration,
        concurrent_users=users,
        baseline_comparison_enabled=compare,
        fail_on_regression=fail_on_regression,
        write_artifacts=artifacts,
    )
    result = await engine.run_pipeline(pipeline_id, revision, branch, options)

    if output_json:
        _echo_json(result.to_dict())
    else:
        click.echo(render_summary(result))

    if not result.performance_tests_passed:
        ctx.exit(1)


@cli.command()
@click.option("--response-time", type=float, required=True, help="Observed response time in ms")
@click.option("--throughput", type=float, required=True, help="Observed throughput in qps")
@click.option("--error-rate", type=float, required=True, help="Observed failure ratio (0.0-1.0)")
@click.option("--memory", type=float, required=True, help="Observed memory usage in MB")
@json_option
@click.pass_context
def budget(ctx, response_time: float, throughput: float, error_rate: float, memory: float, output_json: bool):
    """
    Check observed metrics against the configured performance budgets.

    Exits with status 1 when any budget is violated.
    """
    metrics = BudgetMetrics(
        response_time_ms=response_time,
        throughput_qps=throughput,
        error_rate=error_rate,
        memory_usage_mb=memory,
    )
    result = check_budget(metrics, ctx.obj["config"].thresholds)

    if output_json:
        _echo_json(result.to_dict())
    elif result.passed:
        click.echo("All performance budgets met")
    else:
        click.echo(f"{len(result.violations)} budget violation(s):")
        for v in result.violations:
            click.echo(f"  {v.metric}: budget {v.budget:g}, actual {v.actual:g} ({v.violation_percent:.1f}% over)")

    if not result.passed:
        ctx.exit(1)


@cli.command()
@click.option("--interval", "-i", type=float, help="Seconds between checks; requires --duration")
@click.option("--duration", "-d", type=float, help="Monitor for this many seconds; omit for a single check")
@target_options
@json_option
@click.pass_context
@with_engine
async def monitor(
    ctx,
    engine: PerformanceEngine,
    interval: Optional[float],
    duration: Optional[float],
    output_json: bool,
):
    """
    Run health checks against the target and print any alerts raised.

    Example:
        perfgate monitor -t myapp.search:search -i 30 -d 600
    """
    if interval is not None and duration is None:
        raise click.UsageError("--interval requires --duration")

    if duration is None:
        await engine.monitor.check_once()
    else:
        await engine.start_monitoring(interval)
        try:
            await asyncio.sleep(duration)
        finally:
            await engine.stop_monitoring()

    alerts = engine.alerts.snapshot()
    if output_json:
        _echo_json({"status": engine.monitor.status(), "alerts": [a.to_dict() for a in alerts]})
        return

    status = engine.monitor.status()
    click.echo(f"Checks run: {status['checks_run']}  Alerts: {len(alerts)}")
    for alert in alerts:
        click.echo(f"  [{alert.severity.value}] {alert.category.value}: {alert.message}")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", "-p", type=int, default=8100, help="Bind port")
@target_options
@click.pass_context
def serve(ctx, host: str, port: int, target: Optional[str], url: Optional[str]):
    """
    Serve the PerfGate REST API for one search target.
    """
    import uvicorn

    from perfgate.api.main import create_app

    engine = PerformanceEngine(build_target(target, url), ctx.obj["config"])
    app = create_app(engine, close_target=True)
    logger.info(f"Serving PerfGate API on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


def main():
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main())
