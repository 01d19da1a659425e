"""CLI entry point for running load tests and analyzing their results."""

import asyncio
import dataclasses
import json
import logging
import sys

import click

from loadprobe.capacity import analyze_results
from loadprobe.controller import LoadTestConfigError, LoadTestController
from loadprobe.loader import ConfigValidationError, load_config
from loadprobe.patterns import target_curve
from loadprobe.report import ResultsParseError, format_report, load_requests, write_results


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log controller activity to stderr.")
def main(verbose):
    """Load Probe -- drive shaped load against a target and find where it degrades."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to a load test definition (YAML or JSON).",
)
@click.option(
    "--out",
    default=None,
    type=click.Path(),
    help="Optional output path for the full results (JSON).",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Print the target concurrency curve without sending any requests.",
)
@click.option(
    "--step-ms",
    default=1000,
    show_default=True,
    type=click.IntRange(min=1),
    help="Sampling step for --dry-run.",
)
def run(config_path, out, dry_run, step_ms):
    """Run a load test against the configured HTTP target."""
    try:
        config = load_config(config_path)
    except ConfigValidationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if dry_run:
        click.echo(f"Pattern: {config.load_pattern.pattern}")
        for elapsed, users in target_curve(config.load_pattern, step_ms):
            click.echo(f"  t={elapsed / 1000:8.1f}s  users={users}")
        return

    def on_progress(progress):
        click.echo(
            f"[{progress.elapsed_ms / 1000:6.1f}s] users={progress.current_users} "
            f"completed={progress.completed_requests} failed={progress.failed_requests} "
            f"rps={progress.current_throughput:.1f} latency={progress.current_latency:.0f}ms",
            err=True,
        )

    config.on_progress = on_progress

    try:
        controller = LoadTestController(config)
    except LoadTestConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    results = asyncio.run(_run(controller))
    click.echo(format_report(results))

    if out:
        write_results(results, out)
        click.echo(f"Results written to {out}")


async def _run(controller):
    try:
        return await controller.run()
    finally:
        aclose = getattr(controller.config.target, "aclose", None)
        if aclose is not None:
            await aclose()


@main.command()
@click.option(
    "--results",
    "results_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to a results JSON file (or a bare list of request records).",
)
@click.option(
    "--window-ms",
    default=10000,
    show_default=True,
    type=click.FloatRange(min=0, min_open=True),
    help="Time window size used for aggregation.",
)
@click.option(
    "--peak-users",
    default=None,
    type=click.IntRange(min=0),
    help="Peak users to assume when nothing degraded (default: read from the results).",
)
@click.option("--json", "as_json", is_flag=True, help="Emit the analysis as JSON.")
def analyze(results_path, window_ms, peak_users, as_json):
    """Re-run degradation and capacity analysis over saved request results."""
    try:
        requests = load_requests(results_path)
    except ResultsParseError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if peak_users is None:
        peak_users = _peak_users_from_file(results_path, requests)

    windows, points, capacity = analyze_results(requests, peak_users, window_size_ms=window_ms)

    if as_json:
        output = {
            "windows": len(windows),
            "degradation_points": [dataclasses.asdict(p) for p in points],
            "capacity": {
                "max_concurrent_users": capacity.max_concurrent_users,
                "recommended_peak_capacity": capacity.recommended_peak_capacity,
                "safety_margin": capacity.safety_margin,
                "bottlenecks": [dataclasses.asdict(b) for b in capacity.bottlenecks],
                "recommendations": capacity.recommendations,
            },
        }
        click.echo(json.dumps(output, indent=2))
        return

    click.echo(f"Requests: {len(requests)}  Windows: {len(windows)}")
    if points:
        click.echo(f"Degradation points: {len(points)}")
        for p in points:
            click.echo(
                f"  - {p.metric} at {p.concurrent_users} users: "
                f"{p.baseline:.2f} -> {p.degraded:.2f} (+{p.degradation_percent:.1f}%)"
            )
    else:
        click.echo("No performance degradation detected")
    click.echo(f"Max Concurrent Users: {capacity.max_concurrent_users}")
    click.echo(f"Recommended Peak Capacity: {capacity.recommended_peak_capacity}")
    for rec in capacity.recommendations:
        click.echo(f"  * {rec}")


def _peak_users_from_file(path, requests):
    with open(path, "r") as f:
        raw = json.load(f)
    config = raw.get("config") if isinstance(raw, dict) else None
    pattern = config.get("load_pattern") if isinstance(config, dict) else None
    if isinstance(pattern, dict) and isinstance(pattern.get("peak_users"), int):
        return pattern["peak_users"]
    return max((r.concurrent_users for r in requests), default=0)


if __name__ == "__main__":
    main()
