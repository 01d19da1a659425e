"""Render load test results as a text report or JSON, and read results back."""

import dataclasses
import json
import os
from typing import List

from loadprobe.models import LoadTestResults, RequestResult

RULE = "=" * 80


class ResultsParseError(Exception):
    """Raised when a results file cannot be read back."""


def format_report(results: LoadTestResults) -> str:
    """Build the human-readable report.

    Sections, in order: TEST CONFIGURATION, OVERALL METRICS,
    PERFORMANCE DEGRADATION (or a pass line), CAPACITY RECOMMENDATIONS.
    """
    cfg = results.config
    pattern = cfg.load_pattern
    success_rate = (1 - results.error_rate) * 100 if results.total_requests else 0.0

    lines = [RULE, "LOAD TEST RESULTS", RULE, ""]

    lines.append("TEST CONFIGURATION:")
    lines.append(f"  Pattern: {pattern.pattern}")
    lines.append(f"  Peak Users: {pattern.peak_users}")
    lines.append(f"  Duration: {pattern.duration_ms / 1000:g}s")
    lines.append(f"  Scenarios: {', '.join(s.name for s in cfg.scenarios)}")
    lines.append("")

    lines.append("OVERALL METRICS:")
    lines.append(f"  Total Requests: {results.total_requests}")
    lines.append(f"  Successful: {results.successful_requests} ({success_rate:.1f}%)")
    lines.append(f"  Failed: {results.failed_requests} ({results.error_rate * 100:.1f}%)")
    lines.append(f"  Throughput: {results.overall_throughput:.2f} req/s")
    lines.append(f"  Avg Latency: {results.avg_latency:.2f}ms")
    lines.append(f"  P95 Latency: {results.p95_latency:.2f}ms")
    lines.append(f"  P99 Latency: {results.p99_latency:.2f}ms")
    lines.append(f"  Max Latency: {results.max_latency:.2f}ms")
    lines.append("")

    if results.degradation_points:
        lines.append("PERFORMANCE DEGRADATION:")
        for i, point in enumerate(results.degradation_points, 1):
            lines.append(f"  {i}. {point.metric.upper()}")
            lines.append(f"     At {point.concurrent_users} concurrent users")
            lines.append(f"     Baseline: {point.baseline:.2f}")
            lines.append(f"     Degraded: {point.degraded:.2f}")
            lines.append(f"     Change: +{point.degradation_percent:.1f}%")
        lines.append("")
    else:
        lines.append("✓ No performance degradation detected")
        lines.append("")

    capacity = results.capacity
    lines.append("CAPACITY RECOMMENDATIONS:")
    if capacity is not None:
        lines.append(f"  Max Concurrent Users: {capacity.max_concurrent_users}")
        lines.append(f"  Recommended Peak Capacity: {capacity.recommended_peak_capacity}")
        lines.append(f"  Safety Margin: {capacity.safety_margin:g}%")

        if capacity.bottlenecks:
            lines.append("")
            lines.append("  Identified Bottlenecks:")
            for i, bottleneck in enumerate(capacity.bottlenecks, 1):
                lines.append(
                    f"    {i}. {bottleneck.type.upper()}: {bottleneck.description}"
                )
                lines.append(f"       Confidence: {bottleneck.confidence * 100:.0f}%")

        lines.append("")
        lines.append("  Recommendations:")
        for i, rec in enumerate(capacity.recommendations, 1):
            lines.append(f"    {i}. {rec}")

    lines.append("")
    lines.append(RULE)
    return "\n".join(lines)


def results_to_dict(results: LoadTestResults) -> dict:
    return dataclasses.asdict(results)


def results_to_json(results: LoadTestResults, indent: int = 2) -> str:
    return json.dumps(results_to_dict(results), indent=indent)


def write_results(results: LoadTestResults, path: str) -> None:
    """Write results as JSON, creating parent directories as needed."""
    parent = os.path.dirname(path)
    if parent and not os.path.isdir(parent):
        os.makedirs(parent, exist_ok=True)
    with open(path, "w") as f:
        f.write(results_to_json(results) + "\n")


def load_requests(path: str) -> List[RequestResult]:
    """Read raw request results from a results JSON file.

    Accepts either a full results document (with a ``requests`` key) or a
    bare list of request records.

    Raises:
        ResultsParseError: If the file is missing or malformed.
    """
    if not os.path.isfile(path):
        raise ResultsParseError(f"results file not found: {path}")

    try:
        with open(path, "r") as f:
            raw = json.load(f)
    except json.JSONDecodeError as exc:
        raise ResultsParseError(f"failed to parse {path}: {exc}") from exc

    if isinstance(raw, dict):
        raw = raw.get("requests")
    if not isinstance(raw, list):
        raise ResultsParseError("results must be a list or an object with a 'requests' list")

    requests = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ResultsParseError(f"requests[{i}] must be an object")
        try:
            requests.append(RequestResult(
                scenario=str(item["scenario"]),
                start_time=float(item["start_time"]),
                end_time=float(item["end_time"]),
                latency_ms=float(item["latency_ms"]),
                success=bool(item["success"]),
                concurrent_users=int(item.get("concurrent_users", 0)),
                error=item.get("error"),
                response_size=item.get("response_size"),
            ))
        except (KeyError, TypeError, ValueError) as exc:
            raise ResultsParseError(f"requests[{i}] is invalid: {exc}") from exc
    return requests
