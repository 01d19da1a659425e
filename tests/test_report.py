"""Tests for report rendering and results serialization."""

import json
import os
import tempfile

import pytest

from loadprobe.capacity import analyze_results
from loadprobe.models import (
    DegradationThresholds,
    LoadPatternConfig,
    LoadTestResults,
    RequestResult,
    ScenarioTemplate,
    RunSettings,
)
from loadprobe.report import (
    ResultsParseError,
    format_report,
    load_requests,
    results_to_dict,
    results_to_json,
    write_results,
)


FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "..", "fixtures")


def _request(start, latency, users, success=True):
    return RequestResult(
        scenario="echo",
        start_time=start,
        end_time=start + latency,
        latency_ms=latency,
        success=success,
        concurrent_users=users,
        error=None if success else "boom",
        response_size=12 if success else None,
    )


def _results(requests, peak_users=20):
    windows, points, capacity = analyze_results(requests, peak_users, window_size_ms=1000)
    settings = RunSettings(
        scenarios=[ScenarioTemplate(name="echo", payload={"q": 1}),
                   ScenarioTemplate(name="search", payload="find", weight=2)],
        load_pattern=LoadPatternConfig(pattern="stress", peak_users=peak_users, duration_ms=30000),
        timeout_ms=30000,
        think_time_ms=1000,
        window_size_ms=1000,
        thresholds=DegradationThresholds(),
        safety_margin=0.2,
    )
    ok = [r for r in requests if r.success]
    return LoadTestResults(
        config=settings,
        start_time=0,
        end_time=3000,
        total_duration_ms=3000,
        total_requests=len(requests),
        successful_requests=len(ok),
        failed_requests=len(requests) - len(ok),
        error_rate=(len(requests) - len(ok)) / len(requests) if requests else 0,
        overall_throughput=len(requests) / 3,
        avg_latency=sum(r.latency_ms for r in ok) / len(ok) if ok else 0,
        p95_latency=max((r.latency_ms for r in ok), default=0),
        p99_latency=max((r.latency_ms for r in ok), default=0),
        max_latency=max((r.latency_ms for r in ok), default=0),
        window_metrics=windows,
        requests=list(requests),
        degradation_points=points,
        capacity=capacity,
    )


def _degraded():
    return _results([
        _request(0, 100, 5), _request(500, 100, 5),
        _request(1000, 100, 10), _request(1500, 100, 10),
        _request(2000, 160, 15), _request(2500, 160, 15),
    ])


class TestFormatReport:
    def test_sections_in_order(self):
        report = format_report(_degraded())
        order = [
            report.index("TEST CONFIGURATION:"),
            report.index("OVERALL METRICS:"),
            report.index("PERFORMANCE DEGRADATION:"),
            report.index("CAPACITY RECOMMENDATIONS:"),
        ]
        assert order == sorted(order)

    def test_configuration_summary(self):
        report = format_report(_degraded())
        assert "Pattern: stress" in report
        assert "Peak Users: 20" in report
        assert "Duration: 30s" in report
        assert "Scenarios: echo, search" in report

    def test_degradation_details(self):
        report = format_report(_degraded())
        assert "1. LATENCY" in report
        assert "At 15 concurrent users" in report
        assert "Change: +60.0%" in report
        assert "Max Concurrent Users: 15" in report
        assert "Recommended Peak Capacity: 12" in report
        assert "Safety Margin: 20%" in report
        assert "NETWORK: Network latency increases under load" in report
        assert "Confidence: 70%" in report

    def test_clean_run_pass_line(self):
        report = format_report(_results([_request(0, 100, 5), _request(1000, 100, 5)]))
        assert "No performance degradation detected" in report
        assert "PERFORMANCE DEGRADATION:" not in report
        assert "1. System handled peak load without degradation" in report
        assert "Identified Bottlenecks" not in report

    def test_overall_metrics(self):
        report = format_report(_results([_request(0, 100, 5), _request(10, 50, 5, success=False)]))
        assert "Total Requests: 2" in report
        assert "Successful: 1 (50.0%)" in report
        assert "Failed: 1 (50.0%)" in report
        assert "Avg Latency: 100.00ms" in report

    def test_empty_run(self):
        report = format_report(_results([]))
        assert "Total Requests: 0" in report
        assert "Successful: 0 (0.0%)" in report


class TestSerialization:
    def test_json_is_plain_data(self):
        parsed = json.loads(results_to_json(_degraded()))
        assert parsed["total_requests"] == 6
        assert parsed["degradation_points"][0]["metric"] == "latency"
        assert parsed["capacity"]["bottlenecks"][0]["type"] == "network"
        assert parsed["config"]["scenarios"][1] == {
            "name": "search", "payload": "find", "weight": 2, "description": "",
        }

    def test_dict_matches_results(self):
        results = _degraded()
        d = results_to_dict(results)
        assert len(d["requests"]) == len(results.requests)
        assert len(d["window_metrics"]) == len(results.window_metrics)

    def test_write_and_reload_requests(self):
        results = _degraded()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "nested", "results.json")
            write_results(results, path)
            requests = load_requests(path)
        assert requests == results.requests


class TestLoadRequests:
    def test_fixture(self):
        requests = load_requests(os.path.join(FIXTURES_DIR, "degraded-results.json"))
        assert len(requests) == 6
        assert requests[-1].latency_ms == 160
        assert requests[-1].concurrent_users == 15

    def test_bare_list(self):
        with tempfile.NamedTemporaryFile(suffix=".json", mode="w", delete=False) as f:
            json.dump([{"scenario": "a", "start_time": 1, "end_time": 3,
                        "latency_ms": 2, "success": False, "error": "x"}], f)
            f.flush()
            try:
                (request,) = load_requests(f.name)
            finally:
                os.unlink(f.name)
        assert request.success is False
        assert request.error == "x"
        assert request.concurrent_users == 0

    def test_missing_file(self):
        with pytest.raises(ResultsParseError, match="not found"):
            load_requests("/nonexistent/results.json")

    def test_invalid_json(self):
        with tempfile.NamedTemporaryFile(suffix=".json", mode="w", delete=False) as f:
            f.write("{bad}")
            f.flush()
            try:
                with pytest.raises(ResultsParseError, match="parse"):
                    load_requests(f.name)
            finally:
                os.unlink(f.name)

    def test_missing_fields(self):
        with tempfile.NamedTemporaryFile(suffix=".json", mode="w", delete=False) as f:
            json.dump({"requests": [{"scenario": "a"}]}, f)
            f.flush()
            try:
                with pytest.raises(ResultsParseError, match=r"requests\[0\]"):
                    load_requests(f.name)
            finally:
                os.unlink(f.name)

    def test_wrong_shape(self):
        with tempfile.NamedTemporaryFile(suffix=".json", mode="w", delete=False) as f:
            json.dump({"rows": []}, f)
            f.flush()
            try:
                with pytest.raises(ResultsParseError, match="requests"):
                    load_requests(f.name)
            finally:
                os.unlink(f.name)
