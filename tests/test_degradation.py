"""Tests for degradation detection against the baseline window."""

import pytest

from loadprobe.degradation import detect_degradation
from loadprobe.models import DegradationThresholds, TimeWindowMetrics


def _window(index, avg_latency=100.0, throughput=10.0, error_rate=0.0, users=5):
    start = index * 10000
    return TimeWindowMetrics(
        start_time=start,
        end_time=start + 10000,
        concurrent_users=users,
        requests=100,
        successful=100,
        failed=0,
        avg_latency=avg_latency,
        min_latency=avg_latency,
        max_latency=avg_latency,
        p95_latency=avg_latency,
        throughput=throughput,
        error_rate=error_rate,
    )


class TestDetectDegradation:
    def test_latency_increase(self):
        windows = [
            _window(0, avg_latency=100),
            _window(1, avg_latency=100),
            _window(2, avg_latency=160, users=12),
        ]
        points = detect_degradation(windows)
        assert len(points) == 1
        point = points[0]
        assert point.metric == "latency"
        assert point.timestamp == windows[2].start_time
        assert point.concurrent_users == 12
        assert point.baseline == 100
        assert point.degraded == 160
        assert point.degradation_percent == pytest.approx(60)

    def test_no_points_for_fewer_than_two_windows(self):
        assert detect_degradation([]) == []
        assert detect_degradation([_window(0, error_rate=0.9)]) == []

    def test_baseline_window_never_flagged(self):
        windows = [_window(0, error_rate=0.5), _window(1, error_rate=0.0)]
        assert detect_degradation(windows) == []

    def test_threshold_is_strict(self):
        windows = [_window(0, avg_latency=100), _window(1, avg_latency=150)]
        assert detect_degradation(windows) == []

    def test_throughput_drop(self):
        windows = [_window(0, throughput=10), _window(1, throughput=6)]
        (point,) = detect_degradation(windows)
        assert point.metric == "throughput"
        assert point.degradation_percent == pytest.approx(40)

    def test_error_rate_is_absolute(self):
        windows = [_window(0, error_rate=0.0), _window(1, error_rate=0.1)]
        (point,) = detect_degradation(windows)
        assert point.metric == "error_rate"
        assert point.baseline == 0
        assert point.degraded == pytest.approx(0.1)
        # baseline floored to 0.01
        assert point.degradation_percent == pytest.approx(1000)

    def test_error_rate_relative_to_nonzero_baseline(self):
        windows = [_window(0, error_rate=0.04), _window(1, error_rate=0.08)]
        (point,) = detect_degradation(windows)
        assert point.degradation_percent == pytest.approx(100)

    def test_single_window_can_emit_all_three(self):
        windows = [
            _window(0),
            _window(1, avg_latency=400, throughput=2, error_rate=0.3),
        ]
        points = detect_degradation(windows)
        assert [p.metric for p in points] == ["latency", "throughput", "error_rate"]

    def test_baseline_is_fixed(self):
        windows = [
            _window(0, avg_latency=100),
            _window(1, avg_latency=200),
            _window(2, avg_latency=250),
        ]
        points = detect_degradation(windows)
        assert [p.baseline for p in points] == [100, 100]

    def test_zero_baseline_latency_skips_latency_check(self):
        windows = [_window(0, avg_latency=0, throughput=0), _window(1, avg_latency=80)]
        assert detect_degradation(windows) == []

    def test_custom_thresholds(self):
        windows = [_window(0, avg_latency=100), _window(1, avg_latency=130)]
        thresholds = DegradationThresholds(latency_factor=1.2)
        (point,) = detect_degradation(windows, thresholds)
        assert point.metric == "latency"
        assert point.degradation_percent == pytest.approx(30)
