"""Detect performance degradation relative to the first (baseline) window."""

import logging
from typing import List, Optional, Sequence

from loadprobe.models import DegradationPoint, DegradationThresholds, TimeWindowMetrics

logger = logging.getLogger(__name__)


def detect_degradation(
    windows: Sequence[TimeWindowMetrics],
    thresholds: Optional[DegradationThresholds] = None,
) -> List[DegradationPoint]:
    """Compare every window after the first against the baseline window.

    Three independent checks run per window, each against the same
    baseline:

    - latency: ``avg_latency > baseline.avg_latency * latency_factor``
    - throughput: ``throughput < baseline.throughput * throughput_factor``
    - error rate: ``error_rate > max_error_rate`` (absolute)

    A window can therefore yield zero to three points. The baseline window
    never yields a point.

    Args:
        windows: Window metrics in chronological order.
        thresholds: Detection thresholds; defaults when omitted.

    Returns:
        Degradation points in window order.
    """
    thresholds = thresholds or DegradationThresholds()
    if len(windows) < 2:
        return []

    baseline = windows[0]
    points = []

    for window in windows[1:]:
        # no successful baseline requests means there is no latency reference
        if (
            baseline.avg_latency > 0
            and window.avg_latency > baseline.avg_latency * thresholds.latency_factor
        ):
            points.append(DegradationPoint(
                concurrent_users=window.concurrent_users,
                timestamp=window.start_time,
                metric="latency",
                baseline=baseline.avg_latency,
                degraded=window.avg_latency,
                degradation_percent=(
                    (window.avg_latency - baseline.avg_latency) * 100
                    / baseline.avg_latency
                ),
            ))

        if window.throughput < baseline.throughput * thresholds.throughput_factor:
            points.append(DegradationPoint(
                concurrent_users=window.concurrent_users,
                timestamp=window.start_time,
                metric="throughput",
                baseline=baseline.throughput,
                degraded=window.throughput,
                degradation_percent=(
                    (baseline.throughput - window.throughput) * 100
                    / baseline.throughput
                ),
            ))

        if window.error_rate > thresholds.max_error_rate:
            points.append(DegradationPoint(
                concurrent_users=window.concurrent_users,
                timestamp=window.start_time,
                metric="error_rate",
                baseline=baseline.error_rate,
                degraded=window.error_rate,
                degradation_percent=(
                    (window.error_rate - baseline.error_rate) * 100
                    / max(thresholds.error_rate_floor, baseline.error_rate)
                ),
            ))

    if points:
        logger.info(
            "detected %d degradation point(s) across %d window(s)",
            len(points), len(windows),
        )
    return points
