"""Capacity planning from degradation points, and the full analysis pipeline."""

import math
from typing import List, Optional, Sequence, Tuple

from loadprobe.bottlenecks import identify_bottlenecks
from loadprobe.degradation import detect_degradation
from loadprobe.models import (
    CapacityRecommendations,
    DegradationPoint,
    DegradationThresholds,
    RequestResult,
    TimeWindowMetrics,
)
from loadprobe.windows import DEFAULT_WINDOW_MS, analyze_time_windows

DEFAULT_SAFETY_MARGIN = 0.2

_REMEDIATIONS = {
    "provider": "Consider rate limiting or scaling target capacity",
    "network": "Optimize network configuration or use connection pooling",
    "cpu": "Scale processing resources or optimize request handling",
}


def generate_capacity_recommendations(
    points: Sequence[DegradationPoint],
    peak_users: int,
    safety_margin: float = DEFAULT_SAFETY_MARGIN,
) -> CapacityRecommendations:
    """Derive the safe concurrency ceiling and remediation advice.

    Args:
        points: Detected degradation points.
        peak_users: Configured peak users, used when nothing degraded.
        safety_margin: Fraction subtracted from the ceiling (0.2 = 20%).

    Returns:
        CapacityRecommendations with bottlenecks and free-text advice.
    """
    if points:
        max_users = min(p.concurrent_users for p in points)
    else:
        max_users = peak_users

    recommended = math.floor(max_users * (1 - safety_margin))
    bottlenecks = identify_bottlenecks(points)

    recommendations = []
    if not points:
        recommendations.append("System handled peak load without degradation")
        recommendations.append("Consider testing with higher load to find limits")
    else:
        recommendations.append(
            f"Limit concurrent users to {recommended} for stable performance"
        )
        seen = set()
        for bottleneck in bottlenecks:
            if bottleneck.type in seen or bottleneck.type not in _REMEDIATIONS:
                continue
            seen.add(bottleneck.type)
            recommendations.append(_REMEDIATIONS[bottleneck.type])

    return CapacityRecommendations(
        max_concurrent_users=max_users,
        recommended_peak_capacity=recommended,
        safety_margin=round(safety_margin * 100, 6),
        bottlenecks=bottlenecks,
        recommendations=recommendations,
    )


def analyze_results(
    requests: Sequence[RequestResult],
    peak_users: int,
    window_size_ms: float = DEFAULT_WINDOW_MS,
    thresholds: Optional[DegradationThresholds] = None,
    safety_margin: float = DEFAULT_SAFETY_MARGIN,
) -> Tuple[List[TimeWindowMetrics], List[DegradationPoint], CapacityRecommendations]:
    """Run window aggregation, degradation detection and capacity planning."""
    windows = analyze_time_windows(requests, window_size_ms)
    points = detect_degradation(windows, thresholds)
    capacity = generate_capacity_recommendations(points, peak_users, safety_margin)
    return windows, points, capacity
