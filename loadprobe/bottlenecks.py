"""Heuristic bottleneck classification from degradation points."""

from typing import List, Sequence

from loadprobe.models import Bottleneck, DegradationPoint


def identify_bottlenecks(points: Sequence[DegradationPoint]) -> List[Bottleneck]:
    """Map a degradation pattern to probable bottlenecks.

    Rules are evaluated in a fixed order (provider, network, cpu) and use
    the first point of each metric kind as evidence:

    - any error-rate degradation: provider, confidence 0.8
    - latency degradation without throughput degradation: network, 0.7
    - any throughput degradation: cpu, 0.75

    Args:
        points: Degradation points, in any order.

    Returns:
        Zero or more bottlenecks.
    """
    latency = [p for p in points if p.metric == "latency"]
    throughput = [p for p in points if p.metric == "throughput"]
    error_rate = [p for p in points if p.metric == "error_rate"]

    bottlenecks = []

    if error_rate:
        first = _earliest(error_rate)
        bottlenecks.append(Bottleneck(
            type="provider",
            description="Target experiencing errors under load",
            confidence=0.8,
            evidence=[
                f"Error rate increased to {first.degraded * 100:.1f}%",
                f"First error spike at {first.concurrent_users} concurrent users",
            ],
        ))

    if latency and not throughput:
        first = _earliest(latency)
        bottlenecks.append(Bottleneck(
            type="network",
            description="Network latency increases under load",
            confidence=0.7,
            evidence=[
                f"Latency increased by {first.degradation_percent:.0f}%",
                "Throughput remained stable",
            ],
        ))

    if throughput:
        first = _earliest(throughput)
        bottlenecks.append(Bottleneck(
            type="cpu",
            description="Processing capacity limit reached",
            confidence=0.75,
            evidence=[
                f"Throughput decreased by {first.degradation_percent:.0f}%",
                f"First degradation at {first.concurrent_users} concurrent users",
            ],
        ))

    return bottlenecks


def _earliest(points: List[DegradationPoint]) -> DegradationPoint:
    return min(points, key=lambda p: p.timestamp)
