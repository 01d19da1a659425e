"""Bucket request results into fixed-size time windows and summarize them."""

import math
from typing import Dict, List, Sequence

from loadprobe.models import RequestResult, TimeWindowMetrics

DEFAULT_WINDOW_MS = 10000


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile; 0 for an empty sequence.

    The input does not need to be sorted.
    """
    if not values:
        return 0
    ordered = sorted(values)
    index = math.ceil(p / 100 * len(ordered)) - 1
    index = min(len(ordered) - 1, max(0, index))
    return ordered[index]


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0


def analyze_time_windows(
    requests: Sequence[RequestResult],
    window_size_ms: float = DEFAULT_WINDOW_MS,
) -> List[TimeWindowMetrics]:
    """Partition requests by start time into half-open windows.

    Windows start at the earliest request start time and are
    ``window_size_ms`` wide. Each request lands in exactly one window;
    windows with no requests are omitted. Latency statistics cover
    successful requests only.

    Args:
        requests: Results in any order.
        window_size_ms: Window width in milliseconds.

    Returns:
        Window metrics in chronological order.

    Raises:
        ValueError: If ``window_size_ms`` is not positive.
    """
    if window_size_ms <= 0:
        raise ValueError("window_size_ms must be positive")
    if not requests:
        return []

    origin = min(r.start_time for r in requests)
    buckets: Dict[int, List[RequestResult]] = {}
    for r in requests:
        index = int((r.start_time - origin) // window_size_ms)
        buckets.setdefault(index, []).append(r)

    windows = []
    for index in sorted(buckets):
        bucket = buckets[index]
        start = origin + index * window_size_ms
        successful = [r for r in bucket if r.success]
        failed = len(bucket) - len(successful)
        latencies = sorted(r.latency_ms for r in successful)

        windows.append(TimeWindowMetrics(
            start_time=start,
            end_time=start + window_size_ms,
            concurrent_users=max(r.concurrent_users for r in bucket),
            requests=len(bucket),
            successful=len(successful),
            failed=failed,
            avg_latency=mean(latencies),
            min_latency=latencies[0] if latencies else 0,
            max_latency=latencies[-1] if latencies else 0,
            p95_latency=percentile(latencies, 95),
            throughput=len(successful) / (window_size_ms / 1000),
            error_rate=failed / len(bucket),
        ))
    return windows
