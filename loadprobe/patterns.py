"""Load shape functions: map elapsed test time to a target user count."""

import math
from typing import List, Tuple

from loadprobe.models import PATTERNS, LoadPatternConfig


def users_at(pattern: LoadPatternConfig, elapsed_ms: float) -> int:
    """Return the target number of concurrent users at a point in the test.

    Args:
        pattern: Load pattern configuration. Unset tunables fall back to
            the defaults from ``LoadPatternConfig.resolved``.
        elapsed_ms: Milliseconds since the test started.

    Returns:
        A non-negative integer user count.

    Raises:
        ValueError: If the pattern kind is unknown.
    """
    cfg = pattern.resolved()
    elapsed = max(0.0, float(elapsed_ms))
    initial = cfg.initial_users
    peak = cfg.peak_users

    if cfg.pattern == "ramp-up":
        if elapsed < cfg.ramp_up_ms:
            users = math.floor(initial + (peak - initial) * elapsed / cfg.ramp_up_ms)
        else:
            users = peak

    elif cfg.pattern == "sustained":
        users = peak

    elif cfg.pattern == "spike":
        # odd interval index = spike
        in_spike = math.floor(elapsed / cfg.spike_interval_ms) % 2 == 1
        users = peak if in_spike else initial

    elif cfg.pattern == "wave":
        midpoint = (peak + initial) / 2
        phase = (elapsed % cfg.wave_period_ms) / cfg.wave_period_ms
        offset = math.sin(phase * 2 * math.pi) * cfg.wave_amplitude
        users = min(peak, max(initial, math.floor(midpoint + offset)))

    elif cfg.pattern == "stress":
        step = math.floor(elapsed / cfg.stress_step_duration_ms)
        users = min(peak, initial + step * cfg.stress_step_users)

    else:
        raise ValueError(f"unknown load pattern: {cfg.pattern!r}")

    return max(0, int(users))


def pattern_errors(pattern: LoadPatternConfig) -> List[str]:
    """Collect validation problems for a load pattern (empty when valid)."""
    errors = []
    if pattern.pattern not in PATTERNS:
        errors.append(
            f"'pattern' must be one of {', '.join(PATTERNS)} (got {pattern.pattern!r})"
        )
    if pattern.peak_users < 0:
        errors.append("'peak_users' must be >= 0")
    if pattern.initial_users < 0:
        errors.append("'initial_users' must be >= 0")
    if pattern.duration_ms <= 0:
        errors.append("'duration_ms' must be positive")

    cfg = pattern.resolved()
    for name in ("spike_interval_ms", "wave_period_ms", "stress_step_duration_ms"):
        if getattr(cfg, name) <= 0:
            errors.append(f"'{name}' must be positive")
    if cfg.ramp_up_ms < 0:
        errors.append("'ramp_up_ms' must be >= 0")
    if cfg.stress_step_users < 0:
        errors.append("'stress_step_users' must be >= 0")
    return errors


def target_curve(pattern: LoadPatternConfig, step_ms: float = 1000) -> List[Tuple[float, int]]:
    """Sample the target user count across the whole test duration."""
    if step_ms <= 0:
        raise ValueError("step_ms must be positive")
    points = []
    t = 0.0
    while t <= pattern.duration_ms:
        points.append((t, users_at(pattern, t)))
        t += step_ms
    return points
