"""Load and validate load test definitions (YAML or JSON)."""

import json
import os
from typing import Any, List, Optional

import yaml

from loadprobe.models import (
    DegradationThresholds,
    LoadPatternConfig,
    LoadTestConfig,
    ScenarioTemplate,
)
from loadprobe.patterns import pattern_errors
from loadprobe.targets import HttpTarget

_NUMBER = (int, float)
_PATTERN_TUNABLES = (
    "ramp_up_ms",
    "spike_interval_ms",
    "wave_amplitude",
    "wave_period_ms",
    "stress_step_users",
    "stress_step_duration_ms",
)


class ConfigValidationError(Exception):
    """Raised when a load test definition fails validation."""


def load_config(path: str) -> LoadTestConfig:
    """Load a load test definition from a YAML or JSON file.

    Args:
        path: Path to the definition file.

    Returns:
        A validated LoadTestConfig targeting an HttpTarget.

    Raises:
        ConfigValidationError: If the file is missing, unreadable, or invalid.
    """
    if not os.path.isfile(path):
        raise ConfigValidationError(f"config file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    try:
        with open(path, "r") as f:
            if ext in (".yaml", ".yml"):
                raw = yaml.safe_load(f)
            elif ext == ".json":
                raw = json.load(f)
            else:
                raise ConfigValidationError(
                    f"unsupported file extension: {ext} (expected .yaml, .yml, or .json)"
                )
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigValidationError(f"failed to parse {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigValidationError("config must be a mapping/object at the top level")

    return build_config(raw)


def build_config(raw: dict) -> LoadTestConfig:
    """Construct and validate a LoadTestConfig from a raw dict."""
    errors: List[str] = []

    target_raw = raw.get("target")
    if not isinstance(target_raw, dict):
        errors.append("'target' is required and must be a mapping")
        target = None
    else:
        target = _parse_target(target_raw, errors)

    scenarios = _parse_scenarios(raw.get("scenarios"), errors)

    pattern_raw = raw.get("load_pattern")
    if not isinstance(pattern_raw, dict):
        errors.append("'load_pattern' is required and must be a mapping")
        pattern = None
    else:
        pattern = _parse_pattern(pattern_raw, errors)

    timeout_ms = _number(raw, "timeout_ms", 30000, errors)
    think_time_ms = _number(raw, "think_time_ms", 1000, errors)
    window_size_ms = _number(raw, "window_size_ms", 10000, errors)
    safety_margin = _number(raw, "safety_margin", 0.2, errors)
    thresholds = _parse_thresholds(raw.get("thresholds", {}), errors)

    if timeout_ms <= 0:
        errors.append("'timeout_ms' must be positive")
    if think_time_ms < 0:
        errors.append("'think_time_ms' must be >= 0")
    if window_size_ms <= 0:
        errors.append("'window_size_ms' must be positive")
    if not 0 <= safety_margin < 1:
        errors.append("'safety_margin' must be in [0, 1)")

    if errors:
        raise ConfigValidationError(
            "config validation failed:\n  - " + "\n  - ".join(errors)
        )

    return LoadTestConfig(
        target=target,
        scenarios=scenarios,
        load_pattern=pattern,
        timeout_ms=timeout_ms,
        think_time_ms=think_time_ms,
        window_size_ms=window_size_ms,
        thresholds=thresholds,
        safety_margin=safety_margin,
    )


def _number(raw: dict, key: str, default: float, errors: List[str]) -> float:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, _NUMBER):
        errors.append(f"'{key}' must be a number")
        return default
    return value


def _parse_target(raw: dict, errors: List[str]) -> Optional[HttpTarget]:
    url = raw.get("url")
    if not url or not isinstance(url, str):
        errors.append("'target.url' is required and must be a non-empty string")
        return None
    method = raw.get("method", "POST")
    if not isinstance(method, str):
        errors.append("'target.method' must be a string")
        method = "POST"
    headers = raw.get("headers", {})
    if not isinstance(headers, dict):
        errors.append("'target.headers' must be a mapping")
        headers = {}
    return HttpTarget(url, method=method, headers={k: str(v) for k, v in headers.items()})


def _parse_scenarios(raw: Any, errors: List[str]) -> List[ScenarioTemplate]:
    if not isinstance(raw, list) or not raw:
        errors.append("'scenarios' is required and must be a non-empty list")
        return []
    scenarios = []
    for i, sc in enumerate(raw):
        if not isinstance(sc, dict):
            errors.append(f"scenarios[{i}] must be a mapping")
            continue
        name = sc.get("name")
        if not name or not isinstance(name, str):
            errors.append(f"scenarios[{i}].name is required")
            continue
        weight = sc.get("weight", 1)
        if isinstance(weight, bool) or not isinstance(weight, _NUMBER) or weight <= 0:
            errors.append(f"scenarios[{i}].weight must be a positive number")
            weight = 1
        scenarios.append(ScenarioTemplate(
            name=name,
            payload=sc.get("payload"),
            weight=weight,
            description=str(sc.get("description", "")),
        ))
    return scenarios


def _parse_pattern(raw: dict, errors: List[str]) -> Optional[LoadPatternConfig]:
    before = len(errors)
    kind = raw.get("pattern")
    if not isinstance(kind, str):
        errors.append("'load_pattern.pattern' is required and must be a string")
    peak = raw.get("peak_users")
    if isinstance(peak, bool) or not isinstance(peak, int):
        errors.append("'load_pattern.peak_users' is required and must be an integer")
    duration = raw.get("duration_ms")
    if isinstance(duration, bool) or not isinstance(duration, _NUMBER):
        errors.append("'load_pattern.duration_ms' is required and must be a number")
    initial = raw.get("initial_users", 1)
    if isinstance(initial, bool) or not isinstance(initial, int):
        errors.append("'load_pattern.initial_users' must be an integer")

    tunables = {}
    for key in _PATTERN_TUNABLES:
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, _NUMBER):
            errors.append(f"'load_pattern.{key}' must be a number")
            continue
        tunables[key] = value

    if len(errors) > before:
        return None

    pattern = LoadPatternConfig(
        pattern=kind,
        peak_users=peak,
        duration_ms=duration,
        initial_users=initial,
        **tunables,
    )
    errors.extend(f"load_pattern: {e}" for e in pattern_errors(pattern))
    return pattern


def _parse_thresholds(raw: Any, errors: List[str]) -> DegradationThresholds:
    if not isinstance(raw, dict):
        errors.append("'thresholds' must be a mapping")
        return DegradationThresholds()
    defaults = DegradationThresholds()
    values = {}
    for key in ("latency_factor", "throughput_factor", "max_error_rate", "error_rate_floor"):
        value = raw.get(key, getattr(defaults, key))
        if isinstance(value, bool) or not isinstance(value, _NUMBER) or value <= 0:
            errors.append(f"'thresholds.{key}' must be a positive number")
            continue
        values[key] = float(value)
    return DegradationThresholds(**values)
