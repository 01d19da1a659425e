"""Data models for load patterns, request results, and degradation analysis."""

import dataclasses
import math
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional


PATTERNS = ("ramp-up", "sustained", "spike", "wave", "stress")
METRICS = ("latency", "throughput", "error_rate")
BOTTLENECK_TYPES = ("cpu", "memory", "network", "provider", "unknown")


@dataclass(frozen=True)
class ScenarioTemplate:
    name: str
    payload: Any
    weight: float = 1
    description: str = ""


@dataclass
class LoadPatternConfig:
    pattern: str  # "ramp-up", "sustained", "spike", "wave", "stress"
    peak_users: int
    duration_ms: int
    initial_users: int = 1
    ramp_up_ms: Optional[float] = None
    spike_interval_ms: Optional[float] = None
    wave_amplitude: Optional[float] = None
    wave_period_ms: Optional[float] = None
    stress_step_users: Optional[int] = None
    stress_step_duration_ms: Optional[float] = None

    def resolved(self) -> "LoadPatternConfig":
        """Return a copy with every pattern tunable filled in."""
        return dataclasses.replace(
            self,
            ramp_up_ms=(
                self.ramp_up_ms if self.ramp_up_ms is not None
                else self.duration_ms * 0.3
            ),
            spike_interval_ms=(
                self.spike_interval_ms if self.spike_interval_ms is not None
                else 60000
            ),
            wave_amplitude=(
                self.wave_amplitude if self.wave_amplitude is not None
                else self.peak_users * 0.3
            ),
            wave_period_ms=(
                self.wave_period_ms if self.wave_period_ms is not None
                else 120000
            ),
            stress_step_users=(
                self.stress_step_users if self.stress_step_users is not None
                else math.ceil(self.peak_users / 10)
            ),
            stress_step_duration_ms=(
                self.stress_step_duration_ms
                if self.stress_step_duration_ms is not None
                else 30000
            ),
        )


@dataclass(frozen=True)
class DegradationThresholds:
    latency_factor: float = 1.5  # window avg latency > baseline * factor
    throughput_factor: float = 0.7  # window throughput < baseline * factor
    max_error_rate: float = 0.05  # absolute
    error_rate_floor: float = 0.01  # denominator floor for error-rate change


@dataclass(frozen=True)
class RequestResult:
    scenario: str
    start_time: float  # epoch ms
    end_time: float
    latency_ms: float
    success: bool
    concurrent_users: int
    error: Optional[str] = None
    response_size: Optional[int] = None


@dataclass
class LoadTestProgress:
    elapsed_ms: float
    current_users: int
    completed_requests: int
    failed_requests: int
    current_throughput: float
    current_latency: float


@dataclass
class TimeWindowMetrics:
    start_time: float
    end_time: float
    concurrent_users: int
    requests: int
    successful: int
    failed: int
    avg_latency: float
    min_latency: float
    max_latency: float
    p95_latency: float
    throughput: float  # successful req/s
    error_rate: float  # 0-1


@dataclass
class DegradationPoint:
    concurrent_users: int
    timestamp: float
    metric: str  # "latency", "throughput", "error_rate"
    baseline: float
    degraded: float
    degradation_percent: float

    def __post_init__(self):
        if self.metric not in METRICS:
            raise ValueError(f"unknown metric: {self.metric!r}")


@dataclass
class Bottleneck:
    type: str  # "cpu", "memory", "network", "provider", "unknown"
    description: str
    confidence: float
    evidence: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.type not in BOTTLENECK_TYPES:
            raise ValueError(f"unknown bottleneck type: {self.type!r}")


@dataclass
class CapacityRecommendations:
    max_concurrent_users: int
    recommended_peak_capacity: int
    safety_margin: float  # percent
    bottlenecks: List[Bottleneck] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class RunSettings:
    """JSON-safe echo of the configuration a run was started with."""

    scenarios: List[ScenarioTemplate]
    load_pattern: LoadPatternConfig
    timeout_ms: float
    think_time_ms: float
    window_size_ms: float
    thresholds: DegradationThresholds
    safety_margin: float


@dataclass
class LoadTestConfig:
    target: Any  # anything with submit(payload) -> async iterator
    scenarios: List[ScenarioTemplate]
    load_pattern: LoadPatternConfig
    timeout_ms: float = 30000
    think_time_ms: float = 1000
    window_size_ms: float = 10000
    thresholds: DegradationThresholds = field(default_factory=DegradationThresholds)
    safety_margin: float = 0.2
    tick_interval_ms: float = 1000
    progress_every: int = 10
    on_progress: Optional[Callable[[LoadTestProgress], None]] = None
    on_request: Optional[Callable[[RequestResult], None]] = None

    def settings(self) -> RunSettings:
        return RunSettings(
            scenarios=list(self.scenarios),
            load_pattern=dataclasses.replace(self.load_pattern),
            timeout_ms=self.timeout_ms,
            think_time_ms=self.think_time_ms,
            window_size_ms=self.window_size_ms,
            thresholds=self.thresholds,
            safety_margin=self.safety_margin,
        )


@dataclass
class LoadTestResults:
    config: RunSettings
    start_time: float
    end_time: float
    total_duration_ms: float
    total_requests: int
    successful_requests: int
    failed_requests: int
    error_rate: float
    overall_throughput: float
    avg_latency: float
    p95_latency: float
    p99_latency: float
    max_latency: float
    window_metrics: List[TimeWindowMetrics] = field(default_factory=list)
    requests: List[RequestResult] = field(default_factory=list)
    degradation_points: List[DegradationPoint] = field(default_factory=list)
    capacity: Optional[CapacityRecommendations] = None
