"""Concurrency controller: drive virtual users along a load shape.

The controller owns one test run. A periodic tick recomputes the target
user count from the load pattern and spawns virtual users until the
active pool reaches it. Virtual users shrink the pool themselves: each one
checks the stop flag and the current target at the top of its loop and
retires when the pool is over target. No in-flight request is cancelled to
shrink the pool.

Lifecycle: idle -> running -> stopping -> stopped. The controller joins
every virtual user before reporting ``stopped``, so no result can arrive
after the analysis starts.
"""

import asyncio
import enum
import inspect
import logging
import random
import time
from typing import List, Optional, Set

from loadprobe.capacity import analyze_results
from loadprobe.executor import execute_request, now_ms
from loadprobe.models import LoadTestConfig, LoadTestProgress, LoadTestResults, RequestResult
from loadprobe.patterns import pattern_errors, users_at
from loadprobe.scenarios import scenario_errors, select_scenario
from loadprobe.windows import mean, percentile

logger = logging.getLogger(__name__)

PROGRESS_SAMPLE = 100  # recent results used for rolling progress stats
PROGRESS_WINDOW_MS = 10000


class LoadTestConfigError(ValueError):
    """Raised when a load test is configured incorrectly."""


class ControllerState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


def validate_config(config: LoadTestConfig) -> None:
    """Reject a configuration before any load is generated.

    Raises:
        LoadTestConfigError: Listing every problem found.
    """
    errors: List[str] = []

    if config.target is None:
        errors.append("a target is required")
    elif not callable(getattr(config.target, "submit", None)):
        errors.append("target must provide a submit(payload) method")

    errors.extend(scenario_errors(list(config.scenarios or [])))

    if config.load_pattern is None:
        errors.append("a load pattern is required")
    else:
        errors.extend(pattern_errors(config.load_pattern))

    if config.timeout_ms <= 0:
        errors.append("'timeout_ms' must be positive")
    if config.think_time_ms < 0:
        errors.append("'think_time_ms' must be >= 0")
    if config.window_size_ms <= 0:
        errors.append("'window_size_ms' must be positive")
    if config.tick_interval_ms <= 0:
        errors.append("'tick_interval_ms' must be positive")
    if config.progress_every < 1:
        errors.append("'progress_every' must be >= 1")
    if not 0 <= config.safety_margin < 1:
        errors.append("'safety_margin' must be in [0, 1)")

    if errors:
        raise LoadTestConfigError(
            "invalid load test configuration:\n  - " + "\n  - ".join(errors)
        )


class LoadTestController:
    """Runs a single load test and produces its results."""

    def __init__(self, config: LoadTestConfig, rng=random):
        validate_config(config)
        self.config = config
        self._rng = rng
        self._state = ControllerState.IDLE
        self._results: List[RequestResult] = []
        self._active: Set[asyncio.Task] = set()
        self._stop_requested = False
        self._started_at = 0.0  # monotonic seconds
        self._start_ms = 0.0  # epoch ms
        self._target_users = 0
        self._completed = 0
        self._failed = 0
        self._spawned = 0

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def active_users(self) -> int:
        return len(self._active)

    @property
    def results(self) -> List[RequestResult]:
        return list(self._results)

    def stop(self) -> None:
        """Request an early, cooperative stop. In-flight requests finish."""
        if not self._stop_requested:
            logger.info("stop requested (state: %s)", self._state.value)
        self._stop_requested = True

    async def run(self) -> LoadTestResults:
        if self._state is not ControllerState.IDLE:
            raise RuntimeError("a LoadTestController can only be run once")

        pattern = self.config.load_pattern
        self._started_at = time.monotonic()
        self._start_ms = now_ms()
        self._set_state(ControllerState.RUNNING)

        try:
            while not self._stop_requested:
                elapsed = self._elapsed_ms()
                if elapsed >= pattern.duration_ms:
                    break
                self._tick(elapsed)
                remaining = pattern.duration_ms - elapsed
                await asyncio.sleep(min(self.config.tick_interval_ms, remaining) / 1000)
        except asyncio.CancelledError:
            for task in self._active:
                task.cancel()
            raise
        finally:
            self._stop_requested = True
            self._set_state(ControllerState.STOPPING)
            await self._drain()
            self._set_state(ControllerState.STOPPED)

        return self._build_results(now_ms())

    # -- control loop ---------------------------------------------------------

    def _tick(self, elapsed_ms: float) -> None:
        target = users_at(self.config.load_pattern, elapsed_ms)
        if target != self._target_users:
            logger.debug(
                "target users %d -> %d at %.0f ms (active: %d)",
                self._target_users, target, elapsed_ms, len(self._active),
            )
        self._target_users = target

        while len(self._active) < target:
            self._spawned += 1
            task = asyncio.ensure_future(self._virtual_user(self._spawned))
            self._active.add(task)

    async def _drain(self) -> None:
        pending = list(self._active)
        if not pending:
            return
        logger.info("waiting for %d virtual user(s) to finish", len(pending))
        outcomes = await asyncio.gather(*pending, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                logger.error("virtual user ended with an error: %r", outcome)

    async def _virtual_user(self, user_id: int) -> None:
        task = asyncio.current_task()
        config = self.config
        try:
            while not self._stop_requested:
                elapsed = self._elapsed_ms()
                target = users_at(config.load_pattern, elapsed)
                if len(self._active) > target:
                    logger.debug("virtual user %d retiring (target %d)", user_id, target)
                    break

                scenario = select_scenario(config.scenarios, self._rng)
                result = await execute_request(
                    config.target, scenario, config.timeout_ms, target
                )
                await self._record(result, target)
                await asyncio.sleep(config.think_time_ms / 1000)
        finally:
            self._active.discard(task)

    async def _record(self, result: RequestResult, current_users: int) -> None:
        self._results.append(result)
        self._completed += 1
        if not result.success:
            self._failed += 1

        if self.config.on_request is not None:
            await self._notify("on_request", self.config.on_request, result)

        if (
            self.config.on_progress is not None
            and self._completed % self.config.progress_every == 0
        ):
            await self._notify(
                "on_progress", self.config.on_progress, self._progress(current_users)
            )

    async def _notify(self, name: str, callback, payload) -> None:
        try:
            outcome = callback(payload)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("%s callback failed", name)

    def _progress(self, current_users: int) -> LoadTestProgress:
        elapsed = self._elapsed_ms()
        recent = self._results[-PROGRESS_SAMPLE:]
        latencies = [r.latency_ms for r in recent if r.success]
        span = min(elapsed, PROGRESS_WINDOW_MS)
        return LoadTestProgress(
            elapsed_ms=elapsed,
            current_users=current_users,
            completed_requests=self._completed,
            failed_requests=self._failed,
            current_throughput=len(recent) / span * 1000 if span > 0 else 0,
            current_latency=mean(latencies),
        )

    # -- results --------------------------------------------------------------

    def _build_results(self, end_ms: float) -> LoadTestResults:
        config = self.config
        requests = list(self._results)
        latencies = sorted(r.latency_ms for r in requests if r.success)
        total = len(requests)
        failed = total - len(latencies)
        duration = end_ms - self._start_ms

        windows, points, capacity = analyze_results(
            requests,
            config.load_pattern.peak_users,
            window_size_ms=config.window_size_ms,
            thresholds=config.thresholds,
            safety_margin=config.safety_margin,
        )

        logger.info(
            "load test finished: %d request(s), %d failed, %d degradation point(s)",
            total, failed, len(points),
        )

        return LoadTestResults(
            config=config.settings(),
            start_time=self._start_ms,
            end_time=end_ms,
            total_duration_ms=duration,
            total_requests=total,
            successful_requests=len(latencies),
            failed_requests=failed,
            error_rate=failed / total if total else 0,
            overall_throughput=total / duration * 1000 if duration > 0 else 0,
            avg_latency=mean(latencies),
            p95_latency=percentile(latencies, 95),
            p99_latency=percentile(latencies, 99),
            max_latency=latencies[-1] if latencies else 0,
            window_metrics=windows,
            requests=requests,
            degradation_points=points,
            capacity=capacity,
        )

    def _elapsed_ms(self) -> float:
        return (time.monotonic() - self._started_at) * 1000

    def _set_state(self, state: ControllerState) -> None:
        if state is not self._state:
            logger.info("load test %s -> %s", self._state.value, state.value)
        self._state = state


async def run_load_test(config: LoadTestConfig, rng=random) -> LoadTestResults:
    """Validate ``config``, run the load test to completion and analyze it."""
    return await LoadTestController(config, rng).run()
