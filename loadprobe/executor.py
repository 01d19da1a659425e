"""Execute a single request against a target with a timeout bound."""

import asyncio
import logging
import time

from loadprobe.models import RequestResult, ScenarioTemplate

logger = logging.getLogger(__name__)

TIMEOUT_ERROR = "Request timeout"


def now_ms() -> float:
    return time.time() * 1000


async def execute_request(
    target,
    scenario: ScenarioTemplate,
    timeout_ms: float,
    concurrent_users: int,
) -> RequestResult:
    """Run one scenario against the target and record the outcome.

    The target's response stream is consumed in its own task. If the
    timeout elapses first the task is cancelled and the failure carries
    ``TIMEOUT_ERROR``. A ``TimeoutError`` raised by the target itself keeps
    its own message. Exceptions raised by the target are recorded, not
    propagated, so the caller always gets a RequestResult.

    Args:
        target: Object exposing ``submit(payload)`` returning an async iterator.
        scenario: The scenario template to send.
        timeout_ms: Per-request timeout in milliseconds.
        concurrent_users: Concurrency tag stored on the result.

    Returns:
        A RequestResult for this attempt.
    """
    start = now_ms()
    response_size = 0

    async def consume():
        nonlocal response_size
        async for chunk in target.submit(scenario.payload):
            if isinstance(chunk, (str, bytes)):
                response_size += len(chunk)

    task = asyncio.ensure_future(consume())
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if not done:
        end = now_ms()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.debug("scenario %s timed out after %.0f ms", scenario.name, end - start)
        return RequestResult(
            scenario=scenario.name,
            start_time=start,
            end_time=end,
            latency_ms=end - start,
            success=False,
            concurrent_users=concurrent_users,
            error=TIMEOUT_ERROR,
        )

    try:
        task.result()
    except Exception as exc:
        end = now_ms()
        logger.debug("scenario %s failed: %r", scenario.name, exc)
        return RequestResult(
            scenario=scenario.name,
            start_time=start,
            end_time=end,
            latency_ms=end - start,
            success=False,
            concurrent_users=concurrent_users,
            error=str(exc) or type(exc).__name__,
        )

    end = now_ms()
    return RequestResult(
        scenario=scenario.name,
        start_time=start,
        end_time=end,
        latency_ms=end - start,
        success=True,
        concurrent_users=concurrent_users,
        response_size=response_size,
    )
