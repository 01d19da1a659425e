"""Tests for single-request execution."""

import asyncio

import pytest

from loadprobe.executor import TIMEOUT_ERROR, execute_request
from loadprobe.models import ScenarioTemplate
from loadprobe.targets import CallableTarget


class ChunkedTarget:
    def __init__(self, chunks, delay=0.0):
        self.chunks = chunks
        self.delay = delay
        self.payloads = []

    async def submit(self, payload):
        self.payloads.append(payload)
        for chunk in self.chunks:
            await asyncio.sleep(self.delay)
            yield chunk


class FailingTarget:
    def __init__(self, exc):
        self.exc = exc

    async def submit(self, payload):
        raise self.exc
        yield  # pragma: no cover


SCENARIO = ScenarioTemplate(name="chat", payload={"prompt": "hi"})


@pytest.mark.asyncio
async def test_success_accumulates_response_size():
    target = ChunkedTarget(["hel", "lo", b"!!", {"done": True}])
    result = await execute_request(target, SCENARIO, timeout_ms=1000, concurrent_users=3)
    assert result.success is True
    assert result.error is None
    assert result.response_size == 7
    assert result.concurrent_users == 3
    assert result.scenario == "chat"
    assert result.latency_ms == pytest.approx(result.end_time - result.start_time)
    assert target.payloads == [{"prompt": "hi"}]


@pytest.mark.asyncio
async def test_latency_reflects_wall_clock():
    target = ChunkedTarget(["a", "b"], delay=0.05)
    result = await execute_request(target, SCENARIO, timeout_ms=2000, concurrent_users=1)
    assert result.success is True
    assert result.latency_ms >= 90


@pytest.mark.asyncio
async def test_exception_becomes_failed_result():
    target = FailingTarget(RuntimeError("provider unavailable"))
    result = await execute_request(target, SCENARIO, timeout_ms=1000, concurrent_users=2)
    assert result.success is False
    assert result.error == "provider unavailable"
    assert result.response_size is None
    assert result.concurrent_users == 2


@pytest.mark.asyncio
async def test_exception_without_message_uses_class_name():
    target = FailingTarget(ConnectionResetError())
    result = await execute_request(target, SCENARIO, timeout_ms=1000, concurrent_users=1)
    assert result.success is False
    assert result.error == "ConnectionResetError"


@pytest.mark.asyncio
async def test_timeout_is_reported_as_failure():
    target = ChunkedTarget(["slow"], delay=1.0)
    result = await execute_request(target, SCENARIO, timeout_ms=50, concurrent_users=1)
    assert result.success is False
    assert result.error == TIMEOUT_ERROR
    assert 40 <= result.latency_ms < 1000


@pytest.mark.asyncio
async def test_callable_target():
    async def handler(payload):
        return f"echo:{payload['prompt']}"

    result = await execute_request(CallableTarget(handler), SCENARIO, 1000, 1)
    assert result.success is True
    assert result.response_size == len("echo:hi")


@pytest.mark.asyncio
async def test_callable_target_returning_none():
    async def handler(payload):
        return None

    result = await execute_request(CallableTarget(handler), SCENARIO, 1000, 1)
    assert result.success is True
    assert result.response_size == 0


@pytest.mark.asyncio
async def test_target_timeout_error_keeps_its_message():
    target = FailingTarget(TimeoutError("upstream read timed out"))
    result = await execute_request(target, SCENARIO, timeout_ms=5000, concurrent_users=1)
    assert result.success is False
    assert result.error == "upstream read timed out"
    assert result.error != TIMEOUT_ERROR
    assert result.latency_ms < 1000


@pytest.mark.asyncio
async def test_timeout_cancels_the_stream():
    cancelled = asyncio.Event()

    class HangingTarget:
        async def submit(self, payload):
            try:
                await asyncio.sleep(10)
                yield "never"
            except asyncio.CancelledError:
                cancelled.set()
                raise

    result = await execute_request(HangingTarget(), SCENARIO, timeout_ms=50, concurrent_users=1)
    assert result.error == TIMEOUT_ERROR
    assert cancelled.is_set()
