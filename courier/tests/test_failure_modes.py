"""
Failure Injection Tests.

Validates the circuit breaker and the shared politeness gate.
"""

import asyncio
import pytest

from courier.app.core.rate_limiter import IntervalGate
from courier.app.core.reliability import CircuitBreaker, CircuitOpenError


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker("test", failure_threshold=2, reset_timeout=1)

    async def failing_func():
        raise ValueError("Boom")

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_trial():
    """After the reset timeout one trial call is let through; success closes the circuit."""
    clock = FakeClock()
    cb = CircuitBreaker("test", failure_threshold=1, reset_timeout=10, clock=clock)

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    clock.now = 11
    assert await cb.call(ok_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_failed_trial_reopens_circuit():
    clock = FakeClock()
    cb = CircuitBreaker("test", failure_threshold=3, reset_timeout=10, clock=clock)
    cb.state = "OPEN"
    cb.last_failure_time = 0

    async def failing_func():
        raise ValueError("Boom")

    clock.now = 11
    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"


@pytest.mark.asyncio
async def test_half_open_admits_one_concurrent_call():
    """Concurrent callers are rejected while the single trial call is running."""
    clock = FakeClock()
    cb = CircuitBreaker("test", failure_threshold=1, reset_timeout=10, clock=clock)
    cb.state = "OPEN"
    clock.now = 11

    release = asyncio.Event()
    started = []

    async def slow_func():
        started.append(1)
        await release.wait()
        return "ok"

    trial = asyncio.create_task(cb.call(slow_func))
    await asyncio.sleep(0)

    for _ in range(2):
        with pytest.raises(CircuitOpenError):
            await cb.call(slow_func)
    assert len(started) == 1

    release.set()
    assert await trial == "ok"
    assert cb.state == "CLOSED"

    # Closed again: calls flow normally
    assert await cb.call(slow_func) == "ok"
    assert len(started) == 2


@pytest.mark.asyncio
async def test_failed_trial_reopens_until_next_timeout():
    clock = FakeClock()
    cb = CircuitBreaker("test", failure_threshold=1, reset_timeout=10, clock=clock)
    cb.state = "OPEN"
    clock.now = 11

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    with pytest.raises(CircuitOpenError):
        await cb.call(ok_func)

    clock.now = 22
    assert await cb.call(ok_func) == "ok"
    assert cb.state == "CLOSED"


@pytest.mark.asyncio
async def test_interval_gate_spaces_calls():
    clock = FakeClock()
    gate = IntervalGate(1.1, clock=clock, sleep=clock.sleep)

    for _ in range(3):
        await gate.acquire()

    assert clock.sleeps == [pytest.approx(1.1), pytest.approx(1.1)]
    assert clock.now == pytest.approx(2.2)


@pytest.mark.asyncio
async def test_interval_gate_does_not_wait_when_idle():
    clock = FakeClock()
    gate = IntervalGate(1.0, clock=clock, sleep=clock.sleep)

    await gate.acquire()
    clock.now = 5.0
    await gate.acquire()

    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_interval_gate_is_shared_by_concurrent_workers():
    """Concurrent acquirers are serialized one interval apart."""
    clock = FakeClock()
    gate = IntervalGate(0.5, clock=clock, sleep=clock.sleep)
    acquired_at = []

    async def worker():
        async with gate:
            acquired_at.append(clock.now)

    await asyncio.gather(*(worker() for _ in range(4)))

    assert acquired_at == [0.0, 0.5, 1.0, 1.5]


def test_interval_gate_rejects_negative_interval():
    with pytest.raises(ValueError):
        IntervalGate(-1)
