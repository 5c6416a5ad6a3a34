"""Tests for waiting on bus events with deadlines."""

from __future__ import annotations

import asyncio

import pytest

from espprov.core import Awaiter, EventBus, Signal
from espprov.core.matcher import on_signal
from espprov.models import LogLine, StatusReport


def run_with_bus(body):
    async def scenario():
        bus = EventBus()
        bus.start()
        try:
            return await body(bus, Awaiter(bus))
        finally:
            await bus.stop()

    return asyncio.run(scenario())


def test_wait_succeeds_when_event_arrives():
    async def body(bus, awaiter):
        asyncio.get_running_loop().call_later(0.01, bus.log_line, "Connected to Wi-Fi")
        ok = await awaiter.wait_for(on_signal(Signal.WIFI_JOINED), 1.0, LogLine)
        return ok, bus.subscriber_count

    assert run_with_bus(body) == (True, 0)


def test_wait_times_out_and_unsubscribes():
    async def body(bus, awaiter):
        bus.log_line("MTU Changed to: 512")
        ok = await awaiter.wait_for(on_signal(Signal.WIFI_JOINED), 0.02, LogLine)
        return ok, bus.subscriber_count, awaiter.pending

    assert run_with_bus(body) == (False, 0, 0)


def test_trigger_runs_after_subscribing():
    async def body(bus, awaiter):
        return await awaiter.wait_for(
            on_signal(Signal.SECURITY_OK),
            0.5,
            StatusReport,
            trigger=lambda: bus.status_report({"status": "Security Result: 0"}),
        )

    assert run_with_bus(body) is True


def test_trigger_error_propagates_without_leaking_subscription():
    async def body(bus, awaiter):
        def trigger():
            raise RuntimeError("radio off")

        with pytest.raises(RuntimeError, match="radio off"):
            await awaiter.wait_for(lambda event: True, 1.0, trigger=trigger)
        return bus.subscriber_count, awaiter.pending

    assert run_with_bus(body) == (0, 0)


def test_event_queued_at_deadline_wins():
    async def body(bus, awaiter):
        bus.log_line("Connected")
        return await awaiter.wait_for(on_signal(Signal.CONNECTED), 0, LogLine)

    assert run_with_bus(body) is True


def test_event_landing_with_the_deadline_wins():
    async def body(bus, awaiter):
        asyncio.get_running_loop().call_later(0.05, bus.log_line, "Connected")
        return await awaiter.wait_for(on_signal(Signal.CONNECTED), 0.05, LogLine)

    assert run_with_bus(body) is True


def test_late_event_does_not_change_result():
    async def body(bus, awaiter):
        ok = await awaiter.wait_for(on_signal(Signal.CONNECTED), 0.01, LogLine)
        bus.log_line("Connected")
        await asyncio.sleep(0.01)
        return ok, bus.subscriber_count

    assert run_with_bus(body) == (False, 0)


def test_concurrent_waits_are_independent():
    async def body(bus, awaiter):
        loop = asyncio.get_running_loop()
        loop.call_later(0.01, bus.log_line, "Security Result: 0")
        return await asyncio.gather(
            awaiter.wait_for(on_signal(Signal.SECURITY_OK), 0.5, LogLine),
            awaiter.wait_for(on_signal(Signal.WIFI_JOINED), 0.05, LogLine),
        )

    assert run_with_bus(body) == [True, False]


def test_close_resolves_pending_waits_promptly():
    async def body(bus, awaiter):
        loop = asyncio.get_running_loop()
        loop.call_later(0.02, awaiter.close)
        started = loop.time()
        ok = await awaiter.wait_for(on_signal(Signal.CONNECTED), 10.0, LogLine)
        return ok, loop.time() - started, bus.subscriber_count

    ok, elapsed, subscribers = run_with_bus(body)
    assert ok is False
    assert elapsed < 1.0
    assert subscribers == 0


def test_closed_awaiter_returns_immediately_until_reopened():
    async def body(bus, awaiter):
        awaiter.close()
        closed = await awaiter.wait_for(lambda event: True, 10.0)
        slept = await awaiter.sleep(10.0)
        awaiter.reopen()
        bus.log_line("anything")
        reopened = await awaiter.wait_for(lambda event: True, 0.5)
        return closed, slept, reopened

    assert run_with_bus(body) == (False, False, True)


def test_sleep_is_cut_short_by_close():
    async def body(bus, awaiter):
        assert await awaiter.sleep(0.01) is True
        asyncio.get_running_loop().call_later(0.01, awaiter.close)
        return await awaiter.sleep(10.0)

    assert run_with_bus(body) is False
