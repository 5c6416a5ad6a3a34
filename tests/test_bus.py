"""Tests for the event bus."""

from __future__ import annotations

import asyncio
import threading

from espprov.core import EventBus
from espprov.models import (
    ConnectionChanged,
    DeviceDiscovered,
    LogLine,
    LogStore,
    NetworkScanResult,
    StatusReport,
    WifiNetwork,
)


def test_cancel_is_idempotent():
    bus = EventBus()
    subscription = bus.subscribe(lambda event: None)
    assert bus.subscriber_count == 1

    subscription.cancel()
    subscription.cancel()

    assert not subscription.active
    assert bus.subscriber_count == 0


def test_scope_cancels_all_its_subscriptions():
    bus = EventBus()
    outside = bus.subscribe(lambda event: None)
    scope = bus.scope()
    scope.subscribe(lambda event: None)
    scope.subscribe(lambda event: None, LogLine)
    assert bus.subscriber_count == 3

    scope.cancel()
    scope.cancel()

    assert bus.subscriber_count == 1
    assert outside.active


def test_text_is_logged_before_subscribers_run():
    async def scenario():
        bus = EventBus()
        bus.start()
        store = LogStore()
        bus.bind_store(store)
        seen: list[int] = []
        bus.subscribe(lambda event: seen.append(len(store)))

        bus.log_line("MTU Changed to: 512")
        bus.status_report({"status": "Connected"})
        bus.drain()
        await bus.stop()
        return store, seen

    store, seen = asyncio.run(scenario())
    assert [entry.message for entry in store.snapshot()] == [
        "MTU Changed to: 512",
        "Connected",
    ]
    assert seen == [1, 2]


def test_subscription_filters_by_kind():
    async def scenario():
        bus = EventBus()
        bus.start()
        texts: list[object] = []
        inventory: list[object] = []
        bus.subscribe(texts.append, LogLine, StatusReport)
        bus.subscribe(inventory.append, DeviceDiscovered, NetworkScanResult)

        bus.log_line("hello")
        bus.connection_changed(True)
        bus.discovery_result("24:0A:C4:00:00:01", "", -40)
        bus.network_scan_result([WifiNetwork(ssid="lab", rssi=-50)])
        bus.drain()
        await bus.stop()
        return texts, inventory

    texts, inventory = asyncio.run(scenario())
    assert texts == [LogLine(text="hello")]
    assert isinstance(inventory[0], DeviceDiscovered)
    # A nameless advertisement is listed under its address.
    assert inventory[0].device.name == "24:0A:C4:00:00:01"
    assert inventory[1] == NetworkScanResult(networks=(WifiNetwork(ssid="lab", rssi=-50),))


def test_status_report_without_text_is_ignored():
    async def scenario():
        bus = EventBus()
        bus.start()
        received: list[object] = []
        bus.subscribe(received.append)
        bus.status_report({"opMode": 1})
        bus.status_report("")
        bus.drain()
        await bus.stop()
        return received

    assert asyncio.run(scenario()) == []


def test_failing_subscriber_does_not_block_others(caplog):
    async def scenario():
        bus = EventBus()
        bus.start()
        received: list[object] = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.connection_changed(False)
        bus.drain()
        await bus.stop()
        return received

    assert asyncio.run(scenario()) == [ConnectionChanged(connected=False)]
    assert "Subscriber failed" in caplog.text


def test_delivery_from_another_thread_runs_on_the_loop():
    async def scenario():
        bus = EventBus()
        bus.start()
        loop_thread = threading.get_ident()
        delivered = asyncio.Event()
        threads: list[int] = []

        def on_event(event):
            threads.append(threading.get_ident())
            delivered.set()

        bus.subscribe(on_event, LogLine)
        worker = threading.Thread(target=bus.log_line, args=("from the radio thread",))
        worker.start()
        worker.join()
        await asyncio.wait_for(delivered.wait(), timeout=1.0)
        await bus.stop()
        return loop_thread, threads

    loop_thread, threads = asyncio.run(scenario())
    assert threads == [loop_thread]


def test_publish_before_start_is_dropped():
    bus = EventBus()
    received: list[object] = []
    bus.subscribe(received.append)
    bus.log_line("too early")
    assert bus.drain() == 0
    assert received == []


def test_stop_cancels_subscriptions():
    async def scenario():
        bus = EventBus()
        bus.start()
        subscription = bus.subscribe(lambda event: None)
        await bus.stop()
        return bus, subscription

    bus, subscription = asyncio.run(scenario())
    assert not bus.running
    assert not subscription.active
    assert bus.subscriber_count == 0
