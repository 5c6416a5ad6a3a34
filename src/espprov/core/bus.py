from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from espprov.core.matcher import message_text
from espprov.models import (
    ConnectionChanged,
    DeviceDiscovered,
    DiscoveredDevice,
    DomainEvent,
    LogLine,
    LogStore,
    NetworkScanResult,
    StatusReport,
    WifiNetwork,
    event_text,
)

logger = logging.getLogger(__name__)

EventCallback = Callable[[DomainEvent], None]


class Subscription:
    def __init__(
        self,
        bus: EventBus,
        callback: EventCallback,
        kinds: tuple[type[DomainEvent], ...],
    ) -> None:
        self._bus = bus
        self._callback = callback
        self._kinds = kinds
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def accepts(self, event: DomainEvent) -> bool:
        return not self._kinds or isinstance(event, self._kinds)

    def deliver(self, event: DomainEvent) -> None:
        if self._active and self.accepts(event):
            self._callback(event)

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus._remove(self)


class SubscriptionScope:
    """Subscriptions that share a lifetime, cancelled together."""

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self, callback: EventCallback, *kinds: type[DomainEvent]
    ) -> Subscription:
        subscription = self._bus.subscribe(callback, *kinds)
        self._subscriptions.append(subscription)
        return subscription

    def cancel(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()


class EventBus:
    """Turns transport callbacks into domain events and fans them out.

    The bus is the transport's listener. Deliveries may come from the
    transport's own thread; they are queued and dispatched by a single consumer
    task on the bus loop, so subscribers always run one at a time on that loop.
    Text-bearing events are appended to the bound log store before any
    subscriber sees them.
    """

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: deque[DomainEvent] = deque()
        self._pending = asyncio.Event()
        self._subscriptions: list[Subscription] = []
        self._store: LogStore | None = None
        self._pump_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._pump_task is not None and not self._pump_task.done()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._pending = asyncio.Event()
        self._pump_task = asyncio.create_task(self._pump(), name="espprov-event-bus")

    async def stop(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.cancel()
        if self._pump_task is not None:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
            self._pump_task = None
        self._queue.clear()

    def bind_store(self, store: LogStore | None) -> None:
        self._store = store

    def subscribe(
        self, callback: EventCallback, *kinds: type[DomainEvent]
    ) -> Subscription:
        subscription = Subscription(self, callback, kinds)
        self._subscriptions.append(subscription)
        return subscription

    def scope(self) -> SubscriptionScope:
        return SubscriptionScope(self)

    def _remove(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def publish(self, event: DomainEvent) -> None:
        """Queue an event for dispatch. Safe to call from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Dropping %s: event bus not started", type(event).__name__)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._enqueue(event)
        else:
            loop.call_soon_threadsafe(self._enqueue, event)

    def _enqueue(self, event: DomainEvent) -> None:
        self._queue.append(event)
        self._pending.set()

    def drain(self) -> int:
        """Dispatch every queued event right now, returning how many ran."""
        count = 0
        while self._queue:
            self._dispatch(self._queue.popleft())
            count += 1
        return count

    def _dispatch(self, event: DomainEvent) -> None:
        text = event_text(event)
        if text is not None and self._store is not None:
            self._store.append(text)

        for subscription in list(self._subscriptions):
            try:
                subscription.deliver(event)
            except Exception:
                logger.exception("Subscriber failed on %s", type(event).__name__)

    async def _pump(self) -> None:
        while True:
            await self._pending.wait()
            self._pending.clear()
            self.drain()

    # TransportListener

    def connection_changed(self, connected: bool) -> None:
        self.publish(ConnectionChanged(connected=connected))

    def log_line(self, text: str) -> None:
        self.publish(LogLine(text=text))

    def status_report(self, payload: str | Mapping[str, Any]) -> None:
        text = message_text(payload)
        if text is None:
            logger.debug("Ignoring status report without text: %r", payload)
            return
        self.publish(StatusReport(text=text))

    def discovery_result(self, address: str, name: str, rssi: int) -> None:
        device = DiscoveredDevice(address=address, name=name or address, rssi=rssi)
        self.publish(DeviceDiscovered(device=device))

    def network_scan_result(self, networks: Sequence[WifiNetwork]) -> None:
        self.publish(NetworkScanResult(networks=tuple(networks)))
