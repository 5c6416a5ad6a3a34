from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from espprov.core.bus import EventBus
from espprov.models import DomainEvent

logger = logging.getLogger(__name__)

Predicate = Callable[[DomainEvent], bool]


class Awaiter:
    """Suspend until a domain event satisfies a predicate or a deadline passes.

    Each wait holds exactly one bus subscription for its own duration. When the
    deadline and a satisfying event land in the same loop iteration, the event
    wins: the bus is drained before the wait gives up. Once a wait has
    returned, later events cannot change its result.

    ``close()`` resolves every pending wait and sleep as ``False`` and makes
    later calls return ``False`` immediately, until ``reopen()``.
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._waiters: set[asyncio.Future[bool]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return len(self._waiters)

    def close(self) -> None:
        self._closed = True
        for future in list(self._waiters):
            if not future.done():
                future.set_result(False)

    def reopen(self) -> None:
        self._closed = False

    async def wait_for(
        self,
        predicate: Predicate,
        timeout: float,
        *kinds: type[DomainEvent],
        trigger: Callable[[], None] | None = None,
    ) -> bool:
        """Wait for ``predicate`` to accept an event, for at most ``timeout``.

        ``trigger`` runs after the subscription is attached, so an answer to a
        command issued by the trigger cannot slip past the wait. Exceptions from
        the trigger propagate after the subscription is removed.
        """
        if self._closed:
            return False

        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()

        def on_event(event: DomainEvent) -> None:
            if not future.done() and predicate(event):
                future.set_result(True)

        subscription = self._bus.subscribe(on_event, *kinds)
        self._waiters.add(future)
        try:
            if trigger is not None:
                trigger()
            if not future.done():
                await asyncio.wait({future}, timeout=timeout)
            if not future.done():
                self._bus.drain()
            if not future.done():
                future.set_result(False)
            return future.result()
        finally:
            subscription.cancel()
            self._waiters.discard(future)
            if not future.done():
                future.cancel()

    async def sleep(self, delay: float) -> bool:
        """Sleep for ``delay``; returns ``False`` if ``close()`` cut it short."""
        if self._closed:
            return False
        if delay <= 0:
            return True

        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._waiters.add(future)
        try:
            await asyncio.wait({future}, timeout=delay)
            return not future.done()
        finally:
            self._waiters.discard(future)
            if not future.done():
                future.cancel()
