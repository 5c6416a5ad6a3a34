"""Provisioning orchestrator.

One ``Provisioner`` owns one transport. It keeps the discovered device and
network inventories, runs at most one provisioning session at a time and
exposes read-only views of that session to the presentation layer.

A session walks ``CONNECTING -> NEGOTIATING -> CONFIGURING_NETWORK ->
CONFIGURING_BROKER -> AWAITING_CONFIRMATION -> SUCCEEDED``. Any fatal error
ends it in ``FAILED`` and a user reset ends it in ``CANCELLED``. Progress is
inferred from the peer's log and status text; the peer does not acknowledge
configuration commands, so the fixed pauses between them are part of the
protocol.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from espprov.config import Settings
from espprov.core.awaiter import Awaiter
from espprov.core.bus import EventBus, Subscription, SubscriptionScope
from espprov.core.matcher import Match, Signal, on_signal, signal_for
from espprov.core.transport import OpMode, Transport
from espprov.errors import (
    PeerDisconnected,
    ProvisioningBusy,
    ProvisioningError,
    TimeoutFailure,
    TransportCommandFailure,
    TransportError,
    UnknownDevice,
    UserCancelled,
)
from espprov.models import (
    ConnectionChanged,
    DeviceDiscovered,
    DeviceInventory,
    DiscoveredDevice,
    DomainEvent,
    LogEntry,
    LogLevel,
    LogLine,
    LogStore,
    NetworkInventory,
    NetworkScanResult,
    Outcome,
    OutcomeStatus,
    Phase,
    ProvisioningSession,
    StatusReport,
    WifiNetwork,
)

logger = logging.getLogger(__name__)

# Opaque config keys understood by the peer firmware.
STATUS_PROBE_KEY = "12"
BROKER_HOST_KEY = "1"
BROKER_PORT_KEY = "2"
APPLY_KEY = "8"
APPLY_VALUE = "0"

TEXT_EVENTS: tuple[type[DomainEvent], ...] = (ConnectionChanged, LogLine, StatusReport)

CONFIRMATION_SIGNALS = (Signal.WIFI_JOINED, Signal.PEER_IDLE, Signal.DISCONNECTED)

UpdateCallback = Callable[[LogEntry], None]


class Provisioner:
    def __init__(
        self,
        transport: Transport,
        settings: Settings | None = None,
        on_update: UpdateCallback | None = None,
    ) -> None:
        self.transport = transport
        self.settings = settings or Settings()
        self.timing = self.settings.timing
        self.on_update = on_update

        self.bus = EventBus()
        self.awaiter = Awaiter(self.bus)

        self._devices = DeviceInventory()
        self._networks = NetworkInventory()
        self._console = LogStore(listener=self._emit)
        self._log = self._console
        self._inventory: Subscription | None = None

        self._selected: DiscoveredDevice | None = None
        self._session: ProvisioningSession | None = None
        self._task: asyncio.Task[None] | None = None
        self._scope: SubscriptionScope | None = None
        self._scanning = False

        self._link_open = False
        self._link_confirmed = False
        self._dropped = False
        self._apply_sent = False

    async def __aenter__(self) -> Provisioner:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def start(self) -> None:
        self.bus.start()
        self.bus.bind_store(self._log)
        self.transport.bind(self.bus)
        if self._inventory is None:
            self._inventory = self.bus.subscribe(
                self._on_inventory_event, DeviceDiscovered, NetworkScanResult
            )

    async def close(self) -> None:
        await self.cancel()
        if self._inventory is not None:
            self._inventory.cancel()
            self._inventory = None
        self.transport.bind(None)
        await self.bus.stop()

    # Read-only views for the presentation layer

    @property
    def session(self) -> ProvisioningSession | None:
        return self._session

    @property
    def phase(self) -> Phase:
        return self._session.phase if self._session else Phase.IDLE

    @property
    def uid(self) -> str | None:
        return self._session.uid if self._session else None

    @property
    def log_entries(self) -> tuple[LogEntry, ...]:
        return self._log.snapshot()

    @property
    def devices(self) -> list[DiscoveredDevice]:
        return self._devices.sorted()

    @property
    def networks(self) -> list[WifiNetwork]:
        return self._networks.sorted()

    @property
    def selected(self) -> DiscoveredDevice | None:
        return self._selected

    @property
    def busy(self) -> bool:
        return self._scanning or (self._task is not None and not self._task.done())

    def filter_devices(self, text: str) -> list[DiscoveredDevice]:
        return self._devices.sorted(name_filter=text)

    # Discovery

    def start_discovery(self) -> None:
        self._devices.clear()
        self._issue("start_discovery", self.transport.start_discovery)
        self._note("Scanning for devices...")

    def stop_discovery(self) -> None:
        self._issue("stop_discovery", self.transport.stop_discovery)

    def select_device(self, address: str) -> DiscoveredDevice:
        device = self._devices.get(address)
        if device is None:
            raise UnknownDevice(f"Device {address} has not been discovered")
        self.stop_discovery()
        self._selected = device
        logger.info("Selected device '%s' (%s)", device.name, device.address)
        return device

    # Network scan

    async def scan_networks(self) -> list[WifiNetwork]:
        """Ask the selected peer for the Wi-Fi networks it can see."""
        device = self._require_device()
        if self.busy:
            raise ProvisioningBusy("Another operation is using the link")

        self._scanning = True
        self.awaiter.reopen()
        self._use_log(self._console)
        self._networks.clear()
        try:
            self._note("Connecting to device for Wi-Fi scan...")
            connected = await self.awaiter.wait_for(
                on_signal(Signal.CONNECTED),
                self.timing.connect_timeout,
                *TEXT_EVENTS,
                trigger=lambda: self._open_link(device.address),
            )
            self._check_cancelled()
            if not connected:
                raise TimeoutFailure("Could not connect to device.")

            await self._negotiate()

            self._note("Setting op mode to station...")
            self._issue("set_mode", self.transport.set_mode, OpMode.STATION)
            await self._pause(self.timing.command_pacing)
            self._check_cancelled()
            self._issue("request_version", self.transport.request_version)

            self._note("Requesting device to scan for Wi-Fi...")
            received = await self.awaiter.wait_for(
                lambda event: True,
                self.timing.scan_timeout,
                NetworkScanResult,
                trigger=lambda: self._issue(
                    "request_network_scan", self.transport.request_network_scan
                ),
            )
            self._check_cancelled()
            if not received:
                raise TimeoutFailure(
                    f"Scan timed out ({self.timing.scan_timeout:g}s) - "
                    "no results received."
                )
            self._note(
                f"Scan complete: {len(self._networks)} network(s). Disconnecting...",
                "success",
            )
            return self.networks
        except UserCancelled:
            self._note("Wi-Fi scan cancelled", "warning")
            raise
        except ProvisioningError as exc:
            self._note(f"Error requesting Wi-Fi scan: {exc}", "error")
            raise
        finally:
            self._scanning = False
            if self._link_open:
                self._disconnect()

    # Provisioning

    async def start_provisioning(
        self,
        ssid: str,
        secret: str,
        broker_host: str | None = None,
        broker_port: int | None = None,
    ) -> ProvisioningSession:
        """Start a session against the selected device and return it.

        Any previous session is cancelled and any open link is torn down
        first. The session runs in the background; ``join()`` waits for it.
        """
        device = self._require_device()
        if self._scanning:
            raise ProvisioningBusy("A Wi-Fi scan is using the link")

        await self.cancel()

        if broker_host is None:
            broker_host = self.settings.broker.host
        if broker_port is None:
            broker_port = self.settings.broker.port

        session = ProvisioningSession(
            address=device.address,
            ssid=ssid,
            secret=secret,
            broker_host=broker_host,
            broker_port=broker_port,
        )
        session.log.listener = self._emit
        self._session = session
        self._link_confirmed = False
        self._dropped = False
        self._apply_sent = False
        self.awaiter.reopen()
        self._use_log(session.log)

        self._scope = self.bus.scope()
        self._scope.subscribe(
            lambda event: self._side_channel(session, event), *TEXT_EVENTS
        )
        self._task = asyncio.create_task(
            self._run(session, device), name=f"espprov-provision-{device.address}"
        )
        return session

    async def join(self) -> ProvisioningSession | None:
        if self._task is not None:
            await self._task
        return self._session

    async def cancel(self) -> None:
        """Reset the current operation. Calling it again is a no-op."""
        task = self._task
        if self._scanning or (task is not None and not task.done()):
            self.awaiter.close()
        if task is not None and not task.done():
            await task
        if self._link_open:
            self._disconnect()

    async def _run(self, session: ProvisioningSession, device: DiscoveredDevice) -> None:
        logger.info("Provisioning '%s' (%s)", device.name, device.address)
        try:
            await self._connect(session, device)
            self._set_phase(session, Phase.NEGOTIATING)
            await self._negotiate()
            self._check(session)
            await self._configure_network(session)
            await self._configure_broker(session)
            confirmation = await self._await_confirmation(session)
            self._succeed(session)
            await self._release(session, confirmation)
        except UserCancelled:
            self._cancelled(session)
        except ProvisioningError as exc:
            self._fail(session, str(exc))
        finally:
            self._use_log(self._console)
            if self._scope is not None:
                self._scope.cancel()
                self._scope = None

    async def _connect(
        self, session: ProvisioningSession, device: DiscoveredDevice
    ) -> None:
        self._set_phase(session, Phase.CONNECTING)
        self._note(f"Connecting to {device.name}...")
        connected = await self.awaiter.wait_for(
            on_signal(Signal.CONNECTED),
            self.timing.connect_timeout,
            *TEXT_EVENTS,
            trigger=lambda: self._open_link(device.address),
        )
        self._check(session)
        if not connected:
            raise TimeoutFailure("connection timeout")
        self._link_confirmed = True
        self._note("Stable connection confirmed!", "success")
        await self._pause(self.timing.post_connect_delay)
        self._check(session)

    async def _negotiate(self) -> bool:
        """Best-effort security negotiation; only a dropped link is fatal."""
        self._note("Negotiating security...")
        results: list[Match] = []

        def negotiated(event: DomainEvent) -> bool:
            match = signal_for(event)
            if match is None or match.signal not in (
                Signal.SECURITY_OK,
                Signal.SECURITY_FAILED,
                Signal.DISCONNECTED,
            ):
                return False
            results.append(match)
            return True

        try:
            answered = await self.awaiter.wait_for(
                negotiated,
                self.timing.negotiation_timeout,
                LogLine,
                StatusReport,
                trigger=lambda: self._issue(
                    "negotiate_security", self.transport.negotiate_security
                ),
            )
        except TransportCommandFailure as exc:
            logger.warning("Security negotiation could not start: %s", exc)
            self._note(f"{exc}. Proceeding...", "warning")
            return False

        self._check_cancelled()
        if answered and results[0].signal is Signal.DISCONNECTED:
            raise PeerDisconnected("peer disconnected during negotiation")
        if answered and results[0].signal is Signal.SECURITY_OK:
            self._note("Security negotiated!", "success")
            await self._pause(self.timing.post_connect_delay)
            return True

        logger.warning("Security negotiation skipped or failed, continuing")
        self._note("Security negotiation skipped or failed. Proceeding...", "warning")
        return False

    async def _configure_network(self, session: ProvisioningSession) -> None:
        self._set_phase(session, Phase.CONFIGURING_NETWORK)
        self._note(f"Configuring Wi-Fi: {session.ssid}")
        self._issue(
            "configure_network",
            self.transport.configure_network,
            session.ssid,
            session.secret,
        )
        self._note("Wi-Fi config sent", "success")

        self._note(
            f"Waiting {self.timing.settle_delay:g}s for device to connect...",
        )
        await self._pause(self.timing.settle_delay)
        self._check(session)

        self._note("Checking device status...")
        self._probe_status()
        await self._pause(self.timing.command_pacing)
        self._check(session)

    async def _configure_broker(self, session: ProvisioningSession) -> None:
        self._set_phase(session, Phase.CONFIGURING_BROKER)
        entries: list[tuple[str, str]] = []
        if session.broker_host and session.broker_port:
            self._note(
                f"Sending MQTT config: {session.broker_host}:{session.broker_port}"
            )
            entries += [
                (BROKER_HOST_KEY, session.broker_host),
                (BROKER_PORT_KEY, str(session.broker_port)),
            ]
        else:
            self._note("No MQTT broker configured, sending apply only", "warning")
        entries.append((APPLY_KEY, APPLY_VALUE))

        for key, value in entries:
            self._issue(
                "send_opaque_config", self.transport.send_opaque_config, key, value
            )
            if key == APPLY_KEY:
                self._apply_sent = True
            await self._pause(self.timing.command_pacing)
            self._check(session)

        self._note("MQTT config sent & finalized!", "success")
        await self._pause(self.timing.broker_settle)
        self._check(session)

    async def _await_confirmation(self, session: ProvisioningSession) -> Signal:
        self._set_phase(session, Phase.AWAITING_CONFIRMATION)
        self._note("All config sent!", "success")
        if self._dropped:
            self._note("Device dropped the link after applying config")
            return Signal.DISCONNECTED

        self._note(
            "Waiting for device to connect to Wi-Fi "
            f"({self.timing.confirm_timeout:g}s)..."
        )
        matched: list[Signal] = []

        def confirmed(event: DomainEvent) -> bool:
            match = signal_for(event)
            if match is None or match.signal not in CONFIRMATION_SIGNALS:
                return False
            matched.append(match.signal)
            return True

        poller = asyncio.create_task(self._poll_status())
        try:
            ok = await self.awaiter.wait_for(
                confirmed, self.timing.confirm_timeout, *TEXT_EVENTS
            )
        finally:
            poller.cancel()
            try:
                await poller
            except asyncio.CancelledError:
                pass

        self._check_cancelled()
        if not ok:
            raise TimeoutFailure("confirmation timeout")
        return matched[0]

    async def _poll_status(self) -> None:
        elapsed = 0.0
        while await self.awaiter.sleep(self.timing.probe_interval):
            elapsed += self.timing.probe_interval
            self._note(f"Checking status ({elapsed:g}s)...")
            try:
                self._probe_status()
            except TransportCommandFailure as exc:
                # A rebooting peer stops accepting commands; keep listening.
                logger.info("Status probe rejected: %s", exc)

    async def _release(self, session: ProvisioningSession, confirmation: Signal) -> None:
        released = confirmation is Signal.DISCONNECTED or self._dropped
        if not released:
            released = await self.awaiter.wait_for(
                on_signal(Signal.DISCONNECTED),
                self.timing.release_timeout,
                *TEXT_EVENTS,
            )
            released = released or self._dropped
        if released:
            self._disconnect()
        elif not self.awaiter.closed:
            self._note("Device has not dropped the link yet; leaving it open", "warning")

    def _side_channel(self, session: ProvisioningSession, event: DomainEvent) -> None:
        match = signal_for(event)
        if match is None:
            return
        if match.signal is Signal.UID and match.value:
            if session.set_uid(match.value):
                logger.info("Captured device UID %s", match.value)
                self._note(f"Captured device UID: {match.value}", "success")
        elif match.signal is Signal.DISCONNECTED:
            if self._link_confirmed:
                self._dropped = True
            if not session.peer_released:
                session.peer_released = True
                self._note("Device reported a disconnect")

    # State transitions

    def _set_phase(self, session: ProvisioningSession, phase: Phase) -> bool:
        if session.phase.terminal:
            logger.debug("Ignoring %s: session already %s", phase.value, session.phase.value)
            return False
        logger.debug("Phase %s -> %s", session.phase.value, phase.value)
        session.phase = phase
        return True

    def _succeed(self, session: ProvisioningSession) -> None:
        if not self._set_phase(session, Phase.SUCCEEDED):
            return
        session.outcome = Outcome(OutcomeStatus.SUCCEEDED)
        logger.info("Provisioning of %s succeeded", session.address)
        self._note("Device provisioned / rebooting!", "success")

    def _fail(self, session: ProvisioningSession, reason: str) -> None:
        if not self._set_phase(session, Phase.FAILED):
            return
        session.outcome = Outcome(OutcomeStatus.FAILED, reason)
        logger.warning("Provisioning of %s failed: %s", session.address, reason)
        self._note(f"Error: {reason}", "error")
        self._note("Disconnecting...")
        self._disconnect()

    def _cancelled(self, session: ProvisioningSession) -> None:
        if not self._set_phase(session, Phase.CANCELLED):
            return
        session.outcome = Outcome(OutcomeStatus.CANCELLED, "cancelled by user")
        logger.info("Provisioning of %s cancelled", session.address)
        self._note("Cancelled by user", "warning")

    def _check_cancelled(self) -> None:
        if self.awaiter.closed:
            raise UserCancelled()

    def _check(self, session: ProvisioningSession) -> None:
        self._check_cancelled()
        if self._dropped and not self._apply_sent:
            stage = (
                "negotiation" if session.phase is Phase.NEGOTIATING else "configuration"
            )
            raise PeerDisconnected(f"peer disconnected during {stage}")

    # Transport helpers

    def _issue(self, name: str, command: Callable[..., None], *args: object) -> None:
        logger.debug("Issuing %s", name)
        try:
            command(*args)
        except TransportError as exc:
            raise TransportCommandFailure(name, exc) from exc

    def _open_link(self, address: str) -> None:
        self._issue("connect", self.transport.connect, address)
        self._link_open = True

    def _probe_status(self) -> None:
        self._issue(
            "send_opaque_config",
            self.transport.send_opaque_config,
            STATUS_PROBE_KEY,
            "",
        )
        self._issue("request_status", self.transport.request_status)

    def _disconnect(self) -> None:
        self._link_open = False
        self._link_confirmed = False
        try:
            self.transport.disconnect()
        except TransportError as exc:
            logger.warning("Disconnect failed: %s", exc)

    async def _pause(self, delay: float) -> None:
        await self.awaiter.sleep(delay)

    def _require_device(self) -> DiscoveredDevice:
        if self._selected is None:
            raise UnknownDevice("No device selected")
        return self._selected

    # Logging

    def _use_log(self, store: LogStore) -> None:
        self._log = store
        self.bus.bind_store(store)

    def _note(self, message: str, level: LogLevel = "info") -> None:
        logger.debug(message)
        self._log.append(message, level)

    def _emit(self, entry: LogEntry) -> None:
        if self.on_update is not None:
            self.on_update(entry)

    def _on_inventory_event(self, event: DomainEvent) -> None:
        if isinstance(event, DeviceDiscovered):
            if self._devices.add(event.device):
                logger.debug(
                    "Discovered '%s' (%s, %d dBm)",
                    event.device.name,
                    event.device.address,
                    event.device.rssi,
                )
        elif isinstance(event, NetworkScanResult):
            self._networks.ingest(event.networks)
