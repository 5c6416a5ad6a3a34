"""Simulated provisioning peers for development and testing.

``SimulatedTransport`` implements the transport surface in-process. Each peer
is described by a ``PeerProfile`` and answers commands with the same log and
status texts a real BluFi peer produces, after short delays scheduled on the
running event loop. Every command is recorded in ``commands``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from espprov.core.transport import OpMode, TransportListener
from espprov.errors import TransportError
from espprov.models import WifiNetwork

logger = logging.getLogger(__name__)

STATE_CONNECTED = 0
STATE_DISCONNECTED = 2


def _default_networks() -> tuple[WifiNetwork, ...]:
    return (
        WifiNetwork(ssid="workshop", rssi=-48),
        WifiNetwork(ssid="guest", rssi=-71),
        WifiNetwork(ssid="workshop", rssi=-55),
        WifiNetwork(ssid="", rssi=-80),
        WifiNetwork(ssid="office-5g", rssi=-63),
    )


@dataclass(frozen=True)
class PeerProfile:
    address: str
    name: str
    rssi: int = -60
    uid: str = "9876543210"
    reachable: bool = True
    negotiates: bool = True
    joins_network: bool = True
    reboots: bool = True
    drops_during_negotiation: bool = False
    drops_during_configuration: bool = False
    reject: frozenset[str] = frozenset()
    networks: tuple[WifiNetwork, ...] = field(default_factory=_default_networks)
    connect_delay: float = 0.2
    response_delay: float = 0.05
    join_delay: float = 1.0
    reboot_delay: float = 1.0


SCENARIOS: dict[str, dict[str, Any]] = {
    "ok": {},
    "no-negotiation": {"negotiates": False},
    "unreachable": {"reachable": False},
    "no-join": {"joins_network": False, "reboots": False},
    "early-drop": {"drops_during_configuration": True},
}


def default_fleet(scenario: str = "ok") -> list[PeerProfile]:
    try:
        overrides = SCENARIOS[scenario]
    except KeyError:
        raise ValueError(
            f"Unknown scenario '{scenario}', expected one of: {', '.join(SCENARIOS)}"
        ) from None
    peers = [
        PeerProfile(address="24:0A:C4:12:34:56", name="BLUFI_9876543210", rssi=-52),
        PeerProfile(
            address="24:0A:C4:65:43:21",
            name="BLUFI_1234567890",
            rssi=-67,
            uid="1234567890",
        ),
    ]
    return [replace(peer, **overrides) for peer in peers]


class SimulatedTransport:
    def __init__(self, peers: Sequence[PeerProfile] = ()) -> None:
        self.peers = {peer.address: peer for peer in peers}
        self.commands: list[tuple[str, tuple[object, ...]]] = []
        self._listener: TransportListener | None = None
        self._peer: PeerProfile | None = None
        self._connected = False
        self._joined = False
        self._link_handles: list[asyncio.TimerHandle] = []
        self._discovery_handles: list[asyncio.TimerHandle] = []

    @property
    def connected(self) -> bool:
        return self._connected

    def count(self, command: str) -> int:
        return sum(1 for name, _ in self.commands if name == command)

    def issued(self) -> list[str]:
        return [name for name, _ in self.commands]

    def bind(self, listener: TransportListener | None) -> None:
        self._listener = listener

    # Commands

    def connect(self, address: str) -> None:
        self._record("connect", address)
        self._close_link()
        peer = self.peers.get(address)
        if peer is None:
            raise TransportError(f"Device {address} not found")
        self._peer = peer
        if self._rejects("connect"):
            raise TransportError("connect rejected by peer")
        if peer.reachable:
            self._later(peer.connect_delay, self._link_up)

    def disconnect(self) -> None:
        self._record("disconnect")
        self._close_link()

    def negotiate_security(self) -> None:
        peer = self._command("negotiate_security")
        if peer.drops_during_negotiation:
            self._later(peer.response_delay, self._link_down)
        elif peer.negotiates:
            self._later(peer.response_delay, self._status, "Security Result: 0")
            self._later(peer.response_delay, self._log, "Security Negotiation Result: 0")

    def configure_network(self, ssid: str, secret: str) -> None:
        peer = self._command("configure_network", ssid, "*" * len(secret))
        self._later(peer.response_delay, self._status, "Configure Params: 0")
        self._later(peer.response_delay, self._log, "Post Configure Params Result: 0")
        if peer.drops_during_configuration:
            self._later(peer.response_delay * 2, self._link_down)

    def send_opaque_config(self, key: str, value: str) -> None:
        peer = self._command("send_opaque_config", key, value)
        self._later(peer.response_delay, self._log, "Post Custom Data Result: 0")
        if key == "12":
            self._later(
                peer.response_delay * 2,
                self._log,
                f"Received Custom Data: 12:{peer.uid}",
            )
        elif key == "8" and value == "0" and peer.joins_network:
            self._later(peer.join_delay, self._join)

    def request_status(self) -> None:
        peer = self._command("request_status")
        state = STATE_CONNECTED if self._joined else STATE_DISCONNECTED
        self._later(peer.response_delay, self._status, "Device Status: 0")
        self._later(
            peer.response_delay,
            self._log,
            f"Status Response: OpMode: {int(OpMode.STATION)}, State: {state}",
        )

    def request_version(self) -> None:
        peer = self._command("request_version")
        self._later(peer.response_delay, self._status, "Device Version: 0")
        self._later(peer.response_delay, self._log, f"Version Response: {peer.uid}")

    def set_mode(self, mode: OpMode) -> None:
        peer = self._command("set_mode", int(mode))
        self._later(peer.response_delay, self._status, "Configure Params: 0")

    def start_discovery(self) -> None:
        self._record("start_discovery")
        self.stop_discovery(record=False)
        loop = asyncio.get_running_loop()
        for index, peer in enumerate(self.peers.values()):
            # Peers advertise repeatedly; the second report is a duplicate.
            for repeat in range(2):
                delay = 0.01 * (index + 1) + 0.05 * repeat
                self._discovery_handles.append(
                    loop.call_later(delay, self._advertise, peer)
                )

    def stop_discovery(self, record: bool = True) -> None:
        if record:
            self._record("stop_discovery")
        for handle in self._discovery_handles:
            handle.cancel()
        self._discovery_handles.clear()

    def request_network_scan(self) -> None:
        peer = self._command("request_network_scan")
        self._later(peer.response_delay, self._status, "Device Scan Result: 0")
        self._later(peer.response_delay, self._scan_result, peer.networks)

    # Peer behaviour

    def _record(self, name: str, *args: object) -> None:
        logger.debug("Simulated transport: %s", name)
        self.commands.append((name, args))

    def _rejects(self, name: str) -> bool:
        return self._peer is not None and name in self._peer.reject

    def _command(self, name: str, *args: object) -> PeerProfile:
        self._record(name, *args)
        if self._peer is None or not self._connected:
            raise TransportError(f"{name}: not connected")
        if self._rejects(name):
            raise TransportError(f"{name} rejected by peer")
        return self._peer

    def _later(self, delay: float, callback: Callable[..., None], *args: Any) -> None:
        handle = asyncio.get_running_loop().call_later(delay, callback, *args)
        self._link_handles.append(handle)

    def _close_link(self) -> None:
        for handle in self._link_handles:
            handle.cancel()
        self._link_handles.clear()
        self._connected = False
        self._joined = False

    def _link_up(self) -> None:
        self._connected = True
        self._log("Gatt Connection State: Connected (2), Status: 0")
        self._status("Connected")
        if self._listener is not None:
            self._listener.connection_changed(True)
        self._log("Gatt Prepared (Service Discovered). Requesting MTU 512...")
        self._log("MTU Changed to: 512")

    def _link_down(self) -> None:
        if not self._connected:
            return
        self._connected = False
        self._log("Gatt Connection State: Disconnected (0), Status: 8")
        self._status("Disconnected")
        if self._listener is not None:
            self._listener.connection_changed(False)

    def _join(self) -> None:
        self._joined = True
        self._status("Connected to Wi-Fi")
        peer = self._peer
        if peer is not None and peer.reboots:
            self._later(peer.reboot_delay, self._link_down)

    def _advertise(self, peer: PeerProfile) -> None:
        if self._listener is not None:
            self._listener.discovery_result(peer.address, peer.name, peer.rssi)

    def _scan_result(self, networks: Sequence[WifiNetwork]) -> None:
        if self._listener is not None:
            self._listener.network_scan_result(networks)
        self._log(f"Device Scan: Found {len(networks)} Wi-Fi networks")

    def _log(self, text: str) -> None:
        if self._listener is not None:
            self._listener.log_line(text)

    def _status(self, text: str) -> None:
        if self._listener is not None:
            self._listener.status_report({"status": text})
