"""Capability surface of the short-range link to the peer.

The radio stack, the security handshake and the wire encoding of commands
belong to the transport. The provisioner only issues the commands below and
listens to the events a transport reports through its bound listener.

Commands are fire-and-forget: a transport raises ``TransportError`` when it
rejects a call outright, otherwise the outcome shows up later as events.
Events may be reported from any thread.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import IntEnum
from typing import Any, Protocol

from espprov.models import WifiNetwork


class OpMode(IntEnum):
    NULL = 0
    STATION = 1
    SOFTAP = 2
    STATION_SOFTAP = 3


class TransportListener(Protocol):
    def connection_changed(self, connected: bool) -> None: ...

    def log_line(self, text: str) -> None: ...

    def status_report(self, payload: str | Mapping[str, Any]) -> None: ...

    def discovery_result(self, address: str, name: str, rssi: int) -> None: ...

    def network_scan_result(self, networks: Sequence[WifiNetwork]) -> None: ...


class Transport(Protocol):
    def bind(self, listener: TransportListener | None) -> None: ...

    def connect(self, address: str) -> None: ...

    def disconnect(self) -> None: ...

    def negotiate_security(self) -> None: ...

    def configure_network(self, ssid: str, secret: str) -> None: ...

    def send_opaque_config(self, key: str, value: str) -> None: ...

    def request_status(self) -> None: ...

    def request_version(self) -> None: ...

    def set_mode(self, mode: OpMode) -> None: ...

    def start_discovery(self) -> None: ...

    def stop_discovery(self) -> None: ...

    def request_network_scan(self) -> None: ...
