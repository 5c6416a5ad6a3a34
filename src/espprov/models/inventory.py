from __future__ import annotations

from collections.abc import Iterable

from .events import DiscoveredDevice, WifiNetwork


class DeviceInventory:
    """Devices seen during the current discovery run, keyed by address."""

    def __init__(self) -> None:
        self._devices: dict[str, DiscoveredDevice] = {}

    def clear(self) -> None:
        self._devices.clear()

    def add(self, device: DiscoveredDevice) -> bool:
        if device.address in self._devices:
            return False
        self._devices[device.address] = device
        return True

    def get(self, address: str) -> DiscoveredDevice | None:
        return self._devices.get(address)

    def sorted(self, name_filter: str = "") -> list[DiscoveredDevice]:
        devices = [
            device
            for device in self._devices.values()
            if not name_filter
            or name_filter in device.name
            or name_filter in device.address
        ]
        devices.sort(key=lambda device: device.rssi, reverse=True)
        return devices

    def __len__(self) -> int:
        return len(self._devices)


class NetworkInventory:
    """Wi-Fi networks reported by the peer, deduplicated by ssid.

    When the same ssid shows up more than once, within a burst or across
    bursts, the entry with the strongest signal is kept.
    """

    def __init__(self) -> None:
        self._networks: dict[str, WifiNetwork] = {}

    def clear(self) -> None:
        self._networks.clear()

    def ingest(self, networks: Iterable[WifiNetwork]) -> None:
        for network in networks:
            if not network.ssid:
                continue
            known = self._networks.get(network.ssid)
            if known is None or network.rssi > known.rssi:
                self._networks[network.ssid] = network

    def sorted(self) -> list[WifiNetwork]:
        return sorted(
            self._networks.values(), key=lambda network: network.rssi, reverse=True
        )

    def __len__(self) -> int:
        return len(self._networks)
