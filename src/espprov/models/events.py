from __future__ import annotations

from pydantic import BaseModel, Field


class WifiNetwork(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    ssid: str
    rssi: int


class DiscoveredDevice(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    address: str
    name: str
    rssi: int


class ConnectionChanged(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    connected: bool


class LogLine(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    text: str


class StatusReport(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    text: str


class NetworkScanResult(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    networks: tuple[WifiNetwork, ...] = Field(default_factory=tuple)


class DeviceDiscovered(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    device: DiscoveredDevice


DomainEvent = (
    ConnectionChanged | LogLine | StatusReport | NetworkScanResult | DeviceDiscovered
)


def event_text(event: DomainEvent) -> str | None:
    """Human-readable text carried by an event, if any."""
    if isinstance(event, (LogLine, StatusReport)):
        return event.text or None
    return None
