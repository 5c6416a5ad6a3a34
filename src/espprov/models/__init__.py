"""Data models for espprov."""

from espprov.models.events import (
    ConnectionChanged,
    DeviceDiscovered,
    DiscoveredDevice,
    DomainEvent,
    LogLine,
    NetworkScanResult,
    StatusReport,
    WifiNetwork,
    event_text,
)
from espprov.models.inventory import DeviceInventory, NetworkInventory
from espprov.models.session import (
    LogEntry,
    LogLevel,
    LogStore,
    Outcome,
    OutcomeStatus,
    Phase,
    ProvisioningSession,
)

__all__ = [
    "ConnectionChanged",
    "DeviceDiscovered",
    "DeviceInventory",
    "DiscoveredDevice",
    "DomainEvent",
    "LogEntry",
    "LogLevel",
    "LogLine",
    "LogStore",
    "NetworkInventory",
    "NetworkScanResult",
    "Outcome",
    "OutcomeStatus",
    "Phase",
    "ProvisioningSession",
    "StatusReport",
    "WifiNetwork",
    "event_text",
]
