from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal

LogLevel = Literal["info", "success", "warning", "error"]


class Phase(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    NEGOTIATING = "negotiating"
    CONFIGURING_NETWORK = "configuring_network"
    CONFIGURING_BROKER = "configuring_broker"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (Phase.SUCCEEDED, Phase.FAILED, Phase.CANCELLED)


class OutcomeStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Outcome:
    status: OutcomeStatus = OutcomeStatus.PENDING
    reason: str | None = None


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    message: str
    level: LogLevel = "info"

    def format(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"


class LogStore:
    """Append-only, ordered progress log.

    ``listener`` is called with every new entry, after it is stored.
    """

    def __init__(self, listener: Callable[[LogEntry], None] | None = None) -> None:
        self._entries: list[LogEntry] = []
        self.listener = listener

    def append(self, message: str, level: LogLevel = "info") -> LogEntry:
        entry = LogEntry(timestamp=datetime.now(), message=message, level=level)
        self._entries.append(entry)
        if self.listener is not None:
            self.listener(entry)
        return entry

    def snapshot(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class ProvisioningSession:
    """One provisioning attempt against one device.

    Only the provisioner mutates a session; everyone else reads snapshots.
    """

    address: str
    ssid: str
    secret: str
    broker_host: str = ""
    broker_port: int | None = None
    phase: Phase = Phase.IDLE
    outcome: Outcome = field(default_factory=Outcome)
    uid: str | None = None
    peer_released: bool = False
    log: LogStore = field(default_factory=LogStore, repr=False)

    @property
    def finished(self) -> bool:
        return self.outcome.status is not OutcomeStatus.PENDING

    def set_uid(self, uid: str) -> bool:
        # First accepted UID wins for the lifetime of the session.
        if self.uid is not None:
            return False
        self.uid = uid
        return True

    def entries(self) -> tuple[LogEntry, ...]:
        return self.log.snapshot()
