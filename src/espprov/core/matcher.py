"""Classify raw peer log/status text into provisioning signals.

Everything the provisioner and the presentation layer need to know about the
peer's free-form text lives in ``RULES``. Rules are tried in order and the first
one that produces a match wins, so more specific phrases ("Disconnected",
"Connected to Wi-Fi") sit above the generic "Connected".
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from espprov.models import ConnectionChanged, DomainEvent, LogLine, StatusReport

TEXT_FIELDS = ("log", "status", "data")

CUSTOM_DATA_MARKER = "Received Custom Data: 12:"
UID_PATTERN = re.compile(r"\d{10,}")


class Signal(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    SECURITY_OK = "security_ok"
    SECURITY_FAILED = "security_failed"
    WIFI_JOINED = "wifi_joined"
    PEER_IDLE = "peer_idle"
    TRANSPORT_ERROR = "transport_error"
    UID = "uid"


@dataclass(frozen=True)
class Match:
    signal: Signal
    value: str | None = None


Extractor = Callable[[re.Match[str]], str | None]


@dataclass(frozen=True)
class Rule:
    pattern: re.Pattern[str]
    signal: Signal
    extract: Extractor | None = None

    def apply(self, text: str) -> Match | None:
        found = self.pattern.search(text)
        if found is None:
            return None
        if self.extract is None:
            return Match(self.signal)
        value = self.extract(found)
        if value is None:
            return None
        return Match(self.signal, value)


def _uid_token(found: re.Match[str]) -> str | None:
    token = found.group("token").strip()
    if UID_PATTERN.fullmatch(token):
        return token
    return None


RULES: tuple[Rule, ...] = (
    Rule(
        re.compile(re.escape(CUSTOM_DATA_MARKER) + r"(?P<token>.*)"),
        Signal.UID,
        _uid_token,
    ),
    Rule(
        re.compile(r"(?:Version Response|Device Version):\s*(?P<token>.+)"),
        Signal.UID,
        _uid_token,
    ),
    Rule(re.compile(r"Disconnected"), Signal.DISCONNECTED),
    Rule(re.compile(r"Connected to Wi-Fi"), Signal.WIFI_JOINED),
    Rule(re.compile(r"\bState: 0\b"), Signal.PEER_IDLE),
    Rule(re.compile(r"Security Result: 0\b"), Signal.SECURITY_OK),
    Rule(re.compile(r"Security Result: -?\d+"), Signal.SECURITY_FAILED),
    Rule(re.compile(r"^Error: (?!0\b)"), Signal.TRANSPORT_ERROR),
    Rule(re.compile(r"\bConnected\b"), Signal.CONNECTED),
)


def message_text(payload: str | Mapping[str, Any] | None) -> str | None:
    """Pull the human-readable text out of a raw transport payload.

    Peers put their text in a ``log``, ``status`` or ``data`` field depending
    on which callback produced it; any of them is accepted.
    """
    if payload is None:
        return None
    if isinstance(payload, str):
        return payload or None
    for key in TEXT_FIELDS:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def classify(text: str | None) -> Match | None:
    if not text:
        return None
    for rule in RULES:
        match = rule.apply(text)
        if match is not None:
            return match
    return None


def extract_uid(text: str | None) -> str | None:
    match = classify(text)
    if match is not None and match.signal is Signal.UID:
        return match.value
    return None


def signal_for(event: DomainEvent) -> Match | None:
    if isinstance(event, ConnectionChanged):
        return Match(Signal.CONNECTED if event.connected else Signal.DISCONNECTED)
    if isinstance(event, (LogLine, StatusReport)):
        return classify(event.text)
    return None


def on_signal(*signals: Signal) -> Callable[[DomainEvent], bool]:
    """Build an awaiter predicate that accepts any of ``signals``."""
    wanted = frozenset(signals)

    def predicate(event: DomainEvent) -> bool:
        match = signal_for(event)
        return match is not None and match.signal in wanted

    return predicate
